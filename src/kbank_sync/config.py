from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .models import BankCredentials
from .portal.client import EBANK_BASE_URL, ONLINE_BASE_URL
from .portal.session import DEFAULT_TIMEOUT_SECONDS
from .util.dates import DEFAULT_TIMEZONE, bank_timezone


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_ACCOUNT_NO_RE = re.compile(r"^\d{10}$")


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; YAML remains an optional override.
    """
    return {
        "bank": {
            "username": os.getenv("KBANK_USERNAME", ""),
            "password": os.getenv("KBANK_PASSWORD", ""),
            "account_no": os.getenv("KBANK_ACCOUNT_NO", ""),
            "online_base_url": os.getenv("KBANK_ONLINE_BASE_URL", ONLINE_BASE_URL),
            "ebank_base_url": os.getenv("KBANK_EBANK_BASE_URL", EBANK_BASE_URL),
            "timezone": os.getenv("KBANK_TIMEZONE", DEFAULT_TIMEZONE),
            "timeout_seconds": os.getenv("KBANK_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
        "debug": {
            "dir": os.getenv("KBANK_DEBUG_DIR", ""),
        },
    }


def _validate_base_url(value: str, field: str) -> str:
    url = (value or "").strip().rstrip("/")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"bank.{field} must be a full URL (got {value!r})")
    return url


class BankConfig(BaseModel):
    """
    KBank online-banking login.

    `account_no` is the 10-digit account whose statement is fetched; "123-4-56789-0" style input is accepted.
    """

    username: str
    password: str = Field(repr=False)
    account_no: str
    online_base_url: str = ONLINE_BASE_URL
    ebank_base_url: str = EBANK_BASE_URL
    timezone: str = DEFAULT_TIMEZONE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @field_validator("account_no")
    @classmethod
    def _normalize_account_no(cls, v: str) -> str:
        digits = "".join((v or "").replace("-", "").split())
        if not _ACCOUNT_NO_RE.match(digits):
            raise ValueError("bank.account_no must be 10 digits (e.g. '1234567890' or '123-4-56789-0')")
        return digits

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        bank_timezone(v)
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def _check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("bank.timeout_seconds must be positive")
        return v

    @model_validator(mode="after")
    def _validate(self) -> "BankConfig":
        if not self.username or not self.password:
            raise ValueError("bank.username and bank.password are required")
        self.online_base_url = _validate_base_url(self.online_base_url, "online_base_url")
        self.ebank_base_url = _validate_base_url(self.ebank_base_url, "ebank_base_url")
        return self

    def credentials(self) -> BankCredentials:
        return BankCredentials(username=self.username, password=self.password, account_no=self.account_no)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class DebugConfig(BaseModel):
    # Where pages that failed a login/scrape step are saved; empty disables.
    dir: str = ""


class AppConfig(BaseModel):
    bank: BankConfig
    logging: LoggingConfig = LoggingConfig()
    debug: DebugConfig = DebugConfig()


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
