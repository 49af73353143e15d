from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .config import AppConfig, load_config
from .errors import KBankError
from .logging_config import configure_logging
from .models import Transaction
from .portal.client import KBankClient


logger = logging.getLogger("kbank_sync")

CSV_HEADER = ["time", "amount", "counterparty_account_no", "detail"]


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kbank_sync")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser("check-login", help="Log in to K-Online/K-eBank and verify the session")
    check.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    txns = sub.add_parser("transactions", help="Log in and print today's transactions for the configured account")
    txns.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    txns.add_argument("--format", choices=("json", "csv"), default="json", help="Output format (default: json)")

    return p


def _client_from_config(cfg: AppConfig) -> KBankClient:
    bank = cfg.bank
    return KBankClient(
        bank.credentials(),
        online_base_url=bank.online_base_url,
        ebank_base_url=bank.ebank_base_url,
        timezone=bank.timezone,
        timeout_seconds=bank.timeout_seconds,
        debug_dir=cfg.debug.dir,
    )


def _write_transactions(txns: list[Transaction], fmt: str) -> None:
    if fmt == "csv":
        w = csv.writer(sys.stdout)
        w.writerow(CSV_HEADER)
        for t in txns:
            w.writerow(t.csv_row())
        return
    json.dump([t.model_dump(mode="json") for t in txns], sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"), secrets=(os.getenv("KBANK_PASSWORD", ""),))

    try:
        cfg = load_config(args.config)
    except (ValidationError, yaml.YAMLError) as e:
        logger.error("Invalid configuration (%s): %s", args.config, e)
        return 2
    configure_logging(
        level=cfg.logging.level,
        file_path=cfg.logging.file_path or None,
        secrets=(cfg.bank.password,),
    )

    try:
        with _client_from_config(cfg) as client:
            client.login()

            if args.cmd == "check-login":
                if not client.check_session():
                    logger.error("Logged in, but the K-Online session check failed afterwards.")
                    return 1
                logger.info("Login OK")
                return 0

            if args.cmd == "transactions":
                _write_transactions(client.get_transactions(), args.format)
                return 0
    except KBankError as e:
        logger.error("%s failed: %s", args.cmd, e)
        return 1

    raise AssertionError(f"Unhandled command: {args.cmd}")
