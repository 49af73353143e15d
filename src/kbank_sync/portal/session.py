from __future__ import annotations

import logging
import time
from collections import abc
from functools import lru_cache
from http.cookiejar import DefaultCookiePolicy
from typing import Iterable, Mapping, Optional, Union

import requests
import tldextract

from ..errors import TransportError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

FormData = Union[Mapping[str, str], Iterable[tuple[str, str]]]


@lru_cache(maxsize=1)
def _suffix_extractor() -> tldextract.TLDExtract:
    # Bundled Public Suffix List snapshot only: no network fetch, no disk cache.
    return tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)


def is_public_suffix(domain: str) -> bool:
    d = (domain or "").strip().lstrip(".").lower()
    if not d:
        return True
    parts = _suffix_extractor()(d)
    return bool(parts.suffix) and not parts.domain


def declared_charset(resp: requests.Response) -> str:
    """
    The charset the server actually declared, or "".

    `requests` reports ISO-8859-1 for any charset-less `text/*` response; the portal serves UTF-8 (Thai)
    pages without a charset, so that default must not count as a declaration.
    """
    content_type = (resp.headers.get("Content-Type") or "").lower()
    if "charset" not in content_type:
        return ""
    return requests.utils.get_encoding_from_headers(resp.headers) or ""


class PublicSuffixCookiePolicy(DefaultCookiePolicy):
    """
    Stdlib cookie policy plus a Public Suffix List check on the `Domain` attribute.

    `online.kasikornbankgroup.com` and `ebank.kasikornbankgroup.com` share cookies scoped to
    `kasikornbankgroup.com`; a cookie scoped to a public suffix (`com`, `co.th`, `in.th`, ...) is refused.
    """

    def set_ok_domain(self, cookie, request) -> bool:
        if not super().set_ok_domain(cookie, request):
            return False
        if cookie.domain_specified and is_public_suffix(cookie.domain):
            logger.debug("Refusing cookie %s scoped to public suffix %s", cookie.name, cookie.domain)
            return False
        return True


class SessionClient:
    """
    Cookie-aware request executor for one portal login.

    Owns the `requests.Session` (and therefore the cookie jar) for its whole lifetime; nothing is shared
    between instances. Not safe for concurrent use.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        user_agent: str = "",
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = float(timeout_seconds)
        self._session = session or requests.Session()
        self._session.cookies.set_policy(PublicSuffixCookiePolicy())
        if user_agent:
            self._session.headers["User-Agent"] = user_agent

    @property
    def cookies(self) -> requests.cookies.RequestsCookieJar:
        return self._session.cookies

    def reset(self) -> None:
        """
        Drop every cookie, i.e. forget both portal sessions.
        """
        self._session.cookies.clear()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SessionClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, url: str) -> str:
        return self.request("GET", url)

    def post(self, url: str, form: Optional[FormData] = None) -> str:
        return self.request("POST", url, form)

    def request(self, method: str, url: str, form: Optional[FormData] = None) -> str:
        """
        Execute one request and return the decoded body.

        The timeout covers the whole operation (connect + full body read), not just a single socket op.
        The deadline is checked once headers arrive and after every body chunk, so a server stalling
        mid-body can overrun it by at most one socket read (itself bounded by `timeout_seconds`).
        POSTs always go out form-encoded, even when `form` is empty.
        """
        method = method.upper()
        kwargs: dict = {"timeout": self.timeout_seconds, "stream": True}
        if method == "POST":
            kwargs["data"] = list(form.items()) if isinstance(form, abc.Mapping) else list(form or [])
            kwargs["headers"] = {"Content-Type": FORM_CONTENT_TYPE}
        elif form:
            raise ValueError(f"{method} requests do not carry a form body")

        deadline = time.monotonic() + self.timeout_seconds
        try:
            with self._session.request(method, url, **kwargs) as resp:
                resp.raise_for_status()
                self._check_deadline(deadline, method, url)
                chunks: list[bytes] = []
                for chunk in resp.iter_content(chunk_size=16 * 1024):
                    chunks.append(chunk)
                    self._check_deadline(deadline, method, url)
                raw = b"".join(chunks)
                encoding = declared_charset(resp) or "utf-8"
                status = resp.status_code
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}", method=method, url=url) from e

        logger.debug("%s %s -> %s (%d bytes)", method, url, status, len(raw))
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    def _check_deadline(self, deadline: float, method: str, url: str) -> None:
        if time.monotonic() > deadline:
            raise TransportError(
                f"{method} {url} exceeded {self.timeout_seconds:.0f}s timeout",
                method=method,
                url=url,
            )
