from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

import requests

from ..errors import (
    AccountNotFoundError,
    KBankError,
    NotAuthenticatedError,
    ProtocolError,
    SessionCheckFailedError,
)
from ..models import BankCredentials, LoginState, Transaction
from ..util.dates import DEFAULT_TIMEZONE, bank_timezone
from ..util.money import format_account_no
from .selectors import DEFAULT_MARKERS, PortalMarkers
from .session import DEFAULT_TIMEOUT_SECONDS, SessionClient
from .statement import parse_statement
from .tokens import TokenKind, extract_account_id, extract_token, require_token


logger = logging.getLogger(__name__)

ONLINE_BASE_URL = "https://online.kasikornbankgroup.com/K-Online"
EBANK_BASE_URL = "https://ebank.kasikornbankgroup.com"


class KBankClient:
    """
    KBank online-banking automation over plain HTTP.

    Two hosts are involved:
    - K-Online (`online.kasikornbankgroup.com`): credentials + session check
    - K-eBank (`ebank.kasikornbankgroup.com`): statements; entered via a one-shot `txtParam` handoff

    Usage is strictly sequential: `login()` first, then `get_transactions()` as often as needed.
    """

    def __init__(
        self,
        creds: BankCredentials,
        *,
        online_base_url: str = ONLINE_BASE_URL,
        ebank_base_url: str = EBANK_BASE_URL,
        timezone: str = DEFAULT_TIMEZONE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        debug_dir: str = "",
        markers: Optional[PortalMarkers] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.creds = creds
        self.online_base_url = online_base_url.rstrip("/")
        self.ebank_base_url = ebank_base_url.rstrip("/")
        self.zone = bank_timezone(timezone)
        self.debug_dir = debug_dir
        self.markers = markers or DEFAULT_MARKERS
        self.http = SessionClient(timeout_seconds=timeout_seconds, session=session)
        self.state = LoginState.UNAUTHENTICATED

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "KBankClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def is_authenticated(self) -> bool:
        return self.state is LoginState.AUTHENTICATED

    # ---- login -------------------------------------------------------------------------------------------

    def login(self) -> None:
        """
        Run the full K-Online -> K-eBank login handshake.

        Raises a KBankError subclass on the first failing step; the client is then left in FAILED and the
        next `login()` starts over from scratch.
        """
        self.http.reset()
        self.state = LoginState.UNAUTHENTICATED
        try:
            self._submit_credentials()
            self.state = LoginState.SUBMITTED

            if not self.check_session():
                raise SessionCheckFailedError(
                    "K-Online session check failed after submitting credentials (wrong credentials or page change)",
                    step="check_session",
                )
            self.state = LoginState.AUTHENTICATED_PRIMARY
            logger.info("K-Online login accepted; handing session off to K-eBank.")

            self._handoff_to_ebank()
            self.state = LoginState.AUTHENTICATED
        except KBankError:
            self.state = LoginState.FAILED
            raise
        logger.info("Logged in to K-eBank.")

    def check_session(self) -> bool:
        """
        True if the K-Online session is alive. Never raises: any transport failure reads as "not logged in".
        """
        try:
            body = self.http.post(f"{self.online_base_url}/checkSession.jsp")
        except KBankError:
            logger.debug("checkSession request failed; treating as logged out.", exc_info=True)
            return False
        return self.markers.session_ok_marker in body

    def _submit_credentials(self) -> None:
        url = f"{self.online_base_url}/login.do"
        page = self.http.get(url)

        # The session check is the authority on whether login worked; an empty token is still worth a try.
        token_id = extract_token(page, TokenKind.LOGIN_TOKEN, markers=self.markers)
        if not token_id:
            logger.warning("tokenId not found on K-Online login page; submitting without it.")
            self._save_debug(page, name_prefix="login_page_no_token")

        self.http.post(
            url,
            [
                ("tokenId", token_id),
                ("userName", self.creds.username),
                ("password", self.creds.password),
                ("cmd", "authenticate"),
                ("locale", "en"),
                ("custType", ""),
                ("app", "0"),
            ],
        )

    def _handoff_to_ebank(self) -> None:
        page = self.http.get(f"{self.online_base_url}/ib/redirectToIB.jsp")
        txt_param = self._require(page, TokenKind.HANDOFF_PARAM, step="handoff")
        self.http.post(f"{self.ebank_base_url}/retail/security/Welcome.do", [("txtParam", txt_param)])

    # ---- statements --------------------------------------------------------------------------------------

    def get_transactions(self) -> list[Transaction]:
        """
        Today's transactions for the configured account, in the order the portal lists them.
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError(f"login() must succeed before fetching transactions (state={self.state.value})")

        url = f"{self.ebank_base_url}/retail/cashmanagement/TodayAccountStatementInquiry.do"
        page = self.http.get(url)

        form_token = self._require(page, TokenKind.ANTI_FORGERY, step="statement_inquiry")
        account_id = extract_account_id(page, self.creds.account_no, markers=self.markers)
        if not account_id:
            self._save_debug(page, name_prefix="statement_inquiry_account_not_found")
            raise AccountNotFoundError(
                f"Account {format_account_no(self.creds.account_no)} is not listed on the statement page",
                step="statement_inquiry",
            )

        body = self.http.post(
            url,
            [
                ("org.apache.struts.taglib.html.TOKEN", form_token),
                ("captcha_check", "null"),
                ("acctId", account_id),
                ("action", "detail"),
                ("st", "0"),
            ],
        )
        txns = parse_statement(body, self.zone, markers=self.markers)
        logger.info("Fetched %d transactions.", len(txns))
        return txns

    # ---- helpers -----------------------------------------------------------------------------------------

    def _require(self, page: str, kind: TokenKind, *, step: str) -> str:
        try:
            return require_token(page, kind, step=step, markers=self.markers)
        except ProtocolError:
            self._save_debug(page, name_prefix=f"{step}_no_{kind.value}")
            raise

    def _save_debug(self, page: str, *, name_prefix: str) -> None:
        if not self.debug_dir:
            return
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name_prefix).strip("_")[:60] or "page"
            (out_dir / f"{safe}.html").write_text(page, encoding="utf-8")
        except Exception:
            logger.debug("Failed to save debug page.", exc_info=True)
