from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from urllib.parse import parse_qs

import pytest
import requests
import responses
from dateutil import tz

from kbank_sync.errors import (
    AccountNotFoundError,
    NotAuthenticatedError,
    SessionCheckFailedError,
    TokenNotFoundError,
    TransportError,
)
from kbank_sync.models import BankCredentials, LoginState
from kbank_sync.portal.client import EBANK_BASE_URL, ONLINE_BASE_URL, KBankClient


LOGIN_URL = f"{ONLINE_BASE_URL}/login.do"
CHECK_URL = f"{ONLINE_BASE_URL}/checkSession.jsp"
REDIRECT_URL = f"{ONLINE_BASE_URL}/ib/redirectToIB.jsp"
WELCOME_URL = f"{EBANK_BASE_URL}/retail/security/Welcome.do"
STATEMENT_URL = f"{EBANK_BASE_URL}/retail/cashmanagement/TodayAccountStatementInquiry.do"

BKK = tz.gettz("Asia/Bangkok")


def _client(**kwargs) -> KBankClient:
    return KBankClient(BankCredentials(username="somchai", password="s3cret", account_no="1234567890"), **kwargs)


def _form(call) -> dict[str, list[str]]:
    return parse_qs(call.request.body or "", keep_blank_values=True)


def _calls_to(mocked: responses.RequestsMock, method: str, url: str) -> list:
    return [c for c in mocked.calls if c.request.method == method and c.request.url == url]


def _mock_login(mocked: responses.RequestsMock, fixture_html, **overrides: str) -> None:
    pages = {
        "login": fixture_html("login.html"),
        "check": fixture_html("session_ok.xml"),
        "redirect": fixture_html("redirect_to_ib.html"),
        "welcome": fixture_html("welcome.html"),
    }
    pages.update(overrides)
    mocked.add(
        responses.GET,
        LOGIN_URL,
        body=pages["login"],
        headers={"Set-Cookie": "JSESSIONID=online1; Domain=.kasikornbankgroup.com; Path=/"},
    )
    mocked.add(responses.POST, LOGIN_URL, body="<html>authenticating</html>")
    mocked.add(responses.POST, CHECK_URL, body=pages["check"])
    mocked.add(responses.GET, REDIRECT_URL, body=pages["redirect"])
    mocked.add(responses.POST, WELCOME_URL, body=pages["welcome"])


def _mock_statement(mocked: responses.RequestsMock, fixture_html, *, inquiry: str = "") -> None:
    mocked.add(responses.GET, STATEMENT_URL, body=inquiry or fixture_html("statement_inquiry.html"))
    mocked.add(responses.POST, STATEMENT_URL, body=fixture_html("statement_detail.html"))


def test_login_walks_both_hosts(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html)
    client = _client()

    client.login()

    assert client.state is LoginState.AUTHENTICATED
    assert [(c.request.method, c.request.url) for c in mocked.calls] == [
        ("GET", LOGIN_URL),
        ("POST", LOGIN_URL),
        ("POST", CHECK_URL),
        ("GET", REDIRECT_URL),
        ("POST", WELCOME_URL),
    ]

    creds = _form(mocked.calls[1])
    assert creds == {
        "tokenId": ["1697012345678"],
        "userName": ["somchai"],
        "password": ["s3cret"],
        "cmd": ["authenticate"],
        "locale": ["en"],
        "custType": [""],
        "app": ["0"],
    }
    assert _form(mocked.calls[4]) == {"txtParam": ["a1b2c3d4e5f60789"]}
    # Session cookie from K-Online travels with the handoff to K-eBank.
    assert "JSESSIONID=online1" in mocked.calls[4].request.headers.get("Cookie", "")


def test_login_then_transactions_end_to_end(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html)
    _mock_statement(mocked, fixture_html)

    with _client() as client:
        client.login()
        txns = client.get_transactions()

    detail_post = _calls_to(mocked, "POST", STATEMENT_URL)[0]
    assert _form(detail_post) == {
        "org.apache.struts.taglib.html.TOKEN": ["1697012399.48213"],
        "captcha_check": ["null"],
        "acctId": ["88112233"],
        "action": ["detail"],
        "st": ["0"],
    }

    assert [(t.time, t.amount, t.counterparty_account_no, t.detail) for t in txns] == [
        (datetime(2023, 10, 9, 14, 30, 0, tzinfo=BKK), Decimal("1234.56"), "1234567890", "From SOMCHAI J"),
        (datetime(2023, 10, 9, 15, 5, 12, tzinfo=BKK), Decimal("-500.00"), "9876543210", "To SUDA K"),
        (datetime(2023, 10, 10, 8, 0, 1, tzinfo=BKK), Decimal("0"), "", "ATM fee"),
    ]


def test_check_session_true_only_with_success_marker(mocked: responses.RequestsMock, fixture_html) -> None:
    mocked.add(responses.POST, CHECK_URL, body=fixture_html("session_ok.xml"))
    mocked.add(responses.POST, CHECK_URL, body=fixture_html("session_expired.xml"))
    mocked.add(responses.POST, CHECK_URL, body="<html>Login</html>")

    client = _client()
    assert client.check_session() is True
    assert client.check_session() is False
    assert client.check_session() is False


def test_check_session_transport_failure_is_false(mocked: responses.RequestsMock) -> None:
    mocked.add(responses.POST, CHECK_URL, body=requests.ConnectTimeout("timed out"))
    assert _client().check_session() is False


def test_failed_session_check_aborts_login(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html, check=fixture_html("session_expired.xml"))
    client = _client()

    with pytest.raises(SessionCheckFailedError) as ei:
        client.login()

    assert ei.value.step == "check_session"
    assert client.state is LoginState.FAILED
    assert not _calls_to(mocked, "GET", REDIRECT_URL)
    assert not _calls_to(mocked, "POST", WELCOME_URL)


def test_missing_login_token_is_tolerated(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html, login="<html><form></form></html>")
    client = _client()

    client.login()

    assert client.is_authenticated
    assert _form(_calls_to(mocked, "POST", LOGIN_URL)[0])["tokenId"] == [""]


def test_missing_handoff_param_fails_and_saves_page(
    mocked: responses.RequestsMock, fixture_html, tmp_path: Path
) -> None:
    _mock_login(mocked, fixture_html, redirect="<html>session expired</html>")
    client = _client(debug_dir=str(tmp_path / "debug"))

    with pytest.raises(TokenNotFoundError) as ei:
        client.login()

    assert ei.value.step == "handoff"
    assert client.state is LoginState.FAILED
    assert not _calls_to(mocked, "POST", WELCOME_URL)
    saved = tmp_path / "debug" / "handoff_no_handoff_param.html"
    assert saved.read_text(encoding="utf-8") == "<html>session expired</html>"


def test_transport_error_during_login(mocked: responses.RequestsMock) -> None:
    mocked.add(responses.GET, LOGIN_URL, body=requests.ConnectionError("connection refused"))
    client = _client()

    with pytest.raises(TransportError):
        client.login()
    assert client.state is LoginState.FAILED


def test_relogin_starts_from_scratch(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html)
    client = _client()
    client.login()
    client.login()

    assert len(_calls_to(mocked, "GET", LOGIN_URL)) == 2
    assert len(_calls_to(mocked, "POST", WELCOME_URL)) == 2
    assert client.is_authenticated


def test_transactions_require_login() -> None:
    with pytest.raises(NotAuthenticatedError):
        _client().get_transactions()


def test_unknown_account_is_a_hard_failure(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html)
    inquiry = fixture_html("statement_inquiry.html").replace("123-4-56789-0 ", "555-5-55555-5 ")
    _mock_statement(mocked, fixture_html, inquiry=inquiry)
    client = _client()
    client.login()

    with pytest.raises(AccountNotFoundError) as ei:
        client.get_transactions()

    assert ei.value.step == "statement_inquiry"
    assert not _calls_to(mocked, "POST", STATEMENT_URL)


def test_missing_anti_forgery_token_is_a_hard_failure(mocked: responses.RequestsMock, fixture_html) -> None:
    _mock_login(mocked, fixture_html)
    inquiry = fixture_html("statement_inquiry.html").replace("org.apache.struts.taglib.html.TOKEN", "TOKEN")
    _mock_statement(mocked, fixture_html, inquiry=inquiry)
    client = _client()
    client.login()

    with pytest.raises(TokenNotFoundError) as ei:
        client.get_transactions()

    assert ei.value.step == "statement_inquiry"
    assert not _calls_to(mocked, "POST", STATEMENT_URL)


def test_custom_base_urls_are_used(mocked: responses.RequestsMock, fixture_html) -> None:
    online = "https://online.test.kasikornbankgroup.com/K-Online"
    mocked.add(responses.POST, f"{online}/checkSession.jsp", body=fixture_html("session_ok.xml"))

    client = _client(online_base_url=online + "/")
    assert client.check_session() is True
