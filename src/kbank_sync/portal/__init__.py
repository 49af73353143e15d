from .client import EBANK_BASE_URL, ONLINE_BASE_URL, KBankClient
from .session import PublicSuffixCookiePolicy, SessionClient
from .tokens import TokenKind, extract_account_id, extract_token

__all__ = [
    "KBankClient",
    "ONLINE_BASE_URL",
    "EBANK_BASE_URL",
    "SessionClient",
    "PublicSuffixCookiePolicy",
    "TokenKind",
    "extract_token",
    "extract_account_id",
]
