from .errors import (
    AccountNotFoundError,
    KBankError,
    NotAuthenticatedError,
    ProtocolError,
    SessionCheckFailedError,
    TokenNotFoundError,
    TransportError,
)
from .models import BankCredentials, LoginState, Transaction
from .portal.client import KBankClient

__all__ = [
    "KBankClient",
    "BankCredentials",
    "LoginState",
    "Transaction",
    "KBankError",
    "TransportError",
    "ProtocolError",
    "TokenNotFoundError",
    "SessionCheckFailedError",
    "AccountNotFoundError",
    "NotAuthenticatedError",
]
