from __future__ import annotations

from typing import Optional


class KBankError(RuntimeError):
    """
    Base class for everything the portal client raises.
    """


class TransportError(KBankError):
    """
    The HTTP request itself failed (connection refused, TLS failure, timeout, non-2xx status).
    """

    def __init__(self, message: str, *, method: str = "", url: str = "") -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class ProtocolError(KBankError):
    """
    The portal answered, but not with the markup we expect at this step.

    Either the page structure changed or the credentials were rejected; the portal does not let us tell
    those apart.
    """

    def __init__(self, message: str, *, step: str) -> None:
        super().__init__(message)
        self.step = step


class TokenNotFoundError(ProtocolError):
    def __init__(self, message: str, *, step: str, kind: Optional[object] = None) -> None:
        super().__init__(message, step=step)
        self.kind = kind


class SessionCheckFailedError(ProtocolError):
    pass


class AccountNotFoundError(ProtocolError):
    pass


class NotAuthenticatedError(KBankError):
    """
    Raised when transactions are requested before `login()` completed.
    """
