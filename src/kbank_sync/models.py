from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


@dataclass(frozen=True)
class BankCredentials:
    username: str
    password: str
    # 10 digits, no separators (e.g. "1234567890").
    account_no: str


class LoginState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    SUBMITTED = "submitted"
    AUTHENTICATED_PRIMARY = "authenticated_primary"
    # Terminal success: both portal hosts share a linked session.
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class Transaction(BaseModel):
    # Timezone-aware, in the bank's local time zone.
    time: datetime
    amount: Decimal
    counterparty_account_no: str = ""
    detail: str = ""

    def csv_row(self) -> list[str]:
        return [self.time.isoformat(), str(self.amount), self.counterparty_account_no, self.detail]
