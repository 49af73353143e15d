from .dates import bank_timezone, parse_bank_timestamp
from .money import format_account_no, parse_amount, strip_account_separators

__all__ = [
    "bank_timezone",
    "parse_bank_timestamp",
    "parse_amount",
    "strip_account_separators",
    "format_account_no",
]
