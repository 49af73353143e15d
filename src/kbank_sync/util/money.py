from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation


logger = logging.getLogger(__name__)


def parse_amount(value: str) -> Decimal:
    """
    Parse statement amounts like:
    - "1,234.56"
    - "-500.00"
    - "0.25"

    Unparseable cells yield Decimal("0") instead of raising; one odd cell must not sink a whole statement.
    """
    s = (value or "").replace(",", "").strip()
    if not s:
        return Decimal("0")
    try:
        dec = Decimal(s)
    except InvalidOperation:
        logger.debug("Unparseable amount cell %r; using 0.", value)
        return Decimal("0")
    if not dec.is_finite():
        logger.debug("Non-finite amount cell %r; using 0.", value)
        return Decimal("0")
    return dec


def strip_account_separators(value: str) -> str:
    # "123-4-56789-0" -> "1234567890"
    return "".join((value or "").replace("-", "").split())


def format_account_no(account_no: str) -> str:
    """
    Render a 10-digit account number the way the portal labels it: "123-4-56789-0".
    """
    a = account_no or ""
    return f"{a[0:3]}-{a[3:4]}-{a[4:9]}-{a[9:10]}"
