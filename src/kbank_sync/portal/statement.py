from __future__ import annotations

import logging
import re
from datetime import tzinfo
from typing import Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..models import Transaction
from ..util.dates import parse_bank_timestamp
from ..util.money import parse_amount, strip_account_separators
from .selectors import DEFAULT_MARKERS, PortalMarkers


logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"[0-9]+")


def _cell_text(row: Tag, selector: str) -> str:
    cell = row.select_one(selector)
    return cell.get_text() if cell is not None else ""


def parse_transaction_row(row: Tag, zone: tzinfo, *, markers: PortalMarkers = DEFAULT_MARKERS) -> Optional[Transaction]:
    """
    Turn one `#trans_detail` row into a Transaction, or None for non-data rows.

    A row counts as data only when its time cell holds exactly six numbers (d, m, y, H, M, S) that form a
    valid timestamp. Header/footer/summary rows fail that shape and are skipped. A bad amount does not
    drop the row; it becomes 0.
    """
    parts = _NUMBER_RE.findall(_cell_text(row, markers.cell_time))
    if len(parts) != 6:
        return None
    try:
        when = parse_bank_timestamp(parts, zone)
    except ValueError:
        logger.debug("Skipping row with unparseable time %s", parts)
        return None

    return Transaction(
        time=when,
        amount=parse_amount(_cell_text(row, markers.cell_amount)),
        counterparty_account_no=strip_account_separators(_cell_text(row, markers.cell_counterparty)),
        detail=_cell_text(row, markers.cell_detail),
    )


def parse_statement(html: str, zone: tzinfo, *, markers: PortalMarkers = DEFAULT_MARKERS) -> list[Transaction]:
    """
    Parse the statement detail page into transactions, in table order.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    rows = soup.select(markers.statement_rows)

    out: list[Transaction] = []
    for row in rows:
        txn = parse_transaction_row(row, zone, markers=markers)
        if txn is not None:
            out.append(txn)

    skipped = len(rows) - len(out)
    if skipped:
        logger.debug("Statement table: %d rows, %d transactions, %d skipped", len(rows), len(out), skipped)
    return out
