from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Sequence

from dateutil import tz


DEFAULT_TIMEZONE = "Asia/Bangkok"


def bank_timezone(name: str = DEFAULT_TIMEZONE) -> tzinfo:
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown time zone: {name!r}")
    return zone


def parse_bank_timestamp(parts: Sequence[str], zone: tzinfo) -> datetime:
    """
    Build a timestamp from the six numeric groups of a statement time cell:
    day, month, year, hour, minute, second (e.g. "09/10/23 14:30:00").

    Years are two digits on the portal; a four-digit year is accepted as well.
    """
    if len(parts) != 6:
        raise ValueError(f"parse_bank_timestamp: expected 6 components, got {len(parts)}")
    day, month, year, hour, minute, second = parts
    year_fmt = "%Y" if len(year) == 4 else "%y"
    text = f"{day}/{month}/{year} {hour}:{minute}:{second}"
    naive = datetime.strptime(text, f"%d/%m/{year_fmt} %H:%M:%S")
    return naive.replace(tzinfo=zone)
