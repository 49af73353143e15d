from __future__ import annotations

import logging
import re
from enum import Enum
from functools import lru_cache

from ..errors import TokenNotFoundError
from ..util.money import format_account_no
from .selectors import DEFAULT_MARKERS, PortalMarkers


logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    LOGIN_TOKEN = "login_token"
    HANDOFF_PARAM = "handoff_param"
    ANTI_FORGERY = "anti_forgery"


@lru_cache(maxsize=None)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def extract_token(html: str, kind: TokenKind, *, markers: PortalMarkers = DEFAULT_MARKERS) -> str:
    """
    Return the value of the hidden field for `kind`, or "" if its anchor is not on the page.
    """
    m = _compiled(getattr(markers, kind.value)).search(html or "")
    return m.group(1) if m else ""


def require_token(html: str, kind: TokenKind, *, step: str, markers: PortalMarkers = DEFAULT_MARKERS) -> str:
    value = extract_token(html, kind, markers=markers)
    if not value:
        raise TokenNotFoundError(f"{kind.value} not found on page (step={step})", step=step, kind=kind)
    return value


def extract_account_id(html: str, account_no: str, *, markers: PortalMarkers = DEFAULT_MARKERS) -> str:
    """
    Find the portal's internal id for `account_no` in the account dropdown ("" if not listed).
    """
    label = format_account_no(account_no)
    m = markers.account_option(label).search(html or "")
    if not m:
        logger.debug("No account option labelled %s on page.", label)
        return ""
    return m.group(1)
