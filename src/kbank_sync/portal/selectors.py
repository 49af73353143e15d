from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PortalMarkers:
    """
    K-Online / K-eBank pages are server-rendered; markup may change over time.
    Keep all literal anchors and page hooks here for easy maintenance.

    Token anchors are full markup fragments, not just field names: several hidden inputs share
    partial names, so matching on the name alone picks up the wrong value.
    """

    # Login page (K-Online)
    login_token: str = r'<input type="hidden" name="tokenId" id="tokenId" value="([0-9]+)"/>'

    # Redirect-to-IB page (K-Online -> K-eBank handoff). The leading space is part of the rendered markup.
    handoff_param: str = r' <input type="hidden" name="txtParam" value="([a-z0-9]+)" />'

    # Struts anti-forgery token on every K-eBank form
    anti_forgery: str = r'<input type="hidden" name="org\.apache\.struts\.taglib\.html\.TOKEN" value="([0-9.]+)">'

    # Account dropdown on the statement page; label is the grouped account number plus a trailing space.
    account_option_template: str = r'<option value="([0-9]+)">{label} </option>'

    # checkSession.jsp body when the K-Online session is alive
    session_ok_marker: str = "<response><result>true</result></response>"

    # Statement table
    # No "tbody" here: html.parser does not insert implied tbody elements. Header/footer rows fail the
    # six-number time check and are skipped like any other non-data row.
    statement_rows: str = "#trans_detail tr"
    cell_time: str = "td:nth-child(1)"
    cell_amount: str = "td:nth-child(5)"
    cell_counterparty: str = "td:nth-child(6)"
    cell_detail: str = "td:nth-child(7)"

    def account_option(self, label: str) -> re.Pattern[str]:
        return re.compile(self.account_option_template.format(label=re.escape(label)))


DEFAULT_MARKERS = PortalMarkers()
