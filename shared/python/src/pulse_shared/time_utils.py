"""
time_utils.py — Date parsing and trailing-window helpers.

Sources publish dates as ISO strings ("2024-01-31"), sometimes with a time
part ("2024-01-01T00:00:00") or as bare months ("2024-01"). Trailing windows
(10 years of Zillow history, 5 years of Redfin periods) are computed with
calendar arithmetic so Feb 29 and month ends behave.

Usage:
    from pulse_shared.time_utils import parse_iso_date, years_before

    parse_iso_date("2024-01-31")               # date(2024, 1, 31)
    parse_iso_date("2024-01")                  # date(2024, 1, 1)
    years_before(date(2024, 2, 29), 5)         # date(2019, 2, 28)
"""

from __future__ import annotations

import re
from datetime import date

from dateutil.relativedelta import relativedelta

_ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})(?:-(\d{2}))?")


def parse_iso_date(value: str | date | None) -> date | None:
    """Parse a leading YYYY-MM[-DD] prefix; anything else returns None."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    m = _ISO_DATE_RE.match(value)
    if not m:
        return None
    year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3) or 1)
    try:
        return date(year, month, day)
    except ValueError:
        return None


def years_before(as_of: date, years: int) -> date:
    return as_of - relativedelta(years=years)
