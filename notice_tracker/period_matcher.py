"""
Tax Period Matching

Normalizes tax-period identifiers to YYYYMM and tests range coverage.

Accepted forms:
- "202306"   six-digit YYYYMM, unchanged
- "2023"     bare year
- "Q2/2023"  fiscal quarter

A bare year maps to January when it opens a range or names the target
period, and to December when it closes a range. Quarters map to their first
month at the start of a range and their last month at the end.
"""

import logging
import re
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_YYYYMM_RE = re.compile(r"^\d{6}$")
_YEAR_RE = re.compile(r"^\d{4}$")
_QUARTER_RE = re.compile(r"^Q([1-4])\s*/\s*(\d{4})$", re.IGNORECASE)

QUARTER_MONTHS = {
    1: ("01", "03"),
    2: ("04", "06"),
    3: ("07", "09"),
    4: ("10", "12"),
}

MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


class PeriodRole(str, Enum):
    START = "start"
    END = "end"
    TARGET = "target"


def quarter_to_range(period: str) -> Optional[Tuple[str, str]]:
    """Convert "Q1/2010" to ("201001", "201003"). None if not a quarter."""
    match = _QUARTER_RE.match(period.strip())
    if not match:
        return None
    first, last = QUARTER_MONTHS[int(match.group(1))]
    year = match.group(2)
    return f"{year}{first}", f"{year}{last}"


def normalize_period(period: Optional[str], role: PeriodRole = PeriodRole.TARGET) -> str:
    """
    Normalize a period string to YYYYMM for the given role.

    Unrecognized input is returned stripped but otherwise unchanged; it will
    then fail the six-digit check in covers_period.
    """
    if period is None:
        return ""
    value = str(period).strip()

    if _YYYYMM_RE.match(value):
        return value

    if _YEAR_RE.match(value):
        return f"{value}12" if role == PeriodRole.END else f"{value}01"

    quarter = quarter_to_range(value)
    if quarter:
        return quarter[1] if role == PeriodRole.END else quarter[0]

    return value


def _to_period_number(value: str) -> Optional[int]:
    digits = re.sub(r"\D", "", value)
    if len(digits) != 6:
        return None
    return int(digits)


def covers_period(period_start: Optional[str], period_end: Optional[str], target_period: Optional[str]) -> bool:
    """
    True when target_period falls inside [period_start, period_end].

    Fails closed: any value that does not reduce to six digits yields False.
    """
    start = _to_period_number(normalize_period(period_start, PeriodRole.START))
    end = _to_period_number(normalize_period(period_end, PeriodRole.END))
    target = _to_period_number(normalize_period(target_period, PeriodRole.TARGET))

    if start is None or end is None or target is None:
        logger.debug(
            f"Unparseable period: start={period_start!r} end={period_end!r} target={target_period!r}"
        )
        return False

    return start <= target <= end


def format_period(period: str) -> str:
    """Format YYYYMM as "Mon YYYY"; anything else is returned as given."""
    if not period or len(period) != 6 or not period.isdigit():
        return period
    month_index = int(period[4:6]) - 1
    if month_index < 0 or month_index > 11:
        return period
    return f"{MONTH_NAMES[month_index]} {period[:4]}"


def format_period_range(start: str, end: str) -> str:
    return f"{format_period(start)} - {format_period(end)}"


def is_valid_period_format(period: Optional[str]) -> bool:
    """Strict YYYYMM check with a plausible year and month."""
    if not period or not _YYYYMM_RE.match(period):
        return False
    year = int(period[:4])
    month = int(period[4:6])
    return 1900 <= year <= 2100 and 1 <= month <= 12
