"""
Fiscal period classification.

Australian fiscal years run July 1 to June 30. The analysis window covers the
prior fiscal year and the current fiscal year to date; ``classify`` is the
single place that decides which of the two a transaction date belongs to.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

FISCAL_YEAR_START_MONTH = 7

_JSON_DATE = re.compile(r"/Date\((-?\d+)([+-]\d+)?\)/")


class Period(str, Enum):
    PRIOR_FY = "prior_fy"
    CURRENT_FY = "current_fy"


def parse_xero_date(value: Any) -> Optional[date]:
    """
    Parse a Xero date to a UTC calendar date.

    Xero returns either the Microsoft JSON form ``/Date(1719792000000+0000)/``
    or an ISO string; only the date portion of an ISO string is used.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    match = _JSON_DATE.match(text)
    if match:
        millis = int(match.group(1))
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()

    try:
        return date.fromisoformat(text.split("T")[0])
    except ValueError:
        return None


@dataclass(frozen=True)
class FiscalPeriods:
    """Prior and current fiscal year boundaries relative to ``today``."""
    today: date
    prior_fy_start: date
    prior_fy_end: date
    current_fy_start: date
    current_fy_end: date

    @classmethod
    def for_today(cls, today: date) -> "FiscalPeriods":
        start_year = today.year if today.month >= FISCAL_YEAR_START_MONTH else today.year - 1
        return cls(
            today=today,
            prior_fy_start=date(start_year - 1, 7, 1),
            prior_fy_end=date(start_year, 6, 30),
            current_fy_start=date(start_year, 7, 1),
            current_fy_end=date(start_year + 1, 6, 30),
        )

    @property
    def from_date(self) -> date:
        """Earliest date fetched from Xero."""
        return self.prior_fy_start

    @property
    def to_date(self) -> date:
        return self.today

    def classify_date(self, value: date) -> Optional[Period]:
        """Period for a calendar date, or None when it predates the prior fiscal year."""
        if value < self.prior_fy_start:
            return None
        if value >= self.current_fy_start:
            return Period.CURRENT_FY
        return Period.PRIOR_FY

    def classify(self, value: str) -> Optional[Period]:
        """Period for a date string; the time component, if any, is ignored."""
        parsed = parse_xero_date(value)
        return self.classify_date(parsed) if parsed else None


@dataclass
class PeriodCounters:
    """Tally of classification outcomes for one ingestion run."""
    prior_fy: int = 0
    current_fy: int = 0
    skipped: int = 0

    def record(self, period: Optional[Period]) -> None:
        if period is None:
            self.skipped += 1
        elif period == Period.CURRENT_FY:
            self.current_fy += 1
        else:
            self.prior_fy += 1

    def merge(self, other: "PeriodCounters") -> "PeriodCounters":
        return PeriodCounters(
            prior_fy=self.prior_fy + other.prior_fy,
            current_fy=self.current_fy + other.current_fy,
            skipped=self.skipped + other.skipped,
        )
