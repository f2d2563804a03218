"""
Subscription analysis - frequency detection, budget projection and vendor grouping.

All functions here are pure: they take already-classified transactions and
return summaries, so they can be tested without any Xero traffic.
"""
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from app.xero.periods import Period
from app.xero.vendors import vendor_key


# Mean day-gap ranges (inclusive) for each frequency bucket
MONTHLY_GAP_RANGE = (25, 35)
QUARTERLY_GAP_RANGE = (80, 100)
ANNUAL_GAP_RANGE = (350, 380)
# Span (in days) that makes a one- or two-payment vendor look annual
ANNUAL_SPAN_RANGE = (300, 400)
MIN_BUDGET_SPREAD_MONTHS = 12
DAYS_PER_MONTH = 30


class Frequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    AD_HOC = "ad-hoc"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _in_range(value: float, bounds: Tuple[int, int]) -> bool:
    return bounds[0] <= value <= bounds[1]


def detect_frequency(dates: Sequence[date]) -> Tuple[Frequency, Confidence]:
    """
    Infer how often a vendor bills from its transaction dates.

    Uses the mean and coefficient of variation (population stddev / mean) of
    the positive day gaps between consecutive payments.
    """
    if len(dates) < 2:
        return Frequency.AD_HOC, Confidence.LOW

    ordered = sorted(dates)
    gaps = [
        (later - earlier).days
        for earlier, later in zip(ordered, ordered[1:])
        if (later - earlier).days > 0
    ]
    if not gaps:
        return Frequency.AD_HOC, Confidence.LOW

    mean = sum(gaps) / len(gaps)
    variance = sum((gap - mean) ** 2 for gap in gaps) / len(gaps)
    cv = math.sqrt(variance) / mean

    if _in_range(mean, MONTHLY_GAP_RANGE):
        if cv < 0.2:
            return Frequency.MONTHLY, Confidence.HIGH
        return Frequency.MONTHLY, Confidence.MEDIUM if cv < 0.4 else Confidence.LOW

    if _in_range(mean, QUARTERLY_GAP_RANGE):
        if cv < 0.3:
            return Frequency.QUARTERLY, Confidence.HIGH
        return Frequency.QUARTERLY, Confidence.MEDIUM if cv < 0.5 else Confidence.LOW

    if _in_range(mean, ANNUAL_GAP_RANGE):
        return Frequency.ANNUAL, Confidence.HIGH if cv < 0.1 else Confidence.MEDIUM

    if len(dates) <= 2 and _in_range((ordered[-1] - ordered[0]).days, ANNUAL_SPAN_RANGE):
        return Frequency.ANNUAL, Confidence.MEDIUM

    return Frequency.AD_HOC, Confidence.LOW


def suggested_monthly_budget(
    prior_fy_amount: Decimal,
    avg_amount: Decimal,
    frequency: Frequency,
    months_span: int,
) -> Decimal:
    """Monthly budget line for a vendor; annual and ad-hoc vendors prefer the prior-FY spend."""
    if frequency == Frequency.MONTHLY:
        return avg_amount
    if frequency == Frequency.QUARTERLY:
        return avg_amount / 3

    base = prior_fy_amount if prior_fy_amount > 0 else avg_amount
    if frequency == Frequency.ANNUAL:
        return base / 12
    return base / max(months_span, MIN_BUDGET_SPREAD_MONTHS)


def months_between(first: date, last: date) -> int:
    """Whole 30-day months from first to last payment, at least 1."""
    return max(1, math.ceil((last - first).days / DAYS_PER_MONTH))


# ============================================================================
# VENDOR GROUPING
# ============================================================================

@dataclass
class VendorSummary:
    """Per-vendor aggregate over both fiscal periods."""
    vendor_name: str
    vendor_key: str
    transactions: List = field(default_factory=list)
    prior_fy_amount: Decimal = Decimal("0")
    prior_fy_count: int = 0
    current_fy_amount: Decimal = Decimal("0")
    current_fy_count: int = 0
    total_amount: Decimal = Decimal("0")
    transaction_count: int = 0
    avg_amount: Decimal = Decimal("0")
    suggested_frequency: Frequency = Frequency.AD_HOC
    confidence: Confidence = Confidence.LOW
    first_transaction: Optional[date] = None
    last_transaction: Optional[date] = None
    months_span: int = 0
    suggested_monthly_budget: Decimal = Decimal("0")

    def add(self, transaction) -> None:
        self.transactions.append(transaction)
        self.total_amount += transaction.amount
        self.transaction_count += 1

        if transaction.period == Period.PRIOR_FY:
            self.prior_fy_amount += transaction.amount
            self.prior_fy_count += 1
        else:
            self.current_fy_amount += transaction.amount
            self.current_fy_count += 1

        if self.first_transaction is None or transaction.date < self.first_transaction:
            self.first_transaction = transaction.date
        if self.last_transaction is None or transaction.date > self.last_transaction:
            self.last_transaction = transaction.date

    def finalize(self) -> None:
        self.avg_amount = self.total_amount / self.transaction_count
        self.months_span = months_between(self.first_transaction, self.last_transaction)
        self.suggested_frequency, self.confidence = detect_frequency(
            [t.date for t in self.transactions]
        )
        self.suggested_monthly_budget = suggested_monthly_budget(
            self.prior_fy_amount,
            self.avg_amount,
            self.suggested_frequency,
            self.months_span,
        )
        self.transactions.sort(key=lambda t: t.date, reverse=True)


def group_by_vendor(transactions: Sequence) -> List[VendorSummary]:
    """
    Group transactions by vendor key and summarise each vendor.

    Amounts are summed with their sign, so credits net against charges.
    Vendors are returned highest total first; each vendor's transactions
    newest first.
    """
    vendors: Dict[str, VendorSummary] = {}

    for transaction in transactions:
        key = vendor_key(transaction.vendor)
        summary = vendors.get(key)
        if summary is None:
            summary = vendors[key] = VendorSummary(vendor_name=transaction.vendor, vendor_key=key)
        summary.add(transaction)

    for summary in vendors.values():
        summary.finalize()

    return sorted(vendors.values(), key=lambda v: v.total_amount, reverse=True)
