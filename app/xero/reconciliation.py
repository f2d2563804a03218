"""
P&L reconciliation.

Compares the analysed subscription spend per fiscal period with the balance
Xero's Profit & Loss report shows for the same accounts. Reconciliation is
advisory: a failed report fetch or an account that cannot be found leaves
the period unreconciled instead of failing the analysis.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from app.xero.client import XeroApiError, XeroClient, parse_amount
from app.xero.periods import FiscalPeriods

logger = logging.getLogger(__name__)

RECONCILED_ABSOLUTE_TOLERANCE = Decimal("100")
RECONCILED_PERCENT_TOLERANCE = Decimal("1")

CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ============================================================================
# REPORT TREE
# ============================================================================

def _dicts(items: Any) -> List[Dict[str, Any]]:
    """Dict entries of a JSON list; anything else in the report tree is ignored."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


@dataclass(frozen=True)
class ReportCell:
    value: str = ""


def _cells(items: Any) -> tuple:
    """Cells keep their position; a malformed cell reads as empty."""
    if not isinstance(items, list):
        return ()
    return tuple(
        ReportCell(value=str(c.get("Value") or "")) if isinstance(c, dict) else ReportCell()
        for c in items
    )


@dataclass(frozen=True)
class ReportRow:
    row_type: str = ""
    title: str = ""
    cells: Sequence[ReportCell] = ()
    rows: Sequence["ReportRow"] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportRow":
        return cls(
            row_type=data.get("RowType") or "",
            title=data.get("Title") or "",
            cells=_cells(data.get("Cells")),
            rows=tuple(cls.from_dict(r) for r in _dicts(data.get("Rows"))),
        )

    @property
    def is_account_row(self) -> bool:
        return self.row_type == "Row" and len(self.cells) >= 2

    @property
    def account_name(self) -> str:
        return self.cells[0].value

    @property
    def amount(self) -> Decimal:
        return parse_amount(self.cells[-1].value)


def parse_report_rows(payload: Dict[str, Any]) -> List[ReportRow]:
    """Top-level rows of the first report in a Xero ``Reports`` response."""
    reports = _dicts(payload.get("Reports")) if isinstance(payload, dict) else []
    if not reports:
        return []
    return [ReportRow.from_dict(r) for r in _dicts(reports[0].get("Rows"))]


def _names_match(account_name: str, target: str) -> bool:
    return account_name == target or target in account_name or account_name in target


def matching_values(rows: Sequence[ReportRow], account_names: Sequence[str]) -> Iterator[Decimal]:
    """Depth-first walk yielding the amount of every account row whose name matches a target."""
    targets = [name.lower().strip() for name in account_names if name.strip()]

    def visit(row: ReportRow) -> Iterator[Decimal]:
        if row.is_account_row:
            name = row.account_name.lower().strip()
            if name and any(_names_match(name, t) for t in targets):
                yield row.amount
        for child in row.rows:
            yield from visit(child)

    for row in rows:
        yield from visit(row)


def extract_account_balance_by_name(payload: Dict[str, Any], account_names: Sequence[str]) -> Optional[Decimal]:
    """Sum of matched account rows, or None when no row matches."""
    values = list(matching_values(parse_report_rows(payload), account_names))
    if not values:
        return None
    return sum(values, Decimal("0"))


# ============================================================================
# PERIOD RECONCILIATION
# ============================================================================

@dataclass
class PeriodReconciliation:
    analyzed: Decimal
    actual: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    variance_percent: Optional[Decimal] = None
    is_reconciled: bool = False


def reconcile_period(analyzed: Decimal, actual: Optional[Decimal]) -> PeriodReconciliation:
    """
    Compare analysed spend with the report balance.

    Reconciled when the absolute variance is under 100 or the relative
    variance is under 1%; either tolerance is enough.
    """
    result = PeriodReconciliation(analyzed=round2(analyzed))
    if actual is None:
        return result

    variance = analyzed - actual
    result.actual = round2(actual)
    result.variance = round2(variance)
    result.variance_percent = round2(variance / actual * 100) if actual != 0 else Decimal("0")
    result.is_reconciled = (
        abs(result.variance) < RECONCILED_ABSOLUTE_TOLERANCE
        or abs(result.variance_percent) < RECONCILED_PERCENT_TOLERANCE
    )
    return result


@dataclass
class Reconciliation:
    prior_fy: PeriodReconciliation
    current_fy: PeriodReconciliation


async def _fetch_actual(
    client: XeroClient,
    from_date: date,
    to_date: date,
    account_names: Sequence[str],
) -> Optional[Decimal]:
    label = f"{from_date.isoformat()}..{to_date.isoformat()}"
    try:
        report = await client.get_profit_and_loss(from_date, to_date)
    except (XeroApiError, httpx.HTTPError, ValueError) as e:
        logger.error(f"P&L fetch failed for {label}: {e}")
        return None

    actual = extract_account_balance_by_name(report, account_names)
    if actual is None:
        logger.warning(f"No P&L rows matched {list(account_names)} for {label}")
    return actual


async def reconcile(
    client: XeroClient,
    periods: FiscalPeriods,
    account_names: Sequence[str],
    prior_fy_total: Decimal,
    current_fy_total: Decimal,
) -> Reconciliation:
    """Reconcile both fiscal periods against Xero's P&L report."""
    prior_actual = await _fetch_actual(client, periods.prior_fy_start, periods.prior_fy_end, account_names)
    current_actual = await _fetch_actual(client, periods.current_fy_start, periods.today, account_names)

    result = Reconciliation(
        prior_fy=reconcile_period(prior_fy_total, prior_actual),
        current_fy=reconcile_period(current_fy_total, current_actual),
    )
    logger.info(
        f"Reconciliation: prior FY reconciled={result.prior_fy.is_reconciled}, "
        f"current FY reconciled={result.current_fy.is_reconciled}"
    )
    return result
