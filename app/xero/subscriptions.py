"""
Subscription analysis pipeline.

Resolves account names, fetches matching invoice and bank lines for the
prior and current fiscal years, groups them by vendor and reconciles the
fiscal-year totals against Xero's P&L report.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from app.schemas.xero import (
    DateRangeOut,
    DateWindow,
    PeriodReconciliationOut,
    ReconciliationOut,
    SubscriptionSummaryOut,
    SubscriptionTransactionOut,
    SubscriptionTransactionsResponse,
    VendorOut,
)
from app.xero.analysis import VendorSummary, group_by_vendor
from app.xero.client import XeroClient
from app.xero.fetcher import TransactionFetcher
from app.xero.periods import FiscalPeriods
from app.xero.reconciliation import PeriodReconciliation, reconcile, round2
from app.xero.vendors import VendorNormalizer

logger = logging.getLogger(__name__)


def _money(value: Decimal) -> float:
    return float(round2(value))


def _optional_money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def vendor_out(vendor: VendorSummary) -> VendorOut:
    return VendorOut(
        vendor_name=vendor.vendor_name,
        vendor_key=vendor.vendor_key,
        suggested_frequency=vendor.suggested_frequency.value,
        confidence=vendor.confidence.value,
        total_amount=_money(vendor.total_amount),
        avg_amount=_money(vendor.avg_amount),
        transaction_count=vendor.transaction_count,
        prior_fy_amount=_money(vendor.prior_fy_amount),
        prior_fy_count=vendor.prior_fy_count,
        current_fy_amount=_money(vendor.current_fy_amount),
        current_fy_count=vendor.current_fy_count,
        first_transaction=vendor.first_transaction,
        last_transaction=vendor.last_transaction,
        months_span=vendor.months_span,
        suggested_monthly_budget=_money(vendor.suggested_monthly_budget),
        transactions=[
            SubscriptionTransactionOut(
                date=t.date,
                description=t.description,
                amount=float(t.amount),
                source=t.source.value,
                period=t.period.value,
            )
            for t in vendor.transactions
        ],
    )


def _period_out(period: PeriodReconciliation) -> PeriodReconciliationOut:
    return PeriodReconciliationOut(
        analyzed=float(period.analyzed),
        actual=_optional_money(period.actual),
        variance=_optional_money(period.variance),
        variance_percent=_optional_money(period.variance_percent),
        is_reconciled=period.is_reconciled,
    )


async def analyze_subscriptions(
    client: XeroClient,
    periods: FiscalPeriods,
    account_codes: Sequence[str],
    normalizer: Optional[VendorNormalizer] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SubscriptionTransactionsResponse:
    """
    Run the full analysis for one tenant.

    Raises ``XeroApiError`` if the chart of accounts cannot be loaded; every
    later Xero failure degrades to fewer transactions or an unreconciled
    period.
    """
    account_names = await client.get_account_name_map()
    logger.info(f"Loaded {len(account_names)} accounts; analysing codes {list(account_codes)}")

    fetcher = TransactionFetcher(
        client,
        periods,
        account_codes,
        account_names,
        normalizer=normalizer,
        sleep=sleep,
    )
    fetched = await fetcher.fetch_all()
    vendors = group_by_vendor(fetched.transactions)

    total_amount = sum((v.total_amount for v in vendors), Decimal("0"))
    prior_fy_total = sum((v.prior_fy_amount for v in vendors), Decimal("0"))
    current_fy_total = sum((v.current_fy_amount for v in vendors), Decimal("0"))
    monthly_total = sum((v.suggested_monthly_budget for v in vendors), Decimal("0"))

    logger.info(
        f"Analysis complete: {len(vendors)} vendors, total {total_amount:.2f}, "
        f"suggested monthly {monthly_total:.2f} "
        f"(prior FY docs {fetched.counters.prior_fy}, current FY docs {fetched.counters.current_fy}, "
        f"skipped {fetched.counters.skipped})"
    )

    reconciliation_names: List[str] = [account_names[code] for code in account_codes if code in account_names]
    reconciliation = await reconcile(client, periods, reconciliation_names, prior_fy_total, current_fy_total)

    return SubscriptionTransactionsResponse(
        success=True,
        vendors=[vendor_out(v) for v in vendors],
        summary=SubscriptionSummaryOut(
            total_vendors=len(vendors),
            total_transactions=len(fetched.transactions),
            total_amount=_money(total_amount),
            prior_fy_total=_money(prior_fy_total),
            current_fy_total=_money(current_fy_total),
            suggested_monthly_total=_money(monthly_total),
            suggested_annual_total=_money(monthly_total * 12),
            date_range=DateRangeOut(
                from_=periods.from_date,
                to=periods.to_date,
                prior_fy=DateWindow(from_=periods.prior_fy_start, to=periods.prior_fy_end),
                current_fy=DateWindow(from_=periods.current_fy_start, to=periods.to_date),
            ),
            accounts_analyzed=list(account_codes),
            reconciliation=ReconciliationOut(
                prior_fy=_period_out(reconciliation.prior_fy),
                current_fy=_period_out(reconciliation.current_fy),
            ),
        ),
    )
