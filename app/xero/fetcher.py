"""
Transaction fetcher - pulls supplier bills and bank spend from Xero.

Invoices are fetched in two phases: the filtered list is paged to collect IDs
only, then full records (with line items) are hydrated in batches. Bank
transactions come with their line items, so they are paged directly.

Only line items posted to one of the requested account codes become
transactions, and only documents dated inside the prior/current fiscal
window are kept. Requests are issued one at a time.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from app.config import settings
from app.xero.client import (
    XeroApiError,
    XeroClient,
    XeroRateLimitError,
    parse_amount,
    where_from_date,
)
from app.xero.periods import FiscalPeriods, Period, PeriodCounters, parse_xero_date
from app.xero.vendors import VendorNormalizer

logger = logging.getLogger(__name__)

INVOICE_PAGE_LIMIT = 10
INVOICE_BATCH_SIZE = 50
BANK_PAGE_LIMIT = 50

Sleep = Callable[[float], Awaitable[Any]]


class TransactionSource(str, Enum):
    INVOICE = "invoice"
    BANK = "bank"


@dataclass(frozen=True)
class XeroTransaction:
    """One line item posted to a tracked account. ``amount`` keeps Xero's sign."""
    id: str
    date: date
    vendor: str
    description: str
    amount: Decimal
    account_code: str
    account_name: str
    source: TransactionSource
    period: Period
    reference: str = ""

    @property
    def is_credit(self) -> bool:
        return self.amount < 0


@dataclass
class FetchResult:
    transactions: List[XeroTransaction] = field(default_factory=list)
    counters: PeriodCounters = field(default_factory=PeriodCounters)

    @property
    def credit_count(self) -> int:
        return sum(1 for t in self.transactions if t.is_credit)


class TransactionFetcher:
    """
    Collects subscription transactions for a set of account codes.

    ``sleep`` is injectable so rate-limit back-off and the inter-request
    delay can be observed in tests without waiting.
    """

    def __init__(
        self,
        client: XeroClient,
        periods: FiscalPeriods,
        account_codes: Sequence[str],
        account_names: Mapping[str, str],
        normalizer: Optional[VendorNormalizer] = None,
        sleep: Sleep = asyncio.sleep,
        request_delay: Optional[float] = None,
    ):
        self.client = client
        self.periods = periods
        self.account_codes = set(account_codes)
        self.account_names = account_names
        self.normalizer = normalizer or VendorNormalizer()
        self.sleep = sleep
        self.request_delay = (
            settings.XERO_REQUEST_DELAY_SECONDS if request_delay is None else request_delay
        )

    async def fetch_all(self) -> FetchResult:
        """Invoices first, then bank transactions."""
        invoices = await self.fetch_invoices()
        bank = await self.fetch_bank_transactions()

        result = FetchResult(
            transactions=invoices.transactions + bank.transactions,
            counters=invoices.counters.merge(bank.counters),
        )
        logger.info(
            f"Fetched {len(result.transactions)} transactions "
            f"({len(invoices.transactions)} invoice, {len(bank.transactions)} bank, "
            f"{result.credit_count} credits)"
        )
        if result.counters.skipped:
            logger.warning(
                f"Skipped {result.counters.skipped} documents dated before "
                f"{self.periods.prior_fy_start.isoformat()} or undated"
            )
        return result

    # =========================================================================
    # Invoices (ACCPAY)
    # =========================================================================

    async def collect_invoice_ids(self) -> List[str]:
        where = f'Type=="ACCPAY"&&{where_from_date(self.periods.from_date)}'
        invoice_ids: List[str] = []

        for page in range(1, INVOICE_PAGE_LIMIT + 1):
            try:
                invoices = await self.client.get_invoices_page(where, page)
            except XeroApiError as e:
                logger.error(f"Invoice list fetch failed on page {page}: {e}")
                break

            logger.info(f"Invoice page {page}: {len(invoices)} invoices")
            if not invoices:
                break
            invoice_ids.extend(inv["InvoiceID"] for inv in invoices if inv.get("InvoiceID"))
        else:
            logger.warning(f"Reached invoice page limit ({INVOICE_PAGE_LIMIT} pages)")

        logger.info(f"Collected {len(invoice_ids)} invoice IDs")
        return invoice_ids

    async def _fetch_invoice_batch(self, batch_ids: List[str]) -> List[Dict[str, Any]]:
        try:
            return await self.client.get_invoices_by_ids(batch_ids)
        except XeroRateLimitError as e:
            logger.warning(f"Rate limited on invoice batch, waiting {e.retry_after}s before one retry")
            await self.sleep(e.retry_after)
        except XeroApiError as e:
            logger.error(f"Invoice batch fetch failed, skipping batch: {e}")
            return []

        try:
            return await self.client.get_invoices_by_ids(batch_ids)
        except XeroApiError as e:
            logger.error(f"Invoice batch retry failed, skipping batch: {e}")
            return []

    async def fetch_invoices(self) -> FetchResult:
        result = FetchResult()
        invoice_ids = await self.collect_invoice_ids()
        batch_count = -(-len(invoice_ids) // INVOICE_BATCH_SIZE)

        for index, start in enumerate(range(0, len(invoice_ids), INVOICE_BATCH_SIZE)):
            batch_ids = invoice_ids[start:start + INVOICE_BATCH_SIZE]
            if index > 0:
                await self.sleep(self.request_delay)

            logger.info(f"Fetching invoice batch {index + 1}/{batch_count} ({len(batch_ids)} invoices)")
            for invoice in await self._fetch_invoice_batch(batch_ids):
                self._collect_invoice(invoice, result)

        return result

    def _collect_invoice(self, invoice: Dict[str, Any], result: FetchResult) -> None:
        txn_date = parse_xero_date(invoice.get("Date"))
        period = self.periods.classify_date(txn_date) if txn_date else None
        result.counters.record(period)
        if period is None:
            return

        contact_name = (invoice.get("Contact") or {}).get("Name") or ""
        for index, line in enumerate(invoice.get("LineItems") or []):
            if line.get("AccountCode") not in self.account_codes:
                continue
            description = line.get("Description") or ""
            result.transactions.append(self._build(
                txn_id=f"inv-{invoice.get('InvoiceID')}-{line.get('LineItemID') or index}",
                txn_date=txn_date,
                period=period,
                line=line,
                vendor=self.normalizer.normalize(contact_name, description),
                description=description or contact_name,
                source=TransactionSource.INVOICE,
                reference=invoice.get("InvoiceNumber") or "",
            ))

    # =========================================================================
    # Bank transactions (SPEND)
    # =========================================================================

    async def fetch_bank_transactions(self) -> FetchResult:
        result = FetchResult()
        where = f'{where_from_date(self.periods.from_date)}&&Type=="SPEND"'
        page = 1

        while page <= BANK_PAGE_LIMIT:
            if page > 1:
                await self.sleep(self.request_delay)

            try:
                bank_txns = await self.client.get_bank_transactions_page(where, page)
            except XeroRateLimitError as e:
                logger.warning(f"Rate limited on bank page {page}, waiting {e.retry_after}s")
                await self.sleep(e.retry_after)
                continue
            except XeroApiError as e:
                logger.error(f"Bank transaction fetch failed on page {page}: {e}")
                break

            logger.info(f"Bank page {page}: {len(bank_txns)} transactions")
            if not bank_txns:
                break

            for txn in bank_txns:
                self._collect_bank_transaction(txn, result)
            page += 1
        else:
            logger.warning(f"Reached bank page limit ({BANK_PAGE_LIMIT} pages)")

        return result

    def _collect_bank_transaction(self, txn: Dict[str, Any], result: FetchResult) -> None:
        txn_date = parse_xero_date(txn.get("Date"))
        period = self.periods.classify_date(txn_date) if txn_date else None
        result.counters.record(period)
        if period is None:
            return

        contact_name = (txn.get("Contact") or {}).get("Name") or ""
        reference = txn.get("Reference") or ""
        for index, line in enumerate(txn.get("LineItems") or []):
            if line.get("AccountCode") not in self.account_codes:
                continue
            description = line.get("Description") or reference
            result.transactions.append(self._build(
                txn_id=f"bank-{txn.get('BankTransactionID')}-{line.get('LineItemID') or index}",
                txn_date=txn_date,
                period=period,
                line=line,
                vendor=self.normalizer.normalize(contact_name, description),
                description=description or contact_name,
                source=TransactionSource.BANK,
                reference=reference,
            ))

    def _build(
        self,
        txn_id: str,
        txn_date: date,
        period: Period,
        line: Dict[str, Any],
        vendor: str,
        description: str,
        source: TransactionSource,
        reference: str,
    ) -> XeroTransaction:
        account_code = line["AccountCode"]
        transaction = XeroTransaction(
            id=txn_id,
            date=txn_date,
            vendor=vendor,
            description=description,
            amount=parse_amount(line.get("LineAmount")),
            account_code=account_code,
            account_name=self.account_names.get(account_code, account_code),
            source=source,
            period=period,
            reference=reference,
        )
        if transaction.is_credit:
            logger.info(f"Credit found ({source.value}): {vendor} {txn_date.isoformat()} {transaction.amount}")
        return transaction
