"""Xero API client.

Thin async wrapper over the Xero Accounting REST API using httpx. Each call
returns the decoded JSON payload; HTTP 429 is raised as
``XeroRateLimitError`` (carrying the capped ``Retry-After``) so callers can
decide how to back off, and any other non-2xx response as ``XeroApiError``.
"""
from typing import Any, Dict, List, Optional, Sequence
from datetime import date
from decimal import Decimal, InvalidOperation

import httpx

from app.config import settings


class XeroApiError(Exception):
    """Non-success response from a Xero endpoint."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Xero API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class XeroRateLimitError(XeroApiError):
    """HTTP 429 from Xero; ``retry_after`` is already capped to a sane maximum."""

    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        super().__init__(429, message)
        self.retry_after = retry_after


def parse_retry_after(
    value: Optional[str],
    default: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    """Seconds to wait from a ``Retry-After`` header, falling back to the default and never above the cap."""
    default = settings.XERO_DEFAULT_RETRY_AFTER_SECONDS if default is None else default
    maximum = settings.XERO_MAX_RETRY_AFTER_SECONDS if maximum is None else maximum
    try:
        seconds = int(value) if value is not None else default
    except (TypeError, ValueError):
        seconds = default
    return max(0, min(seconds, maximum))


def where_from_date(from_date: date) -> str:
    """Xero filter fragment for records dated on or after ``from_date``."""
    return f"Date>=DateTime({from_date.year},{from_date.month},{from_date.day})"


def parse_amount(value: Any) -> Decimal:
    """Decimal from a Xero amount (number or report string like "$1,234.50" / "(99.00)")."""
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
    if not text:
        return Decimal("0")
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]

    try:
        return Decimal(text)
    except InvalidOperation:
        return Decimal("0")


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 429:
        raise XeroRateLimitError(parse_retry_after(response.headers.get("Retry-After")))
    if response.status_code >= 400:
        raise XeroApiError(response.status_code, response.text[:500])


# ============================================================================
# TOKEN MANAGEMENT
# ============================================================================

async def refresh_access_token(http_client: httpx.AsyncClient, refresh_token: str) -> Dict[str, Any]:
    """Refresh the access token using the refresh token."""
    response = await http_client.post(
        settings.XERO_TOKEN_URL,
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        auth=(settings.XERO_CLIENT_ID, settings.XERO_CLIENT_SECRET),
        headers={"Content-Type": "application/x-www-form-urlencoded"}
    )

    _raise_for_status(response)
    return response.json()


# ============================================================================
# XERO API WRAPPER CLASS
# ============================================================================

class XeroClient:
    """Accounting API calls for one tenant with a known-valid access token."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        access_token: str,
        tenant_id: str,
        base_url: Optional[str] = None,
    ):
        self.http_client = http_client
        self.tenant_id = tenant_id
        self.base_url = (base_url or settings.XERO_API_BASE_URL).rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "xero-tenant-id": tenant_id,
            "Accept": "application/json",
        }

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self.http_client.get(
            f"{self.base_url}/{path}",
            params=params,
            headers=self._headers,
        )
        _raise_for_status(response)
        return response.json()

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def get_accounts(self) -> List[Dict[str, Any]]:
        """Chart of accounts."""
        data = await self._get("Accounts")
        return data.get("Accounts") or []

    async def get_account_name_map(self) -> Dict[str, str]:
        """Account code -> account name."""
        return {
            account["Code"]: account.get("Name") or account["Code"]
            for account in await self.get_accounts()
            if account.get("Code")
        }

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    async def get_invoices_page(self, where: str, page: int) -> List[Dict[str, Any]]:
        """One page of the filtered invoice list (summary records, no line items)."""
        data = await self._get("Invoices", {"where": where, "page": page})
        return data.get("Invoices") or []

    async def get_invoices_by_ids(self, invoice_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Full invoice records, including line items, for a batch of IDs."""
        data = await self._get("Invoices", {"IDs": ",".join(invoice_ids)})
        return data.get("Invoices") or []

    # -------------------------------------------------------------------------
    # Bank Transactions
    # -------------------------------------------------------------------------

    async def get_bank_transactions_page(self, where: str, page: int) -> List[Dict[str, Any]]:
        """One page of bank transactions; line items are included in list responses."""
        data = await self._get("BankTransactions", {"where": where, "page": page})
        return data.get("BankTransactions") or []

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def get_profit_and_loss(self, from_date: date, to_date: date) -> Dict[str, Any]:
        """Standard-layout Profit & Loss report for a date range."""
        return await self._get(
            "Reports/ProfitAndLoss",
            {
                "fromDate": from_date.isoformat(),
                "toDate": to_date.isoformat(),
                "standardLayout": "true",
            },
        )
