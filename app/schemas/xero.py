"""Pydantic schemas for Xero integration."""
import datetime as dt
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response model serialised with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# CONNECTION SCHEMAS
# ============================================================================

class XeroConnectionStatus(BaseModel):
    """Status of a business's Xero connection."""
    business_id: str
    is_connected: bool
    tenant_name: Optional[str] = None
    tenant_id: Optional[str] = None
    last_sync_at: Optional[dt.datetime] = None
    token_expires_at: Optional[dt.datetime] = None
    sync_error: Optional[str] = None


# ============================================================================
# SUBSCRIPTION TRANSACTIONS
# ============================================================================

class SubscriptionTransactionsRequest(BaseModel):
    """
    Request body for subscription analysis.

    Fields are loosely typed on purpose; the route reports missing or empty
    values as 400 rather than a validation 422.
    """
    business_id: Optional[Any] = None
    account_codes: Optional[Any] = None

    def valid_account_codes(self) -> List[str]:
        if not isinstance(self.account_codes, list):
            return []
        return [
            code.strip() for code in self.account_codes
            if isinstance(code, str) and code.strip()
        ]


class SubscriptionTransactionOut(CamelModel):
    date: dt.date
    description: str
    amount: float
    source: str
    period: str


class VendorOut(CamelModel):
    vendor_name: str
    vendor_key: str
    suggested_frequency: str
    confidence: str
    total_amount: float
    avg_amount: float
    transaction_count: int
    prior_fy_amount: float = Field(alias="priorFYAmount")
    prior_fy_count: int = Field(alias="priorFYCount")
    current_fy_amount: float = Field(alias="currentFYAmount")
    current_fy_count: int = Field(alias="currentFYCount")
    first_transaction: dt.date
    last_transaction: dt.date
    months_span: int
    suggested_monthly_budget: float
    transactions: List[SubscriptionTransactionOut]


class DateWindow(CamelModel):
    from_: dt.date = Field(alias="from")
    to: dt.date


class DateRangeOut(CamelModel):
    from_: dt.date = Field(alias="from")
    to: dt.date
    prior_fy: DateWindow = Field(alias="priorFY")
    current_fy: DateWindow = Field(alias="currentFY")


class PeriodReconciliationOut(CamelModel):
    analyzed: float
    actual: Optional[float] = None
    variance: Optional[float] = None
    variance_percent: Optional[float] = None
    is_reconciled: bool = False


class ReconciliationOut(CamelModel):
    prior_fy: PeriodReconciliationOut = Field(alias="priorFY")
    current_fy: PeriodReconciliationOut = Field(alias="currentFY")


class SubscriptionSummaryOut(CamelModel):
    total_vendors: int
    total_transactions: int
    total_amount: float
    prior_fy_total: float = Field(alias="priorFYTotal")
    current_fy_total: float = Field(alias="currentFYTotal")
    suggested_monthly_total: float
    suggested_annual_total: float
    date_range: DateRangeOut
    accounts_analyzed: List[str]
    reconciliation: ReconciliationOut


class SubscriptionTransactionsResponse(CamelModel):
    success: bool = True
    vendors: List[VendorOut]
    summary: SubscriptionSummaryOut
