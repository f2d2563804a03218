"""Xero API Routes.

Endpoints:
- GET /xero/status - Check connection status for a business
- POST /xero/subscription-transactions - Analyse subscription spend by vendor
"""
import asyncio
import logging
from datetime import date, datetime, timezone
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.schemas.xero import (
    SubscriptionTransactionsRequest,
    SubscriptionTransactionsResponse,
    XeroConnectionStatus,
)
from app.xero.client import XeroClient
from app.xero.periods import FiscalPeriods
from app.xero.repository import XeroConnectionRepository
from app.xero.subscriptions import analyze_subscriptions
from app.xero.token_manager import TokenManager
from app.xero.vendors import VendorNormalizer


router = APIRouter()
logger = logging.getLogger(__name__)

_vendor_normalizer = VendorNormalizer()


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_connection_repository(db: AsyncSession = Depends(get_db)) -> XeroConnectionRepository:
    return XeroConnectionRepository(db)


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.XERO_HTTP_TIMEOUT_SECONDS) as client:
        yield client


def get_token_manager(
    repository: XeroConnectionRepository = Depends(get_connection_repository),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> TokenManager:
    return TokenManager(repository, http_client)


def get_vendor_normalizer() -> VendorNormalizer:
    return _vendor_normalizer


def get_today() -> date:
    """Current UTC calendar date; fiscal periods are computed in UTC."""
    return datetime.now(timezone.utc).date()


def get_sleep():
    return asyncio.sleep


class XeroRequestError(Exception):
    """Request failure reported to the client as a top-level ``{"error": ...}`` body."""

    def __init__(self, status_code: int, message: str, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra


async def xero_request_error_handler(request: Request, exc: XeroRequestError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, **exc.extra})


def _error(status_code: int, message: str, **extra) -> XeroRequestError:
    return XeroRequestError(status_code, message, **extra)


# ============================================================================
# CONNECTION STATUS
# ============================================================================

@router.get("/status", response_model=XeroConnectionStatus)
async def get_xero_status(
    business_id: str = Query(..., min_length=1),
    repository: XeroConnectionRepository = Depends(get_connection_repository),
):
    """
    Get the current Xero connection status for a business.
    """
    connection = await repository.get_for_business(business_id)

    if not connection:
        return XeroConnectionStatus(business_id=business_id, is_connected=False)

    return XeroConnectionStatus(
        business_id=business_id,
        is_connected=connection.is_active,
        tenant_name=connection.tenant_name,
        tenant_id=connection.tenant_id,
        last_sync_at=connection.last_sync_at,
        token_expires_at=connection.token_expires_at,
        sync_error=connection.sync_error
    )


# ============================================================================
# SUBSCRIPTION ANALYSIS
# ============================================================================

@router.post("/subscription-transactions", response_model=SubscriptionTransactionsResponse)
async def get_subscription_transactions(
    request: SubscriptionTransactionsRequest,
    repository: XeroConnectionRepository = Depends(get_connection_repository),
    token_manager: TokenManager = Depends(get_token_manager),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    normalizer: VendorNormalizer = Depends(get_vendor_normalizer),
    today: date = Depends(get_today),
    sleep=Depends(get_sleep),
):
    """
    Analyse subscription spend for the given expense account codes.

    Covers the prior fiscal year and the current fiscal year to date,
    grouped by normalised vendor, with a suggested monthly budget per vendor
    and a reconciliation against Xero's Profit & Loss report.
    """
    business_id = request.business_id.strip() if isinstance(request.business_id, str) else None
    if not business_id or not isinstance(request.account_codes, list):
        raise _error(400, "business_id and account_codes[] are required")

    account_codes = request.valid_account_codes()
    if not account_codes:
        raise _error(400, "At least one valid account code is required")

    logger.info(f"Starting subscription analysis for business {business_id}, accounts {account_codes}")

    connection = await repository.get_active_for_business(business_id)
    if not connection:
        logger.warning(f"No active Xero connection for business {business_id}")
        raise _error(404, "No active Xero connection found")

    token = await token_manager.get_valid_access_token(connection)
    if not token.success or not token.access_token:
        logger.error(f"Xero token unavailable for business {business_id}: {token.error} {token.message}")
        if token.should_deactivate:
            raise _error(401, "Xero connection expired. Please reconnect Xero.", requiresReconnect=True)
        raise _error(401, token.message or "Failed to get valid Xero token")

    client = XeroClient(http_client, token.access_token, connection.tenant_id)
    periods = FiscalPeriods.for_today(today)

    try:
        return await analyze_subscriptions(
            client,
            periods,
            account_codes,
            normalizer=normalizer,
            sleep=sleep,
        )
    except Exception as e:
        logger.error(f"Subscription analysis failed for business {business_id}: {e}")
        raise _error(500, "Failed to analyze subscriptions")
