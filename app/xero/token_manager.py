"""
Xero access-token management.

Returns a usable access token for a connection, refreshing it when it is
within the refresh threshold of expiry. Transient refresh failures are
retried with exponential back-off; permanent ones (expired or revoked grant)
deactivate the connection so the caller can ask the user to reconnect.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.models.base import utc_now
from app.models.xero import XeroConnection
from app.xero.client import XeroApiError, refresh_access_token
from app.xero.repository import XeroConnectionRepository

logger = logging.getLogger(__name__)

INITIAL_RETRY_DELAY_SECONDS = 1.0


# Error categories
TOKEN_EXPIRED_PERMANENTLY = "token_expired_permanently"
TOKEN_REVOKED = "token_revoked"
RATE_LIMITED = "rate_limited"
SERVER_ERROR = "server_error"
NETWORK_ERROR = "network_error"
DATABASE_ERROR = "database_error"
UNKNOWN = "unknown"


@dataclass
class TokenResult:
    success: bool
    access_token: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    should_deactivate: bool = False


def categorize_refresh_error(status_code: int, body: str) -> TokenResult:
    """Map a failed token-endpoint response to a TokenResult."""
    try:
        error_code = (json.loads(body) or {}).get("error") or ""
    except (ValueError, AttributeError):
        error_code = ""

    if error_code == "invalid_grant":
        return TokenResult(
            success=False,
            error=TOKEN_EXPIRED_PERMANENTLY,
            message="Refresh token has expired. Please reconnect Xero.",
            should_deactivate=True,
        )
    if status_code == 400 and not error_code:
        return TokenResult(success=False, error=UNKNOWN, message=f"Bad request to Xero: {body}")
    if error_code in ("unauthorized_client", "access_denied"):
        return TokenResult(
            success=False,
            error=TOKEN_REVOKED,
            message="Access has been revoked. Please reconnect Xero.",
            should_deactivate=True,
        )
    if status_code == 429:
        return TokenResult(
            success=False,
            error=RATE_LIMITED,
            message="Too many requests to Xero. Please try again later.",
        )
    if status_code >= 500:
        return TokenResult(success=False, error=SERVER_ERROR, message="Xero API is temporarily unavailable.")
    return TokenResult(success=False, error=UNKNOWN, message=f"Unexpected error: {status_code} - {body}")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TokenManager:
    """Hands out valid access tokens for stored Xero connections."""

    def __init__(
        self,
        repository: XeroConnectionRepository,
        http_client: httpx.AsyncClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = utc_now,
        max_retries: Optional[int] = None,
    ):
        self.repository = repository
        self.http_client = http_client
        self.sleep = sleep
        self.now = now
        self.max_retries = max_retries or settings.XERO_TOKEN_REFRESH_MAX_RETRIES
        self.refresh_threshold = timedelta(minutes=settings.XERO_TOKEN_REFRESH_THRESHOLD_MINUTES)

    async def get_valid_access_token(self, connection: XeroConnection) -> TokenResult:
        if not connection.refresh_token:
            return TokenResult(
                success=False,
                error=TOKEN_EXPIRED_PERMANENTLY,
                message="No refresh token stored. Please reconnect Xero.",
                should_deactivate=True,
            )

        threshold = self.now() + self.refresh_threshold
        if (
            connection.access_token
            and connection.token_expires_at
            and _as_utc(connection.token_expires_at) > threshold
        ):
            return TokenResult(success=True, access_token=connection.access_token)

        logger.info(f"Refreshing Xero token for connection {connection.id}")
        return await self._refresh_with_retry(connection)

    async def _refresh_with_retry(self, connection: XeroConnection) -> TokenResult:
        result = TokenResult(success=False, error=UNKNOWN)

        for attempt in range(1, self.max_retries + 1):
            try:
                tokens = await refresh_access_token(self.http_client, connection.refresh_token)
                return await self._store_tokens(connection, tokens)
            except XeroApiError as e:
                result = categorize_refresh_error(e.status_code, e.message)
                if result.should_deactivate:
                    logger.error(f"Permanent token error for connection {connection.id}: {result.error}")
                    await self.repository.deactivate(connection, f"Token refresh failed: {result.message}")
                    return result
            except httpx.HTTPError as e:
                logger.warning(f"Network error refreshing Xero token: {e}")
                result = TokenResult(
                    success=False,
                    error=NETWORK_ERROR,
                    message="Failed to reach Xero servers after multiple attempts",
                )

            if attempt < self.max_retries:
                delay = INITIAL_RETRY_DELAY_SECONDS * (2 ** (attempt - 1))
                logger.info(f"Retrying token refresh in {delay}s (attempt {attempt}/{self.max_retries})")
                await self.sleep(delay)

        logger.error(f"Token refresh failed after {self.max_retries} attempts: {result.error}")
        return result

    async def _store_tokens(self, connection: XeroConnection, tokens: dict) -> TokenResult:
        access_token = tokens.get("access_token") if isinstance(tokens, dict) else None
        if not access_token:
            logger.error(f"Xero token response for connection {connection.id} has no access_token")
            return TokenResult(
                success=False,
                error=UNKNOWN,
                message="Xero token response did not include an access token",
            )

        try:
            await self.repository.mark_refreshed(
                connection,
                access_token=access_token,
                refresh_token=tokens.get("refresh_token", connection.refresh_token),
                expires_at=self.now() + timedelta(seconds=tokens.get("expires_in", 1800)),
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to save refreshed Xero tokens: {e}")
            return TokenResult(
                success=True,
                access_token=access_token,
                error=DATABASE_ERROR,
                message="Token refreshed but failed to save to database",
            )
        return TokenResult(success=True, access_token=access_token)
