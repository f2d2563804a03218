"""Shared test fixtures and configuration for CoachHub backend tests."""
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from app.forecast.types import (
    Classification,
    LiveForecastState,
    OpExCategory,
    TeamMember,
)
from app.models.xero import XeroConnection

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


# =============================================================================
# Forecast fixtures
# =============================================================================

@pytest.fixture
def team_member():
    """Factory for team members with sensible defaults."""
    def _make(
        id: str = "tm-1",
        salary: str = "100000",
        classification: Classification = Classification.OPEX,
        start_month: Optional[str] = None,
        is_new_hire: bool = False,
        name: str = "Alex Smith",
        role: str = "Engineer",
    ) -> TeamMember:
        return TeamMember(
            id=id,
            name=name,
            role=role,
            annual_salary=Decimal(salary),
            classification=classification,
            start_month=start_month,
            is_new_hire=is_new_hire,
        )
    return _make


@pytest.fixture
def opex_category():
    def _make(
        id: str = "opex-0",
        name: str = "Software",
        prior: str = "10000",
        forecast: str = "10500",
        growth: str = "5",
        is_material: bool = True,
    ) -> OpExCategory:
        return OpExCategory(
            id=id,
            name=name,
            prior_year_amount=Decimal(prior),
            forecast_amount=Decimal(forecast),
            growth_percent=Decimal(growth),
            is_material=is_material,
            is_grouped=not is_material,
        )
    return _make


@pytest.fixture
def base_state(team_member, opex_category) -> LiveForecastState:
    """A FY2026 plan: $1M revenue, $150k profit target, a small team and three cost lines."""
    return LiveForecastState(
        revenue_target=Decimal("1000000"),
        profit_target=Decimal("150000"),
        fiscal_year=2026,
        years_selected=(1, 2, 3),
        existing_team=(
            team_member("tm-1", "200000", Classification.COGS),
            team_member("tm-2", "150000", Classification.OPEX),
        ),
        opex_categories=(
            opex_category("opex-0", "Rent", "100000", "105000"),
            opex_category("opex-1", "Software", "50000", "52500"),
        ),
    )


# =============================================================================
# Xero fixtures
# =============================================================================

class FakeConnectionRepository:
    """In-memory stand-in for XeroConnectionRepository."""

    def __init__(self, connections: Optional[List[XeroConnection]] = None, fail_on_commit: bool = False):
        self.connections = list(connections or [])
        self.fail_on_commit = fail_on_commit
        self.refreshed: List[Dict[str, Any]] = []
        self.deactivated: List[str] = []

    async def get_for_business(self, business_id: str) -> Optional[XeroConnection]:
        return next((c for c in self.connections if c.business_id == business_id), None)

    async def get_active_for_business(self, business_id: str) -> Optional[XeroConnection]:
        return next(
            (c for c in self.connections if c.business_id == business_id and c.is_active),
            None,
        )

    async def mark_refreshed(self, connection, access_token, refresh_token, expires_at) -> None:
        if self.fail_on_commit:
            from sqlalchemy.exc import OperationalError
            raise OperationalError("UPDATE xero_connections", {}, Exception("db down"))
        connection.access_token = access_token
        connection.refresh_token = refresh_token
        connection.token_expires_at = expires_at
        self.refreshed.append({"access_token": access_token, "expires_at": expires_at})

    async def deactivate(self, connection, reason: str) -> None:
        connection.is_active = False
        connection.sync_error = reason
        self.deactivated.append(reason)


@pytest.fixture
def xero_connection() -> XeroConnection:
    return XeroConnection(
        id="xero_abc123",
        business_id="biz-1",
        tenant_id="tenant-1",
        tenant_name="Acme Pty Ltd",
        access_token="access-token",
        refresh_token="refresh-token",
        token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        is_active=True,
    )


@pytest.fixture
def fake_repository(xero_connection) -> FakeConnectionRepository:
    return FakeConnectionRepository([xero_connection])


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


def xero_json_date(value: date) -> str:
    """Microsoft JSON date as returned by the Xero API."""
    millis = int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp() * 1000)
    return f"/Date({millis}+0000)/"


def json_response(payload: Dict[str, Any], status_code: int = 200, headers: Optional[Dict[str, str]] = None):
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
