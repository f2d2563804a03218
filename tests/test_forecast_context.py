"""
Tests for the context initializer and the live forecast API routes.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.forecast.context import initialize_from_context
from app.forecast.types import Classification, LiveForecastState
from app.main import app


@pytest.fixture
def context():
    return {
        "goals": {"revenue_target": 2000000, "profit_target": 300000},
        "fiscal_year": 2026,
        "current_team": [
            {"employee_id": "emp-1", "full_name": "Sam Lee", "job_title": "Coach",
             "annual_salary": 90000, "classification": "cogs"},
            {"full_name": "Ari Patel"},
        ],
        "historical_pl": {
            "prior_fy": {
                "operating_expenses_by_category": [
                    {"account_name": "Rent", "total": 60000},
                    {"account_name": "Software", "total": 36000},
                    {"account_name": "Bank Fees", "total": 4000},
                ]
            }
        },
    }


# =============================================================================
# Context initializer
# =============================================================================

class TestInitializeFromContext:
    """Tests for initialize_from_context."""

    def test_targets_and_fiscal_year(self, context):
        state = initialize_from_context(LiveForecastState(), context)

        assert state.revenue_target == Decimal("2000000")
        assert state.profit_target == Decimal("300000")
        assert state.fiscal_year == 2026

    def test_team_from_payroll(self, context):
        state = initialize_from_context(LiveForecastState(), context)
        sam, ari = state.existing_team

        assert sam.id == "emp-1"
        assert sam.classification == Classification.COGS
        assert sam.annual_salary == Decimal("90000")
        assert sam.from_xero is True
        assert sam.is_new_hire is False

        assert ari.id == "team-1"
        assert ari.role == "Team Member"
        assert ari.annual_salary == Decimal("0")
        assert ari.classification == Classification.OPEX

    def test_opex_materiality(self, context):
        state = initialize_from_context(LiveForecastState(), context)
        rent, software, fees = state.opex_categories

        assert rent.id == "opex-0"
        assert rent.forecast_amount == Decimal("63000")
        assert rent.growth_percent == Decimal("5")
        assert rent.is_material is True
        assert software.is_grouped is False
        # 4000 / 100000 = 4% is under the 5% threshold
        assert fees.is_material is False
        assert fees.is_grouped is True

    def test_missing_fields_leave_state_untouched(self):
        start = LiveForecastState(
            revenue_target=Decimal("500000"),
            profit_target=Decimal("50000"),
            fiscal_year=2025,
        )

        state = initialize_from_context(start, {"goals": {"profit_target": 75000}})

        assert state.revenue_target == Decimal("500000")
        assert state.profit_target == Decimal("75000")
        assert state.fiscal_year == 2025
        assert state.existing_team == ()


# =============================================================================
# API routes
# =============================================================================

class TestLiveForecastRoutes:
    """Tests for /api/forecast/live endpoints."""

    def test_initialize(self, context):
        client = TestClient(app)

        response = client.post("/api/forecast/live/initialize", json={"context": context})

        assert response.status_code == 200
        body = response.json()
        assert body["revenue_target"] == 2000000
        assert body["fiscal_year"] == 2026
        assert len(body["existing_team"]) == 2
        assert body["opex_categories"][2]["is_grouped"] is True

    def test_calculate_projects_selected_year(self):
        client = TestClient(app)
        state = {
            "revenue_target": 100000,
            "profit_target": 10000,
            "fiscal_year": 2026,
            "years_selected": [1, 3],
        }

        response = client.post(
            "/api/forecast/live/calculate",
            json={"state": state, "selected_year": 3, "view_mode": "annual"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["calculations"]["gross_profit"] == 100000
        assert body["projection"]["year"] == 3
        assert body["projection"]["revenue_target"] == pytest.approx(121000)
        assert body["panel"]["title"] == "FY2028 Forecast"

    def test_calculate_rejects_year_zero(self):
        client = TestClient(app)

        response = client.post(
            "/api/forecast/live/calculate",
            json={"state": {}, "selected_year": 0},
        )

        assert response.status_code == 422
