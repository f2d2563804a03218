"""
Multi-year projection.

Year 2..N views are display projections of the Year-1 plan: targets compound
at the default revenue growth rate, salaries and operating costs at their
inflation rates, and investments drop out after Year 1. Every P&L line is
recomputed from the scaled inputs so margins are measured against scaled
revenue. Stored state is never touched.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.forecast.calculations import calculate_forecast
from app.forecast.types import LiveForecastCalculations, LiveForecastState

# Fixed display assumptions for years beyond Year 1
DEFAULT_REVENUE_GROWTH = Decimal("0.10")
DEFAULT_COST_GROWTH = Decimal("0.03")
DEFAULT_SALARY_GROWTH = Decimal("0.03")

YEAR_ONE_INVESTMENTS_NOTE = "Year 1 investments only."

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ViewMode(str, Enum):
    ANNUAL = "annual"
    MONTHLY = "monthly"


def growth_multiplier(year: int, growth_rate: Decimal) -> Decimal:
    """Compound multiplier for ``year`` (Year 1 is the base year)."""
    if year <= 1:
        return Decimal("1")
    return (1 + growth_rate) ** (year - 1)


def apply_year_growth(base_amount: Decimal, year: int, growth_rate: Decimal) -> Decimal:
    return base_amount * growth_multiplier(year, growth_rate)


def view_divisor(view_mode: ViewMode) -> Decimal:
    return Decimal("12") if ViewMode(view_mode) == ViewMode.MONTHLY else Decimal("1")


@dataclass(frozen=True)
class YearProjection:
    """Projected P&L for one forecast year, already divided for the view mode."""
    year: int
    view_mode: ViewMode
    revenue_multiplier: Decimal
    salary_multiplier: Decimal
    cost_multiplier: Decimal

    revenue_target: Decimal
    profit_target: Decimal

    total_existing_team_cost: Decimal
    total_new_hires_cost: Decimal
    total_team_costs: Decimal
    total_team_costs_cogs: Decimal
    total_team_costs_opex: Decimal

    total_opex_forecast: Decimal

    total_investments_capex: Decimal
    total_investments_opex: Decimal
    total_investments: Decimal
    investments_note: Optional[str]

    gross_profit: Decimal
    gross_margin: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    net_margin: Decimal
    profit_variance: Decimal
    profit_variance_percent: Decimal


def project_year(
    state: LiveForecastState,
    year: int,
    view_mode: ViewMode = ViewMode.ANNUAL,
    calculations: Optional[LiveForecastCalculations] = None,
) -> YearProjection:
    """Project the Year-1 plan to ``year`` and express it annually or as a monthly average."""
    calculations = calculations or calculate_forecast(state)
    revenue_multiplier = growth_multiplier(year, DEFAULT_REVENUE_GROWTH)
    salary_multiplier = growth_multiplier(year, DEFAULT_SALARY_GROWTH)
    cost_multiplier = growth_multiplier(year, DEFAULT_COST_GROWTH)
    is_year_one = year <= 1

    # Annual figures for the projected year
    revenue_target = state.revenue_target * revenue_multiplier
    profit_target = state.profit_target * revenue_multiplier
    existing_team = calculations.total_existing_team_cost * salary_multiplier
    new_hires = calculations.total_new_hires_cost * salary_multiplier
    team_total = calculations.total_team_costs * salary_multiplier
    team_cogs = calculations.total_team_costs_cogs * salary_multiplier
    team_opex = calculations.total_team_costs_opex * salary_multiplier
    opex_forecast = calculations.total_opex_forecast * cost_multiplier

    investments_capex = calculations.total_investments_capex if is_year_one else ZERO
    investments_opex = calculations.total_investments_opex if is_year_one else ZERO
    investments_total = calculations.total_investments if is_year_one else ZERO

    gross_profit = revenue_target - team_cogs
    total_expenses = team_opex + opex_forecast + investments_opex
    net_profit = gross_profit - total_expenses
    gross_margin = gross_profit / revenue_target * HUNDRED if revenue_target > 0 else ZERO
    net_margin = net_profit / revenue_target * HUNDRED if revenue_target > 0 else ZERO
    profit_variance = net_profit - profit_target
    profit_variance_percent = (
        profit_variance / profit_target * HUNDRED if profit_target > 0 else ZERO
    )

    # Monthly view is a pure display transform of the annual figures
    divisor = view_divisor(view_mode)

    return YearProjection(
        year=year,
        view_mode=ViewMode(view_mode),
        revenue_multiplier=revenue_multiplier,
        salary_multiplier=salary_multiplier,
        cost_multiplier=cost_multiplier,
        revenue_target=revenue_target / divisor,
        profit_target=profit_target / divisor,
        total_existing_team_cost=existing_team / divisor,
        total_new_hires_cost=new_hires / divisor,
        total_team_costs=team_total / divisor,
        total_team_costs_cogs=team_cogs / divisor,
        total_team_costs_opex=team_opex / divisor,
        total_opex_forecast=opex_forecast / divisor,
        total_investments_capex=investments_capex / divisor,
        total_investments_opex=investments_opex / divisor,
        total_investments=investments_total / divisor,
        investments_note=None if is_year_one else YEAR_ONE_INVESTMENTS_NOTE,
        gross_profit=gross_profit / divisor,
        gross_margin=gross_margin,
        total_expenses=total_expenses / divisor,
        net_profit=net_profit / divisor,
        net_margin=net_margin,
        profit_variance=profit_variance / divisor,
        profit_variance_percent=profit_variance_percent,
    )
