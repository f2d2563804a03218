"""
Live forecast derivations.

``calculate_forecast`` is a pure function of ``LiveForecastState``: it never
mutates state, never raises, and guards every ratio against a zero
denominator so the panel never shows NaN or infinity.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from app.forecast.types import (
    Classification,
    ForecastWarning,
    InvestmentType,
    LiveForecastCalculations,
    LiveForecastState,
    TeamMember,
    WarningCategory,
    WarningType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")

# Warning thresholds (percentages)
LOW_NET_MARGIN_THRESHOLD = Decimal("10")
HIGH_NET_MARGIN_THRESHOLD = Decimal("40")
TARGET_VARIANCE_THRESHOLD = Decimal("20")
EXPENSE_SPIKE_THRESHOLD = Decimal("50")


def parse_start_month(start_month: Optional[str]) -> Optional[date]:
    """Parse a 'YYYY-MM' start month to the first of that month; None if unset or malformed."""
    if not start_month:
        return None
    try:
        year, month = start_month[:7].split("-")
        return date(int(year), int(month), 1)
    except (ValueError, TypeError):
        return None


def fiscal_year_window(fiscal_year: int) -> tuple:
    """(start, end) of an Australian fiscal year: FY2026 runs 2025-07-01 to 2026-06-30."""
    return date(fiscal_year - 1, 7, 1), date(fiscal_year, 6, 30)


def prorated_salary(hire: TeamMember, fiscal_year: int) -> Decimal:
    """
    Salary cost a planned hire contributes to the fiscal year.

    No start month means a full year. A hire starting after the fiscal year
    ends costs nothing; one starting on or before the first day costs the full
    salary; otherwise the salary is prorated by whole months remaining,
    counting the start month itself.
    """
    start = parse_start_month(hire.start_month)
    if start is None:
        return hire.annual_salary

    fy_start, fy_end = fiscal_year_window(fiscal_year)
    if start > fy_end:
        return ZERO
    if start <= fy_start:
        return hire.annual_salary

    delta = relativedelta(fy_end, start)
    months_remaining = max(0, delta.years * 12 + delta.months + 1)
    return hire.annual_salary * Decimal(months_remaining) / MONTHS_PER_YEAR


def _percent_of(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator * HUNDRED if denominator > 0 else ZERO


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def build_warnings(
    state: LiveForecastState,
    net_margin: Decimal,
    profit_variance: Decimal,
    profit_variance_percent: Decimal,
) -> List[ForecastWarning]:
    """Evaluate every warning rule independently; the list is rebuilt from scratch each time."""
    warnings: List[ForecastWarning] = []
    has_revenue = state.revenue_target > 0

    if has_revenue and net_margin < LOW_NET_MARGIN_THRESHOLD:
        warnings.append(ForecastWarning(
            id="low-margin",
            type=WarningType.WARNING,
            category=WarningCategory.MARGIN,
            message=f"Net margin ({net_margin:.1f}%) is below typical SMB range (10-15%)",
        ))
    if has_revenue and net_margin > HIGH_NET_MARGIN_THRESHOLD:
        warnings.append(ForecastWarning(
            id="high-margin",
            type=WarningType.INFO,
            category=WarningCategory.MARGIN,
            message=f"Net margin ({net_margin:.1f}%) is unusually high - verify assumptions",
        ))

    if state.profit_target > 0 and abs(profit_variance_percent) > TARGET_VARIANCE_THRESHOLD:
        direction = "above" if profit_variance > 0 else "below"
        warnings.append(ForecastWarning(
            id="target-variance",
            type=WarningType.WARNING if profit_variance < 0 else WarningType.INFO,
            category=WarningCategory.TARGET,
            message=f"Projected profit is {abs(profit_variance_percent):.0f}% {direction} target",
        ))

    for category in state.opex_categories:
        if category.prior_year_amount > 0 and category.growth_percent > EXPENSE_SPIKE_THRESHOLD:
            warnings.append(ForecastWarning(
                id=f"spike-{category.id}",
                type=WarningType.WARNING,
                category=WarningCategory.EXPENSE,
                message=f"{category.name} up {category.growth_percent:.0f}% vs prior year",
                field=category.name,
            ))

    return warnings


def calculate_forecast(state: LiveForecastState) -> LiveForecastCalculations:
    """Derive every aggregate, P&L line, margin, variance and warning from state."""
    # Team
    total_existing_team_cost = _sum(m.annual_salary for m in state.existing_team)
    total_new_hires_cost = _sum(prorated_salary(h, state.fiscal_year) for h in state.planned_hires)

    # Classification split uses full salaries across existing + planned
    all_team = state.existing_team + state.planned_hires
    total_team_costs_cogs = _sum(
        m.annual_salary for m in all_team if m.classification == Classification.COGS
    )
    total_team_costs_opex = _sum(
        m.annual_salary for m in all_team if m.classification == Classification.OPEX
    )
    total_team_costs = total_existing_team_cost + total_new_hires_cost

    # Operating expenses
    total_opex_prior_year = _sum(c.prior_year_amount for c in state.opex_categories)
    total_opex_forecast = _sum(c.forecast_amount for c in state.opex_categories)
    opex_growth_amount = total_opex_forecast - total_opex_prior_year

    # Investments
    total_investments_capex = _sum(
        i.amount for i in state.investments if i.type == InvestmentType.CAPEX
    )
    total_investments_opex = _sum(
        i.amount for i in state.investments if i.type == InvestmentType.OPEX
    )
    total_investments = total_investments_capex + total_investments_opex

    # P&L
    gross_profit = state.revenue_target - total_team_costs_cogs
    gross_margin = _percent_of(gross_profit, state.revenue_target)
    total_expenses = total_team_costs_opex + total_opex_forecast + total_investments_opex
    net_profit = gross_profit - total_expenses
    net_margin = _percent_of(net_profit, state.revenue_target)

    # Variance from target
    profit_variance = net_profit - state.profit_target
    profit_variance_percent = _percent_of(profit_variance, state.profit_target)

    warnings = build_warnings(state, net_margin, profit_variance, profit_variance_percent)

    return LiveForecastCalculations(
        total_existing_team_cost=total_existing_team_cost,
        total_new_hires_cost=total_new_hires_cost,
        total_team_costs_cogs=total_team_costs_cogs,
        total_team_costs_opex=total_team_costs_opex,
        total_team_costs=total_team_costs,
        total_opex_prior_year=total_opex_prior_year,
        total_opex_forecast=total_opex_forecast,
        opex_growth_amount=opex_growth_amount,
        total_investments_capex=total_investments_capex,
        total_investments_opex=total_investments_opex,
        total_investments=total_investments,
        gross_profit=gross_profit,
        gross_margin=gross_margin,
        total_expenses=total_expenses,
        net_profit=net_profit,
        net_margin=net_margin,
        profit_variance=profit_variance,
        profit_variance_percent=profit_variance_percent,
        warnings=tuple(warnings),
    )
