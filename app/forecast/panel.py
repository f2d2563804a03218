"""Live forecast panel view model.

Builds the display payload for the wizard's side panel: one block per
section with its status, the projected P&L summary and the progress bar.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.forecast.calculations import LOW_NET_MARGIN_THRESHOLD, parse_start_month
from app.forecast.projection import (
    DEFAULT_REVENUE_GROWTH,
    ViewMode,
    YearProjection,
    project_year,
    view_divisor,
)
from app.forecast.types import (
    LiveForecastCalculations,
    LiveForecastState,
    WizardStep,
)

PROGRESS_STEPS = (
    WizardStep.SETUP,
    WizardStep.TEAM,
    WizardStep.COSTS,
    WizardStep.INVESTMENTS,
    WizardStep.PROJECTIONS,
    WizardStep.REVIEW,
)
MAX_LISTED_TEAM_MEMBERS = 3
MAX_LISTED_CATEGORIES = 6


def resolve_selected_year(state: LiveForecastState, selected_year: int) -> int:
    """Fall back to the first selected year when the requested one is no longer selected."""
    if selected_year in state.years_selected:
        return selected_year
    return state.years_selected[0] if state.years_selected else 1


def section_status(state: LiveForecastState, step: WizardStep) -> str:
    if state.completed_steps.is_completed(step):
        return "completed"
    if state.current_step == step:
        return "current"
    return "pending"


def progress(state: LiveForecastState) -> Dict[str, Any]:
    index = PROGRESS_STEPS.index(state.current_step) if state.current_step in PROGRESS_STEPS else 0
    step = index + 1
    return {
        "step": step,
        "total_steps": len(PROGRESS_STEPS),
        "percent": Decimal(step) / Decimal(len(PROGRESS_STEPS)) * 100,
    }


def margin_status(net_margin: Decimal) -> str:
    if net_margin >= LOW_NET_MARGIN_THRESHOLD:
        return "healthy"
    if net_margin > 0:
        return "thin"
    return "loss"


def net_profit_status(net_profit: Decimal, profit_target: Decimal) -> str:
    if net_profit >= profit_target:
        return "on_target"
    if net_profit > 0:
        return "below_target"
    return "loss"


def _section(state: LiveForecastState, step: WizardStep, title: str, total: Decimal,
             always_expanded: bool = False) -> Dict[str, Any]:
    status = section_status(state, step)
    return {
        "title": title,
        "step": step.value,
        "status": status,
        "expanded": always_expanded or state.current_step == step,
        "total": total,
    }


def _revenue_section(state: LiveForecastState, projection: YearProjection) -> Dict[str, Any]:
    section = _section(state, WizardStep.SETUP, "Revenue & Targets", projection.revenue_target,
                       always_expanded=True)
    target_margin: Optional[Decimal] = None
    if projection.revenue_target > 0 and projection.profit_target > 0:
        target_margin = projection.profit_target / projection.revenue_target * 100
    years = len(state.years_selected)
    section.update({
        "revenue_target": projection.revenue_target,
        "profit_target": projection.profit_target,
        "target_margin": target_margin,
        "growth_assumption": (
            f"+{DEFAULT_REVENUE_GROWTH * 100:.0f}% YoY" if projection.year > 1 else None
        ),
        "forecast_period": "1 Year" if years <= 1 else f"{years} Years",
    })
    return section


def _team_section(state: LiveForecastState, projection: YearProjection, divisor: Decimal) -> Dict[str, Any]:
    section = _section(state, WizardStep.TEAM, "Team Costs", projection.total_team_costs)
    multiplier = projection.salary_multiplier
    existing = state.existing_team
    hires: List[Dict[str, Any]] = []
    for hire in state.planned_hires:
        start = parse_start_month(hire.start_month)
        hires.append({
            "id": hire.id,
            "role": hire.role,
            "start": start.strftime("%b %y") if projection.year == 1 and start else None,
            "amount": hire.annual_salary * multiplier / divisor,
        })
    section.update({
        "existing_count": len(existing),
        "existing_total": projection.total_existing_team_cost,
        "existing_members": [
            {"id": m.id, "name": m.name, "role": m.role,
             "amount": m.annual_salary * multiplier / divisor}
            for m in existing[:MAX_LISTED_TEAM_MEMBERS]
        ],
        "more_members": max(0, len(existing) - MAX_LISTED_TEAM_MEMBERS),
        "planned_hires_count": len(state.planned_hires),
        "planned_hires_total": projection.total_new_hires_cost,
        "planned_hires": hires,
        "cogs_total": projection.total_team_costs_cogs,
        "opex_total": projection.total_team_costs_opex,
    })
    return section


def _opex_section(state: LiveForecastState, calculations: LiveForecastCalculations,
                  projection: YearProjection, divisor: Decimal) -> Dict[str, Any]:
    section = _section(state, WizardStep.COSTS, "Operating Expenses", projection.total_opex_forecast)
    multiplier = projection.cost_multiplier
    material = [c for c in state.opex_categories if c.is_material]
    grouped = [c for c in state.opex_categories if not c.is_material]
    grouped_total = sum((c.forecast_amount for c in grouped), Decimal("0")) * multiplier
    section.update({
        "material_categories": [
            {
                "id": c.id,
                "name": c.name,
                "growth_percent": c.growth_percent,
                "is_override": c.is_override,
                "amount": c.forecast_amount * multiplier / divisor,
            }
            for c in material[:MAX_LISTED_CATEGORIES]
        ],
        "grouped_count": len(grouped),
        "grouped_total": grouped_total / divisor,
        "vs_prior_year": (
            calculations.opex_growth_amount / divisor
            if projection.year == 1 and calculations.opex_growth_amount != 0 else None
        ),
    })
    return section


def _investments_section(state: LiveForecastState, projection: YearProjection, divisor: Decimal) -> Dict[str, Any]:
    section = _section(state, WizardStep.INVESTMENTS, "Strategic Investments", projection.total_investments)
    is_year_one = projection.year == 1
    section.update({
        "investments": [
            {"id": i.id, "name": i.name, "type": i.type.value, "amount": i.amount / divisor}
            for i in state.investments
        ] if is_year_one else [],
        "opex_total": projection.total_investments_opex,
        "capex_total": projection.total_investments_capex,
        "note": projection.investments_note,
    })
    return section


def _pl_summary(state: LiveForecastState, projection: YearProjection) -> Dict[str, Any]:
    has_data = state.revenue_target > 0
    return {
        "has_data": has_data,
        "revenue": projection.revenue_target,
        "cost_of_sales": projection.total_team_costs_cogs,
        "gross_profit": projection.gross_profit,
        "gross_margin": projection.gross_margin,
        "team_opex": projection.total_team_costs_opex,
        "operating_costs": projection.total_opex_forecast,
        "investments": projection.total_investments_opex,
        "net_profit": projection.net_profit,
        "net_margin": projection.net_margin,
        "profit_target": projection.profit_target,
        "profit_variance": projection.profit_variance if projection.profit_target > 0 else None,
        "margin_status": margin_status(projection.net_margin) if has_data else None,
        "net_profit_status": net_profit_status(projection.net_profit, projection.profit_target),
    }


def build_panel(
    state: LiveForecastState,
    calculations: LiveForecastCalculations,
    selected_year: int = 1,
    view_mode: ViewMode = ViewMode.ANNUAL,
) -> Dict[str, Any]:
    """Assemble the full panel payload for the selected year and view mode."""
    year = resolve_selected_year(state, selected_year)
    projection = project_year(state, year, view_mode, calculations)
    divisor = view_divisor(view_mode)

    return {
        "title": f"FY{state.fiscal_year + year - 1} Forecast",
        "selected_year": year,
        "view_mode": ViewMode(view_mode).value,
        "has_multiple_years": len(state.years_selected) > 1,
        "progress": progress(state),
        "sections": [
            _revenue_section(state, projection),
            _team_section(state, projection, divisor),
            _opex_section(state, calculations, projection, divisor),
            _investments_section(state, projection, divisor),
        ],
        "pl_summary": _pl_summary(state, projection),
        "warnings": [w.to_dict() for w in calculations.warnings],
    }
