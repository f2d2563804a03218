"""
Context initializer.

One-way transform of the wizard's business context (goals, current team from
Xero payroll, prior-year P&L by category) into live forecast state. Fields
missing from the context leave the existing state untouched.
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from app.forecast.types import (
    Classification,
    LiveForecastState,
    OpExCategory,
    OpExTrend,
    TeamMember,
)

logger = logging.getLogger(__name__)

MATERIALITY_THRESHOLD = Decimal("0.05")
DEFAULT_OPEX_GROWTH_RATE = Decimal("0.05")
DEFAULT_ROLE = "Team Member"


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _team_from_context(current_team: List[Mapping[str, Any]]) -> tuple:
    team = []
    for idx, member in enumerate(current_team):
        classification = member.get("classification") or Classification.OPEX.value
        team.append(TeamMember(
            id=member.get("employee_id") or f"team-{idx}",
            name=member.get("full_name") or "",
            role=member.get("job_title") or DEFAULT_ROLE,
            annual_salary=_to_decimal(member.get("annual_salary")),
            classification=Classification(classification),
            is_new_hire=False,
            from_xero=True,
        ))
    return tuple(team)


def _opex_from_context(categories: List[Mapping[str, Any]]) -> tuple:
    """Map prior-year expense categories, flagging those under the materiality threshold as grouped."""
    total = sum((_to_decimal(c.get("total")) for c in categories), Decimal("0"))
    growth_multiplier = 1 + DEFAULT_OPEX_GROWTH_RATE

    result = []
    for idx, category in enumerate(categories):
        prior = _to_decimal(category.get("total"))
        is_material = (prior / total) >= MATERIALITY_THRESHOLD if total > 0 else True
        result.append(OpExCategory(
            id=f"opex-{idx}",
            name=category.get("account_name") or "",
            prior_year_amount=prior,
            forecast_amount=prior * growth_multiplier,
            growth_percent=DEFAULT_OPEX_GROWTH_RATE * 100,
            is_override=False,
            trend=OpExTrend.STABLE,
            is_material=is_material,
            is_grouped=not is_material,
        ))
    return tuple(result)


def _prior_fy_categories(context: Mapping[str, Any]) -> Optional[List[Mapping[str, Any]]]:
    historical = context.get("historical_pl") or {}
    prior_fy = historical.get("prior_fy") or {}
    return prior_fy.get("operating_expenses_by_category")


def initialize_from_context(
    state: LiveForecastState,
    context: Mapping[str, Any],
) -> LiveForecastState:
    """Return a new state with whatever the context provides applied on top of ``state``."""
    goals = context.get("goals") or {}
    current_team = context.get("current_team") or []
    categories = _prior_fy_categories(context)

    logger.info(
        f"Initializing live forecast from context: goals={bool(goals)}, "
        f"team={len(current_team)}, opex_categories={len(categories or [])}, "
        f"fiscal_year={context.get('fiscal_year')}"
    )

    updates: Dict[str, Any] = {}
    if goals.get("revenue_target") is not None:
        updates["revenue_target"] = _to_decimal(goals["revenue_target"])
    if goals.get("profit_target") is not None:
        updates["profit_target"] = _to_decimal(goals["profit_target"])
    if context.get("fiscal_year") is not None:
        updates["fiscal_year"] = int(context["fiscal_year"])

    if current_team:
        updates["existing_team"] = _team_from_context(current_team)

    if categories is not None:
        updates["opex_categories"] = _opex_from_context(categories)

    return replace(state, **updates)
