"""
Live forecast store.

Holds the wizard's ``LiveForecastState`` and exposes the action set the UI
drives. Each action swaps in a new immutable state; ``calculations`` is
derived lazily and cached against the state object it was computed from.
"""
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Mapping, Optional

from app.forecast.calculations import calculate_forecast
from app.forecast.context import initialize_from_context
from app.forecast.types import (
    COMPLETABLE_STEPS,
    Classification,
    Investment,
    InvestmentType,
    LiveForecastCalculations,
    LiveForecastState,
    OpExCategory,
    OpExTrend,
    TeamMember,
    WizardStep,
)
from app.models.base import generate_id

Listener = Callable[[LiveForecastState], None]

DECIMAL_FIELDS = ("annual_salary", "amount", "prior_year_amount", "forecast_amount", "growth_percent")
ENUM_FIELDS = {
    "classification": Classification,
    "type": InvestmentType,
    "trend": OpExTrend,
}


def _coerce_updates(updates: Mapping[str, Any]) -> dict:
    """Normalise edited fields to the entity types: money as Decimal, labels as enums."""
    coerced = dict(updates)
    for name in DECIMAL_FIELDS:
        if name in coerced:
            coerced[name] = Decimal(str(coerced[name]))
    for name, enum_type in ENUM_FIELDS.items():
        if name in coerced:
            coerced[name] = enum_type(coerced[name])
    return coerced


class LiveForecast:
    """State container for one forecast wizard session."""

    def __init__(self, initial_state: Optional[LiveForecastState] = None):
        self._state = initial_state or LiveForecastState()
        self._cached_for: Optional[LiveForecastState] = None
        self._cached: Optional[LiveForecastCalculations] = None
        self._listeners: List[Listener] = []

    @property
    def state(self) -> LiveForecastState:
        return self._state

    @property
    def calculations(self) -> LiveForecastCalculations:
        if self._cached_for is not self._state:
            self._cached = calculate_forecast(self._state)
            self._cached_for = self._state
        return self._cached

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: LiveForecastState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    # -------------------------------------------------------------------------
    # Targets
    # -------------------------------------------------------------------------

    def set_targets(self, revenue: Decimal, profit: Decimal) -> None:
        self._set_state(replace(
            self._state,
            revenue_target=Decimal(str(revenue)),
            profit_target=Decimal(str(profit)),
        ))

    def set_years_selected(self, years: Iterable[int]) -> None:
        selected = tuple(sorted({int(y) for y in years if int(y) >= 1}))
        self._set_state(replace(self._state, years_selected=selected))

    # -------------------------------------------------------------------------
    # Team
    # -------------------------------------------------------------------------

    def set_existing_team(self, team: Iterable[TeamMember]) -> None:
        self._set_state(replace(self._state, existing_team=tuple(team)))

    def add_planned_hire(
        self,
        name: str,
        role: str,
        annual_salary: Decimal,
        classification: Classification = Classification.OPEX,
        start_month: Optional[str] = None,
    ) -> TeamMember:
        hire = TeamMember(
            id=generate_id("hire"),
            name=name,
            role=role,
            annual_salary=Decimal(str(annual_salary)),
            classification=Classification(classification),
            start_month=start_month,
            is_new_hire=True,
            from_xero=False,
        )
        self._set_state(replace(
            self._state,
            planned_hires=self._state.planned_hires + (hire,),
        ))
        return hire

    def remove_planned_hire(self, hire_id: str) -> None:
        self._set_state(replace(
            self._state,
            planned_hires=tuple(h for h in self._state.planned_hires if h.id != hire_id),
        ))

    def update_planned_hire(self, hire_id: str, **updates: Any) -> None:
        updates = _coerce_updates(updates)
        # Planned hires stay new hires whatever the update says
        updates["is_new_hire"] = True
        self._set_state(replace(
            self._state,
            planned_hires=tuple(
                replace(h, **updates) if h.id == hire_id else h
                for h in self._state.planned_hires
            ),
        ))

    # -------------------------------------------------------------------------
    # Operating expenses
    # -------------------------------------------------------------------------

    def set_opex_categories(self, categories: Iterable[OpExCategory]) -> None:
        self._set_state(replace(self._state, opex_categories=tuple(categories)))

    def update_opex_category(self, category_id: str, **updates: Any) -> None:
        """Apply a manual edit; the category is pinned against later growth-rate changes."""
        updates = _coerce_updates(updates)
        updates["is_override"] = True
        self._set_state(replace(
            self._state,
            opex_categories=tuple(
                replace(c, **updates) if c.id == category_id else c
                for c in self._state.opex_categories
            ),
        ))

    def set_opex_growth_rate(self, rate: Decimal) -> None:
        """Set the default growth rate and re-forecast every category not overridden by hand."""
        rate = Decimal(str(rate))
        categories = tuple(
            c if c.is_override else replace(
                c,
                forecast_amount=c.prior_year_amount * (1 + rate),
                growth_percent=rate * 100,
            )
            for c in self._state.opex_categories
        )
        self._set_state(replace(
            self._state,
            opex_growth_rate=rate,
            opex_categories=categories,
        ))

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    def add_investment(
        self,
        name: str,
        amount: Decimal,
        type: InvestmentType,
        timing: Optional[str] = None,
        initiative_id: Optional[str] = None,
    ) -> Investment:
        investment = Investment(
            id=generate_id("inv"),
            name=name,
            amount=Decimal(str(amount)),
            type=InvestmentType(type),
            timing=timing,
            initiative_id=initiative_id,
        )
        self._set_state(replace(
            self._state,
            investments=self._state.investments + (investment,),
        ))
        return investment

    def remove_investment(self, investment_id: str) -> None:
        self._set_state(replace(
            self._state,
            investments=tuple(i for i in self._state.investments if i.id != investment_id),
        ))

    def update_investment(self, investment_id: str, **updates: Any) -> None:
        updates = _coerce_updates(updates)
        self._set_state(replace(
            self._state,
            investments=tuple(
                replace(i, **updates) if i.id == investment_id else i
                for i in self._state.investments
            ),
        ))

    # -------------------------------------------------------------------------
    # Wizard progress
    # -------------------------------------------------------------------------

    def set_current_step(self, step: WizardStep) -> None:
        self._set_state(replace(self._state, current_step=WizardStep(step)))

    def complete_step(self, step: WizardStep) -> None:
        step = WizardStep(step)
        if step not in COMPLETABLE_STEPS or self._state.completed_steps.is_completed(step):
            return
        self._set_state(replace(
            self._state,
            completed_steps=replace(self._state.completed_steps, **{step.value: True}),
        ))

    def initialize_from_context(self, context: Mapping[str, Any]) -> None:
        self._set_state(initialize_from_context(self._state, context))
