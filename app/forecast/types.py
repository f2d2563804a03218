"""
Live forecast types.

The live forecast is a single-year P&L plan assembled step by step in the
forecast wizard: targets, team, operating costs and one-off investments.
State is immutable; every action produces a new ``LiveForecastState`` and the
derived ``LiveForecastCalculations`` are recomputed from it.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class Classification(str, Enum):
    """Where a salary lands on the P&L."""
    COGS = "cogs"
    OPEX = "opex"


class InvestmentType(str, Enum):
    CAPEX = "capex"
    OPEX = "opex"


class OpExTrend(str, Enum):
    STABLE = "stable"
    GROWING = "growing"
    DECLINING = "declining"
    SEASONAL = "seasonal"
    IRREGULAR = "irregular"


class WarningType(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class WarningCategory(str, Enum):
    MARGIN = "margin"
    EXPENSE = "expense"
    MISSING = "missing"
    TARGET = "target"


class WizardStep(str, Enum):
    """Wizard steps in display order."""
    SETUP = "setup"
    TEAM = "team"
    COSTS = "costs"
    INVESTMENTS = "investments"
    PROJECTIONS = "projections"
    REVIEW = "review"


# Steps that carry a completion flag (projections is a view, not a step to complete)
COMPLETABLE_STEPS: Tuple[WizardStep, ...] = (
    WizardStep.SETUP,
    WizardStep.TEAM,
    WizardStep.COSTS,
    WizardStep.INVESTMENTS,
    WizardStep.REVIEW,
)


@dataclass(frozen=True)
class TeamMember:
    id: str
    name: str
    role: str
    annual_salary: Decimal
    classification: Classification = Classification.OPEX
    start_month: Optional[str] = None  # "YYYY-MM", new hires only
    is_new_hire: bool = False
    from_xero: bool = False


@dataclass(frozen=True)
class OpExCategory:
    id: str
    name: str
    prior_year_amount: Decimal
    forecast_amount: Decimal
    growth_percent: Decimal
    is_override: bool = False  # Set once the user edits the category by hand
    trend: OpExTrend = OpExTrend.STABLE
    is_material: bool = True  # >= materiality threshold of total prior-year OpEx
    is_grouped: bool = False  # Rolled into "Other" (always the inverse of is_material)


@dataclass(frozen=True)
class Investment:
    id: str
    name: str
    amount: Decimal
    type: InvestmentType
    timing: Optional[str] = None
    initiative_id: Optional[str] = None


@dataclass(frozen=True)
class ForecastWarning:
    id: str
    type: WarningType
    category: WarningCategory
    message: str
    field: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "type": self.type.value,
            "category": self.category.value,
            "message": self.message,
        }
        if self.field is not None:
            result["field"] = self.field
        return result


@dataclass(frozen=True)
class CompletedSteps:
    setup: bool = False
    team: bool = False
    costs: bool = False
    investments: bool = False
    review: bool = False

    def is_completed(self, step: WizardStep) -> bool:
        return bool(getattr(self, step.value, False))


def default_fiscal_year(today: Optional[date] = None) -> int:
    """Fiscal year ending June 30 that contains ``today`` (FY2026 = Jul 2025 - Jun 2026)."""
    today = today or date.today()
    return today.year + 1 if today.month >= 7 else today.year


@dataclass(frozen=True)
class LiveForecastState:
    # Targets
    revenue_target: Decimal = Decimal("0")
    profit_target: Decimal = Decimal("0")
    fiscal_year: int = field(default_factory=default_fiscal_year)
    years_selected: Tuple[int, ...] = (1,)

    # Team
    existing_team: Tuple[TeamMember, ...] = ()
    planned_hires: Tuple[TeamMember, ...] = ()

    # Operating expenses
    opex_categories: Tuple[OpExCategory, ...] = ()
    opex_growth_rate: Decimal = Decimal("0.05")

    # Investments
    investments: Tuple[Investment, ...] = ()

    completed_steps: CompletedSteps = field(default_factory=CompletedSteps)
    current_step: WizardStep = WizardStep.SETUP


@dataclass(frozen=True)
class LiveForecastCalculations:
    # Team
    total_existing_team_cost: Decimal
    total_new_hires_cost: Decimal
    total_team_costs_cogs: Decimal
    total_team_costs_opex: Decimal
    total_team_costs: Decimal

    # Operating expenses
    total_opex_prior_year: Decimal
    total_opex_forecast: Decimal
    opex_growth_amount: Decimal

    # Investments
    total_investments_capex: Decimal
    total_investments_opex: Decimal
    total_investments: Decimal

    # P&L
    gross_profit: Decimal
    gross_margin: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    net_margin: Decimal

    # Variance from target
    profit_variance: Decimal
    profit_variance_percent: Decimal

    warnings: Tuple[ForecastWarning, ...] = ()
