"""Pydantic schemas for the live forecast API."""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.forecast.projection import ViewMode
from app.forecast.types import (
    Classification,
    CompletedSteps,
    Investment,
    InvestmentType,
    LiveForecastState,
    OpExCategory,
    OpExTrend,
    TeamMember,
    WizardStep,
    default_fiscal_year,
)


# ============================================================================
# STATE SCHEMAS
# ============================================================================

class TeamMemberSchema(BaseModel):
    """A salaried team member, existing or planned."""
    id: str
    name: str
    role: str
    annual_salary: Decimal = Field(default=Decimal("0"), ge=0)
    classification: Classification = Classification.OPEX
    start_month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}")
    is_new_hire: bool = False
    from_xero: bool = False

    def to_entity(self, is_new_hire: Optional[bool] = None) -> TeamMember:
        return TeamMember(
            id=self.id,
            name=self.name,
            role=self.role,
            annual_salary=self.annual_salary,
            classification=self.classification,
            start_month=self.start_month,
            is_new_hire=self.is_new_hire if is_new_hire is None else is_new_hire,
            from_xero=self.from_xero,
        )


class OpExCategorySchema(BaseModel):
    """Operating expense category with prior-year actual and forecast."""
    id: str
    name: str
    prior_year_amount: Decimal = Decimal("0")
    forecast_amount: Decimal = Decimal("0")
    growth_percent: Decimal = Decimal("0")
    is_override: bool = False
    trend: OpExTrend = OpExTrend.STABLE
    is_material: bool = True
    is_grouped: bool = False

    def to_entity(self) -> OpExCategory:
        return OpExCategory(**self.model_dump())


class InvestmentSchema(BaseModel):
    """One-off strategic investment (Year 1 only)."""
    id: str
    name: str
    amount: Decimal = Decimal("0")
    type: InvestmentType
    timing: Optional[str] = None
    initiative_id: Optional[str] = None

    def to_entity(self) -> Investment:
        return Investment(**self.model_dump())


class CompletedStepsSchema(BaseModel):
    setup: bool = False
    team: bool = False
    costs: bool = False
    investments: bool = False
    review: bool = False


class LiveForecastStateSchema(BaseModel):
    """Wire form of the live forecast state."""
    revenue_target: Decimal = Decimal("0")
    profit_target: Decimal = Decimal("0")
    fiscal_year: int = Field(default_factory=default_fiscal_year)
    years_selected: List[int] = [1]
    existing_team: List[TeamMemberSchema] = []
    planned_hires: List[TeamMemberSchema] = []
    opex_categories: List[OpExCategorySchema] = []
    opex_growth_rate: Decimal = Decimal("0.05")
    investments: List[InvestmentSchema] = []
    completed_steps: CompletedStepsSchema = CompletedStepsSchema()
    current_step: WizardStep = WizardStep.SETUP

    def to_state(self) -> LiveForecastState:
        return LiveForecastState(
            revenue_target=self.revenue_target,
            profit_target=self.profit_target,
            fiscal_year=self.fiscal_year,
            years_selected=tuple(sorted({y for y in self.years_selected if y >= 1})),
            existing_team=tuple(m.to_entity() for m in self.existing_team),
            planned_hires=tuple(h.to_entity(is_new_hire=True) for h in self.planned_hires),
            opex_categories=tuple(c.to_entity() for c in self.opex_categories),
            opex_growth_rate=self.opex_growth_rate,
            investments=tuple(i.to_entity() for i in self.investments),
            completed_steps=CompletedSteps(**self.completed_steps.model_dump()),
            current_step=self.current_step,
        )


# ============================================================================
# CONTEXT SCHEMAS
# ============================================================================

class ContextGoals(BaseModel):
    revenue_target: Optional[Decimal] = None
    profit_target: Optional[Decimal] = None


class ContextTeamMember(BaseModel):
    employee_id: Optional[str] = None
    full_name: str
    job_title: Optional[str] = None
    annual_salary: Optional[Decimal] = None
    classification: Optional[Classification] = None


class ContextExpenseCategory(BaseModel):
    account_name: str
    total: Decimal = Decimal("0")


class ContextPriorFY(BaseModel):
    operating_expenses_by_category: Optional[List[ContextExpenseCategory]] = None


class ContextHistoricalPL(BaseModel):
    prior_fy: Optional[ContextPriorFY] = None


class ContextInitiative(BaseModel):
    id: str
    title: str


class ForecastContext(BaseModel):
    """Business context assembled by the wizard from goals, payroll and the prior-year P&L."""
    goals: Optional[ContextGoals] = None
    current_team: Optional[List[ContextTeamMember]] = None
    historical_pl: Optional[ContextHistoricalPL] = None
    strategic_initiatives: Optional[List[ContextInitiative]] = None
    fiscal_year: Optional[int] = None


# ============================================================================
# REQUESTS
# ============================================================================

class InitializeForecastRequest(BaseModel):
    context: ForecastContext
    state: Optional[LiveForecastStateSchema] = None


class CalculateForecastRequest(BaseModel):
    state: LiveForecastStateSchema
    selected_year: int = Field(default=1, ge=1)
    view_mode: ViewMode = ViewMode.ANNUAL
