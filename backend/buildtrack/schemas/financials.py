import datetime as dt
from pydantic import BaseModel


class FinancialSummaryOut(BaseModel):
    budget_total: float
    actual_total: float
    committed_total: float
    estimated_total: float
    remaining: float
    variance: float
    # None when the budget is 0 and something was spent, see utilization_unbounded
    variance_percentage: float | None
    utilization_percentage: float | None
    utilization_unbounded: bool
    budget_status: str


class CategoryRow(BaseModel):
    category: str
    total: float
    count: int


class TrendPoint(BaseModel):
    month: str  # YYYY-MM
    materials: float
    expenses: float
    labour: float
    equipment: float
    subcontractors: float
    professional_services: float
    total: float


class TypeRow(BaseModel):
    type: str
    total: float
    count: int
    percentage: float | None  # share of the phase actual total


class CategoryVarianceOut(BaseModel):
    budgeted: float
    actual: float
    variance: float
    variance_percentage: float | None
    budget_status: str


class BudgetCheckOut(BaseModel):
    is_valid: bool
    budget_not_set: bool
    budget: float
    used: float
    available: float
    required: float
    shortfall: float
    message: str
    category: str
    phase_id: int | None = None
    floor_id: int | None = None
    actual: float | None = None
    committed: float | None = None
    estimated: float | None = None


class LabourBreakdownOut(BaseModel):
    total: float
    entry_count: int
    hours: float
    by_skill: dict[str, float]


class ProfessionalServicesOut(BaseModel):
    total_fees: float
    fee_count: int
    architect_fees: float
    engineer_fees: float


class PhaseFinancialOut(BaseModel):
    phase_id: int
    project_id: int
    phase_code: str
    phase_name: str
    budget_allocation: dict[str, float]
    summary: FinancialSummaryOut
    actual_spending: dict[str, float]
    committed_breakdown: dict[str, float]
    category_breakdown: list[CategoryRow]
    labour: LabourBreakdownOut
    professional_services: ProfessionalServicesOut
    material_categories: list[CategoryRow]
    expense_categories: list[CategoryRow]
    equipment_types: list[TypeRow]
    subcontractor_types: list[TypeRow]
    professional_service_types: list[TypeRow]
    variance_by_category: dict[str, CategoryVarianceOut]
    trends: list[TrendPoint]
    synced_at: dt.datetime | None = None


class CachedFinancialOut(BaseModel):
    phase_id: int
    project_id: int
    budget_allocation: dict[str, float]
    summary: FinancialSummaryOut
    actual_spending: dict[str, float]
    financial_states: dict[str, float]
    professional_services: dict[str, float]
    category_breakdown: list[CategoryRow]
    synced_at: dt.datetime | None = None
    never_synced: bool


class ProjectPhaseRow(FinancialSummaryOut):
    phase_id: int
    code: str
    name: str
    sequence: int


class ProjectFinancialOut(BaseModel):
    project_id: int
    project_code: str
    summary: FinancialSummaryOut
    indirect_costs: float
    phases: list[ProjectPhaseRow]
