import datetime as dt
from pydantic import BaseModel, Field

from buildtrack.db.models.statuses import PhaseStatus


class BudgetAllocationIn(BaseModel):
    # sub-budgets left out are derived from total with the default split
    total: float = Field(..., ge=0)
    materials: float | None = Field(None, ge=0)
    labour: float | None = Field(None, ge=0)
    equipment: float | None = Field(None, ge=0)
    subcontractors: float | None = Field(None, ge=0)
    contingency: float = Field(0.0, ge=0)


class PhaseCreate(BaseModel):
    project_id: int
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1)
    sequence: int = 0
    status: PhaseStatus = PhaseStatus.not_started
    budget: BudgetAllocationIn | None = None


class PhaseUpdate(BaseModel):
    name: str | None = None
    sequence: int | None = None
    status: PhaseStatus | None = None


class PhaseOut(BaseModel):
    id: int
    project_id: int
    code: str
    name: str
    sequence: int
    status: str
    budget_allocation: dict[str, float]
    actual_spending: dict[str, float]
    financial_states: dict[str, float]
    professional_services: dict[str, float]
    financials_synced_at: dt.datetime | None = None
    version_id: int
