from pydantic import BaseModel, Field


class FloorCreate(BaseModel):
    project_id: int
    floor_number: int  # negative for basements
    name: str | None = None
    area_m2: float | None = Field(None, gt=0)


class FloorOut(BaseModel):
    id: int
    project_id: int
    floor_number: int
    name: str | None = None
    display_name: str
    area_m2: float | None = None


class FloorSuggestionRequest(BaseModel):
    strategy: str = "even"
    # "basement"/"typical"/"penthouse" override type multipliers, floor ids set a weight per floor
    weights: dict[str, float] | None = None
    by_area: bool = False


class FloorSuggestionOut(BaseModel):
    floor_id: int
    floor_number: int
    floor_name: str
    floor_type: str
    suggested_budget: float
    split: dict[str, float]


class FloorAllocationIn(BaseModel):
    floor_id: int
    total: float = Field(..., ge=0)
    materials: float | None = Field(None, ge=0)
    labour: float | None = Field(None, ge=0)
    equipment: float | None = Field(None, ge=0)
    subcontractors: float | None = Field(None, ge=0)


class FloorAllocationsIn(BaseModel):
    allocations: list[FloorAllocationIn]
    strategy: str | None = None


class FloorAllocationRow(BaseModel):
    floor_id: int
    floor_number: int
    floor_name: str
    total: float
    materials: float
    labour: float
    equipment: float
    subcontractors: float
    strategy: str | None = None


class FloorAllocationReport(BaseModel):
    phase_id: int
    phase_budget: float
    total_allocated: float
    unallocated: float
    floors: list[FloorAllocationRow]


class FloorActualOut(BaseModel):
    materials: float
    labour: float
    total: float


class FloorFinancialOut(BaseModel):
    floor_id: int
    floor_number: int
    floor_name: str
    phase_id: int | None = None
    allocated: float
    actual: FloorActualOut
    committed: float
    estimated: float
    remaining: float
