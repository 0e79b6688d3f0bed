import datetime as dt
from pydantic import BaseModel, Field

from buildtrack.db.models.statuses import (
    MaterialStatus,
    ExpenseStatus,
    LabourStatus,
    EquipmentStatus,
    SubcontractorStatus,
    ProfessionalServiceStatus,
    ProfessionalServiceType,
    FeeStatus,
    MaterialRequestStatus,
    PurchaseOrderStatus,
)


class CostRecordIn(BaseModel):
    project_id: int
    phase_id: int | None = None


class MaterialIn(CostRecordIn):
    floor_id: int | None = None
    name: str = Field(..., min_length=1)
    category: str | None = None
    unit: str | None = None
    quantity: float = Field(0.0, ge=0)
    unit_cost: float = Field(0.0, ge=0)
    total_cost: float | None = Field(None, ge=0)  # quantity * unit_cost when omitted
    status: MaterialStatus = MaterialStatus.pending_approval


class ExpenseIn(CostRecordIn):
    description: str = Field(..., min_length=1)
    category: str | None = None
    amount: float = Field(..., ge=0)
    is_indirect_cost: bool = False
    status: ExpenseStatus = ExpenseStatus.pending


class LabourEntryIn(CostRecordIn):
    floor_id: int | None = None
    worker_name: str = Field(..., min_length=1)
    skill: str | None = None
    total_hours: float = Field(0.0, ge=0)
    hourly_rate: float = Field(0.0, ge=0)
    total_cost: float | None = Field(None, ge=0)
    status: LabourStatus = LabourStatus.draft


class EquipmentIn(CostRecordIn):
    name: str = Field(..., min_length=1)
    equipment_type: str | None = None
    daily_rate: float = Field(0.0, ge=0)
    days: float = Field(0.0, ge=0)
    total_cost: float | None = Field(None, ge=0)
    status: EquipmentStatus = EquipmentStatus.assigned


class SubcontractorIn(CostRecordIn):
    name: str = Field(..., min_length=1)
    subcontractor_type: str | None = None
    contract_value: float = Field(..., gt=0)
    paid_amount: float = Field(0.0, ge=0)
    status: SubcontractorStatus = SubcontractorStatus.pending


class ProfessionalServiceIn(CostRecordIn):
    name: str = Field(..., min_length=1)
    service_type: ProfessionalServiceType = ProfessionalServiceType.other
    contract_value: float = Field(..., gt=0)
    status: ProfessionalServiceStatus = ProfessionalServiceStatus.active


class ProfessionalFeeIn(CostRecordIn):
    # phase defaults to the assignment's phase
    professional_service_id: int
    description: str | None = None
    amount: float = Field(..., ge=0)
    status: FeeStatus = FeeStatus.pending


class MaterialRequestIn(CostRecordIn):
    floor_id: int | None = None
    name: str = Field(..., min_length=1)
    category: str | None = None
    unit: str | None = None
    quantity_needed: float = Field(0.0, ge=0)
    estimated_unit_cost: float | None = Field(None, ge=0)
    estimated_cost: float | None = Field(None, ge=0)
    status: MaterialRequestStatus = MaterialRequestStatus.requested


class PurchaseOrderIn(CostRecordIn):
    floor_id: int | None = None
    material_request_id: int | None = None
    number: str = Field(..., min_length=1, max_length=64)
    supplier_name: str | None = None
    material_name: str | None = None
    category: str | None = None
    quantity: float = Field(0.0, ge=0)
    unit_cost: float = Field(0.0, ge=0)
    total_cost: float | None = Field(None, ge=0)
    status: PurchaseOrderStatus = PurchaseOrderStatus.order_sent


class OrderFromRequestIn(BaseModel):
    number: str = Field(..., min_length=1, max_length=64)
    supplier_name: str | None = None
    unit_cost: float | None = Field(None, ge=0)  # falls back to the request's estimate
    quantity: float | None = Field(None, ge=0)


class StatusUpdate(BaseModel):
    status: str


class PaymentIn(BaseModel):
    amount: float = Field(..., gt=0)


class CostRecordOut(BaseModel):
    id: int
    kind: str
    project_id: int
    phase_id: int | None = None
    status: str
    amount: float
    created_at: dt.datetime | None = None
    deleted_at: dt.datetime | None = None
