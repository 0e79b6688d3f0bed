"""Status vocabularies for every cost-bearing record.

Each category has its own closed enum. The sets next to them decide which
records count as actual spend, which are still committed obligations and
which are forecast only. Aggregation code imports these sets and never
compares against literal status strings.
"""
from enum import Enum


class CostCategory(str, Enum):
    materials = "materials"
    expenses = "expenses"
    labour = "labour"
    equipment = "equipment"
    subcontractors = "subcontractors"
    professional_services = "professional_services"


class MaterialStatus(str, Enum):
    draft = "draft"
    pending_approval = "pending_approval"
    approved = "approved"
    received = "received"
    used = "used"
    rejected = "rejected"


class MaterialRequestStatus(str, Enum):
    requested = "requested"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"
    converted_to_order = "converted_to_order"
    cancelled = "cancelled"


class PurchaseOrderStatus(str, Enum):
    order_sent = "order_sent"
    order_accepted = "order_accepted"
    order_rejected = "order_rejected"
    order_modified = "order_modified"
    order_partially_responded = "order_partially_responded"
    retry_requested = "retry_requested"
    retry_sent = "retry_sent"
    alternatives_sent = "alternatives_sent"
    ready_for_delivery = "ready_for_delivery"
    delivered = "delivered"
    cancelled = "cancelled"


class ExpenseStatus(str, Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class LabourStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    paid = "paid"
    rejected = "rejected"


class EquipmentStatus(str, Enum):
    assigned = "assigned"
    in_use = "in_use"
    returned = "returned"
    cancelled = "cancelled"


class SubcontractorStatus(str, Enum):
    pending = "pending"
    active = "active"
    completed = "completed"
    terminated = "terminated"


class ProfessionalServiceStatus(str, Enum):
    active = "active"
    completed = "completed"
    terminated = "terminated"


class ProfessionalServiceType(str, Enum):
    architect = "architect"
    engineer = "engineer"
    surveyor = "surveyor"
    other = "other"


class FeeStatus(str, Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"
    paid = "PAID"
    archived = "ARCHIVED"


class PhaseStatus(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"
    on_hold = "on_hold"
    cancelled = "cancelled"


# actual spend
MATERIAL_APPROVED: frozenset[MaterialStatus] = frozenset(
    {MaterialStatus.approved, MaterialStatus.received, MaterialStatus.used}
)
EXPENSE_APPROVED: frozenset[ExpenseStatus] = frozenset({ExpenseStatus.approved})
LABOUR_APPROVED: frozenset[LabourStatus] = frozenset({LabourStatus.approved, LabourStatus.paid})
EQUIPMENT_APPROVED: frozenset[EquipmentStatus] = frozenset({EquipmentStatus.in_use, EquipmentStatus.returned})
SUBCONTRACTOR_APPROVED: frozenset[SubcontractorStatus] = frozenset(
    {SubcontractorStatus.active, SubcontractorStatus.completed}
)
FEE_APPROVED: frozenset[FeeStatus] = frozenset({FeeStatus.approved, FeeStatus.paid})

# committed (issued, not yet actual)
PURCHASE_ORDER_IN_FLIGHT: frozenset[PurchaseOrderStatus] = frozenset(
    {PurchaseOrderStatus.order_sent, PurchaseOrderStatus.order_accepted, PurchaseOrderStatus.ready_for_delivery}
)
EQUIPMENT_COMMITTED: frozenset[EquipmentStatus] = frozenset({EquipmentStatus.assigned})
SUBCONTRACTOR_COMMITTED: frozenset[SubcontractorStatus] = frozenset({SubcontractorStatus.active})
PROFESSIONAL_SERVICE_COMMITTED: frozenset[ProfessionalServiceStatus] = frozenset(
    {ProfessionalServiceStatus.active}
)

# forecast only
MATERIAL_REQUEST_ESTIMATED: frozenset[MaterialRequestStatus] = frozenset(
    {MaterialRequestStatus.requested, MaterialRequestStatus.pending_approval, MaterialRequestStatus.approved}
)


def values(statuses) -> list[str]:
    """Plain string values, for use in SQL ``IN`` clauses."""
    return sorted(s.value for s in statuses)
