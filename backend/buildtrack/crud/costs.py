"""Cost-record events: create, status change, soft delete and restore.

Every event commits the record first and then runs the best-effort phase
sync, so a failing sync never undoes the event.
"""
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildtrack.core.logging import logger
from buildtrack.crud.projects import get_project
from buildtrack.db.models._mixins import utcnow
from buildtrack.db.models.costs import (
    Material,
    Expense,
    LabourEntry,
    Equipment,
    Subcontractor,
    ProfessionalService,
    ProfessionalFee,
)
from buildtrack.db.models.phase import Phase
from buildtrack.db.models.procurement import MaterialRequest, PurchaseOrder
from buildtrack.db.models.statuses import (
    MaterialStatus,
    ExpenseStatus,
    LabourStatus,
    EquipmentStatus,
    SubcontractorStatus,
    ProfessionalServiceStatus,
    FeeStatus,
    MaterialRequestStatus,
    PurchaseOrderStatus,
    FEE_APPROVED,
    PURCHASE_ORDER_IN_FLIGHT,
    values,
)
from buildtrack.schemas.costs import CostRecordIn, OrderFromRequestIn
from buildtrack.services.financials.errors import NotFound, ValidationError
from buildtrack.services.financials.sync import sync_phases_safe


@dataclass(frozen=True)
class CostKind:
    name: str
    model: type
    statuses: type[Enum]
    amount_attr: str


KINDS: dict[str, CostKind] = {
    k.name: k
    for k in (
        CostKind("materials", Material, MaterialStatus, "total_cost"),
        CostKind("expenses", Expense, ExpenseStatus, "amount"),
        CostKind("labour", LabourEntry, LabourStatus, "total_cost"),
        CostKind("equipment", Equipment, EquipmentStatus, "total_cost"),
        CostKind("subcontractors", Subcontractor, SubcontractorStatus, "contract_value"),
        CostKind("professional-services", ProfessionalService, ProfessionalServiceStatus, "contract_value"),
        CostKind("professional-fees", ProfessionalFee, FeeStatus, "amount"),
        CostKind("material-requests", MaterialRequest, MaterialRequestStatus, "estimated_cost"),
        CostKind("purchase-orders", PurchaseOrder, PurchaseOrderStatus, "total_cost"),
    )
}


def get_kind(kind: str) -> CostKind:
    k = KINDS.get(kind)
    if k is None:
        raise NotFound("Cost kind", kind)
    return k


def record_out(kind: CostKind, r) -> dict:
    return {
        "id": r.id,
        "kind": kind.name,
        "project_id": r.project_id,
        "phase_id": r.phase_id,
        "status": r.status,
        "amount": getattr(r, kind.amount_attr) or 0.0,
        "created_at": r.created_at,
        "deleted_at": r.deleted_at,
    }


def get_record(db: Session, kind: CostKind, record_id: int, include_deleted: bool = False):
    q = db.query(kind.model).filter(kind.model.id == record_id)
    if not include_deleted:
        q = q.filter(kind.model.deleted_at.is_(None))
    r = q.one_or_none()
    if r is None:
        raise NotFound(kind.model.__name__, record_id)
    return r


def _phase_ids_of(db: Session, r) -> set[int]:
    ids = {r.phase_id}
    request_id = getattr(r, "material_request_id", None)
    if isinstance(r, PurchaseOrder) and r.phase_id is None and request_id is not None:
        req = db.get(MaterialRequest, request_id)
        if req is not None:
            ids.add(req.phase_id)
    return {i for i in ids if i is not None}


def _check_scope(db: Session, project_id: int, phase_id: int | None) -> None:
    if get_project(db, project_id) is None:
        raise NotFound("Project", project_id)
    if phase_id is None:
        return
    phase = db.query(Phase).filter(Phase.id == phase_id, Phase.deleted_at.is_(None)).one_or_none()
    if phase is None:
        raise NotFound("Phase", phase_id)
    if phase.project_id != project_id:
        raise ValidationError(f"Phase {phase_id} does not belong to project {project_id}")


def _refresh_service_fees(db: Session, service_id: int | None) -> None:
    # committed cost of an assignment is contract_value - total_fees
    if service_id is None:
        return
    service = db.get(ProfessionalService, service_id)
    if service is None:
        return
    db.flush()
    service.total_fees = float(
        db.query(func.coalesce(func.sum(ProfessionalFee.amount), 0.0))
        .filter(
            ProfessionalFee.professional_service_id == service_id,
            ProfessionalFee.deleted_at.is_(None),
            ProfessionalFee.status.in_(values(FEE_APPROVED)),
        )
        .scalar()
        or 0.0
    )


def _after_change(db: Session, r) -> None:
    if isinstance(r, ProfessionalFee):
        _refresh_service_fees(db, r.professional_service_id)


def _build(db: Session, kind: CostKind, data: CostRecordIn):
    payload = data.model_dump(mode="json")
    payload["status"] = kind.statuses(payload["status"]).value

    if kind.model is ProfessionalFee:
        service = db.get(ProfessionalService, data.professional_service_id)
        if service is None or service.deleted_at is not None:
            raise NotFound("ProfessionalService", data.professional_service_id)
        if payload.get("phase_id") is None:
            payload["phase_id"] = service.phase_id
    if kind.model is PurchaseOrder and payload.get("material_request_id") is not None:
        req = get_record(db, KINDS["material-requests"], payload["material_request_id"])
        payload["phase_id"] = payload.get("phase_id") or req.phase_id
        payload["floor_id"] = payload.get("floor_id") or req.floor_id
        # the order replaces the request's estimate
        req.status = MaterialRequestStatus.converted_to_order.value

    _check_scope(db, payload["project_id"], payload.get("phase_id"))

    if kind.model in (Material, PurchaseOrder) and payload.get("total_cost") is None:
        payload["total_cost"] = round(payload["quantity"] * payload["unit_cost"], 2)
    elif kind.model is LabourEntry and payload.get("total_cost") is None:
        payload["total_cost"] = round(payload["total_hours"] * payload["hourly_rate"], 2)
    elif kind.model is Equipment and payload.get("total_cost") is None:
        payload["total_cost"] = round(payload["daily_rate"] * payload["days"], 2)

    return kind.model(**payload)


def create_record(db: Session, kind_name: str, data: CostRecordIn):
    kind = get_kind(kind_name)
    r = _build(db, kind, data)
    db.add(r)
    try:
        _after_change(db, r)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"{kind.model.__name__} conflicts with an existing record")
    db.refresh(r)
    logger.info("cost_record_created", kind=kind.name, record_id=r.id, phase_id=r.phase_id, status=r.status)
    sync_phases_safe(db, _phase_ids_of(db, r))
    return r


def set_record_status(db: Session, kind_name: str, record_id: int, status: str):
    kind = get_kind(kind_name)
    try:
        new_status = kind.statuses(status)
    except ValueError:
        allowed = ", ".join(s.value for s in kind.statuses)
        raise ValidationError(f"Invalid {kind.name} status '{status}', expected one of: {allowed}")
    r = get_record(db, kind, record_id)
    old_status = r.status
    r.status = new_status.value
    _after_change(db, r)
    db.commit()
    db.refresh(r)
    logger.info("cost_status_changed", kind=kind.name, record_id=r.id, old=old_status, new=r.status)
    sync_phases_safe(db, _phase_ids_of(db, r))
    return r


def soft_delete_record(db: Session, kind_name: str, record_id: int):
    kind = get_kind(kind_name)
    r = get_record(db, kind, record_id)
    r.deleted_at = utcnow()
    _after_change(db, r)
    db.commit()
    db.refresh(r)
    logger.info("cost_record_deleted", kind=kind.name, record_id=r.id)
    sync_phases_safe(db, _phase_ids_of(db, r))
    return r


def restore_record(db: Session, kind_name: str, record_id: int):
    kind = get_kind(kind_name)
    r = get_record(db, kind, record_id, include_deleted=True)
    if r.deleted_at is None:
        raise ValidationError(f"{kind.model.__name__} {record_id} is not deleted")
    r.deleted_at = None
    _after_change(db, r)
    db.commit()
    db.refresh(r)
    logger.info("cost_record_restored", kind=kind.name, record_id=r.id)
    sync_phases_safe(db, _phase_ids_of(db, r))
    return r


def record_subcontractor_payment(db: Session, subcontractor_id: int, amount: float) -> Subcontractor:
    s = get_record(db, KINDS["subcontractors"], subcontractor_id)
    if round((s.paid_amount or 0.0) + amount, 2) > round(s.contract_value or 0.0, 2):
        raise ValidationError(f"Payment of {amount:.2f} exceeds the unpaid contract value of subcontractor {s.id}")
    s.paid_amount = round((s.paid_amount or 0.0) + amount, 2)
    db.commit()
    db.refresh(s)
    logger.info("subcontractor_paid", subcontractor_id=s.id, amount=amount, paid=s.paid_amount)
    sync_phases_safe(db, _phase_ids_of(db, s))
    return s


def convert_request_to_order(db: Session, request_id: int, data: OrderFromRequestIn) -> PurchaseOrder:
    """Issue a purchase order for a material request.

    The request leaves the estimated pipeline and the order becomes a
    commitment, both in one commit.
    """
    req = get_record(db, KINDS["material-requests"], request_id)
    if req.status == MaterialRequestStatus.converted_to_order.value:
        raise ValidationError(f"Material request {request_id} already has a purchase order")
    if req.status in (MaterialRequestStatus.rejected.value, MaterialRequestStatus.cancelled.value):
        raise ValidationError(f"Material request {request_id} is {req.status}")

    quantity = data.quantity if data.quantity is not None else req.quantity_needed or 0.0
    if data.unit_cost is not None:
        unit_cost = data.unit_cost
    elif req.estimated_unit_cost is not None:
        unit_cost = req.estimated_unit_cost
    elif req.estimated_cost is not None and quantity:
        unit_cost = req.estimated_cost / quantity
    else:
        unit_cost = 0.0

    po = PurchaseOrder(
        project_id=req.project_id,
        phase_id=req.phase_id,
        floor_id=req.floor_id,
        material_request_id=req.id,
        number=data.number,
        supplier_name=data.supplier_name,
        material_name=req.name,
        category=req.category,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=round(quantity * unit_cost, 2),
        status=PurchaseOrderStatus.order_sent.value,
    )
    db.add(po)
    req.status = MaterialRequestStatus.converted_to_order.value
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Purchase order number '{data.number}' already exists")
    db.refresh(po)
    logger.info("request_converted", request_id=req.id, purchase_order_id=po.id, total=po.total_cost)
    sync_phases_safe(db, _phase_ids_of(db, po))
    return po


def receive_purchase_order(db: Session, po_id: int) -> Material:
    """Record delivered goods as a received material and close the order.

    Flipping the order to ``delivered`` takes it out of committed cost in
    the same commit that adds the material to actual cost.
    """
    po = get_record(db, KINDS["purchase-orders"], po_id)
    if po.status not in values(PURCHASE_ORDER_IN_FLIGHT):
        raise ValidationError(f"Purchase order {po_id} cannot be received in status {po.status}")

    phase_id = po.phase_id
    if phase_id is None and po.material_request_id is not None:
        req = db.get(MaterialRequest, po.material_request_id)
        phase_id = req.phase_id if req is not None else None

    m = Material(
        project_id=po.project_id,
        phase_id=phase_id,
        floor_id=po.floor_id,
        material_request_id=po.material_request_id,
        purchase_order_id=po.id,
        name=po.material_name or po.number,
        category=po.category,
        quantity=po.quantity,
        unit_cost=po.unit_cost,
        total_cost=po.total_cost,
        status=MaterialStatus.received.value,
    )
    db.add(m)
    po.status = PurchaseOrderStatus.delivered.value
    db.commit()
    db.refresh(m)
    logger.info("purchase_order_received", purchase_order_id=po.id, material_id=m.id, total=m.total_cost)
    sync_phases_safe(db, {phase_id})
    return m
