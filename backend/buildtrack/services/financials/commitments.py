"""Committed and estimated cost for a phase.

Committed: money already promised to a supplier or contractor that has not
yet turned into actual spend. Estimated: forecast cost of material requests
that have not become purchase orders yet. Neither is ever part of the
actual total.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildtrack.db.models.costs import Equipment, Subcontractor, ProfessionalService
from buildtrack.db.models.procurement import MaterialRequest, PurchaseOrder
from buildtrack.db.models.statuses import (
    PURCHASE_ORDER_IN_FLIGHT,
    EQUIPMENT_COMMITTED,
    SUBCONTRACTOR_COMMITTED,
    PROFESSIONAL_SERVICE_COMMITTED,
    MATERIAL_REQUEST_ESTIMATED,
    values,
)
from buildtrack.services.financials.errors import AggregationFailure


@dataclass
class CommittedCost:
    purchase_orders: float = 0.0
    professional_services: float = 0.0
    subcontractors: float = 0.0
    equipment: float = 0.0

    @property
    def total(self) -> float:
        return round(self.purchase_orders + self.professional_services + self.subcontractors + self.equipment, 2)

    def as_dict(self) -> dict:
        return {
            "purchase_orders": self.purchase_orders,
            "professional_services": self.professional_services,
            "subcontractors": self.subcontractors,
            "equipment": self.equipment,
            "total": self.total,
        }


def _scalar(db: Session, what: str, phase_id: int, query) -> float:
    try:
        value = query.scalar()
    except SQLAlchemyError as e:
        raise AggregationFailure(what, phase_id) from e
    return round(float(value or 0.0), 2)


def _po_phase_filter(phase_id: int):
    # older orders carry the phase only through their material request
    return or_(
        PurchaseOrder.phase_id == phase_id,
        and_(PurchaseOrder.phase_id.is_(None), MaterialRequest.phase_id == phase_id),
    )


def purchase_order_committed(db: Session, phase_id: int) -> float:
    q = (
        db.query(func.coalesce(func.sum(PurchaseOrder.total_cost), 0.0))
        .select_from(PurchaseOrder)
        .outerjoin(MaterialRequest, MaterialRequest.id == PurchaseOrder.material_request_id)
        .filter(
            _po_phase_filter(phase_id),
            PurchaseOrder.deleted_at.is_(None),
            PurchaseOrder.status.in_(values(PURCHASE_ORDER_IN_FLIGHT)),
        )
    )
    return _scalar(db, "purchase order commitments", phase_id, q)


def professional_services_committed(db: Session, phase_id: int) -> float:
    """Contract value not yet covered by fees, per active assignment, floored at 0."""
    try:
        rows = (
            db.query(ProfessionalService.contract_value, ProfessionalService.total_fees)
            .filter(
                ProfessionalService.phase_id == phase_id,
                ProfessionalService.deleted_at.is_(None),
                ProfessionalService.status.in_(values(PROFESSIONAL_SERVICE_COMMITTED)),
            )
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("professional services commitments", phase_id) from e
    return round(sum(max(0.0, (contract or 0.0) - (fees or 0.0)) for contract, fees in rows), 2)


def subcontractor_committed(db: Session, phase_id: int) -> float:
    try:
        rows = (
            db.query(Subcontractor.contract_value, Subcontractor.paid_amount)
            .filter(
                Subcontractor.phase_id == phase_id,
                Subcontractor.deleted_at.is_(None),
                Subcontractor.status.in_(values(SUBCONTRACTOR_COMMITTED)),
            )
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("subcontractor commitments", phase_id) from e
    return round(sum(max(0.0, (contract or 0.0) - (paid or 0.0)) for contract, paid in rows), 2)


def equipment_committed(db: Session, phase_id: int) -> float:
    q = db.query(func.coalesce(func.sum(Equipment.total_cost), 0.0)).filter(
        Equipment.phase_id == phase_id,
        Equipment.deleted_at.is_(None),
        Equipment.status.in_(values(EQUIPMENT_COMMITTED)),
    )
    return _scalar(db, "equipment commitments", phase_id, q)


def committed_cost(db: Session, phase_id: int) -> CommittedCost:
    return CommittedCost(
        purchase_orders=purchase_order_committed(db, phase_id),
        professional_services=professional_services_committed(db, phase_id),
        subcontractors=subcontractor_committed(db, phase_id),
        equipment=equipment_committed(db, phase_id),
    )


def material_request_estimate(request: MaterialRequest) -> float:
    if request.estimated_cost is not None:
        return float(request.estimated_cost)
    if request.estimated_unit_cost is not None:
        return float(request.estimated_unit_cost) * float(request.quantity_needed or 0.0)
    return 0.0


def estimated_cost(db: Session, phase_id: int) -> float:
    """Forecast cost of open material requests.

    A request uses its ``estimated_cost`` when set, otherwise
    ``estimated_unit_cost * quantity_needed``; with neither it counts as 0.
    """
    try:
        requests = (
            db.query(MaterialRequest)
            .filter(
                MaterialRequest.phase_id == phase_id,
                MaterialRequest.deleted_at.is_(None),
                MaterialRequest.status.in_(values(MATERIAL_REQUEST_ESTIMATED)),
            )
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("material request estimates", phase_id) from e
    return round(sum(material_request_estimate(r) for r in requests), 2)
