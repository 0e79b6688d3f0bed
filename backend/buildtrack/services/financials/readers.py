"""Actual-spend readers, one per cost category.

Every reader sums records scoped to a phase that are not soft-deleted and
whose status is in the category's approved set. A phase with no matching
records sums to 0. Storage errors are raised as ``AggregationFailure``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildtrack.db.models.phase import Phase
from buildtrack.db.models.costs import (
    Material,
    Expense,
    LabourEntry,
    Equipment,
    Subcontractor,
    ProfessionalService,
    ProfessionalFee,
)
from buildtrack.db.models.statuses import (
    CostCategory,
    ProfessionalServiceType,
    MATERIAL_APPROVED,
    EXPENSE_APPROVED,
    LABOUR_APPROVED,
    EQUIPMENT_APPROVED,
    SUBCONTRACTOR_APPROVED,
    FEE_APPROVED,
    values,
)
from buildtrack.services.financials.errors import NotFound, ValidationError, AggregationFailure


@dataclass
class CostTotal:
    category: str
    total: float = 0.0
    count: int = 0


@dataclass
class LabourTotal(CostTotal):
    hours: float = 0.0
    by_skill: dict[str, float] = field(default_factory=dict)


@dataclass
class ProfessionalServicesTotal(CostTotal):
    architect_fees: float = 0.0
    engineer_fees: float = 0.0


@dataclass
class PhaseCosts:
    materials: CostTotal
    expenses: CostTotal
    labour: LabourTotal
    equipment: CostTotal
    subcontractors: CostTotal
    professional_services: ProfessionalServicesTotal

    def categories(self) -> list[CostTotal]:
        return [
            self.materials,
            self.expenses,
            self.professional_services,
            self.labour,
            self.equipment,
            self.subcontractors,
        ]

    @property
    def total(self) -> float:
        return round(sum(c.total for c in self.categories()), 2)

    def as_actual_spending(self) -> dict:
        out = {c.category: c.total for c in self.categories()}
        out["total"] = self.total
        return out

    def as_dict(self) -> dict:
        return {c.category: asdict(c) for c in self.categories()}


def get_phase(db: Session, phase_id: int) -> Phase:
    try:
        phase = (
            db.query(Phase)
            .filter(Phase.id == phase_id, Phase.deleted_at.is_(None))
            .populate_existing()
            .one_or_none()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("load phase", phase_id) from e
    if phase is None:
        raise NotFound("Phase", phase_id)
    return phase


def _sum_count(db: Session, what: str, phase_id: int, column, *criteria) -> tuple[float, int]:
    try:
        total, count = (
            db.query(func.coalesce(func.sum(column), 0.0), func.count())
            .filter(*criteria)
            .one()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure(what, phase_id) from e
    return round(float(total or 0.0), 2), int(count or 0)


def materials_spending(db: Session, phase_id: int) -> CostTotal:
    total, count = _sum_count(
        db,
        "materials",
        phase_id,
        Material.total_cost,
        Material.phase_id == phase_id,
        Material.deleted_at.is_(None),
        Material.status.in_(values(MATERIAL_APPROVED)),
    )
    return CostTotal(CostCategory.materials.value, total, count)


def direct_expense_filter():
    return or_(Expense.is_indirect_cost.is_(False), Expense.is_indirect_cost.is_(None))


def expenses_spending(db: Session, phase_id: int) -> CostTotal:
    # indirect costs are charged to the project, never to a phase
    total, count = _sum_count(
        db,
        "expenses",
        phase_id,
        Expense.amount,
        Expense.phase_id == phase_id,
        Expense.deleted_at.is_(None),
        Expense.status.in_(values(EXPENSE_APPROVED)),
        direct_expense_filter(),
    )
    return CostTotal(CostCategory.expenses.value, total, count)


def labour_spending(db: Session, phase_id: int) -> LabourTotal:
    criteria = (
        LabourEntry.phase_id == phase_id,
        LabourEntry.deleted_at.is_(None),
        LabourEntry.status.in_(values(LABOUR_APPROVED)),
    )
    total, count = _sum_count(db, "labour", phase_id, LabourEntry.total_cost, *criteria)
    try:
        hours = db.query(func.coalesce(func.sum(LabourEntry.total_hours), 0.0)).filter(*criteria).scalar() or 0.0
        rows = (
            db.query(LabourEntry.skill, func.coalesce(func.sum(LabourEntry.total_cost), 0.0))
            .filter(*criteria)
            .group_by(LabourEntry.skill)
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("labour breakdown", phase_id) from e
    by_skill = {(skill or "unspecified"): round(float(v), 2) for skill, v in rows}
    return LabourTotal(CostCategory.labour.value, total, count, hours=float(hours), by_skill=by_skill)


def equipment_spending(db: Session, phase_id: int) -> CostTotal:
    total, count = _sum_count(
        db,
        "equipment",
        phase_id,
        Equipment.total_cost,
        Equipment.phase_id == phase_id,
        Equipment.deleted_at.is_(None),
        Equipment.status.in_(values(EQUIPMENT_APPROVED)),
    )
    return CostTotal(CostCategory.equipment.value, total, count)


def subcontractor_spending(db: Session, phase_id: int) -> CostTotal:
    # payments made; the unpaid rest of an active contract is committed
    total, count = _sum_count(
        db,
        "subcontractors",
        phase_id,
        Subcontractor.paid_amount,
        Subcontractor.phase_id == phase_id,
        Subcontractor.deleted_at.is_(None),
        Subcontractor.status.in_(values(SUBCONTRACTOR_APPROVED)),
    )
    return CostTotal(CostCategory.subcontractors.value, total, count)


def professional_services_spending(db: Session, phase_id: int) -> ProfessionalServicesTotal:
    criteria = (
        ProfessionalFee.phase_id == phase_id,
        ProfessionalFee.deleted_at.is_(None),
        ProfessionalFee.status.in_(values(FEE_APPROVED)),
    )
    total, count = _sum_count(db, "professional services", phase_id, ProfessionalFee.amount, *criteria)
    try:
        rows = (
            db.query(ProfessionalService.service_type, func.coalesce(func.sum(ProfessionalFee.amount), 0.0))
            .select_from(ProfessionalFee)
            .join(ProfessionalService, ProfessionalService.id == ProfessionalFee.professional_service_id)
            .filter(*criteria)
            .group_by(ProfessionalService.service_type)
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("professional services breakdown", phase_id) from e
    by_type = {t: round(float(v), 2) for t, v in rows}
    return ProfessionalServicesTotal(
        CostCategory.professional_services.value,
        total,
        count,
        architect_fees=by_type.get(ProfessionalServiceType.architect.value, 0.0),
        engineer_fees=by_type.get(ProfessionalServiceType.engineer.value, 0.0),
    )


READERS = {
    CostCategory.materials: materials_spending,
    CostCategory.expenses: expenses_spending,
    CostCategory.labour: labour_spending,
    CostCategory.equipment: equipment_spending,
    CostCategory.subcontractors: subcontractor_spending,
    CostCategory.professional_services: professional_services_spending,
}


def sum_approved_cost(db: Session, phase_id: int, category: CostCategory | str) -> float:
    """Total actual spend of one category for a phase."""
    try:
        category = CostCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown cost category: {category}")
    return READERS[category](db, phase_id).total


def collect_phase_costs(db: Session, phase_id: int) -> PhaseCosts:
    """Run every reader for a phase. Any failing reader aborts the whole collection."""
    return PhaseCosts(
        materials=materials_spending(db, phase_id),
        expenses=expenses_spending(db, phase_id),
        labour=labour_spending(db, phase_id),
        equipment=equipment_spending(db, phase_id),
        subcontractors=subcontractor_spending(db, phase_id),
        professional_services=professional_services_spending(db, phase_id),
    )
