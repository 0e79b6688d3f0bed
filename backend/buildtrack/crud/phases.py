from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from buildtrack.core.logging import logger
from buildtrack.crud.projects import get_project
from buildtrack.db.models.phase import Phase
from buildtrack.schemas.phase import BudgetAllocationIn, PhaseCreate, PhaseUpdate
from buildtrack.services.financials.errors import NotFound, ValidationError, ConcurrencyConflict
from buildtrack.services.financials.floors import rescale_floor_allocations, split_categories
from buildtrack.services.financials.readers import get_phase
from buildtrack.services.financials.sync import sync_phase_financials_safe


def list_phases(db: Session, project_id: int):
    return (
        db.query(Phase)
        .filter(Phase.project_id == project_id, Phase.deleted_at.is_(None))
        .order_by(Phase.sequence, Phase.id)
        .all()
    )


def _apply_budget(phase: Phase, budget: BudgetAllocationIn) -> None:
    explicit = {
        "materials": budget.materials,
        "labour": budget.labour,
        "equipment": budget.equipment,
        "subcontractors": budget.subcontractors,
    }
    if all(v is None for v in explicit.values()):
        split = split_categories(budget.total)
    else:
        split = {k: v or 0.0 for k, v in explicit.items()}
        if round(sum(split.values()) + budget.contingency, 2) > round(budget.total, 2):
            raise ValidationError(f"Budget split exceeds phase total {budget.total:.2f}")
    phase.budget_total = budget.total
    phase.budget_materials = split["materials"]
    phase.budget_labour = split["labour"]
    phase.budget_equipment = split["equipment"]
    phase.budget_subcontractors = split["subcontractors"]
    phase.budget_contingency = budget.contingency


def create_phase(db: Session, data: PhaseCreate) -> Phase:
    if get_project(db, data.project_id) is None:
        raise NotFound("Project", data.project_id)
    p = Phase(
        project_id=data.project_id,
        code=data.code,
        name=data.name,
        sequence=data.sequence,
        status=data.status.value,
    )
    if data.budget is not None:
        _apply_budget(p, data.budget)
    p.fs_budgeted = p.budget_total or 0.0
    p.fs_remaining = p.budget_total or 0.0
    db.add(p)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Phase code '{data.code}' already exists in project {data.project_id}")
    db.refresh(p)
    logger.info("phase_created", phase_id=p.id, project_id=p.project_id, budget=p.budget_total)
    return p


def update_phase(db: Session, phase_id: int, data: PhaseUpdate) -> Phase:
    p = get_phase(db, phase_id)
    if data.name is not None:
        p.name = data.name
    if data.sequence is not None:
        p.sequence = data.sequence
    if data.status is not None:
        p.status = data.status.value
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflict(f"Phase {phase_id} was modified concurrently")
    db.refresh(p)
    return p


def update_phase_budget(db: Session, phase_id: int, budget: BudgetAllocationIn) -> Phase:
    """Replace the phase budget; existing floor allocations are rescaled to the new total."""
    p = get_phase(db, phase_id)
    old_total = p.budget_total or 0.0
    try:
        _apply_budget(p, budget)
        rescaled = rescale_floor_allocations(db, p, old_total, budget.total)
    except ValidationError:
        db.rollback()
        raise
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflict(f"Phase {phase_id} was modified concurrently")
    logger.info("phase_budget_updated", phase_id=phase_id, old=old_total, new=budget.total, floors_rescaled=rescaled)
    # remaining depends on the budget
    return sync_phase_financials_safe(db, phase_id) or get_phase(db, phase_id)
