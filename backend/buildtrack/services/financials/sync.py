"""Write-back of phase financials onto the phase row.

``recalculate_and_persist`` is the forced path: it aggregates from the cost
tables and stores the result, retrying when another writer bumped the phase
version in between. ``sync_phase_financials_safe`` wraps it for use after
cost events, where a failed write-back must not fail the event itself.
``get_cached_financials`` is the fast path and may lag behind the tables.
"""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from buildtrack.core.config import settings
from buildtrack.core.logging import logger
from buildtrack.db.models._mixins import utcnow
from buildtrack.db.models.phase import Phase
from buildtrack.services.financials.errors import AggregationFailure, ConcurrencyConflict
from buildtrack.services.financials.readers import get_phase
from buildtrack.services.financials.summary import (
    PhaseFinancials,
    assemble_summary,
    compute_phase_financials,
    get_project,
    list_project_phases,
)


def _write_snapshot(phase: Phase, pf: PhaseFinancials) -> None:
    costs = pf.costs
    phase.actual_materials = costs.materials.total
    phase.actual_expenses = costs.expenses.total
    phase.actual_labour = costs.labour.total
    phase.actual_equipment = costs.equipment.total
    phase.actual_subcontractors = costs.subcontractors.total
    phase.actual_professional_services = costs.professional_services.total
    phase.actual_total = costs.total

    s = pf.summary
    phase.fs_budgeted = s["budget_total"]
    phase.fs_estimated = s["estimated_total"]
    phase.fs_committed = s["committed_total"]
    phase.fs_actual = s["actual_total"]
    phase.fs_remaining = s["remaining"]

    # same reader result as actual_professional_services
    phase.ps_total_fees = costs.professional_services.total
    phase.ps_fee_count = costs.professional_services.count
    phase.ps_architect_fees = costs.professional_services.architect_fees
    phase.ps_engineer_fees = costs.professional_services.engineer_fees

    phase.category_breakdown = {"categories": pf.category_breakdown}
    phase.financials_synced_at = utcnow()


def recalculate_and_persist(db: Session, phase_id: int) -> Phase:
    attempts = max(1, settings.SYNC_MAX_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        phase = get_phase(db, phase_id)
        pf = compute_phase_financials(db, phase)
        _write_snapshot(phase, pf)
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning("phase_sync_conflict", phase_id=phase_id, attempt=attempt)
            continue
        except SQLAlchemyError as e:
            db.rollback()
            raise AggregationFailure("write phase snapshot", phase_id) from e

        db.refresh(phase)
        logger.info(
            "phase_synced",
            phase_id=phase_id,
            actual=phase.fs_actual,
            committed=phase.fs_committed,
            remaining=phase.fs_remaining,
            version=phase.version_id,
        )
        return phase

    raise ConcurrencyConflict(f"Phase {phase_id} changed during {attempts} sync attempts")


def _enqueue(phase_id: int) -> None:
    from buildtrack.worker.tasks import recalculate_phase_task

    recalculate_phase_task.delay(phase_id)
    logger.info("phase_sync_enqueued", phase_id=phase_id)


def sync_phase_financials_safe(db: Session, phase_id: int | None) -> Phase | None:
    """Best-effort sync after a cost event.

    Returns the updated phase, or None when there is nothing to sync, when
    the work was handed to the worker, or when the sync failed. Failures are
    logged and never raised.
    """
    if phase_id is None:
        return None
    try:
        if settings.SYNC_IN_BACKGROUND:
            _enqueue(phase_id)
            return None
        return recalculate_and_persist(db, phase_id)
    except Exception as e:
        db.rollback()
        logger.exception("phase_sync_failed", phase_id=phase_id, error=str(e))
        return None


def sync_phases_safe(db: Session, phase_ids) -> None:
    for phase_id in sorted({p for p in phase_ids if p is not None}):
        sync_phase_financials_safe(db, phase_id)


def get_cached_financials(db: Session, phase_id: int) -> dict:
    """Summary rebuilt from the phase's stored snapshot, without touching cost tables."""
    phase = get_phase(db, phase_id)
    return {
        "phase_id": phase.id,
        "project_id": phase.project_id,
        "budget_allocation": phase.budget_allocation,
        "summary": assemble_summary(phase.budget_total, phase.fs_actual, phase.fs_committed, phase.fs_estimated),
        "actual_spending": phase.actual_spending,
        "financial_states": phase.financial_states,
        "professional_services": phase.professional_services,
        "category_breakdown": (phase.category_breakdown or {}).get("categories", []),
        "synced_at": phase.financials_synced_at,
        "never_synced": phase.financials_synced_at is None,
    }


def recalculate_project(db: Session, project_id: int) -> list[Phase]:
    project = get_project(db, project_id)
    phase_ids = [p.id for p in list_project_phases(db, project.id)]
    phases = [recalculate_and_persist(db, phase_id) for phase_id in phase_ids]
    logger.info("project_synced", project_id=project.id, phases=len(phases))
    return phases
