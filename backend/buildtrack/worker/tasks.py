from sqlalchemy.orm import Session

from buildtrack.worker.celery_app import celery_app
from buildtrack.core.logging import logger, bind_phase, clear_bound
from buildtrack.db.session import SessionLocal
from buildtrack.services.financials.errors import NotFound
from buildtrack.services.financials.sync import recalculate_and_persist, recalculate_project


@celery_app.task(name="phases.recalculate", bind=True)
def recalculate_phase_task(self, phase_id: int):
    db: Session = SessionLocal()
    bind_phase(phase_id, task_id=self.request.id)
    try:
        phase = recalculate_and_persist(db, phase_id)
        return phase.financial_states
    except NotFound:
        logger.error("phase_missing", phase_id=phase_id)
        return None
    except Exception as e:
        logger.exception("phase_recalculate_failed", phase_id=phase_id, error=str(e))
        db.rollback()
        raise
    finally:
        clear_bound()
        db.close()


@celery_app.task(name="projects.recalculate", bind=True)
def recalculate_project_task(self, project_id: int):
    db: Session = SessionLocal()
    try:
        phases = recalculate_project(db, project_id)
        return {p.id: p.financial_states for p in phases}
    except NotFound:
        logger.error("project_missing", project_id=project_id)
        return None
    except Exception as e:
        logger.exception("project_recalculate_failed", project_id=project_id, error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
