from sqlalchemy.orm import Session
from buildtrack.db.session import SessionLocal
from buildtrack.core.logging import logger
from buildtrack.crud.projects import list_projects, create_project
from buildtrack.crud.phases import create_phase
from buildtrack.crud.floors import create_floor
from buildtrack.schemas.project import ProjectCreate
from buildtrack.schemas.phase import PhaseCreate, BudgetAllocationIn
from buildtrack.schemas.floor import FloorCreate

DEMO_PHASES = [
    ("SUB", "Substructure", 250_000.0),
    ("SUP", "Superstructure", 600_000.0),
    ("FIN", "Finishes", 300_000.0),
]


def seed_demo():
    db: Session = SessionLocal()
    try:
        # Create default project with phases and floors if none
        if list_projects(db):
            return
        p = create_project(db, ProjectCreate(code="PRJ-1", name="Demo Project", description="Seeded demo project"))
        for seq, (code, name, budget) in enumerate(DEMO_PHASES, start=1):
            create_phase(
                db,
                PhaseCreate(project_id=p.id, code=code, name=name, sequence=seq, budget=BudgetAllocationIn(total=budget)),
            )
        for number in (-1, 0, 1, 2, 3):
            create_floor(db, FloorCreate(project_id=p.id, floor_number=number))
        logger.info("demo_seeded", project_id=p.id)
    finally:
        db.close()
