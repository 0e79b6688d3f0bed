from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildtrack.crud.projects import get_project
from buildtrack.db.models.floor import Floor
from buildtrack.schemas.floor import FloorCreate
from buildtrack.services.financials.errors import NotFound, ValidationError


def list_floors(db: Session, project_id: int):
    return (
        db.query(Floor)
        .filter(Floor.project_id == project_id, Floor.deleted_at.is_(None))
        .order_by(Floor.floor_number)
        .all()
    )


def create_floor(db: Session, data: FloorCreate) -> Floor:
    if get_project(db, data.project_id) is None:
        raise NotFound("Project", data.project_id)
    f = Floor(
        project_id=data.project_id,
        floor_number=data.floor_number,
        name=data.name,
        area_m2=data.area_m2,
    )
    db.add(f)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Floor {data.floor_number} already exists in project {data.project_id}")
    db.refresh(f)
    return f
