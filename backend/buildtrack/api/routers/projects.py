from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from buildtrack.core.deps import get_db
from buildtrack.schemas.project import ProjectCreate, ProjectOut, ProjectUpdate
from buildtrack.schemas.phase import PhaseOut
from buildtrack.schemas.floor import FloorOut
from buildtrack.schemas.financials import ProjectFinancialOut
from buildtrack.crud.projects import create_project, get_project, list_projects, update_project
from buildtrack.crud.phases import list_phases
from buildtrack.crud.floors import list_floors
from buildtrack.services.financials.summary import get_project_financial_summary
from buildtrack.services.financials.sync import recalculate_project

router = APIRouter()

@router.get("", response_model=list[ProjectOut])
def get_projects(db: Session = Depends(get_db)):
    return list_projects(db)

@router.post("", response_model=ProjectOut)
def post_project(data: ProjectCreate, db: Session = Depends(get_db)):
    return create_project(db, data)


@router.put("/{project_id}", response_model=ProjectOut)
def put_project(
    project_id: int,
    data: ProjectUpdate,
    db: Session = Depends(get_db),
):
    p = get_project(db, project_id)
    if not p:
        raise HTTPException(status_code=404, detail="Project not found")
    return update_project(db, p, data)


@router.get("/{project_id}/phases", response_model=list[PhaseOut])
def get_project_phases(project_id: int, db: Session = Depends(get_db)):
    if not get_project(db, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return list_phases(db, project_id)


@router.get("/{project_id}/floors", response_model=list[FloorOut])
def get_project_floors(project_id: int, db: Session = Depends(get_db)):
    if not get_project(db, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return list_floors(db, project_id)


@router.get("/{project_id}/financial", response_model=ProjectFinancialOut)
def get_project_financial(project_id: int, db: Session = Depends(get_db)):
    return get_project_financial_summary(db, project_id)


@router.post("/{project_id}/financial/recalculate", response_model=list[PhaseOut])
def post_project_recalculate(project_id: int, db: Session = Depends(get_db)):
    return recalculate_project(db, project_id)
