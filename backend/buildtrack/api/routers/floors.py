from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from buildtrack.core.deps import get_db
from buildtrack.crud.floors import create_floor
from buildtrack.schemas.financials import BudgetCheckOut
from buildtrack.schemas.floor import FloorCreate, FloorFinancialOut, FloorOut
from buildtrack.services.financials.floors import check_floor_budget, floor_financials, get_floor

router = APIRouter()


@router.post("", response_model=FloorOut)
def post_floor(data: FloorCreate, db: Session = Depends(get_db)):
    return create_floor(db, data)


@router.get("/{floor_id}", response_model=FloorOut)
def get_floor_detail(floor_id: int, db: Session = Depends(get_db)):
    return get_floor(db, floor_id)


@router.get("/{floor_id}/financial", response_model=FloorFinancialOut)
def get_floor_financial(
    floor_id: int,
    phase_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    return floor_financials(db, floor_id, phase_id=phase_id)


@router.get("/{floor_id}/budget-check", response_model=BudgetCheckOut)
def get_floor_budget_check(
    floor_id: int,
    amount: float = Query(..., ge=0),
    category: str = Query("materials"),
    phase_id: int | None = Query(None),
    exclude_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    return check_floor_budget(db, floor_id, amount, category=category, phase_id=phase_id, exclude_id=exclude_id)
