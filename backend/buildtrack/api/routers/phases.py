from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from buildtrack.core.deps import get_db
from buildtrack.crud.phases import create_phase, update_phase, update_phase_budget
from buildtrack.schemas.phase import BudgetAllocationIn, PhaseCreate, PhaseOut, PhaseUpdate
from buildtrack.schemas.floor import (
    FloorAllocationReport,
    FloorAllocationsIn,
    FloorSuggestionOut,
    FloorSuggestionRequest,
)
from buildtrack.schemas.financials import BudgetCheckOut, CachedFinancialOut, PhaseFinancialOut
from buildtrack.services.financials.floors import (
    apply_floor_allocations,
    floor_allocation_report,
    suggest_floor_allocations,
)
from buildtrack.services.financials.readers import get_phase
from buildtrack.services.financials.summary import check_phase_material_budget, get_phase_financial_summary
from buildtrack.services.financials.sync import get_cached_financials, recalculate_and_persist
from buildtrack.services.exports.exporter import (
    default_export_path,
    export_phase_financials_pdf,
    export_phase_financials_xlsx,
)

router = APIRouter()


@router.post("", response_model=PhaseOut)
def post_phase(data: PhaseCreate, db: Session = Depends(get_db)):
    return create_phase(db, data)


@router.get("/{phase_id}", response_model=PhaseOut)
def get_phase_detail(phase_id: int, db: Session = Depends(get_db)):
    return get_phase(db, phase_id)


@router.patch("/{phase_id}", response_model=PhaseOut)
def patch_phase(phase_id: int, data: PhaseUpdate, db: Session = Depends(get_db)):
    return update_phase(db, phase_id, data)


@router.put("/{phase_id}/budget", response_model=PhaseOut)
def put_phase_budget(phase_id: int, data: BudgetAllocationIn, db: Session = Depends(get_db)):
    return update_phase_budget(db, phase_id, data)


@router.get("/{phase_id}/financial", response_model=PhaseFinancialOut)
def get_phase_financial(phase_id: int, db: Session = Depends(get_db)):
    # always computed from the cost tables
    return get_phase_financial_summary(db, phase_id)


@router.get("/{phase_id}/budget-check/materials", response_model=BudgetCheckOut)
def get_material_budget_check(
    phase_id: int,
    amount: float = Query(..., ge=0),
    exclude_request_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    return check_phase_material_budget(db, phase_id, amount, exclude_request_id=exclude_request_id)


@router.get("/{phase_id}/financial/cached", response_model=CachedFinancialOut)
def get_phase_financial_cached(phase_id: int, db: Session = Depends(get_db)):
    return get_cached_financials(db, phase_id)


@router.post("/{phase_id}/financial/recalculate", response_model=PhaseOut)
def post_phase_recalculate(phase_id: int, db: Session = Depends(get_db)):
    return recalculate_and_persist(db, phase_id)


@router.post("/{phase_id}/floors/suggestions", response_model=list[FloorSuggestionOut])
def post_floor_suggestions(phase_id: int, data: FloorSuggestionRequest, db: Session = Depends(get_db)):
    return suggest_floor_allocations(db, phase_id, data.strategy, weights=data.weights, by_area=data.by_area)


@router.get("/{phase_id}/floors/allocations", response_model=FloorAllocationReport)
def get_floor_allocations(phase_id: int, db: Session = Depends(get_db)):
    return floor_allocation_report(db, phase_id)


@router.put("/{phase_id}/floors/allocations", response_model=FloorAllocationReport)
def put_floor_allocations(phase_id: int, data: FloorAllocationsIn, db: Session = Depends(get_db)):
    return apply_floor_allocations(
        db,
        phase_id,
        [a.model_dump() for a in data.allocations],
        strategy=data.strategy,
    )


@router.get("/{phase_id}/export/financial.xlsx")
def export_phase_xlsx(phase_id: int, db: Session = Depends(get_db)):
    report = get_phase_financial_summary(db, phase_id)
    out = default_export_path(f"phase_financial_{phase_id}", "xlsx")
    export_phase_financials_xlsx(report, out)
    return FileResponse(str(out), media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", filename=out.name)


@router.get("/{phase_id}/export/financial.pdf")
def export_phase_pdf(phase_id: int, db: Session = Depends(get_db)):
    report = get_phase_financial_summary(db, phase_id)
    out = default_export_path(f"phase_financial_{phase_id}", "pdf")
    export_phase_financials_pdf(report, out)
    return FileResponse(str(out), media_type="application/pdf", filename=out.name)
