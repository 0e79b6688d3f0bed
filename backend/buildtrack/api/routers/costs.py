from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buildtrack.core.deps import get_db
from buildtrack.crud.costs import (
    KINDS,
    create_record,
    get_kind,
    record_out,
    record_subcontractor_payment,
    restore_record,
    set_record_status,
    soft_delete_record,
)
from buildtrack.schemas.costs import (
    CostRecordOut,
    EquipmentIn,
    ExpenseIn,
    LabourEntryIn,
    MaterialIn,
    MaterialRequestIn,
    PaymentIn,
    ProfessionalFeeIn,
    ProfessionalServiceIn,
    PurchaseOrderIn,
    StatusUpdate,
    SubcontractorIn,
)

router = APIRouter()


def _created(db: Session, kind: str, data) -> dict:
    return record_out(KINDS[kind], create_record(db, kind, data))


@router.post("/materials", response_model=CostRecordOut)
def post_material(data: MaterialIn, db: Session = Depends(get_db)):
    return _created(db, "materials", data)


@router.post("/expenses", response_model=CostRecordOut)
def post_expense(data: ExpenseIn, db: Session = Depends(get_db)):
    return _created(db, "expenses", data)


@router.post("/labour", response_model=CostRecordOut)
def post_labour(data: LabourEntryIn, db: Session = Depends(get_db)):
    return _created(db, "labour", data)


@router.post("/equipment", response_model=CostRecordOut)
def post_equipment(data: EquipmentIn, db: Session = Depends(get_db)):
    return _created(db, "equipment", data)


@router.post("/subcontractors", response_model=CostRecordOut)
def post_subcontractor(data: SubcontractorIn, db: Session = Depends(get_db)):
    return _created(db, "subcontractors", data)


@router.post("/subcontractors/{subcontractor_id}/payments", response_model=CostRecordOut)
def post_subcontractor_payment(subcontractor_id: int, data: PaymentIn, db: Session = Depends(get_db)):
    return record_out(KINDS["subcontractors"], record_subcontractor_payment(db, subcontractor_id, data.amount))


@router.post("/professional-services", response_model=CostRecordOut)
def post_professional_service(data: ProfessionalServiceIn, db: Session = Depends(get_db)):
    return _created(db, "professional-services", data)


@router.post("/professional-fees", response_model=CostRecordOut)
def post_professional_fee(data: ProfessionalFeeIn, db: Session = Depends(get_db)):
    return _created(db, "professional-fees", data)


@router.post("/material-requests", response_model=CostRecordOut)
def post_material_request(data: MaterialRequestIn, db: Session = Depends(get_db)):
    return _created(db, "material-requests", data)


@router.post("/purchase-orders", response_model=CostRecordOut)
def post_purchase_order(data: PurchaseOrderIn, db: Session = Depends(get_db)):
    return _created(db, "purchase-orders", data)


@router.patch("/{kind}/{record_id}/status", response_model=CostRecordOut)
def patch_status(kind: str, record_id: int, data: StatusUpdate, db: Session = Depends(get_db)):
    return record_out(get_kind(kind), set_record_status(db, kind, record_id, data.status))


@router.delete("/{kind}/{record_id}", response_model=CostRecordOut)
def delete_record(kind: str, record_id: int, db: Session = Depends(get_db)):
    return record_out(get_kind(kind), soft_delete_record(db, kind, record_id))


@router.post("/{kind}/{record_id}/restore", response_model=CostRecordOut)
def post_restore(kind: str, record_id: int, db: Session = Depends(get_db)):
    return record_out(get_kind(kind), restore_record(db, kind, record_id))
