from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buildtrack.core.deps import get_db
from buildtrack.crud.costs import KINDS, convert_request_to_order, receive_purchase_order, record_out
from buildtrack.schemas.costs import CostRecordOut, OrderFromRequestIn

router = APIRouter()


@router.post("/material-requests/{request_id}/convert", response_model=CostRecordOut)
def post_convert_request(request_id: int, data: OrderFromRequestIn, db: Session = Depends(get_db)):
    return record_out(KINDS["purchase-orders"], convert_request_to_order(db, request_id, data))


@router.post("/purchase-orders/{po_id}/receive", response_model=CostRecordOut)
def post_receive_order(po_id: int, db: Session = Depends(get_db)):
    return record_out(KINDS["materials"], receive_purchase_order(db, po_id))
