from fastapi import APIRouter, Depends, Query

from app.paywall.ledger import PurchaseLedger
from app.api.deps import get_ledger
from app.schemas.purchases import CompleteIn, CompleteOut, InitiateIn, InitiateOut, PurchaseOut


router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post("/initiate", response_model=InitiateOut)
def initiate(body: InitiateIn, ledger: PurchaseLedger = Depends(get_ledger)) -> InitiateOut:
    result = ledger.initiate(body.user_id, body.image_id)
    return InitiateOut(**result.model_dump())


@router.post("/complete", response_model=CompleteOut)
def complete(body: CompleteIn, ledger: PurchaseLedger = Depends(get_ledger)) -> CompleteOut:
    result = ledger.complete(body.order_ref, body.payment_ref, body.signature)
    return CompleteOut(**result.model_dump())


@router.get("/history", response_model=list[PurchaseOut])
def history(
    user_id: str = Query(..., min_length=1),
    status: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    ledger: PurchaseLedger = Depends(get_ledger),
) -> list[PurchaseOut]:
    rows = ledger.history(user_id, status=status, limit=page_size, offset=(page - 1) * page_size)
    return [PurchaseOut(**row) for row in rows]
