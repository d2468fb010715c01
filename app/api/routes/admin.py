"""
Admin API: refund, список покупок, счётчики, ручной запуск sweep.
Доступ по заголовку X-Admin-Key.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_ledger, require_admin
from app.db.session import get_db
from app.models.purchase import PurchaseRecord
from app.paywall.ledger import PurchaseLedger
from app.schemas.purchases import PurchaseOut, RefundIn

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------- Purchases ----------
@router.get("/purchases")
def purchases_list(
    db: Session = Depends(get_db),
    ledger: PurchaseLedger = Depends(get_ledger),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status: str | None = None,
    user_id: str | None = None,
    image_id: str | None = None,
):
    q = db.query(PurchaseRecord)
    if status:
        q = q.filter(PurchaseRecord.status == status)
    if user_id:
        q = q.filter(PurchaseRecord.user_id == user_id)
    if image_id:
        q = q.filter(PurchaseRecord.image_id == image_id)
    total = q.count()
    rows = (
        q.order_by(PurchaseRecord.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    now = ledger.clock()
    return {
        "items": [ledger.serialize(r, now) for r in rows],
        "total": total,
        "page": page,
        "pages": (total + page_size - 1) // page_size,
    }


@router.get("/purchases/stats")
def purchases_stats(ledger: PurchaseLedger = Depends(get_ledger)):
    return ledger.stats()


@router.post("/purchases/sweep")
def purchases_sweep(ledger: PurchaseLedger = Depends(get_ledger)):
    return {"swept": ledger.sweep_expired()}


@router.post("/purchases/{purchase_id}/refund", response_model=PurchaseOut)
def purchases_refund(
    purchase_id: str,
    body: RefundIn,
    ledger: PurchaseLedger = Depends(get_ledger),
    admin_id: str = Depends(require_admin),
) -> PurchaseOut:
    record = ledger.refund(purchase_id, amount=body.amount, reason=body.reason, admin_id=admin_id)
    return PurchaseOut(**ledger.serialize(record, ledger.clock()))
