from fastapi import APIRouter, Depends, Query

from app.api.deps import get_access_service
from app.paywall.access import AccessDecisionService
from app.schemas.purchases import AccessCheckOut, SignedAccessOut


router = APIRouter(prefix="/access", tags=["access"])


@router.get("/check", response_model=AccessCheckOut)
def check(
    user_id: str = Query(..., min_length=1),
    image_id: str = Query(..., min_length=1),
    service: AccessDecisionService = Depends(get_access_service),
) -> AccessCheckOut:
    """Отказ - обычный ответ 200 с granted=false, не ошибка."""
    decision = service.has_access(user_id, image_id)
    return AccessCheckOut(
        granted=decision.granted,
        reason=decision.reason.value,
        expires_at=decision.expires_at,
    )


@router.get("/url", response_model=SignedAccessOut)
def signed_url(
    user_id: str = Query(..., min_length=1),
    image_id: str = Query(..., min_length=1),
    service: AccessDecisionService = Depends(get_access_service),
) -> SignedAccessOut:
    access = service.get_signed_access_url(user_id, image_id)
    return SignedAccessOut(
        image_id=access.image_id,
        url=access.url,
        reason=access.reason.value,
        expires_at=access.expires_at,
    )


@router.get("/summary")
def summary(
    user_id: str = Query(..., min_length=1),
    service: AccessDecisionService = Depends(get_access_service),
) -> dict:
    return service.access_summary(user_id)
