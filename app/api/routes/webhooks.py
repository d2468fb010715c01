from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_webhook_service
from app.services.webhooks.service import WebhookService


router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook")
async def gateway_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(None),
    x_razorpay_event_id: str | None = Header(None),
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    """Подпись считается по сырому телу, поэтому читаем bytes, а не модель."""
    body = await request.body()
    return await run_in_threadpool(service.process, body, x_razorpay_signature, x_razorpay_event_id)
