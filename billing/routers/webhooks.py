"""Webhook routes: payment gateway callbacks."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billing.db.session import get_db
from billing.schemas.webhook import PaymentWebhook, PaymentWebhookResult
from billing.services.webhook_service import handle_payment_webhook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payment", response_model=PaymentWebhookResult, response_model_exclude_none=True)
async def payment_webhook(body: PaymentWebhook, db: AsyncSession = Depends(get_db)):
    logger.info(
        "Payment webhook: subscription=%s payment=%s success=%s",
        body.subscription_id, body.payment_id, body.success,
    )
    return await handle_payment_webhook(db, body.subscription_id, body.payment_id, body.success)
