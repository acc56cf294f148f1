"""Payment webhook handling: reconciles subscriptions from gateway callbacks."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from billing.constants import SUBSCRIPTION_NOT_FOUND
from billing.schemas.subscription import SubscriptionRead
from billing.schemas.webhook import PaymentWebhookResult
from billing.services.errors import NotFoundError
from billing.services.subscription_service import reconcile_payment

logger = logging.getLogger(__name__)


async def handle_payment_webhook(
    db: AsyncSession,
    subscription_id: str,
    payment_id: str,
    success: bool,
) -> PaymentWebhookResult:
    """Apply a payment outcome.

    An unknown subscription is answered with success=false instead of an error
    status, so the gateway does not keep retrying a callback that can never
    succeed. Every other failure propagates.
    """
    try:
        subscription = await reconcile_payment(db, subscription_id, payment_id, success)
    except NotFoundError:
        logger.warning("Subscription %s not found for payment webhook %s", subscription_id, payment_id)
        return PaymentWebhookResult(success=False, error=SUBSCRIPTION_NOT_FOUND)

    return PaymentWebhookResult(success=True, subscription=SubscriptionRead.model_validate(subscription))
