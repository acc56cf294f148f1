"""Payment webhook Pydantic schemas."""

from pydantic import StrictBool

from billing.schemas.common import CamelModel
from billing.schemas.subscription import SubscriptionRead


class PaymentWebhook(CamelModel):
    subscription_id: str
    payment_id: str
    success: StrictBool


class PaymentWebhookResult(CamelModel):
    success: bool
    subscription: SubscriptionRead | None = None
    error: str | None = None
