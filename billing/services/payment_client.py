"""HTTP client for the payment gateway: initiation and delivery cancellation."""

import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

from billing.config import get_settings
from billing.constants import PAYMENT_DELIVERIES_PATH, PAYMENT_INITIATE_PATH
from billing.http_client import get_http_client
from billing.services.errors import PaymentInitiationError

logger = logging.getLogger(__name__)


@dataclass
class PaymentInitiation:
    """Synchronous answer of the gateway: the payment decision is already made."""

    payment_id: str
    status: str
    message: str

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCESS"


async def initiate_payment(subscription_id: str, amount: Decimal) -> PaymentInitiation:
    """Ask the gateway to charge ``amount`` and call back our webhook with the outcome.

    Raises PaymentInitiationError when the gateway is unreachable, times out or
    answers with a non-2xx status. A FAILED payment decision is not an error
    here; it arrives later through the webhook.
    """
    settings = get_settings()
    url = f"{settings.payment_service_url}{PAYMENT_INITIATE_PATH}"
    payload = {
        "subscriptionId": subscription_id,
        "amount": float(amount),
        "webhookUrl": settings.webhook_url,
    }

    try:
        client = get_http_client()
        resp = await client.post(url, json=payload, timeout=settings.payment_request_timeout)
        resp.raise_for_status()
        data = resp.json()
        initiation = PaymentInitiation(
            payment_id=data["paymentId"],
            status=data["status"],
            message=data.get("message", ""),
        )
    except httpx.HTTPStatusError as e:
        logger.error(
            "Payment initiation HTTP error for subscription %s: %s - %s",
            subscription_id, e.response.status_code, e.response.text[:500],
        )
        raise PaymentInitiationError("Payment initiation failed") from e
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.error("Payment initiation failed for subscription %s: %s", subscription_id, e)
        raise PaymentInitiationError("Payment initiation failed") from e

    logger.info(
        "Payment %s initiated for subscription %s (amount=%s, decision=%s)",
        initiation.payment_id, subscription_id, amount, initiation.status,
    )
    return initiation


async def cancel_deliveries(subscription_id: str) -> int:
    """Best-effort request to stop in-flight webhook retries for a subscription.

    Returns the number of delivery loops the gateway signalled, 0 on any error.
    """
    settings = get_settings()
    url = f"{settings.payment_service_url}{PAYMENT_DELIVERIES_PATH.format(subscription_id=subscription_id)}"

    try:
        client = get_http_client()
        resp = await client.delete(url, timeout=settings.payment_request_timeout)
        resp.raise_for_status()
        return int(resp.json().get("cancelled", 0))
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Could not cancel deliveries for subscription %s: %s", subscription_id, e)
        return 0
