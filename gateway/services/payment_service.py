"""Payment processing: decide, persist, and hand the outcome to webhook delivery."""

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.constants import MESSAGE_FAILED, MESSAGE_SUCCESS
from gateway.models.transaction import PaymentStatus, PaymentTransaction
from gateway.schemas.payment import PaymentInitiateRequest, PaymentInitiateResponse
from gateway.services.decision import DecisionStrategy, get_decision_strategy
from gateway.services.delivery_service import schedule_delivery
from src.utils import to_money

logger = logging.getLogger(__name__)


async def initiate_payment(
    db: AsyncSession,
    request: PaymentInitiateRequest,
    strategy: DecisionStrategy | None = None,
) -> PaymentInitiateResponse:
    """Decide the payment outcome now and notify the caller's webhook in the background.

    The decision is returned synchronously and never revisited; only the
    delivery of the callback is asynchronous.
    """
    strategy = strategy or get_decision_strategy()
    succeeded = strategy.decide()
    status = PaymentStatus.SUCCESS if succeeded else PaymentStatus.FAILED

    logger.info("Processing payment for subscription %s: %s", request.subscription_id, status)

    transaction = PaymentTransaction(
        subscription_id=request.subscription_id,
        amount=to_money(request.amount),
        status=status,
        webhook_url=request.webhook_url,
    )
    db.add(transaction)
    await db.commit()

    schedule_delivery(
        transaction.id,
        transaction.subscription_id,
        {
            "subscriptionId": transaction.subscription_id,
            "paymentId": transaction.id,
            "success": succeeded,
        },
    )

    return PaymentInitiateResponse(
        payment_id=transaction.id,
        status=status,
        message=MESSAGE_SUCCESS if succeeded else MESSAGE_FAILED,
    )


async def get_transaction(db: AsyncSession, transaction_id: str) -> PaymentTransaction:
    transaction = await db.get(PaymentTransaction, transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


async def list_transactions(db: AsyncSession, subscription_id: str | None = None) -> list[PaymentTransaction]:
    query = select(PaymentTransaction).order_by(PaymentTransaction.created_at.desc())
    if subscription_id:
        query = query.where(PaymentTransaction.subscription_id == subscription_id)
    result = await db.execute(query)
    return list(result.scalars().all())
