"""Payment routes: initiation, transaction inspection, delivery cancellation."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.db.session import get_db
from gateway.schemas.payment import (
    DeliveryCancellation,
    PaymentInitiateRequest,
    PaymentInitiateResponse,
    PaymentTransactionRead,
)
from gateway.services import payment_service
from gateway.services.delivery_service import cancel_deliveries

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initiate", response_model=PaymentInitiateResponse, status_code=status.HTTP_201_CREATED)
async def initiate(body: PaymentInitiateRequest, db: AsyncSession = Depends(get_db)):
    return await payment_service.initiate_payment(db, body)


@router.get("", response_model=list[PaymentTransactionRead])
async def list_transactions(
    subscription_id: str | None = Query(None, alias="subscriptionId"),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.list_transactions(db, subscription_id=subscription_id)


@router.get("/{transaction_id}", response_model=PaymentTransactionRead)
async def get_transaction(transaction_id: str, db: AsyncSession = Depends(get_db)):
    return await payment_service.get_transaction(db, transaction_id)


@router.delete("/deliveries/{subscription_id}", response_model=DeliveryCancellation)
async def cancel_subscription_deliveries(subscription_id: str):
    return DeliveryCancellation(subscription_id=subscription_id, cancelled=cancel_deliveries(subscription_id))
