"""Subscription routes: create, read, upgrade, downgrade, cancel."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.db.session import get_db
from billing.models.user import User
from billing.schemas.subscription import (
    PlanChangeRead,
    PlanChangeRequest,
    SubscriptionCreate,
    SubscriptionRead,
)
from billing.services import subscription_service
from billing.services.auth_service import get_current_user

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    body: SubscriptionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.create_subscription(db, user.id, body.plan_id)


@router.get("", response_model=list[SubscriptionRead], dependencies=[Depends(get_current_user)])
async def list_subscriptions(
    user_id: str | None = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.list_subscriptions(db, user_id=user_id)


@router.get("/{subscription_id}", response_model=SubscriptionRead, dependencies=[Depends(get_current_user)])
async def get_subscription(subscription_id: str, db: AsyncSession = Depends(get_db)):
    return await subscription_service.get_subscription(db, subscription_id)


@router.get(
    "/{subscription_id}/plan-changes",
    response_model=list[PlanChangeRead],
    dependencies=[Depends(get_current_user)],
)
async def list_plan_changes(subscription_id: str, db: AsyncSession = Depends(get_db)):
    return await subscription_service.list_plan_changes(db, subscription_id)


@router.patch("/{subscription_id}/upgrade", response_model=SubscriptionRead, dependencies=[Depends(get_current_user)])
async def upgrade_subscription(
    subscription_id: str,
    body: PlanChangeRequest,
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.upgrade_subscription(db, subscription_id, body.plan_id)


@router.patch("/{subscription_id}/downgrade", response_model=SubscriptionRead, dependencies=[Depends(get_current_user)])
async def downgrade_subscription(
    subscription_id: str,
    body: PlanChangeRequest,
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.downgrade_subscription(db, subscription_id, body.plan_id)


@router.delete("/{subscription_id}", response_model=SubscriptionRead, dependencies=[Depends(get_current_user)])
async def cancel_subscription(subscription_id: str, db: AsyncSession = Depends(get_db)):
    return await subscription_service.cancel_subscription(db, subscription_id)
