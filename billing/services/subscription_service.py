"""Subscription lifecycle: creation, plan changes, cancellation, payment reconciliation.

States: PENDING -> ACTIVE, PENDING -> CANCELLED, ACTIVE -> CANCELLED.
Upgrades and downgrades change the plan of an ACTIVE subscription, never its status.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from billing.config import get_settings
from billing.models.plan import Plan
from billing.models.plan_change import PlanChange, PlanChangeKind, PlanChangeStatus
from billing.models.subscription import OPEN_STATUSES, Subscription, SubscriptionStatus
from billing.services.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PaymentInitiationError,
)
from billing.services.payment_client import cancel_deliveries, initiate_payment
from billing.services.plan_service import get_plan
from src.utils import now_utc

logger = logging.getLogger(__name__)


async def _commit(db: AsyncSession) -> None:
    """Commit, turning a lost optimistic-lock race into a ConflictError."""
    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConflictError("Subscription was modified concurrently, retry the request") from e


async def get_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    subscription = await db.get(Subscription, subscription_id)
    if not subscription:
        raise NotFoundError(f"Subscription with ID {subscription_id} not found")
    return subscription


async def list_subscriptions(db: AsyncSession, user_id: str | None = None) -> list[Subscription]:
    query = select(Subscription).order_by(Subscription.created_at.desc())
    if user_id:
        query = query.where(Subscription.user_id == user_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_plan_changes(db: AsyncSession, subscription_id: str) -> list[PlanChange]:
    await get_subscription(db, subscription_id)
    result = await db.execute(
        select(PlanChange)
        .where(PlanChange.subscription_id == subscription_id)
        .order_by(PlanChange.created_at.asc())
    )
    return list(result.scalars().all())


async def create_subscription(db: AsyncSession, user_id: str, plan_id: str) -> Subscription:
    """Create a PENDING subscription and start its first payment.

    The subscription becomes ACTIVE or CANCELLED later, when the gateway's
    webhook reaches reconcile_payment(). If the gateway cannot even be asked,
    the subscription is cancelled right away and PaymentInitiationError is raised.
    """
    existing = await db.scalar(
        select(Subscription.id)
        .where(Subscription.user_id == user_id, Subscription.status.in_(OPEN_STATUSES))
        .limit(1)
    )
    if existing:
        raise ConflictError("User already has an active or pending subscription")

    plan = await get_plan(db, plan_id)

    subscription = Subscription(
        user_id=user_id,
        plan_id=plan.id,
        status=SubscriptionStatus.PENDING,
        price=plan.price,
    )
    db.add(subscription)
    await db.commit()
    logger.info("Subscription %s created for user %s on plan %s", subscription.id, user_id, plan.id)

    try:
        await initiate_payment(subscription.id, plan.price)
    except PaymentInitiationError:
        subscription.status = SubscriptionStatus.CANCELLED
        try:
            await _commit(db)
        except ConflictError:
            logger.warning("Subscription %s changed while cancelling after failed initiation", subscription.id)
        logger.warning("Subscription %s cancelled: payment initiation failed", subscription.id)
        raise

    await db.refresh(subscription)
    return subscription


def _record_plan_change(
    db: AsyncSession,
    subscription: Subscription,
    new_plan: Plan,
    kind: PlanChangeKind,
    status: PlanChangeStatus,
) -> PlanChange:
    """Apply the new plan to the subscription and keep what is needed to undo it."""
    change = PlanChange(
        subscription_id=subscription.id,
        kind=kind,
        previous_plan_id=subscription.plan_id,
        previous_price=subscription.price,
        target_plan_id=new_plan.id,
        target_price=new_plan.price,
        status=status,
    )
    db.add(change)
    subscription.plan_id = new_plan.id
    subscription.price = new_plan.price
    return change


async def _restore_previous_plan(db: AsyncSession, subscription: Subscription, change: PlanChange) -> None:
    """Undo an unpaid change, unless the subscription has since moved on.

    A restore is only safe while the change is still the one in effect: the
    subscription sits on its target plan and no later change was recorded.
    Otherwise the change is only marked FAILED.
    """
    later = await db.scalar(
        select(PlanChange.id)
        .where(
            PlanChange.subscription_id == subscription.id,
            PlanChange.id != change.id,
            PlanChange.created_at > change.created_at,
        )
        .limit(1)
    )
    if later or subscription.plan_id != change.target_plan_id:
        change.status = PlanChangeStatus.FAILED
        logger.warning(
            "Change %s of subscription %s not rolled back: superseded by a later plan change",
            change.id, subscription.id,
        )
        return
    subscription.plan_id = change.previous_plan_id
    subscription.price = change.previous_price
    change.status = PlanChangeStatus.REVERTED


async def _load_transition(db: AsyncSession, subscription_id: str, new_plan_id: str, action: str):
    subscription = await get_subscription(db, subscription_id)
    if subscription.status != SubscriptionStatus.ACTIVE:
        raise InvalidStateError(f"Only active subscriptions can be {action}")

    new_plan = await get_plan(db, new_plan_id)
    current_plan = await get_plan(db, subscription.plan_id)
    return subscription, current_plan, new_plan


async def upgrade_subscription(db: AsyncSession, subscription_id: str, new_plan_id: str) -> Subscription:
    """Move an ACTIVE subscription to a more expensive plan and bill the difference.

    The new plan is visible immediately; the payment outcome arrives later
    through the webhook.
    """
    subscription, current_plan, new_plan = await _load_transition(db, subscription_id, new_plan_id, "upgraded")
    if new_plan.price <= current_plan.price:
        raise InvalidTransitionError("New plan must have a higher price than current plan")

    change = _record_plan_change(db, subscription, new_plan, PlanChangeKind.UPGRADE, PlanChangeStatus.PENDING)
    await _commit(db)

    amount: Decimal = new_plan.price - current_plan.price
    try:
        initiation = await initiate_payment(subscription.id, amount)
    except PaymentInitiationError:
        await db.refresh(subscription)
        await _restore_previous_plan(db, subscription, change)
        await _commit(db)
        logger.warning(
            "Upgrade of subscription %s to %s reverted: payment initiation failed",
            subscription.id, new_plan.id,
        )
        raise

    change.payment_id = initiation.payment_id
    await db.commit()
    logger.info(
        "Subscription %s upgraded %s -> %s, payment %s for %s",
        subscription.id, current_plan.id, new_plan.id, initiation.payment_id, amount,
    )

    await db.refresh(subscription)
    return subscription


async def downgrade_subscription(db: AsyncSession, subscription_id: str, new_plan_id: str) -> Subscription:
    """Move an ACTIVE subscription to a cheaper plan. Nothing is billed."""
    subscription, current_plan, new_plan = await _load_transition(db, subscription_id, new_plan_id, "downgraded")
    if new_plan.price >= current_plan.price:
        raise InvalidTransitionError("New plan must have a lower price than current plan")

    _record_plan_change(db, subscription, new_plan, PlanChangeKind.DOWNGRADE, PlanChangeStatus.APPLIED)
    await _commit(db)
    logger.info("Subscription %s downgraded %s -> %s", subscription.id, current_plan.id, new_plan.id)

    await db.refresh(subscription)
    return subscription


async def cancel_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    subscription = await get_subscription(db, subscription_id)
    if subscription.status != SubscriptionStatus.ACTIVE:
        raise InvalidStateError("Only active subscriptions can be cancelled")

    subscription.status = SubscriptionStatus.CANCELLED
    subscription.canceled_at = now_utc()
    await _commit(db)
    logger.info("Subscription %s cancelled", subscription.id)

    stopped = await cancel_deliveries(subscription.id)
    if stopped:
        logger.info("Stopped %d pending webhook deliveries for subscription %s", stopped, subscription.id)

    return subscription


async def _find_pending_change(db: AsyncSession, subscription: Subscription, payment_id: str) -> PlanChange | None:
    """Match a webhook to the plan change it pays for.

    The webhook can overtake the response of the initiate call, so a change
    whose payment id is not yet recorded is the fallback match. A payment id
    already held by the subscription or by another change is a retried
    delivery and never takes the fallback.
    """
    base = select(PlanChange).where(
        PlanChange.subscription_id == subscription.id,
        PlanChange.status == PlanChangeStatus.PENDING,
    )
    change = await db.scalar(base.where(PlanChange.payment_id == payment_id).limit(1))
    if change or payment_id == subscription.payment_id:
        return change

    claimed = await db.scalar(
        select(PlanChange.id)
        .where(PlanChange.subscription_id == subscription.id, PlanChange.payment_id == payment_id)
        .limit(1)
    )
    if claimed:
        return None
    return await db.scalar(
        base.where(PlanChange.payment_id.is_(None)).order_by(PlanChange.created_at.desc()).limit(1)
    )


async def reconcile_payment(
    db: AsyncSession,
    subscription_id: str,
    payment_id: str,
    success: bool,
) -> Subscription:
    """Apply a payment outcome reported by the gateway.

    success          -> ACTIVE with payment id and start date (safe to repeat)
    failure, PENDING -> CANCELLED
    failure, ACTIVE  -> status kept; the upgrade is marked FAILED, or rolled
                        back when RESTORE_PLAN_ON_FAILED_UPGRADE is set and
                        no later plan change superseded it
    failure, CANCELLED -> nothing
    """
    subscription = await get_subscription(db, subscription_id)
    change = await _find_pending_change(db, subscription, payment_id)

    if success:
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.payment_id = payment_id
        subscription.start_date = now_utc()
        if change:
            change.payment_id = payment_id
            change.status = PlanChangeStatus.APPLIED
    elif subscription.status == SubscriptionStatus.PENDING:
        subscription.status = SubscriptionStatus.CANCELLED
    elif subscription.status == SubscriptionStatus.ACTIVE and change:
        change.payment_id = payment_id
        if get_settings().restore_plan_on_failed_upgrade:
            await _restore_previous_plan(db, subscription, change)
        else:
            change.status = PlanChangeStatus.FAILED

    await _commit(db)
    logger.info(
        "Reconciled payment %s for subscription %s (success=%s) -> %s",
        payment_id, subscription.id, success, subscription.status,
    )

    await db.refresh(subscription)
    return subscription
