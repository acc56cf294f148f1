"""Seed data: a known user, the two fixed plans and one active subscription.

Usage:
    paysub seed [--reset]
    python -m billing.seed
"""

import asyncio
import logging
from dataclasses import asdict, dataclass

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from billing.models import Base, Plan, PlanChange, Subscription, SubscriptionStatus, User
from billing.services.auth_service import hash_password
from billing.services.user_service import get_user_by_email
from src.utils import now_utc, to_money

logger = logging.getLogger(__name__)

SEED_USER_EMAIL = "seed.user@example.com"
SEED_USER_PASSWORD = "Password123!"
SEED_ACTIVE_SUBSCRIPTION_ID = "fixed-active-sub"

SEED_PLANS = [
    {
        "id": "fixed-basic",
        "name": "Basic",
        "description": "Basic plan",
        "price": "9.99",
        "billing_cycle": "MONTHLY",
        "features": ["feature-a"],
    },
    {
        "id": "fixed-pro",
        "name": "Pro",
        "description": "Pro plan",
        "price": "29.99",
        "billing_cycle": "MONTHLY",
        "features": ["feature-a", "feature-b"],
    },
]


@dataclass
class SeedResult:
    user_id: str
    user_email: str
    user_password: str
    plan_ids: list[str]
    active_subscription_id: str | None


async def _reset(db: AsyncSession) -> None:
    # Children first, foreign keys point upwards
    for model in (PlanChange, Subscription, Plan, User):
        await db.execute(delete(model))
    await db.commit()
    db.expunge_all()
    logger.info("Billing tables cleared")


async def seed_database(db: AsyncSession, reset: bool = False, with_subscription: bool = True) -> SeedResult:
    """Insert seed rows that are missing. Existing rows are left untouched."""
    if reset:
        await _reset(db)

    user = await get_user_by_email(db, SEED_USER_EMAIL)
    if not user:
        user = User(email=SEED_USER_EMAIL, name="Seed User", password_hash=hash_password(SEED_USER_PASSWORD))
        db.add(user)
        await db.flush()

    plans = {}
    for data in SEED_PLANS:
        plan = await db.get(Plan, data["id"])
        if not plan:
            plan = Plan(**{**data, "price": to_money(data["price"]), "is_active": True})
            db.add(plan)
        plans[plan.id] = plan
    await db.flush()

    subscription_id = None
    if with_subscription:
        subscription = await db.get(Subscription, SEED_ACTIVE_SUBSCRIPTION_ID)
        if not subscription:
            pro = plans["fixed-pro"]
            subscription = Subscription(
                id=SEED_ACTIVE_SUBSCRIPTION_ID,
                user_id=user.id,
                plan_id=pro.id,
                status=SubscriptionStatus.ACTIVE,
                start_date=now_utc(),
                price=pro.price,
            )
            db.add(subscription)
        subscription_id = subscription.id

    await db.commit()
    logger.info("Seed complete: user %s, plans %s", user.id, ", ".join(plans))

    return SeedResult(
        user_id=user.id,
        user_email=SEED_USER_EMAIL,
        user_password=SEED_USER_PASSWORD,
        plan_ids=list(plans),
        active_subscription_id=subscription_id,
    )


async def main(reset: bool = True, with_subscription: bool = True) -> SeedResult:
    from billing.db.session import async_session_factory, engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        async with async_session_factory() as db:
            return await seed_database(db, reset=reset, with_subscription=with_subscription)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    print("Seed done:", asdict(asyncio.run(main())))
