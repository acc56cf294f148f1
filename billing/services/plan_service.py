"""Plan catalog CRUD operations."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billing.models.plan import Plan
from billing.models.plan_change import PlanChange, PlanChangeStatus
from billing.models.subscription import Subscription
from billing.schemas.plan import PlanCreate, PlanUpdate
from billing.services.errors import ConflictError, NotFoundError


async def get_plan(db: AsyncSession, plan_id: str) -> Plan:
    plan = await db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError(f"Plan with ID {plan_id} not found")
    return plan


async def list_plans(db: AsyncSession, active_only: bool = False) -> list[Plan]:
    query = select(Plan).order_by(Plan.price.asc())
    if active_only:
        query = query.where(Plan.is_active == True)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_plan(db: AsyncSession, data: PlanCreate) -> Plan:
    values = data.model_dump(exclude_none=True)
    if data.id and await db.get(Plan, data.id):
        raise ConflictError(f"Plan with ID {data.id} already exists")

    plan = Plan(**values)
    db.add(plan)
    await db.commit()
    await db.refresh(plan)
    return plan


async def update_plan(db: AsyncSession, plan_id: str, updates: PlanUpdate) -> Plan:
    """Apply a partial update. Existing subscriptions keep the price they were billed at."""
    plan = await get_plan(db, plan_id)

    for key, value in updates.model_dump(exclude_unset=True).items():
        setattr(plan, key, value)

    await db.commit()
    await db.refresh(plan)
    return plan


async def delete_plan(db: AsyncSession, plan_id: str) -> None:
    plan = await get_plan(db, plan_id)

    in_use = await db.scalar(
        select(func.count()).select_from(Subscription).where(Subscription.plan_id == plan_id)
    )
    if in_use:
        raise ConflictError(f"Plan {plan_id} is referenced by {in_use} subscription(s)")

    # a pending change may still restore or apply this plan
    pending = await db.scalar(
        select(func.count())
        .select_from(PlanChange)
        .where(
            PlanChange.status == PlanChangeStatus.PENDING,
            or_(PlanChange.previous_plan_id == plan_id, PlanChange.target_plan_id == plan_id),
        )
    )
    if pending:
        raise ConflictError(f"Plan {plan_id} is referenced by {pending} pending plan change(s)")

    await db.delete(plan)
    await db.commit()
