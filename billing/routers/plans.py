"""Plan catalog routes."""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.db.session import get_db
from billing.schemas.plan import PlanCreate, PlanRead, PlanUpdate
from billing.services import plan_service
from billing.services.auth_service import get_current_user

router = APIRouter(prefix="/plans", tags=["plans"], dependencies=[Depends(get_current_user)])


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
async def create_plan(body: PlanCreate, db: AsyncSession = Depends(get_db)):
    return await plan_service.create_plan(db, body)


@router.get("", response_model=list[PlanRead])
async def list_plans(
    active_only: bool = Query(False, alias="activeOnly"),
    db: AsyncSession = Depends(get_db),
):
    return await plan_service.list_plans(db, active_only=active_only)


@router.get("/{plan_id}", response_model=PlanRead)
async def get_plan(plan_id: str, db: AsyncSession = Depends(get_db)):
    return await plan_service.get_plan(db, plan_id)


@router.patch("/{plan_id}", response_model=PlanRead)
async def update_plan(plan_id: str, body: PlanUpdate, db: AsyncSession = Depends(get_db)):
    return await plan_service.update_plan(db, plan_id, body)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(plan_id: str, db: AsyncSession = Depends(get_db)):
    await plan_service.delete_plan(db, plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
