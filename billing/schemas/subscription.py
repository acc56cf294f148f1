"""Subscription Pydantic schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_serializer

from billing.schemas.common import CamelModel, money_to_float


class SubscriptionCreate(CamelModel):
    plan_id: str = Field(min_length=1)


class PlanChangeRequest(CamelModel):
    plan_id: str = Field(min_length=1)


class SubscriptionRead(CamelModel):
    id: str
    user_id: str
    plan_id: str
    status: str
    start_date: datetime | None = None
    canceled_at: datetime | None = None
    payment_id: str | None = None
    price: Decimal
    created_at: datetime

    @field_serializer("price")
    def _serialize_price(self, value: Decimal) -> float:
        return money_to_float(value)


class PlanChangeRead(CamelModel):
    id: str
    kind: str
    previous_plan_id: str
    previous_price: Decimal
    target_plan_id: str
    target_price: Decimal
    payment_id: str | None = None
    status: str
    created_at: datetime

    @field_serializer("previous_price", "target_price")
    def _serialize_prices(self, value: Decimal) -> float:
        return money_to_float(value)
