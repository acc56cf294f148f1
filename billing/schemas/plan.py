"""Plan catalog Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_serializer

from billing.schemas.common import CamelModel, money_to_float

BillingCycle = Literal["MONTHLY", "YEARLY"]


class PlanCreate(CamelModel):
    id: str | None = Field(None, max_length=64)
    name: str = Field(min_length=1, max_length=128)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    billing_cycle: BillingCycle
    features: list[str] = Field(default_factory=list)
    is_active: bool = True


class PlanUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    billing_cycle: BillingCycle | None = None
    features: list[str] | None = None
    is_active: bool | None = None


class PlanRead(CamelModel):
    id: str
    name: str
    description: str | None = None
    price: Decimal
    billing_cycle: str
    features: list[str]
    is_active: bool
    created_at: datetime

    @field_serializer("price")
    def _serialize_price(self, value: Decimal) -> float:
        return money_to_float(value)
