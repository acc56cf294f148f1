"""Payment Pydantic schemas: camelCase on the wire."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PaymentInitiateRequest(_CamelModel):
    subscription_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    webhook_url: str = Field(pattern=r"^https?://")


class PaymentInitiateResponse(_CamelModel):
    payment_id: str
    status: str
    message: str


class PaymentTransactionRead(_CamelModel):
    id: str
    subscription_id: str
    amount: Decimal
    status: str
    webhook_url: str
    attempts: int
    response: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> float:
        return float(value)


class DeliveryCancellation(BaseModel):
    subscription_id: str = Field(serialization_alias="subscriptionId")
    cancelled: int
