"""Shared Pydantic configuration: camelCase on the wire, snake_case in Python."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def money_to_float(value: Decimal) -> float:
    """JSON bodies carry amounts as plain numbers."""
    return float(value)
