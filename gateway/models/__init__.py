"""SQLAlchemy models for the payment gateway."""

from .base import Base
from .transaction import PaymentStatus, PaymentTransaction

__all__ = [
    "Base",
    "PaymentStatus",
    "PaymentTransaction",
]
