"""SQLAlchemy models for the billing service."""

from .base import Base
from .user import User
from .plan import Plan
from .subscription import OPEN_STATUSES, Subscription, SubscriptionStatus
from .plan_change import PlanChange, PlanChangeKind, PlanChangeStatus

__all__ = [
    "Base",
    "User",
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "OPEN_STATUSES",
    "PlanChange",
    "PlanChangeKind",
    "PlanChangeStatus",
]
