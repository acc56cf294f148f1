"""Subscription model: lifecycle state of a user's enrollment in a plan."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.utils import new_id, now_utc
from .base import Base


class SubscriptionStatus:
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


# A user may hold at most one subscription in one of these states.
OPEN_STATUSES = (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(ForeignKey("plans.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SubscriptionStatus.PENDING)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # Optimistic locking: UPDATEs carry "WHERE version = :old" and bump it.
    __mapper_args__ = {"version_id_col": version}

    user: Mapped["User"] = relationship(back_populates="subscriptions")
    plan_changes: Mapped[list["PlanChange"]] = relationship(
        back_populates="subscription", order_by="PlanChange.created_at"
    )
