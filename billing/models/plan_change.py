"""PlanChange model: history of upgrades/downgrades applied ahead of payment."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.utils import new_id, now_utc
from .base import Base


class PlanChangeKind:
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"


class PlanChangeStatus:
    PENDING = "PENDING"
    APPLIED = "APPLIED"
    FAILED = "FAILED"
    REVERTED = "REVERTED"


class PlanChange(Base):
    __tablename__ = "plan_changes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subscription_id: Mapped[str] = mapped_column(ForeignKey("subscriptions.id"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    previous_plan_id: Mapped[str] = mapped_column(String(64), nullable=False)
    previous_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    target_plan_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PlanChangeStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    subscription: Mapped["Subscription"] = relationship(back_populates="plan_changes")
