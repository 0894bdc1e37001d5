"""Reconciliation persistence: the intent → local payment link."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from paygate.common.db import Base
from paygate.host.models import Payment


class GatewayIntent(Base):
    """One row per processor intent that reached a local payment.

    The unique constraint on `intent_id` is the only concurrency control for
    duplicate callback/webhook deliveries.
    """

    __tablename__ = "gateway_intents"
    __table_args__ = (UniqueConstraint("intent_id", name="uq_gateway_intents_intent_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    intent_id: Mapped[str] = mapped_column(String, nullable=False)
    payment_id: Mapped[str] = mapped_column(ForeignKey(Payment.id), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
