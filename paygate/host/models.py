"""Host platform tables: accounts, gateway credentials, payables, local payments.

These mirror the learning platform's payment framework. The plugin only reads
configuration/pricing and writes payments + deliveries through `HostPlatform`.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from paygate.common.db import Base


PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_COMPLETE = "COMPLETE"


class PaymentAccount(Base):
    """Merchant-side account that owns gateway credentials and receives funds."""

    __tablename__ = "payment_accounts"

    account_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GatewayConfiguration(Base):
    """Credentials for one gateway on one account."""

    __tablename__ = "gateway_configurations"
    __table_args__ = (UniqueConstraint("account_id", "gateway", name="uq_gateway_configuration_account"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("payment_accounts.account_id"), index=True)
    gateway: Mapped[str] = mapped_column(String)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    client_id: Mapped[str] = mapped_column(String, default="")
    api_key: Mapped[str] = mapped_column(String, default="")
    webhook_secret: Mapped[str] = mapped_column(String, default="")
    environment: Mapped[str] = mapped_column(String, default="sandbox")
    integration_mode: Mapped[str] = mapped_column(String, default="redirect")


class Payable(Base):
    """A priced item identified by `(component, payment_area, item_id)`."""

    __tablename__ = "payables"
    __table_args__ = (UniqueConstraint("component", "payment_area", "item_id", name="uq_payable_reference"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    component: Mapped[str] = mapped_column(String)
    payment_area: Mapped[str] = mapped_column(String)
    item_id: Mapped[int] = mapped_column(Integer)
    account_id: Mapped[int] = mapped_column(ForeignKey("payment_accounts.account_id"), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 5))
    currency: Mapped[str] = mapped_column(String(3))
    description: Mapped[str] = mapped_column(String, default="")


class Payment(Base):
    """Local payment ledger row written on successful reconciliation."""

    __tablename__ = "payments"
    __table_args__ = (Index("ix_payments_payable_payer", "component", "payment_area", "item_id", "payer_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    account_id: Mapped[int] = mapped_column(ForeignKey("payment_accounts.account_id"), index=True)
    component: Mapped[str] = mapped_column(String)
    payment_area: Mapped[str] = mapped_column(String)
    item_id: Mapped[int] = mapped_column(Integer)
    payer_id: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 5))
    currency: Mapped[str] = mapped_column(String(3))
    gateway: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default=PAYMENT_STATUS_PENDING, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class OrderDelivery(Base):
    """Fulfillment marker; one per local payment."""

    __tablename__ = "order_deliveries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    payment_id: Mapped[str] = mapped_column(ForeignKey("payments.id"), unique=True)
    component: Mapped[str] = mapped_column(String)
    payment_area: Mapped[str] = mapped_column(String)
    item_id: Mapped[int] = mapped_column(Integer)
    payer_id: Mapped[str] = mapped_column(String)
    delivered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
