"""SQL-backed view of the host platform's payment framework.

All methods take the caller's session so that payment persistence, intent
linking and delivery can share one transaction.
"""

from collections.abc import Callable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from paygate.common.config import settings
from paygate.common.logging import logger
from paygate.gateway.schemas import GatewayConfig
from paygate.host.models import (
    PAYMENT_STATUS_COMPLETE,
    PAYMENT_STATUS_PENDING,
    GatewayConfiguration,
    OrderDelivery,
    Payable,
    Payment,
    PaymentAccount,
)
from paygate.host.pricing import round_cost
from paygate.host.schemas import PayableReference, ResolvedPayable


DeliveryHandler = Callable[[Session, OrderDelivery], None]


class HostPlatform:
    """Configuration, pricing, ledger and fulfillment lookups for one gateway."""

    def __init__(self, gateway_name: str | None = None, surcharges: dict[str, Decimal] | None = None) -> None:
        self.gateway_name = gateway_name or settings.gateway_name
        self.surcharges = settings.gateway_surcharges if surcharges is None else surcharges
        self._delivery_handlers: dict[str, DeliveryHandler] = {}

    def register_delivery_handler(self, component: str, handler: DeliveryHandler) -> None:
        """Attach the component's fulfillment hook (e.g. course enrolment)."""

        self._delivery_handlers[component] = handler

    def _payable(self, db: Session, ref: PayableReference) -> Payable | None:
        return db.execute(
            select(Payable).where(
                Payable.component == ref.component,
                Payable.payment_area == ref.payment_area,
                Payable.item_id == ref.item_id,
            )
        ).scalar_one_or_none()

    def load_gateway_config(self, db: Session, ref: PayableReference) -> GatewayConfig | None:
        """Return credentials for the payable's account, or None when absent/disabled."""

        row = db.execute(
            select(GatewayConfiguration)
            .join(Payable, Payable.account_id == GatewayConfiguration.account_id)
            .join(PaymentAccount, PaymentAccount.account_id == GatewayConfiguration.account_id)
            .where(
                Payable.component == ref.component,
                Payable.payment_area == ref.payment_area,
                Payable.item_id == ref.item_id,
                GatewayConfiguration.gateway == self.gateway_name,
                GatewayConfiguration.enabled.is_(True),
                PaymentAccount.enabled.is_(True),
            )
        ).scalar_one_or_none()
        if row is None:
            return None
        return GatewayConfig(
            client_id=row.client_id or "",
            api_key=row.api_key or "",
            webhook_secret=row.webhook_secret or "",
            environment=row.environment or "sandbox",
            integration_mode=row.integration_mode or "redirect",
        )

    def resolve_payable(self, db: Session, ref: PayableReference) -> ResolvedPayable:
        payable = self._payable(db, ref)
        if payable is None:
            raise LookupError(f"unknown payable {ref.label()}")
        return ResolvedPayable(
            amount=payable.amount,
            currency=payable.currency.upper(),
            account_id=payable.account_id,
            description=payable.description or "",
        )

    def compute_surcharge(self, gateway_name: str) -> Decimal:
        return Decimal(self.surcharges.get(gateway_name, Decimal("0")))

    def round_cost(self, amount: Decimal, currency: str, surcharge: Decimal) -> Decimal:
        return round_cost(amount, currency, surcharge)

    def trusted_cost(self, db: Session, ref: PayableReference) -> tuple[ResolvedPayable, Decimal]:
        """Resolve the payable and compute its surcharged, rounded cost server-side."""

        payable = self.resolve_payable(db, ref)
        surcharge = self.compute_surcharge(self.gateway_name)
        return payable, self.round_cost(payable.amount, payable.currency, surcharge)

    def persist_local_payment(
        self,
        db: Session,
        account_id: int,
        ref: PayableReference,
        payer_id: str,
        amount: Decimal,
        currency: str,
    ) -> str:
        """Insert a pending ledger row and return its id (flushed, not committed)."""

        payment = Payment(
            account_id=account_id,
            component=ref.component,
            payment_area=ref.payment_area,
            item_id=ref.item_id,
            payer_id=payer_id,
            amount=amount,
            currency=currency,
            gateway=self.gateway_name,
            status=PAYMENT_STATUS_PENDING,
        )
        db.add(payment)
        db.flush()
        return payment.id

    def get_payment(self, db: Session, payment_id: str) -> Payment | None:
        return db.get(Payment, payment_id)

    def is_payment_complete(self, db: Session, payment_id: str | None) -> bool:
        if payment_id is None:
            return False
        payment = self.get_payment(db, payment_id)
        return payment is not None and payment.status == PAYMENT_STATUS_COMPLETE

    def mark_payment_complete(self, db: Session, payment_id: str) -> None:
        payment = db.get(Payment, payment_id)
        if payment is None:
            raise LookupError(f"payment {payment_id} not found")
        payment.status = PAYMENT_STATUS_COMPLETE
        db.flush()

    def deliver_order(self, db: Session, ref: PayableReference, payment_id: str, payer_id: str) -> None:
        """Record fulfillment and run the component's delivery hook, if any."""

        delivery = OrderDelivery(
            payment_id=payment_id,
            component=ref.component,
            payment_area=ref.payment_area,
            item_id=ref.item_id,
            payer_id=payer_id,
        )
        db.add(delivery)
        db.flush()
        handler = self._delivery_handlers.get(ref.component)
        if handler is not None:
            handler(db, delivery)
        logger.info("order delivered payable=%s payment_id=%s payer_id=%s", ref.label(), payment_id, payer_id)
