"""Callback reconciliation.

Re-verifies every returning intent with the processor, recomputes the trusted
cost, and commits the local payment + intent link + order delivery in one
transaction. Duplicate deliveries for the same intent end in the committed
state without writing or delivering again.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import urlencode

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from paygate.common.config import settings
from paygate.common.errors import (
    InternalError,
    InvalidCallback,
    NotConfigured,
    PaymentGatewayError,
    PaymentNotCleared,
    SignatureRejected,
    VerificationError,
)
from paygate.common.logging import bind_context, logger
from paygate.common.metrics import (
    callback_outcomes_total,
    duplicate_callbacks_skipped_total,
    webhook_signature_rejected_total,
)
from paygate.common.state_machine import (
    COMMITTED,
    FAILED,
    INITIAL,
    PENDING_VERIFICATION,
    VERIFIED_SUCCESS,
    validate_transition,
)
from paygate.gateway.client import GatewayClient
from paygate.gateway.schemas import PaymentIntent
from paygate.gateway.signatures import verify_webhook_signature
from paygate.host.schemas import PayableReference
from paygate.host.service import HostPlatform
from paygate.services.callback.models import GatewayIntent
from paygate.services.callback.schemas import IntentRecordResponse, ReconciliationOutcome


STATUS_CANCELLED = "cancelled"
WEBHOOK_EVENT_SUCCEEDED = "payment_intent.succeeded"

MESSAGE_SUCCESS = "Payment successful."
MESSAGE_ALREADY_PROCESSED = "Payment already processed."
MESSAGE_CANCELLED = "Payment cancelled."


class _LinkConflict(Exception):
    """The intent link changed underneath an in-flight commit."""


class _Run:
    """Tracks one reconciliation through the state machine."""

    def __init__(self, intent_id: str | None) -> None:
        self.intent_id = intent_id
        self.state = INITIAL

    def advance(self, new_state: str) -> None:
        validate_transition(self.state, new_state)
        self.state = new_state

    def committed(self, payment_id: str, replayed: bool) -> ReconciliationOutcome:
        self.advance(COMMITTED)
        return ReconciliationOutcome(
            intent_id=self.intent_id,
            state=self.state,
            success=True,
            code="already_processed" if replayed else "ok",
            message=MESSAGE_ALREADY_PROCESSED if replayed else MESSAGE_SUCCESS,
            payment_id=payment_id,
            replayed=replayed,
        )

    def failed(self, code: str, message: str) -> ReconciliationOutcome:
        if self.state != FAILED:
            self.advance(FAILED)
        return ReconciliationOutcome(
            intent_id=self.intent_id,
            state=self.state,
            success=False,
            code=code,
            message=message,
        )


def status_redirect_url(
    component: str,
    paymentarea: str,
    itemid,
    outcome: ReconciliationOutcome,
    status_page_url: str | None = None,
) -> str:
    """Build the status-page URL carrying the payable and the success flag."""

    base = status_page_url or settings.status_page_url
    separator = "&" if "?" in base else "?"
    query = urlencode(
        {
            "component": component,
            "paymentarea": paymentarea,
            "itemid": itemid,
            "success": 1 if outcome.success else 0,
            "message": outcome.message,
        }
    )
    return f"{base}{separator}{query}"


class CallbackReconciler:
    """The only writer of completed local payments for this gateway."""

    def __init__(
        self,
        session_factory,
        host: HostPlatform | None = None,
        client_factory=GatewayClient,
        service_name: str = "callback",
    ) -> None:
        self.session_factory = session_factory
        self.host = host or HostPlatform()
        self.client_factory = client_factory
        self.service_name = service_name

    def reconcile(
        self,
        ref: PayableReference,
        intent_id: str | None,
        status_signal: str | None = None,
        payer_id: str | None = None,
        source: str = "callback",
    ) -> ReconciliationOutcome:
        """Drive one delivery to a terminal state. Never raises."""

        run = _Run(intent_id)
        with bind_context(payable=ref.label(), payment_intent_id=intent_id):
            try:
                outcome = self._reconcile(run, ref, intent_id, status_signal, payer_id, source)
            except PaymentGatewayError as exc:
                logger.warning(
                    "reconciliation failed source=%s intent_id=%s code=%s detail=%s",
                    source,
                    intent_id,
                    exc.code,
                    exc.detail,
                )
                outcome = run.failed(exc.code, exc.message)
            except Exception as exc:
                logger.exception("reconciliation internal error source=%s intent_id=%s: %s", source, intent_id, exc)
                error = InternalError()
                outcome = run.failed(error.code, error.message)
        callback_outcomes_total.labels(
            service=self.service_name,
            source=source,
            state=outcome.state,
            code=outcome.code,
        ).inc()
        return outcome

    def _reconcile(
        self,
        run: _Run,
        ref: PayableReference,
        intent_id: str | None,
        status_signal: str | None,
        payer_id: str | None,
        source: str,
    ) -> ReconciliationOutcome:
        if (status_signal or "").lower() == STATUS_CANCELLED:
            logger.info("payment cancelled by payer payable=%s", ref.label())
            return run.failed(STATUS_CANCELLED, MESSAGE_CANCELLED)
        if not intent_id:
            raise InvalidCallback(detail="no payment intent id")
        run.advance(PENDING_VERIFICATION)

        with self.session_factory() as db:
            config = self.host.load_gateway_config(db, ref)
        if config is None or not config.is_complete:
            raise NotConfigured(detail=f"no usable credentials for {ref.label()}")

        try:
            with self.client_factory(config) as client:
                intent = client.verify_intent(intent_id)
        except VerificationError:
            raise
        except PaymentGatewayError as exc:
            raise VerificationError(detail=str(exc)) from exc

        if not intent.succeeded:
            logger.info("intent not succeeded intent_id=%s status=%s", intent_id, intent.status)
            raise PaymentNotCleared(detail=f"status={intent.status}")
        self._check_binding(ref, intent)
        payer_id = payer_id or (intent.metadata or {}).get("payer_id")
        if not payer_id:
            raise InvalidCallback(detail="no payer for intent")
        run.advance(VERIFIED_SUCCESS)

        return self._commit(run, ref, intent, str(payer_id), source)

    def _find_record(self, db, intent_id: str) -> GatewayIntent | None:
        return db.execute(
            select(GatewayIntent).where(GatewayIntent.intent_id == intent_id)
        ).scalar_one_or_none()

    def _check_binding(self, ref: PayableReference, intent: PaymentIntent) -> None:
        """Reject intents created for a different payable than the callback names."""

        metadata = intent.metadata or {}
        expected = ref.as_metadata()
        for key, value in expected.items():
            if key in metadata and str(metadata[key]) != value:
                raise InvalidCallback(detail=f"intent {intent.id} was created for another payable ({key})")

    def _commit(
        self,
        run: _Run,
        ref: PayableReference,
        intent: PaymentIntent,
        payer_id: str,
        source: str,
    ) -> ReconciliationOutcome:
        with self.session_factory() as db:
            payable, cost = self.host.trusted_cost(db, ref)
            if intent.amount is not None and intent.currency:
                charged = self.host.round_cost(intent.amount, intent.currency, Decimal("0"))
                if intent.currency.upper() != payable.currency or charged != cost:
                    raise PaymentNotCleared(
                        detail=f"charged {charged} {intent.currency} but expected {cost} {payable.currency}"
                    )

            existing = self._find_record(db, intent.id)
            if existing is not None and self.host.is_payment_complete(db, existing.payment_id):
                return self._replay(run, existing.payment_id, source)

            try:
                payment_id = self.host.persist_local_payment(
                    db, payable.account_id, ref, payer_id, cost, payable.currency
                )
                if existing is None:
                    db.add(GatewayIntent(intent_id=intent.id, payment_id=payment_id))
                    db.flush()
                else:
                    # Guarded by the previous link so a concurrent relink loses.
                    result = db.execute(
                        update(GatewayIntent)
                        .where(
                            GatewayIntent.id == existing.id,
                            GatewayIntent.payment_id == existing.payment_id,
                        )
                        .values(payment_id=payment_id, updated_at=datetime.now(timezone.utc))
                    )
                    if result.rowcount != 1:
                        raise _LinkConflict(f"intent {intent.id} was relinked concurrently")
                self.host.deliver_order(db, ref, payment_id, payer_id)
                self.host.mark_payment_complete(db, payment_id)
                db.commit()
            except (IntegrityError, _LinkConflict) as exc:
                db.rollback()
                logger.info("concurrent commit detected intent_id=%s: %s", intent.id, exc)
                return self._after_conflict(run, intent.id, source)
            except Exception:
                db.rollback()
                raise

        logger.info(
            "payment committed intent_id=%s payment_id=%s payable=%s cost=%s %s",
            intent.id,
            payment_id,
            ref.label(),
            cost,
            payable.currency,
        )
        return run.committed(payment_id, replayed=False)

    def _after_conflict(self, run: _Run, intent_id: str, source: str) -> ReconciliationOutcome:
        """Another writer linked this intent first; succeed only if it completed."""

        with self.session_factory() as db:
            record = self._find_record(db, intent_id)
            if record is not None and self.host.is_payment_complete(db, record.payment_id):
                return self._replay(run, record.payment_id, source)
        raise InternalError(detail=f"conflicting commit for {intent_id} did not complete")

    def _replay(self, run: _Run, payment_id: str, source: str) -> ReconciliationOutcome:
        logger.info("duplicate callback skipped intent_id=%s payment_id=%s", run.intent_id, payment_id)
        duplicate_callbacks_skipped_total.labels(service=self.service_name, source=source).inc()
        return run.committed(payment_id, replayed=True)

    def handle_webhook(self, raw_body: bytes, signature_header: str | None) -> tuple[str, ReconciliationOutcome | None]:
        """Verify a signed webhook and reconcile succeeded intents.

        Returns the event name and the outcome (None for events that need no
        action). Raises `InvalidCallback`/`SignatureRejected`/`NotConfigured`
        before anything is trusted.
        """

        try:
            event = json.loads(raw_body)
        except ValueError as exc:
            raise InvalidCallback(detail="webhook body is not JSON") from exc
        if not isinstance(event, dict):
            raise InvalidCallback(detail="webhook body is not an object")
        name = str(event.get("name") or "")
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        intent_obj = data.get("object") if isinstance(data.get("object"), dict) else {}
        intent_id = intent_obj.get("id")
        if intent_id is not None and not isinstance(intent_id, str):
            raise InvalidCallback(detail="webhook intent id is not a string")
        metadata = intent_obj.get("metadata") if isinstance(intent_obj.get("metadata"), dict) else {}
        try:
            ref = PayableReference(
                component=metadata.get("component", ""),
                payment_area=metadata.get("payment_area", ""),
                item_id=metadata.get("item_id", -1),
            )
        except ValidationError as exc:
            raise InvalidCallback(detail="webhook intent carries no payable reference") from exc

        with self.session_factory() as db:
            config = self.host.load_gateway_config(db, ref)
        if config is None or not config.webhook_secret:
            raise NotConfigured(detail=f"no webhook secret for {ref.label()}")
        if not verify_webhook_signature(
            config.webhook_secret,
            signature_header or "",
            raw_body,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        ):
            webhook_signature_rejected_total.labels(service=self.service_name).inc()
            raise SignatureRejected(detail=f"event={name} intent_id={intent_id}")

        if name != WEBHOOK_EVENT_SUCCEEDED:
            logger.info("webhook ignored event=%s intent_id=%s", name, intent_id)
            return name, None
        # Payer comes from the verified intent's metadata, not from the webhook body.
        return name, self.reconcile(ref, intent_id, payer_id=None, source="webhook")

    def lookup(self, intent_id: str) -> IntentRecordResponse | None:
        """Local reconciliation state for one intent id."""

        with self.session_factory() as db:
            record = self._find_record(db, intent_id)
            if record is None:
                return None
            payment = self.host.get_payment(db, record.payment_id)
            return IntentRecordResponse(
                intent_id=record.intent_id,
                payment_id=record.payment_id,
                payment_status=payment.status if payment else None,
                created_at=record.created_at.isoformat() if record.created_at else None,
                updated_at=record.updated_at.isoformat() if record.updated_at else None,
            )
