"""Checkout initiation: payable → processor intent → hosted-page data.

Cost and currency are always recomputed from the host's pricing; nothing the
browser sends other than the payable reference is used.
"""

import time
from urllib.parse import urlencode
from uuid import uuid4

from paygate.common.config import settings
from paygate.common.errors import AuthError, IntentCreationFailed, NotConfigured, PaymentGatewayError
from paygate.common.logging import bind_context, logger, payment_intent_id_ctx
from paygate.common.metrics import checkout_requests_total
from paygate.gateway.client import GatewayClient
from paygate.gateway.schemas import INTEGRATION_MODE_SDK
from paygate.host.schemas import PayableReference
from paygate.host.service import HostPlatform
from paygate.services.checkout.schemas import CheckoutResult, RedirectCheckout, SdkCheckout


def callback_urls(ref: PayableReference, callback_url: str | None = None) -> tuple[str, str]:
    """Return `(return_url, cancel_url)` pointing at the callback endpoint.

    Only the payable reference is embedded; the callback re-resolves pricing.
    """

    base = callback_url or settings.callback_url
    separator = "&" if "?" in base else "?"
    query = urlencode({"component": ref.component, "paymentarea": ref.payment_area, "itemid": ref.item_id})
    return_url = f"{base}{separator}{query}"
    return return_url, f"{return_url}&status=cancelled"


def merchant_order_id(ref: PayableReference, prefix: str | None = None) -> str:
    """Unique per attempt: payable reference + unix time + random suffix."""

    return "_".join(
        [
            prefix or settings.merchant_order_prefix,
            ref.component,
            ref.payment_area,
            str(ref.item_id),
            str(int(time.time())),
            uuid4().hex[:10],
        ]
    )


class CheckoutService:
    """Creates one processor intent per checkout attempt."""

    def __init__(
        self,
        session_factory,
        host: HostPlatform | None = None,
        client_factory=GatewayClient,
        service_name: str = "checkout",
    ) -> None:
        self.session_factory = session_factory
        self.host = host or HostPlatform()
        self.client_factory = client_factory
        self.service_name = service_name

    def start_checkout(self, ref: PayableReference, payer_id: str | None = None) -> CheckoutResult:
        mode = "unknown"
        with bind_context(payable=ref.label(), payment_intent_id=None):
            try:
                result = self._start_checkout(ref, payer_id)
                mode = result.mode
            except PaymentGatewayError as exc:
                checkout_requests_total.labels(service=self.service_name, mode=mode, outcome=exc.code).inc()
                logger.warning("checkout failed payable=%s code=%s detail=%s", ref.label(), exc.code, exc.detail)
                raise
        checkout_requests_total.labels(service=self.service_name, mode=mode, outcome="ok").inc()
        return result

    def _start_checkout(self, ref: PayableReference, payer_id: str | None) -> CheckoutResult:
        with self.session_factory() as db:
            config = self.host.load_gateway_config(db, ref)
            if config is None or not config.is_complete:
                raise NotConfigured(detail=f"no usable credentials for {ref.label()}")
            payable, cost = self.host.trusted_cost(db, ref)

        return_url, cancel_url = callback_urls(ref)
        order_id = merchant_order_id(ref)
        metadata = ref.as_metadata()
        if payer_id:
            metadata["payer_id"] = payer_id
        description = payable.description or f"Payment for {ref.component} {ref.item_id}"

        try:
            with self.client_factory(config) as client:
                intent = client.create_intent(
                    cost,
                    payable.currency,
                    order_id,
                    return_url,
                    cancel_url,
                    description,
                    metadata=metadata,
                )
        except (AuthError, IntentCreationFailed):
            raise
        except PaymentGatewayError as exc:
            raise IntentCreationFailed(detail=str(exc)) from exc
        payment_intent_id_ctx.set(intent.id)

        if config.integration_mode == INTEGRATION_MODE_SDK:
            if not intent.client_secret:
                raise IntentCreationFailed(detail=f"intent {intent.id} has no client secret")
            return SdkCheckout(
                client_id=config.client_id,
                payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                cost=cost,
                currency=payable.currency,
                return_url=return_url,
                cancel_url=cancel_url,
                environment=config.sdk_environment,
            )

        if not intent.redirect_url:
            raise IntentCreationFailed(detail=f"intent {intent.id} has no redirect url")
        logger.info("checkout ready payable=%s intent_id=%s order_id=%s", ref.label(), intent.id, order_id)
        return RedirectCheckout(
            payment_intent_id=intent.id,
            hpp_redirect_url=intent.redirect_url,
            cost=cost,
            currency=payable.currency,
        )
