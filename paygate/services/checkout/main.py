"""HTTP surface for checkout initiation called by the payment modal."""

from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException

from paygate.common.config import settings
from paygate.common.db import SessionLocal
from paygate.common.errors import AuthError, IntentCreationFailed, NotConfigured, PaymentGatewayError
from paygate.common.http import install_probes, install_request_metrics
from paygate.common.logging import bind_context, configure_logging
from paygate.common.startup import log_startup_config
from paygate.common.tracing import instrument_app, setup_tracing
from paygate.services.checkout.schemas import CheckoutRequest, RedirectCheckout, SdkCheckout
from paygate.services.checkout.service import CheckoutService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    ["SERVICE_NAME", "POSTGRES_DSN", "CALLBACK_URL", "GATEWAY_NAME", "GATEWAY_TIMEOUT_SECONDS"],
)
service = CheckoutService(SessionLocal)

app = FastAPI(title="paygate Checkout")
instrument_app(app)
install_request_metrics(app)
install_probes(app)

ERROR_STATUS = {
    NotConfigured: 409,
    AuthError: 502,
    IntentCreationFailed: 502,
}


def _error_response(exc: PaymentGatewayError) -> HTTPException:
    """Map typed gateway failures to an inline modal error."""

    status_code = ERROR_STATUS.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


@app.post("/checkout/hpp-config", response_model=RedirectCheckout | SdkCheckout)
def get_hpp_config(
    req: CheckoutRequest,
    x_user_id: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Create a payment intent and return what the browser needs to reach the hosted page."""

    if not x_user_id:
        raise HTTPException(status_code=401, detail={"code": "unauthenticated", "message": "Login required."})
    with bind_context(trace_id=x_trace_id or str(uuid4())):
        try:
            return service.start_checkout(req.reference(), payer_id=x_user_id)
        except PaymentGatewayError as exc:
            raise _error_response(exc) from exc
