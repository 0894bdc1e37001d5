"""Hosted-page return endpoint, signed webhook receiver and intent lookup."""

from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from paygate.common.config import settings
from paygate.common.db import SessionLocal
from paygate.common.errors import InvalidCallback, NotConfigured, SignatureRejected
from paygate.common.http import install_probes, install_request_metrics
from paygate.common.logging import bind_context, configure_logging, logger
from paygate.common.startup import log_startup_config
from paygate.common.state_machine import FAILED
from paygate.common.tracing import instrument_app, setup_tracing
from paygate.host.schemas import PayableReference
from paygate.services.callback.schemas import IntentRecordResponse, ReconciliationOutcome, WebhookAck
from paygate.services.callback.service import CallbackReconciler, status_redirect_url

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    ["SERVICE_NAME", "POSTGRES_DSN", "STATUS_PAGE_URL", "GATEWAY_NAME", "WEBHOOK_TOLERANCE_SECONDS"],
)
service = CallbackReconciler(SessionLocal)

app = FastAPI(title="paygate Callback")
instrument_app(app)
install_request_metrics(app)
install_probes(app)

# Failures the processor should retry by redelivering the webhook.
RETRYABLE_CODES = {"verification_error", "internal_error", "not_configured"}


@app.get("/callback")
def hpp_callback(
    component: str | None = None,
    paymentarea: str | None = None,
    itemid: str | None = None,
    payment_intent_id: str | None = None,
    status: str | None = None,
    x_user_id: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Reconcile the browser's return from the hosted page and redirect to the status page."""

    with bind_context(trace_id=x_trace_id or str(uuid4())):
        outcome = _reconcile_return(component, paymentarea, itemid, payment_intent_id, status, x_user_id)
    return RedirectResponse(
        status_redirect_url(component or "", paymentarea or "", itemid or "", outcome),
        status_code=303,
    )


def _rejected(payment_intent_id: str | None) -> ReconciliationOutcome:
    error = InvalidCallback()
    return ReconciliationOutcome(
        intent_id=payment_intent_id,
        state=FAILED,
        success=False,
        code=error.code,
        message=error.message,
    )


def _reconcile_return(component, paymentarea, itemid, payment_intent_id, status, payer_id) -> ReconciliationOutcome:
    if component is None or paymentarea is None or itemid is None:
        logger.warning(
            "callback rejected: incomplete payable component=%s paymentarea=%s itemid=%s",
            component,
            paymentarea,
            itemid,
        )
        return _rejected(payment_intent_id)
    try:
        ref = PayableReference(component=component, payment_area=paymentarea, item_id=itemid)
    except ValidationError:
        logger.warning("callback rejected: malformed payable component=%s paymentarea=%s", component, paymentarea)
        return _rejected(payment_intent_id)
    return service.reconcile(ref, payment_intent_id, status_signal=status, payer_id=payer_id)


@app.post("/webhooks/airwallex", response_model=WebhookAck)
async def airwallex_webhook(
    request: Request,
    x_airwallex_signature: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Verify and process one processor webhook delivery."""

    raw_body = await request.body()
    try:
        with bind_context(trace_id=x_trace_id or str(uuid4())):
            name, outcome = await run_in_threadpool(service.handle_webhook, raw_body, x_airwallex_signature)
    except SignatureRejected as exc:
        raise HTTPException(status_code=401, detail={"code": exc.code, "message": exc.message}) from exc
    except InvalidCallback as exc:
        raise HTTPException(status_code=400, detail={"code": exc.code, "message": exc.message}) from exc
    except NotConfigured as exc:
        raise HTTPException(status_code=404, detail={"code": exc.code, "message": exc.message}) from exc
    if outcome is None:
        return WebhookAck(event=name)
    if outcome.code in RETRYABLE_CODES:
        raise HTTPException(status_code=503, detail={"code": outcome.code, "message": outcome.message})
    return WebhookAck(event=name, state=outcome.state, code=outcome.code)


@app.get("/intents/{intent_id}", response_model=IntentRecordResponse)
def get_intent_record(intent_id: str):
    """Fetch local reconciliation state for one intent."""

    record = service.lookup(intent_id)
    if record is None:
        raise HTTPException(status_code=404, detail="intent not reconciled")
    return record
