"""Reconciliation results and lookup responses."""

from pydantic import BaseModel


class ReconciliationOutcome(BaseModel):
    """Terminal result of one callback or webhook delivery."""

    intent_id: str | None
    state: str
    success: bool
    code: str
    message: str
    payment_id: str | None = None
    replayed: bool = False


class IntentRecordResponse(BaseModel):
    intent_id: str
    payment_id: str
    payment_status: str | None
    created_at: str | None
    updated_at: str | None


class WebhookAck(BaseModel):
    received: bool = True
    event: str | None = None
    state: str | None = None
    code: str | None = None
