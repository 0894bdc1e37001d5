"""API request/response schemas for checkout initiation."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_serializer

from paygate.host.schemas import PayableReference


class CheckoutRequest(BaseModel):
    """Body posted by the payment modal; field names follow the host framework."""

    component: str = Field(min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    paymentarea: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    itemid: int = Field(ge=0)

    def reference(self) -> PayableReference:
        return PayableReference(component=self.component, payment_area=self.paymentarea, item_id=self.itemid)


class _CheckoutResult(BaseModel):
    payment_intent_id: str
    cost: Decimal
    currency: str

    @field_serializer("cost")
    def _serialize_cost(self, cost: Decimal) -> float:
        return float(cost)


class RedirectCheckout(_CheckoutResult):
    """Server-driven hosted page: the browser navigates to `hpp_redirect_url`."""

    mode: Literal["redirect"] = "redirect"
    hpp_redirect_url: str


class SdkCheckout(_CheckoutResult):
    """SDK-driven hosted page: the browser SDK redirects using the client secret."""

    mode: Literal["sdk"] = "sdk"
    client_id: str
    client_secret: str
    return_url: str
    cancel_url: str
    environment: str


CheckoutResult = RedirectCheckout | SdkCheckout


class ErrorResponse(BaseModel):
    code: str
    message: str
