"""Validated shapes for gateway configuration and processor API responses."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


INTENT_STATUS_SUCCEEDED = "SUCCEEDED"

SANDBOX_BASE_URL = "https://api-demo.airwallex.com"
PRODUCTION_BASE_URL = "https://api.airwallex.com"

INTEGRATION_MODE_REDIRECT = "redirect"
INTEGRATION_MODE_SDK = "sdk"


class GatewayConfig(BaseModel):
    """Per-account Airwallex credentials, read fresh for every operation."""

    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    api_key: str = ""
    webhook_secret: str = ""
    environment: str = "sandbox"
    integration_mode: str = INTEGRATION_MODE_REDIRECT

    @property
    def sandbox(self) -> bool:
        return self.environment != "live"

    @property
    def base_url(self) -> str:
        return SANDBOX_BASE_URL if self.sandbox else PRODUCTION_BASE_URL

    @property
    def sdk_environment(self) -> str:
        """Environment name expected by the browser SDK (`demo`/`prod`)."""

        return "demo" if self.sandbox else "prod"

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id) and bool(self.api_key)


class AuthTokenResponse(BaseModel):
    token: str = Field(min_length=1)
    expires_at: str | None = None


class NextAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    redirect_url: str | None = None


class PaymentIntent(BaseModel):
    """Processor-owned intent. `id` is always required; verification also needs `status`."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    status: str | None = None
    client_secret: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    merchant_order_id: str | None = None
    next_action: NextAction | None = None
    metadata: dict[str, Any] | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == INTENT_STATUS_SUCCEEDED

    @property
    def redirect_url(self) -> str | None:
        if self.next_action is None:
            return None
        return self.next_action.redirect_url or None
