"""Airwallex REST client used for one logical operation at a time.

A client authenticates once at construction and keeps the bearer token for its
own lifetime only; nothing is shared across requests.
"""

import re
import time
from decimal import Decimal
from time import perf_counter
from typing import Any
from uuid import uuid4

import httpx
from pydantic import ValidationError

from paygate.common.config import settings
from paygate.common.errors import (
    AuthError,
    IntentCreationFailed,
    PaymentGatewayError,
    VerificationError,
)
from paygate.common.logging import logger
from paygate.common.metrics import gateway_errors_total, gateway_request_duration_seconds, retries_total
from paygate.common.tracing import gateway_span
from paygate.gateway.schemas import AuthTokenResponse, GatewayConfig, PaymentIntent
from paygate.gateway.signatures import verify_webhook_signature


LOGIN_PATH = "/api/v1/authentication/login"
CREATE_INTENT_PATH = "/api/v1/pa/payment_intents/create"
INTENT_PATH = "/api/v1/pa/payment_intents/{intent_id}"

_INTENT_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


class GatewayClient:
    """Thin, validating wrapper around the processor API."""

    def __init__(
        self,
        config: GatewayConfig,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float = 0.5,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.max_retries = settings.gateway_max_retries if max_retries is None else max_retries
        self.backoff_seconds = backoff_seconds
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(
            base_url=config.base_url,
            timeout=settings.gateway_timeout_seconds if timeout is None else timeout,
        )
        try:
            self.token = self.authenticate()
        except Exception:
            self.close()
            raise

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        error_cls: type[PaymentGatewayError],
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retries: int = 0,
    ) -> dict[str, Any]:
        """Send one call (plus transport retries) and return the decoded JSON object."""

        attempts = retries + 1
        for attempt in range(1, attempts + 1):
            started = perf_counter()
            try:
                with gateway_span(operation, method=method, attempt=attempt) as span:
                    response = self._http.request(method, path, json=json, headers=headers)
                    span.set_attribute("http.status_code", response.status_code)
            except httpx.TransportError as exc:
                if attempt < attempts:
                    self._backoff(operation, attempt, exc)
                    continue
                raise self._failure(operation, error_cls, f"transport failure: {exc!r}") from exc
            finally:
                gateway_request_duration_seconds.labels(
                    service=settings.service_name,
                    operation=operation,
                ).observe(max(0.0, perf_counter() - started))

            if response.status_code >= 500 and attempt < attempts:
                self._backoff(operation, attempt, f"http {response.status_code}")
                continue
            if response.status_code >= 400:
                raise self._failure(operation, error_cls, f"http {response.status_code}: {response.text[:200]}")
            try:
                data = response.json()
            except ValueError as exc:
                raise self._failure(operation, error_cls, "response is not JSON") from exc
            if not isinstance(data, dict):
                raise self._failure(operation, error_cls, "response is not a JSON object")
            return data
        raise self._failure(operation, error_cls, "no attempts made")

    def _backoff(self, operation: str, attempt: int, reason) -> None:
        retries_total.labels(service=settings.service_name, dependency="airwallex").inc()
        # Exponential backoff: base, 2x base, 4x base.
        delay = self.backoff_seconds * 2 ** (attempt - 1)
        logger.warning(
            "airwallex retry operation=%s attempt=%s backoff_s=%s reason=%s",
            operation,
            attempt,
            delay,
            reason,
        )
        time.sleep(delay)

    def _failure(
        self, operation: str, error_cls: type[PaymentGatewayError], detail: str
    ) -> PaymentGatewayError:
        gateway_errors_total.labels(
            service=settings.service_name,
            operation=operation,
            error_type=error_cls.code,
        ).inc()
        logger.warning("airwallex call failed operation=%s detail=%s", operation, detail)
        return error_cls(detail=f"{operation}: {detail}")

    def _auth_headers(self, **extra: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        headers.update(extra)
        return headers

    def authenticate(self) -> str:
        """Exchange client id + API key for a bearer token."""

        data = self._request(
            "authenticate",
            "POST",
            LOGIN_PATH,
            AuthError,
            json={"client_id": self.config.client_id, "api_key": self.config.api_key},
            headers={"x-client-id": self.config.client_id, "x-api-key": self.config.api_key},
        )
        try:
            return AuthTokenResponse.model_validate(data).token
        except ValidationError as exc:
            raise self._failure("authenticate", AuthError, "response has no token") from exc

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        merchant_order_id: str,
        return_url: str,
        cancel_url: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        """Create a hosted-page intent.

        A fresh request id is generated per call and reused across transport
        retries of that call, so retries never create a second remote intent.
        """

        request_id = str(uuid4())
        body: dict[str, Any] = {
            "request_id": request_id,
            "amount": float(amount),
            "currency": currency,
            "merchant_order_id": merchant_order_id,
            "description": description,
            "payment_method_options": {
                "hpp": {
                    "return_url": return_url,
                    "cancel_url": cancel_url,
                },
            },
            "confirm": False,
        }
        if metadata:
            body["metadata"] = metadata
        data = self._request(
            "create_intent",
            "POST",
            CREATE_INTENT_PATH,
            IntentCreationFailed,
            json=body,
            headers=self._auth_headers(**{"x-request-id": request_id}),
            retries=self.max_retries,
        )
        try:
            intent = PaymentIntent.model_validate(data)
        except ValidationError as exc:
            raise self._failure("create_intent", IntentCreationFailed, "response has no intent id") from exc
        logger.info(
            "payment intent created intent_id=%s merchant_order_id=%s request_id=%s",
            intent.id,
            merchant_order_id,
            request_id,
        )
        return intent

    def verify_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the authoritative intent status from the processor."""

        if not isinstance(intent_id, str) or not _INTENT_ID_RE.match(intent_id):
            raise self._failure("verify_intent", VerificationError, "malformed intent id")
        data = self._request(
            "verify_intent",
            "GET",
            INTENT_PATH.format(intent_id=intent_id),
            VerificationError,
            headers=self._auth_headers(),
        )
        try:
            intent = PaymentIntent.model_validate(data)
        except ValidationError as exc:
            raise self._failure("verify_intent", VerificationError, "malformed intent payload") from exc
        if not intent.status:
            raise self._failure("verify_intent", VerificationError, "intent payload has no status")
        if intent.id != intent_id:
            raise self._failure("verify_intent", VerificationError, "intent id mismatch")
        return intent

    def verify_webhook_signature(self, signature_header: str, raw_payload: bytes | str) -> bool:
        return verify_webhook_signature(
            self.config.webhook_secret,
            signature_header,
            raw_payload,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        )
