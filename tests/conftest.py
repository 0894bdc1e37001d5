"""Shared fixtures: in-memory database, seeded payable and a fake processor."""

import json
import os

os.environ.setdefault("POSTGRES_DSN", "sqlite://")
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")
os.environ.setdefault("SERVICE_NAME", "paygate-tests")

from decimal import Decimal

import httpx
import pytest

from paygate.common.db import Base, build_engine, build_session_factory
from paygate.gateway.client import CREATE_INTENT_PATH, LOGIN_PATH, GatewayClient
from paygate.host.models import GatewayConfiguration, Payable, PaymentAccount
from paygate.host.schemas import PayableReference
from paygate.host.service import HostPlatform
from paygate.services.callback import models as callback_models  # noqa: F401


INTENT_PREFIX = "/api/v1/pa/payment_intents/"


class FakeProcessor:
    """Minimal Airwallex stand-in served through `httpx.MockTransport`."""

    def __init__(self) -> None:
        self.intents: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.create_bodies: list[dict] = []
        self.login_status = 200
        self.login_body: dict | None = None
        self.create_status = 201
        self.create_body: dict | None = None
        self.create_failures = 0
        self.verify_status = 200

    def add_intent(self, intent_id: str, status: str = "SUCCEEDED", **fields) -> dict:
        intent = {
            "id": intent_id,
            "status": status,
            "amount": 102.5,
            "currency": "USD",
            "metadata": {"component": "enrol_fee", "payment_area": "fee", "item_id": "7", "payer_id": "u-1"},
        }
        intent.update(fields)
        self.intents[intent_id] = intent
        return intent

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == LOGIN_PATH:
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"code": "credentials_invalid"})
            body = self.login_body if self.login_body is not None else {"token": "tok-123", "expires_at": "soon"}
            return httpx.Response(200, json=body)

        if path == CREATE_INTENT_PATH:
            if self.create_failures:
                self.create_failures -= 1
                raise httpx.ConnectTimeout("connect timed out", request=request)
            body = json.loads(request.read())
            self.create_bodies.append(body)
            if self.create_status >= 400:
                return httpx.Response(self.create_status, json={"code": "validation_error"})
            if self.create_body is not None:
                return httpx.Response(self.create_status, json=self.create_body)
            intent_id = f"int_{len(self.intents) + 1:04d}"
            intent = {
                "id": intent_id,
                "status": "REQUIRES_PAYMENT_METHOD",
                "client_secret": f"cs_{intent_id}",
                "amount": body["amount"],
                "currency": body["currency"],
                "merchant_order_id": body["merchant_order_id"],
                "metadata": body.get("metadata"),
                "next_action": {
                    "type": "redirect",
                    "redirect_url": f"https://checkout-demo.airwallex.com/hpp?intent_id={intent_id}",
                },
            }
            self.intents[intent_id] = intent
            return httpx.Response(self.create_status, json=intent)

        if path.startswith(INTENT_PREFIX):
            intent = self.intents.get(path[len(INTENT_PREFIX):])
            if intent is None:
                return httpx.Response(404, json={"code": "resource_not_found"})
            if self.verify_status != 200:
                return httpx.Response(self.verify_status, json={"code": "unavailable"})
            return httpx.Response(200, json=intent)

        return httpx.Response(404, json={"code": "not_found"})


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = build_session_factory(engine)
    with factory() as db:
        account = PaymentAccount(name="default", enabled=True)
        db.add(account)
        db.flush()
        db.add(
            GatewayConfiguration(
                account_id=account.account_id,
                gateway="airwallex",
                enabled=True,
                client_id="cid",
                api_key="key",
                webhook_secret="whsec",
                environment="sandbox",
                integration_mode="redirect",
            )
        )
        db.add(
            Payable(
                component="enrol_fee",
                payment_area="fee",
                item_id=7,
                account_id=account.account_id,
                amount=Decimal("100.00"),
                currency="USD",
                description="Course enrolment",
            )
        )
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def host():
    return HostPlatform(gateway_name="airwallex", surcharges={"airwallex": Decimal("2.5")})


@pytest.fixture
def ref():
    return PayableReference(component="enrol_fee", payment_area="fee", item_id=7)


@pytest.fixture
def fake():
    return FakeProcessor()


@pytest.fixture
def client_factory(fake):
    """Build gateway clients the way services do, wired to the fake processor."""

    def factory(config):
        http = httpx.Client(base_url=config.base_url, transport=httpx.MockTransport(fake.handler))
        return GatewayClient(config, max_retries=2, backoff_seconds=0, http_client=http)

    return factory
