"""Reconciliation of hosted-page returns and signed webhooks."""

import json

import pytest
from sqlalchemy import select, update

from paygate.common.errors import InvalidCallback, NotConfigured, SignatureRejected
from paygate.common.state_machine import COMMITTED, FAILED
from paygate.gateway.signatures import build_signature_header
from paygate.host.models import (
    PAYMENT_STATUS_COMPLETE,
    PAYMENT_STATUS_PENDING,
    GatewayConfiguration,
    OrderDelivery,
    Payment,
)
from paygate.host.schemas import PayableReference
from paygate.services.callback.models import GatewayIntent
from paygate.services.callback.service import CallbackReconciler, status_redirect_url


@pytest.fixture
def deliveries(host):
    delivered = []
    host.register_delivery_handler("enrol_fee", lambda db, delivery: delivered.append(delivery.payment_id))
    return delivered


@pytest.fixture
def reconciler(session_factory, host, client_factory, deliveries):
    return CallbackReconciler(session_factory, host=host, client_factory=client_factory)


def _rows(session_factory, model):
    with session_factory() as db:
        return db.execute(select(model)).scalars().all()


def test_succeeded_intent_commits_once(reconciler, session_factory, fake, ref, deliveries):
    fake.add_intent("int_paid")

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.success
    assert outcome.state == COMMITTED
    assert outcome.code == "ok"
    assert not outcome.replayed
    [payment] = _rows(session_factory, Payment)
    [record] = _rows(session_factory, GatewayIntent)
    assert payment.status == PAYMENT_STATUS_COMPLETE
    assert payment.payer_id == "u-1"
    assert str(payment.amount.normalize()) == "102.5"
    assert record.intent_id == "int_paid"
    assert record.payment_id == payment.id == outcome.payment_id
    assert deliveries == [payment.id]


def test_duplicate_delivery_is_replayed(reconciler, session_factory, fake, ref, deliveries):
    fake.add_intent("int_paid")

    first = reconciler.reconcile(ref, "int_paid", payer_id="u-1")
    second = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert first.success and second.success
    assert second.state == COMMITTED
    assert second.replayed
    assert second.code == "already_processed"
    assert second.payment_id == first.payment_id
    assert len(_rows(session_factory, Payment)) == 1
    assert len(_rows(session_factory, GatewayIntent)) == 1
    assert len(_rows(session_factory, OrderDelivery)) == 1
    assert len(deliveries) == 1


def test_cancelled_makes_no_network_call(reconciler, session_factory, fake, ref):
    outcome = reconciler.reconcile(ref, "int_paid", status_signal="cancelled", payer_id="u-1")

    assert not outcome.success
    assert outcome.state == FAILED
    assert outcome.code == "cancelled"
    assert fake.requests == []
    assert _rows(session_factory, GatewayIntent) == []


def test_missing_intent_id_is_invalid_callback(reconciler, fake, ref):
    outcome = reconciler.reconcile(ref, None, payer_id="u-1")

    assert outcome.state == FAILED
    assert outcome.code == "invalid_callback"
    assert fake.requests == []


def test_failed_intent_is_not_cleared(reconciler, session_factory, fake, ref, deliveries):
    fake.add_intent("int_declined", status="FAILED")

    outcome = reconciler.reconcile(ref, "int_declined", payer_id="u-1")

    assert outcome.state == FAILED
    assert outcome.code == "payment_not_cleared"
    assert _rows(session_factory, Payment) == []
    assert deliveries == []


def test_unknown_intent_is_verification_error(reconciler, session_factory, ref):
    outcome = reconciler.reconcile(ref, "int_unknown", payer_id="u-1")

    assert outcome.code == "verification_error"
    assert _rows(session_factory, GatewayIntent) == []


def test_auth_failure_during_verify_is_verification_error(reconciler, fake, ref):
    fake.add_intent("int_paid")
    fake.login_status = 401

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.code == "verification_error"


def test_missing_credentials_fail(reconciler, session_factory, fake, ref):
    with session_factory() as db:
        db.execute(update(GatewayConfiguration).values(client_id=""))
        db.commit()

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.code == "not_configured"
    assert fake.requests == []


def test_amount_mismatch_is_not_cleared(reconciler, session_factory, fake, ref):
    fake.add_intent("int_cheap", amount=1.0)

    outcome = reconciler.reconcile(ref, "int_cheap", payer_id="u-1")

    assert outcome.code == "payment_not_cleared"
    assert _rows(session_factory, Payment) == []


def test_currency_mismatch_is_not_cleared(reconciler, fake, ref):
    fake.add_intent("int_eur", currency="EUR")

    outcome = reconciler.reconcile(ref, "int_eur", payer_id="u-1")

    assert outcome.code == "payment_not_cleared"


def test_intent_for_another_payable_is_rejected(reconciler, session_factory, fake, ref):
    fake.add_intent("int_other", metadata={"component": "enrol_fee", "payment_area": "fee", "item_id": "8"})

    outcome = reconciler.reconcile(ref, "int_other", payer_id="u-1")

    assert outcome.code == "invalid_callback"
    assert _rows(session_factory, Payment) == []


def test_payer_falls_back_to_intent_metadata(reconciler, session_factory, fake, ref):
    fake.add_intent("int_paid")

    outcome = reconciler.reconcile(ref, "int_paid")

    assert outcome.success
    [payment] = _rows(session_factory, Payment)
    assert payment.payer_id == "u-1"


def test_missing_payer_is_invalid_callback(reconciler, fake, ref):
    fake.add_intent("int_anon", metadata={})

    outcome = reconciler.reconcile(ref, "int_anon")

    assert outcome.code == "invalid_callback"


def test_delivery_failure_rolls_back_everything(reconciler, session_factory, host, fake, ref):
    def broken(db, delivery):
        raise RuntimeError("enrolment plugin is down")

    host.register_delivery_handler("enrol_fee", broken)
    fake.add_intent("int_paid")

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.state == FAILED
    assert outcome.code == "internal_error"
    assert _rows(session_factory, Payment) == []
    assert _rows(session_factory, GatewayIntent) == []
    assert _rows(session_factory, OrderDelivery) == []

    host.register_delivery_handler("enrol_fee", lambda db, delivery: None)
    assert reconciler.reconcile(ref, "int_paid", payer_id="u-1").code == "ok"


def test_concurrent_writer_falls_back_to_replay(reconciler, session_factory, fake, ref, monkeypatch):
    fake.add_intent("int_paid")
    first = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    # Simulate a second delivery that read before the first one committed.
    original = reconciler._find_record
    calls = []

    def stale_then_real(db, intent_id):
        calls.append(intent_id)
        return None if len(calls) == 1 else original(db, intent_id)

    monkeypatch.setattr(reconciler, "_find_record", stale_then_real)
    second = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert second.success
    assert second.replayed
    assert second.payment_id == first.payment_id
    assert len(calls) == 2
    assert len(_rows(session_factory, Payment)) == 1
    assert len(_rows(session_factory, OrderDelivery)) == 1


def test_pending_link_is_relinked_to_completed_payment(reconciler, session_factory, fake, ref):
    fake.add_intent("int_paid")
    with session_factory() as db:
        stale = Payment(
            account_id=1,
            component="enrol_fee",
            payment_area="fee",
            item_id=7,
            payer_id="u-1",
            amount=102.5,
            currency="USD",
            gateway="airwallex",
            status=PAYMENT_STATUS_PENDING,
        )
        db.add(stale)
        db.flush()
        db.add(GatewayIntent(intent_id="int_paid", payment_id=stale.id))
        db.commit()
        stale_id = stale.id

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.code == "ok"
    assert outcome.payment_id != stale_id
    [record] = _rows(session_factory, GatewayIntent)
    assert record.payment_id == outcome.payment_id


def test_lookup_reports_local_state(reconciler, fake, ref):
    fake.add_intent("int_paid")
    reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    record = reconciler.lookup("int_paid")

    assert record.payment_status == PAYMENT_STATUS_COMPLETE
    assert reconciler.lookup("int_nope") is None


def test_status_redirect_url_flags_outcome(reconciler, fake, ref):
    fake.add_intent("int_paid")
    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    url = status_redirect_url("enrol_fee", "fee", 7, outcome, "https://lms.example/status")

    assert url.startswith("https://lms.example/status?component=enrol_fee&paymentarea=fee&itemid=7")
    assert "success=1" in url


def _event(intent_id="int_paid", name="payment_intent.succeeded", metadata=None) -> bytes:
    if metadata is None:
        metadata = {"component": "enrol_fee", "payment_area": "fee", "item_id": "7"}
    return json.dumps(
        {"id": "evt_1", "name": name, "data": {"object": {"id": intent_id, "metadata": metadata}}}
    ).encode()


def test_signed_webhook_commits_through_the_same_path(reconciler, session_factory, fake, ref):
    fake.add_intent("int_paid")
    body = _event()

    name, outcome = reconciler.handle_webhook(body, build_signature_header("whsec", body))
    _, again = reconciler.handle_webhook(body, build_signature_header("whsec", body))

    assert name == "payment_intent.succeeded"
    assert outcome.code == "ok"
    assert again.replayed
    [payment] = _rows(session_factory, Payment)
    assert payment.payer_id == "u-1"


def test_webhook_and_callback_share_one_commit(reconciler, session_factory, fake, ref):
    fake.add_intent("int_paid")
    body = _event()

    reconciler.reconcile(ref, "int_paid", payer_id="u-1")
    _, outcome = reconciler.handle_webhook(body, build_signature_header("whsec", body))

    assert outcome.replayed
    assert len(_rows(session_factory, OrderDelivery)) == 1


def test_webhook_with_bad_signature_is_rejected(reconciler, session_factory, fake):
    fake.add_intent("int_paid")
    body = _event()

    with pytest.raises(SignatureRejected):
        reconciler.handle_webhook(body, build_signature_header("wrong", body))
    with pytest.raises(SignatureRejected):
        reconciler.handle_webhook(body, None)
    assert fake.requests == []
    assert _rows(session_factory, Payment) == []


def test_webhook_ignores_other_events(reconciler, fake):
    body = _event(name="payment_intent.created")

    name, outcome = reconciler.handle_webhook(body, build_signature_header("whsec", body))

    assert name == "payment_intent.created"
    assert outcome is None
    assert fake.requests == []


@pytest.mark.parametrize("body", [b"not json", b"[]", _event(metadata={}), _event(metadata={"component": "X"})])
def test_webhook_without_payable_is_invalid(reconciler, body):
    with pytest.raises(InvalidCallback):
        reconciler.handle_webhook(body, "t=1,v1=00")


def test_webhook_for_unconfigured_payable(reconciler):
    body = _event(metadata={"component": "enrol_fee", "payment_area": "fee", "item_id": "99"})

    with pytest.raises(NotConfigured):
        reconciler.handle_webhook(body, build_signature_header("whsec", body))


def test_reconcile_never_raises_on_unexpected_errors(session_factory, host, ref):
    def exploding_factory(config):
        raise RuntimeError("boom")

    reconciler = CallbackReconciler(session_factory, host=host, client_factory=exploding_factory)

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.code == "internal_error"
    assert outcome.message == "An internal error occurred while recording the payment."


def test_unknown_payable_in_callback_fails(reconciler):
    ref = PayableReference(component="enrol_fee", payment_area="fee", item_id=99)

    outcome = reconciler.reconcile(ref, "int_paid", payer_id="u-1")

    assert outcome.code == "not_configured"


def test_webhook_with_non_string_intent_id_is_invalid(reconciler, fake):
    body = _event(intent_id=123)

    with pytest.raises(InvalidCallback):
        reconciler.handle_webhook(body, build_signature_header("whsec", body))
    assert fake.requests == []


def test_status_must_match_processor_value_exactly(reconciler, session_factory, fake, ref):
    fake.add_intent("int_lower", status="succeeded")

    outcome = reconciler.reconcile(ref, "int_lower", payer_id="u-1")

    assert outcome.code == "payment_not_cleared"
    assert _rows(session_factory, Payment) == []
