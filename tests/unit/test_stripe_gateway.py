"""Unit tests for Stripe signature verification."""

from __future__ import annotations

import hashlib
import hmac
import json
import time

import pytest
import stripe

from reelrelay.billing import StripeGateway
from reelrelay.billing.gateway import to_plain
from reelrelay.errors import UpstreamError, ValidationError

SECRET = "whsec_unit_test"


def _sign(payload: bytes, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _gateway() -> StripeGateway:
    return StripeGateway(api_key="sk_test_dummy", webhook_secret=SECRET)


def test_construct_event_accepts_valid_signature() -> None:
    payload = json.dumps(
        {
            "id": "evt_1",
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_1", "object": "checkout.session"}},
        }
    ).encode()

    event = _gateway().construct_event(payload, _sign(payload))

    assert event["type"] == "checkout.session.completed"
    assert event["data"]["object"]["id"] == "cs_1"


def test_construct_event_rejects_bad_signature() -> None:
    payload = b'{"id": "evt_1", "object": "event", "type": "x"}'
    with pytest.raises(ValidationError, match="Webhook Error"):
        _gateway().construct_event(payload, _sign(payload, secret="whsec_other"))


def test_construct_event_requires_signature_header() -> None:
    with pytest.raises(ValidationError, match="missing Stripe-Signature"):
        _gateway().construct_event(b"{}", None)


def test_to_plain_passes_dicts_through() -> None:
    assert to_plain({"a": 1}) == {"a": 1}
    assert to_plain(None) == {}


@pytest.mark.anyio
async def test_stripe_errors_become_upstream_errors(monkeypatch) -> None:
    def _boom(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.Subscription, "cancel", _boom)

    with pytest.raises(UpstreamError, match="subscription.cancel"):
        await _gateway().cancel_subscription("sub_1")
