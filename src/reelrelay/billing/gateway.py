"""Stripe SDK adapter.

The SDK is synchronous; calls run in a worker thread so the event loop keeps
serving other webhooks. Results are returned as plain dicts.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import anyio
import stripe

from reelrelay.errors import UpstreamError, ValidationError
from reelrelay.observability.logging import get_logger

logger = get_logger(__name__)

__all__ = ["BillingGateway", "StripeGateway", "to_plain"]


def to_plain(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or dict) to a plain dict."""
    if obj is None:
        return {}
    if isinstance(obj, dict) and not isinstance(obj, stripe.StripeObject):
        return obj
    # StripeObject renders itself as JSON in every SDK release.
    return json.loads(str(obj))


class BillingGateway(Protocol):
    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]: ...

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]: ...

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]: ...

    async def find_customer_by_email(self, email: str) -> dict[str, Any] | None: ...

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]: ...


class StripeGateway:
    """Stripe-backed billing gateway."""

    def __init__(self, *, api_key: str, webhook_secret: str) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the Stripe-Signature header and parse the event.

        Raises:
            ValidationError: invalid payload, missing or mismatched signature.
        """
        if not signature:
            raise ValidationError("Webhook Error: missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as exc:
            logger.warning("stripe_webhook_invalid_payload", error=str(exc))
            raise ValidationError(f"Webhook Error: {exc}") from exc
        except stripe.SignatureVerificationError as exc:
            logger.warning("stripe_webhook_invalid_signature", error=str(exc))
            raise ValidationError(f"Webhook Error: {exc}") from exc
        return to_plain(event)

    async def _call(self, op: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        kwargs["api_key"] = self._api_key
        try:
            return await anyio.to_thread.run_sync(lambda: func(*args, **kwargs))
        except stripe.StripeError as exc:
            logger.warning("stripe_call_failed", op=op, error=str(exc))
            raise UpstreamError(f"Stripe {op} failed") from exc

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        session = await self._call(
            "checkout.session.retrieve",
            stripe.checkout.Session.retrieve,
            session_id,
            expand=["line_items"],
        )
        return to_plain(session)

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        return to_plain(await self._call("customer.retrieve", stripe.Customer.retrieve, customer_id))

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        return to_plain(
            await self._call("subscription.retrieve", stripe.Subscription.retrieve, subscription_id)
        )

    async def find_customer_by_email(self, email: str) -> dict[str, Any] | None:
        customers = to_plain(await self._call("customer.list", stripe.Customer.list, email=email))
        data = customers.get("data") or []
        return data[0] if data else None

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        return to_plain(
            await self._call("subscription.cancel", stripe.Subscription.cancel, subscription_id)
        )
