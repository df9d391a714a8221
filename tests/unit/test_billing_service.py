"""Unit tests for Stripe event handling."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

import pytest

from reelrelay.billing import BillingService
from reelrelay.errors import NotFoundError, ValidationError
from reelrelay.storage.repositories import PlanRepository, UserRepository


class FakeGateway:
    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.customers: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.canceled: list[str] = []

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        raise NotImplementedError

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        return self.sessions[session_id]

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        return self.customers[customer_id]

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self.subscriptions[subscription_id]

    async def find_customer_by_email(self, email: str) -> dict[str, Any] | None:
        for customer in self.customers.values():
            if customer.get("email") == email:
                return customer
        return None

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        self.canceled.append(subscription_id)
        return {"id": subscription_id, "status": "canceled"}


@pytest.fixture
async def billing_env(session_factory):  # type: ignore[no-untyped-def]
    suffix = uuid4().hex[:8]
    email = f"buyer-{suffix}@example.com"
    SessionLocal = session_factory()
    async with SessionLocal() as session:
        plan = await PlanRepository(session).create_async(
            plan_name="Pro", price_id=f"price_pro_{suffix}", price=2900
        )
        await UserRepository(session).create_async(email=email)
        await session.commit()

    gateway = FakeGateway()
    gateway.customers["cus_1"] = {"id": "cus_1", "email": email}
    service = BillingService(gateway, session_factory=session_factory)
    return service, gateway, plan, email


async def _user(session_factory, email):  # type: ignore[no-untyped-def]
    SessionLocal = session_factory()
    async with SessionLocal() as session:
        return await UserRepository(session).get_by_email_async(email)


@pytest.mark.anyio
async def test_checkout_completed_assigns_plan(billing_env, session_factory) -> None:
    service, gateway, plan, email = billing_env
    gateway.sessions["cs_1"] = {
        "id": "cs_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "line_items": {"data": [{"price": {"id": plan.price_id}}]},
    }

    outcome = await service.handle_event(
        {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {"id": "cs_1"}}}
    )

    assert outcome == "plan_updated"
    user = await _user(session_factory, email)
    assert user.current_plan == plan.id
    assert user.price_id == plan.price_id
    assert user.subscription_id == "sub_1"


@pytest.mark.anyio
async def test_subscription_updated_switches_plan(billing_env, session_factory) -> None:
    service, _gateway, plan, email = billing_env

    outcome = await service.handle_event(
        {
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_2",
                    "customer": "cus_1",
                    "items": {"data": [{"price": {"id": plan.price_id}}]},
                }
            },
        }
    )

    assert outcome == "plan_updated"
    user = await _user(session_factory, email)
    assert user.subscription_id == "sub_2"


@pytest.mark.anyio
async def test_subscription_deleted_clears_plan(billing_env, session_factory) -> None:
    service, gateway, plan, email = billing_env
    gateway.subscriptions["sub_3"] = {"id": "sub_3", "customer": {"id": "cus_1"}}
    SessionLocal = session_factory()
    async with SessionLocal() as session:
        await UserRepository(session).update_plan_async(
            email, plan_id=plan.id, price_id=plan.price_id, subscription_id="sub_3"
        )
        await session.commit()

    outcome = await service.handle_event(
        {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_3"}}}
    )

    assert outcome == "plan_cleared"
    user = await _user(session_factory, email)
    assert (user.current_plan, user.price_id, user.subscription_id) == (None, None, None)


@pytest.mark.anyio
async def test_unknown_price_is_acknowledged_without_change(billing_env, session_factory) -> None:
    service, _gateway, _plan, email = billing_env

    outcome = await service.handle_event(
        {
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_4",
                    "customer": "cus_1",
                    "items": {"data": [{"price": {"id": "price_unknown"}}]},
                }
            },
        }
    )

    assert outcome == "ignored"
    assert (await _user(session_factory, email)).current_plan is None


@pytest.mark.anyio
async def test_unhandled_event_type(billing_env) -> None:
    service, *_ = billing_env
    assert await service.handle_event({"type": "invoice.paid", "data": {"object": {}}}) == "unhandled"


@pytest.mark.anyio
async def test_cancel_subscription(billing_env) -> None:
    service, gateway, _plan, email = billing_env

    canceled = await service.cancel_subscription(email, "sub_9")

    assert canceled == {"id": "sub_9", "status": "canceled"}
    assert gateway.canceled == ["sub_9"]


@pytest.mark.anyio
async def test_cancel_subscription_validation(billing_env) -> None:
    service, gateway, _plan, email = billing_env

    with pytest.raises(ValidationError, match="Email is required"):
        await service.cancel_subscription(None, "sub_9")
    with pytest.raises(ValidationError, match="Subscription Id is required"):
        await service.cancel_subscription(email, "")
    with pytest.raises(NotFoundError, match="Customer not found"):
        await service.cancel_subscription("nobody@example.com", "sub_9")
    assert gateway.canceled == []
