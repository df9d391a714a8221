"""Billing lifecycle events -> account entitlement changes."""

from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrelay.billing.gateway import BillingGateway
from reelrelay.errors import NotFoundError, StorageError, ValidationError
from reelrelay.observability.logging import get_logger
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.models import Plan
from reelrelay.storage.repositories import PlanRepository, UserRepository

logger = get_logger("billing")

__all__ = ["BillingService", "HANDLED_EVENTS"]

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
HANDLED_EVENTS = frozenset({CHECKOUT_COMPLETED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED})


def _first_price_id(items: Any) -> str | None:
    data = items.get("data") if isinstance(items, dict) else None
    if not data:
        return None
    price = data[0].get("price") or {}
    return price.get("id") if isinstance(price, dict) else price


def _object_id(value: Any) -> str | None:
    # Stripe returns either an id or the expanded object.
    if isinstance(value, dict):
        return value.get("id")
    return value


class BillingService:
    """Applies Stripe subscription events to the users table."""

    def __init__(
        self,
        gateway: BillingGateway,
        *,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_async_session_factory,
    ) -> None:
        self.gateway = gateway
        self._session_factory = session_factory

    async def _load_plans(self) -> list[Plan]:
        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                return await PlanRepository(session).list_async()
        except SQLAlchemyError as exc:
            logger.error("billing_plans_load_failed", error=str(exc))
            raise StorageError("Error fetching plans.") from exc

    async def _set_plan(
        self,
        email: str,
        *,
        plan: Plan | None,
        price_id: str | None,
        subscription_id: str | None,
    ) -> bool:
        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                user = await UserRepository(session).update_plan_async(
                    email,
                    plan_id=plan.id if plan else None,
                    price_id=price_id,
                    subscription_id=subscription_id,
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("billing_user_update_failed", email=email, error=str(exc))
            raise StorageError("Failed to update user plan") from exc
        if user is None:
            logger.warning("billing_user_not_found", email=email)
            return False
        return True

    async def _customer_email(self, customer_id: str | None) -> str | None:
        if not customer_id:
            return None
        customer = await self.gateway.retrieve_customer(customer_id)
        email = customer.get("email")
        if not email:
            logger.error("billing_customer_email_missing", customer_id=customer_id)
            return None
        return email

    async def handle_event(self, event: dict[str, Any]) -> str:
        """Apply one verified Stripe event. Returns a short outcome label."""
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        bound = logger.bind(event_type=event_type, event_id=event.get("id"))

        if event_type not in HANDLED_EVENTS:
            bound.info("billing_event_unhandled")
            return "unhandled"

        plans = await self._load_plans()
        by_price = {plan.price_id: plan for plan in plans}

        if event_type == CHECKOUT_COMPLETED:
            session = await self.gateway.retrieve_checkout_session(obj.get("id"))
            email = await self._customer_email(_object_id(session.get("customer")))
            if email is None:
                return "ignored"
            price_id = _first_price_id(session.get("line_items"))
            if price_id is None:
                bound.error("billing_line_items_missing")
                return "ignored"
            plan = by_price.get(price_id)
            if plan is None:
                bound.error("billing_plan_not_found", price_id=price_id)
                return "ignored"
            updated = await self._set_plan(
                email,
                plan=plan,
                price_id=price_id,
                subscription_id=_object_id(session.get("subscription")),
            )
            bound.info("billing_plan_assigned", email=email, plan=plan.plan_name)
            return "plan_updated" if updated else "ignored"

        if event_type == SUBSCRIPTION_DELETED:
            subscription = await self.gateway.retrieve_subscription(obj.get("id"))
            email = await self._customer_email(_object_id(subscription.get("customer")))
            if email is None:
                return "ignored"
            updated = await self._set_plan(email, plan=None, price_id=None, subscription_id=None)
            bound.info("billing_plan_cleared", email=email)
            return "plan_cleared" if updated else "ignored"

        # customer.subscription.updated
        email = await self._customer_email(_object_id(obj.get("customer")))
        if email is None:
            return "ignored"
        price_id = _first_price_id(obj.get("items"))
        plan = by_price.get(price_id) if price_id else None
        if plan is None:
            bound.error("billing_plan_not_found", price_id=price_id)
            return "ignored"
        updated = await self._set_plan(
            email, plan=plan, price_id=price_id, subscription_id=obj.get("id")
        )
        bound.info("billing_plan_assigned", email=email, plan=plan.plan_name)
        return "plan_updated" if updated else "ignored"

    async def cancel_subscription(self, email: str | None, subscription_id: str | None) -> dict:
        if not email:
            raise ValidationError("Email is required")
        if not subscription_id:
            raise ValidationError("Subscription Id is required")

        customer = await self.gateway.find_customer_by_email(email)
        if customer is None:
            raise NotFoundError("Customer not found")

        canceled = await self.gateway.cancel_subscription(subscription_id)
        logger.info("billing_subscription_canceled", email=email, subscription_id=subscription_id)
        return canceled
