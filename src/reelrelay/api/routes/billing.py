"""Stripe billing webhook and subscription management."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from reelrelay.api.dependencies import get_billing_service
from reelrelay.api.schemas import CancelSubscriptionRequest, CancelSubscriptionResponse
from reelrelay.billing.service import BillingService
from reelrelay.config.settings import settings
from reelrelay.observability.logging import get_logger

logger = get_logger("api.billing")

router = APIRouter(prefix="/stripe", tags=["billing"])


@router.get("/")
async def billing_info() -> Dict[str, str]:
    return {"message": "Stripe webhook endpoint. POST events to /stripe/webhook."}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
) -> Dict[str, Any]:
    """Verify and apply a Stripe event.

    The raw body is required for signature verification, so it is read
    directly instead of through a Pydantic model.
    """
    payload = await request.body()
    event = billing.gateway.construct_event(payload, request.headers.get("Stripe-Signature"))
    if settings.log_webhook_payloads:
        logger.info("stripe_event_received", payload=event)

    outcome = await billing.handle_event(event)
    return {"received": True, "type": event.get("type"), "outcome": outcome}


@router.post("/cancel-subscription", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    body: CancelSubscriptionRequest,
    billing: BillingService = Depends(get_billing_service),
) -> Dict[str, Any]:
    canceled = await billing.cancel_subscription(body.email, body.subId)
    return {"success": True, "canceledSubscription": canceled}


__all__ = ["router"]
