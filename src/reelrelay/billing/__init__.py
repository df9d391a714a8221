"""Stripe billing events and subscription management."""

from reelrelay.billing.gateway import BillingGateway, StripeGateway
from reelrelay.billing.service import HANDLED_EVENTS, BillingService

__all__ = ["BillingGateway", "StripeGateway", "BillingService", "HANDLED_EVENTS"]
