"""API route modules."""

from reelrelay.api.routes import billing, callbacks, health, registrations, triggers

__all__ = ["billing", "callbacks", "health", "registrations", "triggers"]
