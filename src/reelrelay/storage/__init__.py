"""reelrelay storage module - Database models and repositories."""

from reelrelay.storage.database import get_async_session_factory, init_async_db
from reelrelay.storage.models import (
    Base,
    Content,
    ContentStatus,
    Influencer,
    RegistrationKind,
    WebhookRegistration,
)
from reelrelay.storage.repositories import (
    ApiKeyRepository,
    ContentRepository,
    InfluencerRepository,
    RegistrationRepository,
)

__all__ = [
    "Base",
    "Content",
    "ContentStatus",
    "Influencer",
    "RegistrationKind",
    "WebhookRegistration",
    "get_async_session_factory",
    "init_async_db",
    "ApiKeyRepository",
    "ContentRepository",
    "InfluencerRepository",
    "RegistrationRepository",
]
