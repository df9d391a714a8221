"""SQLAlchemy database models for reelrelay."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import uuid
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import declarative_base, relationship


def _utc_now() -> datetime:
    """Return a tz-naive UTC timestamp for TIMESTAMP WITHOUT TIME ZONE columns.

    Using tz-aware values with asyncpg against TIMESTAMP WITHOUT TIME ZONE columns
    triggers "can't subtract offset-naive and offset-aware datetimes", so we keep
    these fields naive and treat them as UTC by convention.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GUID(TypeDecorator[UUID]):
    """Platform-independent GUID type.

    Uses PostgreSQL's UUID type when available, otherwise stores as String(36).
    This enables unit tests with SQLite while using native UUIDs in production PostgreSQL.
    """

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        else:
            return dialect.type_descriptor(String(36))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        elif dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(value)
        else:
            return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value: Any, dialect: Any) -> UUID | None:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


Base = declarative_base()

__all__ = [
    "Base",
    "GUID",
    "RegistrationKind",
    "WebhookRegistration",
    "Influencer",
    "ApiKey",
    "Content",
    "ContentStatus",
    "Plan",
    "User",
]


class RegistrationKind(str, Enum):
    """Role of a webhook registration."""

    INBOUND_TRIGGER = "inbound-trigger"  # Mounted as a POST endpoint that starts a job
    AUTOMATION_SUBSCRIBER = "automation-subscriber"  # Receives completed-job fan-out


class ContentStatus(str, Enum):
    """Status of a generation job (content record)."""

    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class WebhookRegistration(Base):
    """Stored webhook registration (inbound trigger or automation subscriber)."""

    __tablename__ = "webhooks"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    event = Column(String(128), nullable=False)
    influencer_id = Column(GUID(), ForeignKey("influencers.id"), nullable=False, index=True)
    kind = Column(String(32), nullable=False, default=RegistrationKind.INBOUND_TRIGGER.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utc_now)

    influencer = relationship("Influencer", back_populates="webhooks")

    __table_args__ = (Index("idx_webhooks_kind_active", "kind", "active"),)

    def to_dict(self) -> Dict[str, Any]:
        influencer = self.__dict__.get("influencer")
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "name": self.name,
            "url": self.url,
            "event": self.event,
            "influencer_id": str(self.influencer_id),
            "influencer_name": influencer.name if influencer is not None else None,
            "kind": self.kind,
            "active": self.active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<WebhookRegistration id={self.id} kind={self.kind} url={self.url}>"


class Influencer(Base):
    """Tenant-owned profile that generation jobs and registrations belong to."""

    __tablename__ = "influencers"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    template_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=_utc_now)

    webhooks = relationship("WebhookRegistration", back_populates="influencer")
    contents = relationship("Content", back_populates="influencer")

    def __repr__(self) -> str:
        return f"<Influencer id={self.id} name={self.name}>"


class ApiKey(Base):
    """Per-tenant video provider credential."""

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, unique=True)
    heygen_key = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=_utc_now)

    def __repr__(self) -> str:
        return f"<ApiKey user={self.user_id}>"


class Content(Base):
    """Generation job record.

    Written only by the job coordinator: once on submit (generating or failed)
    and once on the provider callback (completed or failed).
    """

    __tablename__ = "contents"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    influencer_id = Column(GUID(), ForeignKey("influencers.id"), nullable=False, index=True)
    title = Column(Text, nullable=True)
    script = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=ContentStatus.GENERATING.value)
    video_url = Column(String(2048), nullable=True)
    video_id = Column(String(128), nullable=True, index=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utc_now)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    influencer = relationship("Influencer", back_populates="contents")

    @property
    def is_terminal(self) -> bool:
        return self.status in (ContentStatus.COMPLETED.value, ContentStatus.FAILED.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "influencer_id": str(self.influencer_id),
            "title": self.title,
            "script": self.script,
            "status": self.status,
            "video_url": self.video_url,
            "video_id": self.video_id,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Content id={self.id} video_id={self.video_id} status={self.status}>"


class Plan(Base):
    """Billing plan, matched against Stripe price ids."""

    __tablename__ = "plans"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    plan_name = Column(String(64), nullable=False)
    price_id = Column(String(128), nullable=False, unique=True)
    price = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<Plan {self.plan_name} price_id={self.price_id}>"


class User(Base):
    """Account entitlement state mutated by billing events."""

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    current_plan = Column(GUID(), ForeignKey("plans.id"), nullable=True)
    price_id = Column(String(128), nullable=True)
    subscription_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=_utc_now)

    def __repr__(self) -> str:
        return f"<User {self.email} plan={self.current_plan}>"
