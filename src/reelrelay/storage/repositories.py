"""Data access repositories."""

from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reelrelay.observability.logging import get_logger
from reelrelay.storage.models import (
    ApiKey,
    Content,
    ContentStatus,
    Influencer,
    Plan,
    RegistrationKind,
    User,
    WebhookRegistration,
)

logger = get_logger(__name__)

__all__ = [
    "RegistrationRepository",
    "InfluencerRepository",
    "ApiKeyRepository",
    "ContentRepository",
    "PlanRepository",
    "UserRepository",
]

_REGISTRATION_UPDATABLE = {"name", "url", "event", "kind", "active"}


def _normalize_status(value: Any) -> str:
    if isinstance(value, ContentStatus):
        return value.value
    return ContentStatus(str(value)).value


class RegistrationRepository:
    """Repository for webhook registrations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_async(
        self,
        *,
        user_id: str,
        name: str,
        url: str,
        event: str,
        influencer_id: UUID,
        kind: RegistrationKind = RegistrationKind.INBOUND_TRIGGER,
        active: bool = True,
    ) -> WebhookRegistration:
        registration = WebhookRegistration(
            user_id=user_id,
            name=name,
            url=url,
            event=event,
            influencer_id=influencer_id,
            kind=RegistrationKind(kind).value,
            active=active,
        )
        self.session.add(registration)
        await self.session.flush()
        logger.info(
            "registration_created",
            registration_id=str(registration.id),
            kind=registration.kind,
            influencer_id=str(influencer_id),
        )
        return registration

    async def get_async(self, registration_id: UUID) -> Optional[WebhookRegistration]:
        result = await self.session.execute(
            select(WebhookRegistration).where(WebhookRegistration.id == registration_id)
        )
        return result.scalar_one_or_none()

    async def list_active_async(self, kind: RegistrationKind) -> List[WebhookRegistration]:
        """Active registrations of one kind, oldest first."""
        stmt = (
            select(WebhookRegistration)
            .where(
                WebhookRegistration.active.is_(True),
                WebhookRegistration.kind == RegistrationKind(kind).value,
            )
            .order_by(WebhookRegistration.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_subscribers_async(self, influencer_id: UUID) -> List[WebhookRegistration]:
        stmt = (
            select(WebhookRegistration)
            .where(
                WebhookRegistration.active.is_(True),
                WebhookRegistration.kind == RegistrationKind.AUTOMATION_SUBSCRIBER.value,
                WebhookRegistration.influencer_id == influencer_id,
            )
            .order_by(WebhookRegistration.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_user_async(self, user_id: str) -> List[WebhookRegistration]:
        stmt = (
            select(WebhookRegistration)
            .options(selectinload(WebhookRegistration.influencer))
            .where(WebhookRegistration.user_id == user_id)
            .order_by(WebhookRegistration.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all_async(self, limit: int = 100) -> List[WebhookRegistration]:
        stmt = (
            select(WebhookRegistration)
            .options(selectinload(WebhookRegistration.influencer))
            .order_by(WebhookRegistration.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_async(
        self, registration_id: UUID, **kwargs: Any
    ) -> Optional[WebhookRegistration]:
        registration = await self.get_async(registration_id)
        if registration is None:
            return None

        for key, value in kwargs.items():
            if key not in _REGISTRATION_UPDATABLE:
                continue
            if key == "kind":
                value = RegistrationKind(value).value
            setattr(registration, key, value)

        await self.session.flush()
        logger.info(
            "registration_updated",
            registration_id=str(registration_id),
            fields=sorted(k for k in kwargs if k in _REGISTRATION_UPDATABLE),
        )
        return registration

    async def delete_async(self, registration_id: UUID) -> bool:
        result = await self.session.execute(
            delete(WebhookRegistration).where(WebhookRegistration.id == registration_id)
        )
        await self.session.flush()
        deleted = bool(result.rowcount)
        if deleted:
            logger.info("registration_deleted", registration_id=str(registration_id))
        return deleted


class InfluencerRepository:
    """Repository for influencer (entity) lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_async(
        self, *, user_id: str, name: str, template_id: str | None = None
    ) -> Influencer:
        influencer = Influencer(user_id=user_id, name=name, template_id=template_id)
        self.session.add(influencer)
        await self.session.flush()
        return influencer

    async def get_async(self, influencer_id: UUID) -> Optional[Influencer]:
        result = await self.session.execute(
            select(Influencer).where(Influencer.id == influencer_id)
        )
        return result.scalar_one_or_none()

    async def get_many_async(self, influencer_ids: List[UUID]) -> List[Influencer]:
        if not influencer_ids:
            return []
        result = await self.session.execute(
            select(Influencer).where(Influencer.id.in_(influencer_ids))
        )
        return list(result.scalars().all())


class ApiKeyRepository:
    """Repository for per-tenant provider credentials."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_async(self, user_id: str, heygen_key: str) -> ApiKey:
        result = await self.session.execute(select(ApiKey).where(ApiKey.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            row = ApiKey(user_id=user_id, heygen_key=heygen_key)
            self.session.add(row)
        else:
            row.heygen_key = heygen_key
        await self.session.flush()
        return row

    async def get_heygen_key_async(self, user_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(ApiKey.heygen_key).where(ApiKey.user_id == user_id)
        )
        return result.scalar_one_or_none()


class ContentRepository:
    """Repository for generation job (content) records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_async(
        self,
        *,
        influencer_id: UUID,
        title: str | None,
        script: str | None,
        status: ContentStatus,
        video_id: str | None = None,
        video_url: str | None = None,
        error: str | None = None,
    ) -> Content:
        content = Content(
            influencer_id=influencer_id,
            title=title,
            script=script,
            status=_normalize_status(status),
            video_id=video_id,
            video_url=video_url,
            error=error,
        )
        self.session.add(content)
        await self.session.flush()
        logger.info(
            "content_created",
            content_id=str(content.id),
            status=content.status,
            video_id=video_id,
        )
        return content

    async def get_async(self, content_id: UUID) -> Optional[Content]:
        result = await self.session.execute(select(Content).where(Content.id == content_id))
        return result.scalar_one_or_none()

    async def get_by_video_id_async(self, video_id: str) -> Optional[Content]:
        """Exact-match lookup by provider job identifier."""
        stmt = (
            select(Content)
            .where(Content.video_id == video_id)
            .order_by(Content.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def finish_generating_async(
        self, content_id: UUID, *, status: ContentStatus, **fields: Any
    ) -> bool:
        """Move a generating record to a terminal status in one conditional UPDATE.

        Returns False when the record already left ``generating``, so at most
        one concurrent caller wins the transition.
        """
        stmt = (
            update(Content)
            .where(
                Content.id == content_id,
                Content.status == ContentStatus.GENERATING.value,
            )
            .values(status=_normalize_status(status), **fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        won = result.rowcount == 1
        logger.info(
            "content_finished" if won else "content_finish_skipped",
            content_id=str(content_id),
            status=_normalize_status(status),
        )
        return won

    async def list_by_influencer_async(self, influencer_id: UUID) -> List[Content]:
        stmt = (
            select(Content)
            .where(Content.influencer_id == influencer_id)
            .order_by(Content.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class PlanRepository:
    """Repository for billing plans."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_async(self, *, plan_name: str, price_id: str, price: int | None = None) -> Plan:
        plan = Plan(plan_name=plan_name, price_id=price_id, price=price)
        self.session.add(plan)
        await self.session.flush()
        return plan

    async def list_async(self) -> List[Plan]:
        result = await self.session.execute(select(Plan))
        return list(result.scalars().all())


class UserRepository:
    """Repository for account entitlement state."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_async(self, *, email: str) -> User:
        user = User(email=email)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_email_async(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def update_plan_async(
        self,
        email: str,
        *,
        plan_id: UUID | None,
        price_id: str | None,
        subscription_id: str | None,
    ) -> Optional[User]:
        user = await self.get_by_email_async(email)
        if user is None:
            return None
        user.current_plan = plan_id
        user.price_id = price_id
        user.subscription_id = subscription_id
        await self.session.flush()
        logger.info("user_plan_updated", email=email, plan_id=str(plan_id) if plan_id else None)
        return user
