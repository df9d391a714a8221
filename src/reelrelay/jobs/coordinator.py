"""Generation job lifecycle: submit on inbound trigger, complete on provider callback.

States::

    (none) --submit ok--> generating --callback--> completed  (then fan-out)
    (none) --submit err-> failed                   failed     (failure callback)

The two transitions run in unrelated requests and are correlated only by the
provider's video id. A callback that arrives before its submit was persisted
is answered as not-found; there is no ordering guarantee from the provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrelay.errors import (
    CredentialMissingError,
    DomainError,
    EntityNotFoundError,
    JobNotFoundError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from reelrelay.jobs.fanout import DeliveryResult, FanoutDispatcher, build_completion_payload
from reelrelay.observability.logging import get_logger
from reelrelay.observability.metrics import job_transitions_total
from reelrelay.providers.factory import VideoProvider
from reelrelay.registry.endpoints import MountedEndpoint
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.models import ContentStatus
from reelrelay.storage.repositories import (
    ApiKeyRepository,
    ContentRepository,
    InfluencerRepository,
)

logger = get_logger("jobs.coordinator")

__all__ = ["JobCoordinator", "SubmitResult", "CompleteResult", "is_failure_event"]


@dataclass
class SubmitResult:
    video_id: str
    content_id: UUID


@dataclass
class CompleteResult:
    status: str
    video_id: str
    content_id: UUID | None = None
    deliveries: list[DeliveryResult] = field(default_factory=list)


def _require_text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def is_failure_event(event_type: Any) -> bool:
    """HeyGen reports failures as ``avatar_video.fail``."""
    return isinstance(event_type, str) and event_type.lower().endswith(".fail")


class JobCoordinator:
    """Drives a content record from submission through provider completion."""

    def __init__(
        self,
        *,
        provider: VideoProvider,
        dispatcher: FanoutDispatcher,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_async_session_factory,
    ) -> None:
        self.provider = provider
        self.dispatcher = dispatcher
        self._session_factory = session_factory

    async def _resolve(self, endpoint: MountedEndpoint) -> tuple[str, str]:
        """Return (template_id, api_key) for the endpoint's influencer and tenant."""
        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                influencer = await InfluencerRepository(session).get_async(endpoint.influencer_id)
                if influencer is None or not influencer.template_id:
                    raise EntityNotFoundError("Influencer not found")
                api_key = await ApiKeyRepository(session).get_heygen_key_async(
                    endpoint.credential_key
                )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to load influencer or API key") from exc
        if not api_key:
            raise CredentialMissingError("HeyGen API key not found")
        return influencer.template_id, api_key

    async def _record_failure(
        self, endpoint: MountedEndpoint, title: str, script: str, error: str
    ) -> None:
        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                await ContentRepository(session).create_async(
                    influencer_id=endpoint.influencer_id,
                    title=title,
                    script=script,
                    status=ContentStatus.FAILED,
                    error=error,
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                "failed_job_record_not_persisted",
                registration_id=str(endpoint.registration_id),
            )
            return
        job_transitions_total.labels(status=ContentStatus.FAILED.value).inc()

    async def submit(self, endpoint: MountedEndpoint, payload: Mapping[str, Any]) -> SubmitResult:
        """Start a generation job for an inbound trigger call.

        Returns as soon as the provider accepted the job; completion arrives
        later through :meth:`complete`.

        Raises:
            ValidationError: title or script missing; nothing is persisted.
            EntityNotFoundError, CredentialMissingError, UpstreamError, StorageError:
                a failed content record carrying the message has been persisted
                (best effort) before the error is raised.
        """
        title = _require_text(payload, "title")
        script = _require_text(payload, "script")
        if title is None or script is None:
            raise ValidationError("Title and script are required")

        bound = logger.bind(
            registration_id=str(endpoint.registration_id),
            influencer_id=str(endpoint.influencer_id),
            path=endpoint.path,
        )

        try:
            template_id, api_key = await self._resolve(endpoint)
            video_id = await self.provider.generate(
                template_id=template_id, title=title, script=script, api_key=api_key
            )
        except DomainError as exc:
            bound.warning("job_submit_failed", error=str(exc), code=exc.error)
            await self._record_failure(endpoint, title, script, str(exc))
            raise
        except Exception as exc:
            bound.exception("job_submit_failed_unexpectedly")
            await self._record_failure(endpoint, title, script, str(exc) or type(exc).__name__)
            raise UpstreamError("Failed to create video") from exc

        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                content = await ContentRepository(session).create_async(
                    influencer_id=endpoint.influencer_id,
                    title=title,
                    script=script,
                    status=ContentStatus.GENERATING,
                    video_id=video_id,
                )
                await session.commit()
        except SQLAlchemyError as exc:
            bound.error("job_persist_failed", video_id=video_id, error=str(exc))
            await self._record_failure(endpoint, title, script, "Failed to insert content")
            raise StorageError("Failed to insert content") from exc

        job_transitions_total.labels(status=ContentStatus.GENERATING.value).inc()
        bound.info("job_submitted", video_id=video_id, content_id=str(content.id))
        return SubmitResult(video_id=video_id, content_id=content.id)

    async def complete(self, event: Mapping[str, Any]) -> CompleteResult:
        """Apply a provider completion callback ``{event_type, event_data: {video_id, url}}``.

        The job is committed as completed before fan-out starts, so subscriber
        failures can never roll the state back.
        """
        event_type = event.get("event_type")
        data = event.get("event_data")
        if not isinstance(data, Mapping):
            raise ValidationError("event_data is required")
        video_id = data.get("video_id")
        if not isinstance(video_id, str) or not video_id:
            raise ValidationError("event_data.video_id is required")

        failed = is_failure_event(event_type)
        video_url = data.get("url")
        if not failed and (not isinstance(video_url, str) or not video_url):
            raise ValidationError("event_data.url is required")

        bound = logger.bind(video_id=video_id, event_type=event_type)

        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                repo = ContentRepository(session)
                content = await repo.get_by_video_id_async(video_id)
                if content is None:
                    bound.warning("job_callback_unmatched")
                    raise JobNotFoundError("No content found for video_id")

                if content.is_terminal:
                    bound.info("job_callback_duplicate", status=content.status)
                    return CompleteResult(status="ignored", video_id=video_id, content_id=content.id)

                if failed:
                    message = data.get("msg") or data.get("error") or "Video generation failed"
                    won = await repo.finish_generating_async(
                        content.id, status=ContentStatus.FAILED, error=str(message)
                    )
                else:
                    won = await repo.finish_generating_async(
                        content.id, status=ContentStatus.COMPLETED, video_url=video_url
                    )
                if not won:
                    # A concurrent copy of this callback finished the job first.
                    await session.rollback()
                    bound.info("job_callback_duplicate", status="raced")
                    return CompleteResult(status="ignored", video_id=video_id, content_id=content.id)
                await session.refresh(content)
                influencer = await InfluencerRepository(session).get_async(content.influencer_id)
                await session.commit()
        except SQLAlchemyError as exc:
            bound.error("job_callback_storage_failed", error=str(exc))
            raise StorageError("Failed to update content") from exc

        job_transitions_total.labels(status=content.status).inc()

        if failed:
            bound.warning("job_failed_by_provider", content_id=str(content.id), error=content.error)
            return CompleteResult(status=content.status, video_id=video_id, content_id=content.id)

        bound.info("job_completed", content_id=str(content.id))
        payload = build_completion_payload(content, influencer.name if influencer else None)
        deliveries = await self.dispatcher.dispatch(content.influencer_id, payload)
        return CompleteResult(
            status=content.status,
            video_id=video_id,
            content_id=content.id,
            deliveries=deliveries,
        )
