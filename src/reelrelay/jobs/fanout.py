"""Best-effort fan-out of completed jobs to automation subscribers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import UUID

import anyio
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrelay.errors import DeliveryError
from reelrelay.observability.logging import get_logger
from reelrelay.observability.metrics import fanout_deliveries_total
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.models import Content, WebhookRegistration
from reelrelay.storage.repositories import RegistrationRepository

logger = get_logger("jobs.fanout")

__all__ = ["DeliveryResult", "FanoutDispatcher", "build_completion_payload"]

COMPLETION_EVENT = "video.completed"


@dataclass
class DeliveryResult:
    """Result of one subscriber delivery attempt."""

    registration_id: str
    url: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def build_completion_payload(content: Content, influencer_name: str | None) -> dict[str, Any]:
    return {
        "event": COMPLETION_EVENT,
        "content": {
            "title": content.title,
            "script": content.script,
            "influencerName": influencer_name,
            "video_url": content.video_url,
            "status": content.status,
        },
    }


class FanoutDispatcher:
    """Deliver a payload once to every active automation subscriber of an influencer.

    Deliveries run concurrently. Each one is isolated: a network error or a
    non-2xx answer is logged and recorded, never raised, never retried.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_async_session_factory,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.timeout_seconds = float(timeout_seconds)
        self._client = client

    async def _subscribers(self, influencer_id: UUID) -> list[WebhookRegistration]:
        SessionLocal = self._session_factory()
        async with SessionLocal() as session:
            return await RegistrationRepository(session).list_subscribers_async(influencer_id)

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        registration: WebhookRegistration,
        payload: dict[str, Any],
    ) -> DeliveryResult:
        bound = logger.bind(registration_id=str(registration.id), url=registration.url)
        try:
            with anyio.fail_after(self.timeout_seconds):
                response = await client.post(registration.url, json=payload)
        except Exception as exc:
            error = "timed out" if isinstance(exc, TimeoutError) else str(exc) or type(exc).__name__
            bound.warning("fanout_delivery_failed", error=error, exc_type=type(exc).__name__)
            fanout_deliveries_total.labels(outcome="error").inc()
            return DeliveryResult(
                registration_id=str(registration.id),
                url=registration.url,
                success=False,
                error=error,
            )

        if not 200 <= response.status_code < 300:
            rejected = DeliveryError(f"subscriber answered HTTP {response.status_code}")
            bound.warning(
                "fanout_delivery_failed", error=str(rejected), status_code=response.status_code
            )
            fanout_deliveries_total.labels(outcome="rejected").inc()
            return DeliveryResult(
                registration_id=str(registration.id),
                url=registration.url,
                success=False,
                status_code=response.status_code,
                error=str(rejected),
            )

        bound.info("fanout_delivered", status_code=response.status_code)
        fanout_deliveries_total.labels(outcome="delivered").inc()
        return DeliveryResult(
            registration_id=str(registration.id),
            url=registration.url,
            success=True,
            status_code=response.status_code,
        )

    async def dispatch(self, influencer_id: UUID, payload: dict[str, Any]) -> list[DeliveryResult]:
        try:
            subscribers = await self._subscribers(influencer_id)
        except Exception as exc:
            logger.error(
                "fanout_subscriber_lookup_failed",
                influencer_id=str(influencer_id),
                error=str(exc),
            )
            return []

        if not subscribers:
            logger.info("fanout_no_subscribers", influencer_id=str(influencer_id))
            return []

        results: list[DeliveryResult | None] = [None] * len(subscribers)

        async def _run(client: httpx.AsyncClient, index: int, sub: WebhookRegistration) -> None:
            results[index] = await self._deliver(client, sub, payload)

        async def _fan_out(client: httpx.AsyncClient) -> None:
            async with anyio.create_task_group() as tg:
                for index, sub in enumerate(subscribers):
                    tg.start_soon(_run, client, index, sub)

        if self._client is not None:
            await _fan_out(self._client)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                await _fan_out(client)

        delivered = [r for r in results if r is not None]
        logger.info(
            "fanout_finished",
            influencer_id=str(influencer_id),
            attempted=len(delivered),
            succeeded=sum(1 for r in delivered if r.success),
        )
        return delivered
