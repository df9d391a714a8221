"""Reconcile mounted endpoints against stored inbound-trigger registrations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrelay.observability.logging import get_logger
from reelrelay.observability.metrics import reconcile_passes_total
from reelrelay.registry.endpoints import EndpointRegistry, MountedEndpoint, endpoint_path_for
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.models import RegistrationKind, WebhookRegistration
from reelrelay.storage.repositories import RegistrationRepository

logger = get_logger(__name__)

__all__ = ["EndpointReconciler", "ReconcileResult"]


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    mounted: list[str] = field(default_factory=list)
    unmounted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    degraded: bool = False
    active_paths: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "mounted": sorted(self.mounted),
            "unmounted": sorted(self.unmounted),
            "skipped": sorted(self.skipped),
            "degraded": self.degraded,
            "mounted_total": len(self.active_paths),
        }


class EndpointReconciler:
    """Mounts a handler path for every active inbound-trigger registration.

    Additive-only unless ``unmount_inactive`` is set, in which case paths whose
    registration disappeared or was deactivated are unmounted as well. A storage
    failure turns the pass into a no-op; it never unmounts anything.
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        *,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_async_session_factory,
        unmount_inactive: bool = False,
    ) -> None:
        self.registry = registry
        self._session_factory = session_factory
        self.unmount_inactive = unmount_inactive
        self._lock = asyncio.Lock()

    async def fetch_active_triggers(self) -> list[WebhookRegistration] | None:
        """Return active inbound-trigger registrations, or None if storage failed."""
        SessionLocal = self._session_factory()
        try:
            async with SessionLocal() as session:
                repo = RegistrationRepository(session)
                return await repo.list_active_async(RegistrationKind.INBOUND_TRIGGER)
        except Exception as exc:
            logger.error(
                "registry_reconcile_storage_failed",
                error=str(exc),
                exc_type=type(exc).__name__,
            )
            return None

    def plan(self, registrations: list[WebhookRegistration]) -> dict[str, MountedEndpoint]:
        """Map each usable registration to a path; the oldest registration wins a path."""
        desired: dict[str, MountedEndpoint] = {}
        for registration in registrations:
            path = endpoint_path_for(registration.url or "")
            if path is None:
                logger.warning(
                    "registration_url_has_no_path",
                    registration_id=str(registration.id),
                    url=registration.url,
                )
                continue
            if path in desired:
                logger.warning(
                    "endpoint_path_conflict",
                    path=path,
                    registration_id=str(registration.id),
                    mounted_registration_id=str(desired[path].registration_id),
                )
                continue
            desired[path] = MountedEndpoint(
                path=path,
                registration_id=registration.id,
                user_id=registration.user_id,
                influencer_id=registration.influencer_id,
                name=registration.name or "",
            )
        return desired

    async def reconcile(self) -> ReconcileResult:
        async with self._lock:
            result = await self._reconcile_locked()
        reconcile_passes_total.labels(outcome="degraded" if result.degraded else "ok").inc()
        return result

    async def _reconcile_locked(self) -> ReconcileResult:
        logger.info("registry_reconcile_started")
        registrations = await self.fetch_active_triggers()
        if registrations is None:
            return ReconcileResult(degraded=True, active_paths=self.registry.current_paths())

        result = ReconcileResult()
        desired = self.plan(registrations)
        already_mounted = self.registry.current_paths()

        for path, endpoint in desired.items():
            if path in already_mounted:
                current = self.registry.resolve(path)
                if current is None or current.registration_id == endpoint.registration_id:
                    continue
                if not self.unmount_inactive:
                    # Path kept by its first owner until unmounted.
                    result.skipped.append(path)
                    continue
                # Previous owner is no longer active; hand the path over.
                self.registry.unmount(path)
                result.unmounted.append(path)
            if self.registry.mount(endpoint):
                result.mounted.append(path)
            else:
                result.skipped.append(path)

        if self.unmount_inactive:
            for path in already_mounted - desired.keys():
                if self.registry.unmount(path):
                    result.unmounted.append(path)

        result.active_paths = self.registry.current_paths()
        logger.info(
            "registry_reconcile_finished",
            mounted=len(result.mounted),
            unmounted=len(result.unmounted),
            skipped=len(result.skipped),
            total=len(result.active_paths),
        )
        return result
