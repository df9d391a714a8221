"""Unit tests for endpoint reconciliation."""

from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from reelrelay.registry.endpoints import EndpointRegistry, MountedEndpoint, reserved_prefixes
from reelrelay.registry.reconcile import EndpointReconciler
from reelrelay.storage.models import RegistrationKind
from reelrelay.storage.repositories import RegistrationRepository


def _registration(url: str, *, age_s: int = 0, user_id: str = "user-1") -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        url=url,
        user_id=user_id,
        influencer_id=uuid4(),
        name="trigger",
        created_at=datetime(2026, 1, 1) - timedelta(seconds=age_s),
    )


def _failing_session_factory():
    def _session():
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    return _session


def test_plan_oldest_registration_wins_path() -> None:
    reconciler = EndpointReconciler(EndpointRegistry())
    older = _registration("https://a.example/hooks/abc", age_s=60)
    newer = _registration("https://b.example/hooks/abc", age_s=0)

    # list_active_async returns oldest first
    planned = reconciler.plan([older, newer])

    assert list(planned) == ["/hooks/abc"]
    assert planned["/hooks/abc"].registration_id == older.id


def test_plan_skips_urls_without_path() -> None:
    reconciler = EndpointReconciler(EndpointRegistry())
    planned = reconciler.plan([_registration("https://a.example"), _registration("")])
    assert planned == {}


@pytest.mark.anyio
async def test_reconcile_mounts_active_triggers_once(
    session_factory, seed_tenant, unique_path
) -> None:
    tenant = await seed_tenant(trigger_url=f"https://hooks.example{unique_path}")
    registry = EndpointRegistry(reserved_prefixes("/v1/callbacks/heygen"))
    reconciler = EndpointReconciler(registry, session_factory=session_factory)

    first = await reconciler.reconcile()
    second = await reconciler.reconcile()

    assert unique_path in first.mounted
    assert unique_path not in second.mounted
    endpoint = registry.resolve(unique_path)
    assert endpoint is not None
    assert endpoint.registration_id == tenant.trigger.id
    assert endpoint.user_id == tenant.user_id
    assert first.active_paths == second.active_paths


@pytest.mark.anyio
async def test_reconcile_ignores_automation_subscribers(
    session_factory, seed_tenant, unique_path
) -> None:
    await seed_tenant(subscriber_urls=(f"http://localhost{unique_path}",))
    registry = EndpointRegistry()
    reconciler = EndpointReconciler(registry, session_factory=session_factory)

    await reconciler.reconcile()

    assert unique_path not in registry


@pytest.mark.anyio
async def test_reconcile_is_additive_by_default(session_factory, seed_tenant, unique_path) -> None:
    tenant = await seed_tenant(trigger_url=f"https://hooks.example{unique_path}")
    registry = EndpointRegistry()
    reconciler = EndpointReconciler(registry, session_factory=session_factory)
    await reconciler.reconcile()

    SessionLocal = session_factory()
    async with SessionLocal() as session:
        await RegistrationRepository(session).update_async(tenant.trigger.id, active=False)
        await session.commit()

    result = await reconciler.reconcile()

    assert result.unmounted == []
    assert unique_path in registry


@pytest.mark.anyio
async def test_reconcile_unmounts_inactive_when_enabled(
    session_factory, seed_tenant, unique_path
) -> None:
    tenant = await seed_tenant(trigger_url=f"https://hooks.example{unique_path}")
    registry = EndpointRegistry()
    reconciler = EndpointReconciler(
        registry, session_factory=session_factory, unmount_inactive=True
    )
    await reconciler.reconcile()
    assert unique_path in registry

    SessionLocal = session_factory()
    async with SessionLocal() as session:
        await RegistrationRepository(session).delete_async(tenant.trigger.id)
        await session.commit()

    result = await reconciler.reconcile()

    assert unique_path in result.unmounted
    assert unique_path not in registry


@pytest.mark.anyio
async def test_reconcile_keeps_first_owner_of_conflicting_path(
    session_factory, seed_tenant, unique_path
) -> None:
    first = await seed_tenant(trigger_url=f"https://one.example{unique_path}")
    await seed_tenant(trigger_url=f"https://two.example{unique_path}")
    registry = EndpointRegistry()
    reconciler = EndpointReconciler(registry, session_factory=session_factory)

    await reconciler.reconcile()

    assert registry.resolve(unique_path).registration_id == first.trigger.id


@pytest.mark.anyio
async def test_reconcile_storage_failure_is_noop() -> None:
    registry = EndpointRegistry()
    registry.mount(
        MountedEndpoint(
            path="/hooks/kept", registration_id=uuid4(), user_id="u", influencer_id=uuid4()
        )
    )
    reconciler = EndpointReconciler(
        registry, session_factory=_failing_session_factory, unmount_inactive=True
    )

    result = await reconciler.reconcile()

    assert result.degraded is True
    assert result.mounted == [] and result.unmounted == []
    assert "/hooks/kept" in registry


@pytest.mark.anyio
async def test_list_active_filters_kind(session_factory, seed_tenant, unique_path) -> None:
    tenant = await seed_tenant(
        trigger_url=f"https://hooks.example{unique_path}",
        subscriber_urls=("http://localhost/sub",),
    )
    SessionLocal = session_factory()
    async with SessionLocal() as session:
        rows = await RegistrationRepository(session).list_active_async(
            RegistrationKind.INBOUND_TRIGGER
        )
    ids = {r.id for r in rows}
    assert tenant.trigger.id in ids
    assert tenant.subscribers[0].id not in ids
