"""Request dependencies: DB sessions and app-scoped components."""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reelrelay.billing.service import BillingService
from reelrelay.errors import ConfigurationError
from reelrelay.jobs.coordinator import JobCoordinator
from reelrelay.registry.endpoints import EndpointRegistry
from reelrelay.registry.reconcile import EndpointReconciler
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.repositories import (
    ContentRepository,
    InfluencerRepository,
    RegistrationRepository,
)


async def get_async_db_session() -> AsyncGenerator[AsyncSession, None]:
    SessionLocal = get_async_session_factory()
    session = SessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_registration_repo(
    session: AsyncSession = Depends(get_async_db_session),
) -> RegistrationRepository:
    return RegistrationRepository(session)


async def get_influencer_repo(
    session: AsyncSession = Depends(get_async_db_session),
) -> InfluencerRepository:
    return InfluencerRepository(session)


async def get_content_repo(
    session: AsyncSession = Depends(get_async_db_session),
) -> ContentRepository:
    return ContentRepository(session)


def _state(request: Request, name: str):  # type: ignore[no-untyped-def]
    component = getattr(request.app.state, name, None)
    if component is None:
        raise ConfigurationError(f"{name} is not initialized")
    return component


def get_registry(request: Request) -> EndpointRegistry:
    return _state(request, "registry")


def get_reconciler(request: Request) -> EndpointReconciler:
    return _state(request, "reconciler")


def get_coordinator(request: Request) -> JobCoordinator:
    return _state(request, "coordinator")


def get_billing_service(request: Request) -> BillingService:
    return _state(request, "billing")
