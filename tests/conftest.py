"""Pytest configuration and shared fixtures."""

import os
import sys
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest
import httpx

# Ensure source tree is importable without editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def pytest_configure(config):
    """Configure pytest markers and environment for tests."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")

    # These MUST override any developer shell/.env values to keep the test run deterministic.
    os.environ["ENVIRONMENT"] = "test"
    os.environ["VIDEO_PROVIDER"] = "fake"
    os.environ["REGISTRY_REFRESH_ENABLED"] = "false"
    os.environ["REGISTRY_UNMOUNT_INACTIVE"] = "false"
    os.environ["FAIL_FAST_ON_STARTUP"] = "false"
    os.environ["PROVIDER_CALLBACK_PATH"] = "/v1/callbacks/heygen"
    os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
    os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
    os.environ["SENTRY_DSN"] = ""
    # Do not write SQLite DB files into the repo root; use a per-test-run temp directory.
    test_artifacts_root = Path(
        os.environ.get("REELRELAY_TEST_ARTIFACTS_DIR") or (PROJECT_ROOT / ".tmp" / "pytest")
    )
    test_artifacts_root.mkdir(parents=True, exist_ok=True)
    run_dir = Path(tempfile.mkdtemp(prefix="run_", dir=str(test_artifacts_root)))
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{run_dir / 'test_default.db'}"


@pytest.fixture(autouse=True)
def block_external_http(monkeypatch):
    """Fail the fast lane if code tries to hit the public internet.

    Allowlist only:
    - ASGI test host ("test") used with httpx.ASGITransport
    - localhost/loopback (subscriber and provider fakes use these hosts)
    """

    allowed_hosts = {"test", "testserver", "localhost", "127.0.0.1", "0.0.0.0"}

    async def _async_guard(self, method, url, *args, **kwargs):  # type: ignore[no-untyped-def]
        u = httpx.URL(url) if not isinstance(url, httpx.URL) else url
        if u.scheme in {"http", "https"} and (u.host or "") not in allowed_hosts:
            raise RuntimeError(f"External HTTP blocked in tests: {u!s}")
        return await _orig_async_request(self, method, url, *args, **kwargs)

    _orig_async_request = httpx.AsyncClient.request
    monkeypatch.setattr(httpx.AsyncClient, "request", _async_guard, raising=True)

    yield


def pytest_sessionfinish(session, exitstatus):  # noqa: ARG001
    """Best-effort teardown for global DB engines.

    Prevents leaked aiosqlite connections from throwing unraisable exceptions
    after the event loop has been closed.
    """
    try:
        import asyncio

        from reelrelay.storage.database import shutdown_async_db

        asyncio.run(shutdown_async_db())
    except Exception:
        # Never fail the test run during teardown.
        return


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio tests on asyncio (SQLAlchemy/asyncio-based stack)."""
    return "asyncio"


@pytest.fixture
async def session_factory():
    """Async session factory bound to the per-run SQLite database."""
    from reelrelay.storage.database import (
        get_async_session_factory,
        init_async_db,
        shutdown_async_db,
    )

    await init_async_db()
    yield get_async_session_factory
    await shutdown_async_db()


@pytest.fixture
def unique_path() -> str:
    """A trigger path no other test uses (the database is shared across the run)."""
    return f"/hooks/{uuid4().hex[:12]}"


@pytest.fixture
async def async_client():
    """httpx AsyncClient wired to the FastAPI app with lifespan enabled."""
    from httpx import ASGITransport, AsyncClient

    from reelrelay.api.server import app

    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def seed_tenant():
    """Create a tenant with one influencer, an API key and optional registrations.

    Returns an async callable; call it after the database is initialised.
    """
    from types import SimpleNamespace

    from reelrelay.storage.database import get_async_session_factory
    from reelrelay.storage.models import RegistrationKind
    from reelrelay.storage.repositories import (
        ApiKeyRepository,
        InfluencerRepository,
        RegistrationRepository,
    )

    async def _seed(
        *,
        trigger_url: str | None = None,
        subscriber_urls: tuple[str, ...] = (),
        template_id: str | None = "tpl_1",
        api_key: str | None = "heygen-key-1",
        influencer_name: str = "Ava",
    ) -> SimpleNamespace:
        user_id = f"user-{uuid4().hex[:8]}"
        SessionLocal = get_async_session_factory()
        async with SessionLocal() as session:
            influencer = await InfluencerRepository(session).create_async(
                user_id=user_id, name=influencer_name, template_id=template_id
            )
            if api_key:
                await ApiKeyRepository(session).upsert_async(user_id, api_key)
            repo = RegistrationRepository(session)
            trigger = None
            if trigger_url:
                trigger = await repo.create_async(
                    user_id=user_id,
                    name="trigger",
                    url=trigger_url,
                    event="video.requested",
                    influencer_id=influencer.id,
                )
            subscribers = [
                await repo.create_async(
                    user_id=user_id,
                    name=f"subscriber-{i}",
                    url=url,
                    event="video.completed",
                    influencer_id=influencer.id,
                    kind=RegistrationKind.AUTOMATION_SUBSCRIBER,
                )
                for i, url in enumerate(subscriber_urls)
            ]
            await session.commit()
        return SimpleNamespace(
            user_id=user_id, influencer=influencer, trigger=trigger, subscribers=subscribers
        )

    return _seed
