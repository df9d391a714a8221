"""Unit tests for the reelrelay CLI."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

from click.testing import CliRunner

from reelrelay.cli.main import cli


def _patch_anyio_run(monkeypatch, module: str) -> None:
    def fake_anyio_run(func, *args, **kwargs):
        return asyncio.run(func(*args, **kwargs))

    monkeypatch.setattr(f"reelrelay.cli.{module}.anyio.run", fake_anyio_run)


def _patch_session(monkeypatch, module: str) -> None:
    @asynccontextmanager
    async def fake_session_cm():
        yield SimpleNamespace()

    monkeypatch.setattr(
        f"reelrelay.cli.{module}.get_async_session_factory", lambda: lambda: fake_session_cm()
    )


def _registration(**overrides):  # type: ignore[no-untyped-def]
    values = dict(
        id=uuid4(),
        name="zap",
        kind="inbound-trigger",
        url="https://h.example/a",
        influencer_id=uuid4(),
        user_id="user-1",
        active=True,
        created_at=datetime(2026, 1, 1, 12, 0, 0),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "reelrelay" in result.output


def test_config_show() -> None:
    result = CliRunner().invoke(cli, ["config", "show"])
    assert result.exit_code == 0
    assert "ReelRelay Configuration" in result.output
    assert "Video Provider" in result.output


def test_registrations_list_by_user(monkeypatch) -> None:
    seen = {}

    class FakeRepo:
        def __init__(self, _session):
            pass

        async def list_by_user_async(self, user_id):
            seen["user_id"] = user_id
            return [_registration()]

        async def list_all_async(self, limit=100):
            raise AssertionError("should filter by user")

    monkeypatch.setattr("reelrelay.cli.registrations.RegistrationRepository", FakeRepo)
    _patch_session(monkeypatch, "registrations")
    _patch_anyio_run(monkeypatch, "registrations")

    result = CliRunner().invoke(cli, ["registrations", "list", "--user-id", "user-1"])

    assert result.exit_code == 0
    assert seen["user_id"] == "user-1"
    assert "Webhook Registrations" in result.output


def test_registrations_list_empty(monkeypatch) -> None:
    class FakeRepo:
        def __init__(self, _session):
            pass

        async def list_all_async(self, limit=100):
            return []

    monkeypatch.setattr("reelrelay.cli.registrations.RegistrationRepository", FakeRepo)
    _patch_session(monkeypatch, "registrations")
    _patch_anyio_run(monkeypatch, "registrations")

    result = CliRunner().invoke(cli, ["registrations", "list"])

    assert result.exit_code == 0
    assert "No registrations found" in result.output


def test_registrations_paths(monkeypatch) -> None:
    async def fake_fetch(self):
        return [
            _registration(url="https://h.example/hooks/a"),
            _registration(url="https://h.example/health"),
        ]

    monkeypatch.setattr(
        "reelrelay.cli.registrations.EndpointReconciler.fetch_active_triggers", fake_fetch
    )
    _patch_anyio_run(monkeypatch, "registrations")

    result = CliRunner().invoke(cli, ["registrations", "paths"])

    assert result.exit_code == 0
    assert "/hooks/a" in result.output
    assert "reserved" in result.output
    assert "2 distinct path(s)" in result.output


def test_registrations_paths_storage_failure(monkeypatch) -> None:
    async def fake_fetch(self):
        return None

    monkeypatch.setattr(
        "reelrelay.cli.registrations.EndpointReconciler.fetch_active_triggers", fake_fetch
    )
    _patch_anyio_run(monkeypatch, "registrations")

    result = CliRunner().invoke(cli, ["registrations", "paths"])

    assert result.exit_code == 1
    assert "Could not read registrations" in result.output


def test_jobs_show(monkeypatch) -> None:
    content = SimpleNamespace(
        id=uuid4(),
        influencer_id=uuid4(),
        status="completed",
        title="Hello",
        video_url="https://cdn.example/v.mp4",
        error=None,
        created_at=datetime(2026, 1, 1),
        to_dict=lambda: {"video_id": "v123", "status": "completed"},
    )

    class FakeRepo:
        def __init__(self, _session):
            pass

        async def get_by_video_id_async(self, video_id):
            return content if video_id == "v123" else None

    monkeypatch.setattr("reelrelay.cli.jobs.ContentRepository", FakeRepo)
    _patch_session(monkeypatch, "jobs")
    _patch_anyio_run(monkeypatch, "jobs")

    result = CliRunner().invoke(cli, ["jobs", "show", "v123"])
    assert result.exit_code == 0
    assert "completed" in result.output

    result = CliRunner().invoke(cli, ["jobs", "show", "v123", "--json"])
    assert result.exit_code == 0
    assert '"video_id": "v123"' in result.output

    result = CliRunner().invoke(cli, ["jobs", "show", "missing"])
    assert result.exit_code == 1
    assert "No job found" in result.output


def test_serve_runs_uvicorn(monkeypatch) -> None:
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr("reelrelay.cli.serve.uvicorn.run", fake_run)

    result = CliRunner().invoke(cli, ["serve", "--port", "8123"])

    assert result.exit_code == 0
    assert calls["app"] == "reelrelay.api.server:app"
    assert calls["port"] == 8123
