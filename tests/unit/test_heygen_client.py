"""Unit tests for the HeyGen template API adapter."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from reelrelay.config.settings import Settings
from reelrelay.errors import UpstreamError
from reelrelay.providers import FakeHeyGenClient, HeyGenClient, get_video_provider


def _client(handler, timeout: float = 5.0) -> HeyGenClient:
    transport = httpx.MockTransport(handler)
    return HeyGenClient(
        base_url="http://localhost/heygen/",
        timeout_seconds=timeout,
        client=httpx.AsyncClient(transport=transport),
    )


@pytest.mark.anyio
async def test_generate_posts_template_payload() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("X-Api-Key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"error": None, "data": {"video_id": "v123"}})

    client = _client(handler)
    video_id = await client.generate(
        template_id="tpl_9", title="Hello", script="Say hi", api_key="k-1"
    )

    assert video_id == "v123"
    assert seen["url"] == "http://localhost/heygen/v2/template/tpl_9/generate"
    assert seen["api_key"] == "k-1"
    assert seen["body"]["title"] == "Hello"
    assert seen["body"]["test"] is False
    assert seen["body"]["caption"] is False
    assert seen["body"]["variables"]["Script"] == {
        "name": "Script",
        "type": "text",
        "properties": {"content": "Say hi"},
    }


@pytest.mark.anyio
async def test_generate_non_2xx_raises_upstream_error() -> None:
    client = _client(lambda request: httpx.Response(401, json={"error": "bad key"}))

    with pytest.raises(UpstreamError, match="Failed to create video with HeyGen"):
        await client.generate(template_id="t", title="a", script="b", api_key="k")


@pytest.mark.anyio
async def test_generate_missing_video_id_raises() -> None:
    client = _client(lambda request: httpx.Response(200, json={"data": {}}))

    with pytest.raises(UpstreamError, match="No video ID received"):
        await client.generate(template_id="t", title="a", script="b", api_key="k")


@pytest.mark.anyio
async def test_generate_invalid_json_raises() -> None:
    client = _client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(UpstreamError):
        await client.generate(template_id="t", title="a", script="b", api_key="k")


@pytest.mark.anyio
async def test_generate_times_out() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"data": {"video_id": "late"}})

    client = _client(handler, timeout=0.05)

    with pytest.raises(UpstreamError, match="Timed out"):
        await client.generate(template_id="t", title="a", script="b", api_key="k")


@pytest.mark.anyio
async def test_fake_provider_is_deterministic() -> None:
    fake = FakeHeyGenClient(video_id_prefix="fake-video")
    first = await fake.generate(template_id="t", title="a", script="b", api_key="k")
    second = await fake.generate(template_id="t", title="c", script="d", api_key="k")

    assert (first, second) == ("fake-video-1", "fake-video-2")
    assert fake.submitted_jobs[1]["title"] == "c"


def test_factory_selects_provider() -> None:
    assert isinstance(get_video_provider(Settings(video_provider="fake")), FakeHeyGenClient)
    real = get_video_provider(Settings(video_provider="real", environment="test"))
    assert isinstance(real, HeyGenClient)


@pytest.mark.anyio
async def test_fake_provider_instances_do_not_share_ids() -> None:
    a, b = FakeHeyGenClient(), FakeHeyGenClient()
    first = await a.generate(template_id="t", title="a", script="b", api_key="k")
    second = await b.generate(template_id="t", title="a", script="b", api_key="k")
    assert first != second
