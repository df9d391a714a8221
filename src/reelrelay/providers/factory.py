"""Factory for video provider adapters (real vs fake)."""

from __future__ import annotations

from typing import Protocol

from reelrelay.providers.fake import FakeHeyGenClient
from reelrelay.providers.heygen import HeyGenClient


class VideoProvider(Protocol):
    async def generate(
        self, *, template_id: str, title: str, script: str, api_key: str
    ) -> str: ...

    async def aclose(self) -> None: ...


class _ProviderSettings(Protocol):
    video_provider: str
    heygen_api_url: str
    provider_timeout_seconds: float


def get_video_provider(settings: _ProviderSettings) -> VideoProvider:
    """Return a deterministic fake when VIDEO_PROVIDER=fake, otherwise a real client."""

    mode = str(getattr(settings, "video_provider", "real")).lower()
    if mode == "fake":
        return FakeHeyGenClient()

    return HeyGenClient(
        base_url=settings.heygen_api_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


__all__ = ["get_video_provider", "VideoProvider", "HeyGenClient", "FakeHeyGenClient"]
