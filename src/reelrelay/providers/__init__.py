"""Video generation provider adapters."""

from reelrelay.providers.factory import (
    FakeHeyGenClient,
    HeyGenClient,
    VideoProvider,
    get_video_provider,
)

__all__ = ["FakeHeyGenClient", "HeyGenClient", "VideoProvider", "get_video_provider"]
