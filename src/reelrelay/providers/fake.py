"""HeyGen stand-in for local runs and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List
from uuid import uuid4


def _default_prefix() -> str:
    # Unique per instance so restarts never reuse ids already stored in contents.
    return f"fake-{uuid4().hex[:8]}"


@dataclass
class FakeHeyGenClient:
    """Minimal stand-in for HeyGenClient; ids are sequential per instance."""

    video_id_prefix: str = field(default_factory=_default_prefix)
    submitted_jobs: List[Dict[str, Any]] = field(default_factory=list)

    async def generate(self, *, template_id: str, title: str, script: str, api_key: str) -> str:
        video_id = f"{self.video_id_prefix}-{len(self.submitted_jobs) + 1}"
        self.submitted_jobs.append(
            {
                "template_id": template_id,
                "title": title,
                "script": script,
                "api_key": api_key,
                "video_id": video_id,
            }
        )
        return video_id

    async def aclose(self) -> None:
        """Parity with real client."""
        return None
