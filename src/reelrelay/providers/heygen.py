"""HeyGen template video API adapter."""

from __future__ import annotations

from typing import Any

import anyio
import httpx

from reelrelay.errors import UpstreamError
from reelrelay.observability.logging import get_logger

logger = get_logger(__name__)


class HeyGenClient:
    """Thin async wrapper around the HeyGen template generate endpoint.

    Credentials are per tenant, so the API key is passed on every call rather
    than bound to the client.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = float(timeout_seconds)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds))
        self._owns_client = client is None

    @staticmethod
    def build_payload(title: str, script: str) -> dict[str, Any]:
        return {
            "test": False,
            "caption": False,
            "title": title,
            "variables": {
                "Script": {
                    "name": "Script",
                    "type": "text",
                    "properties": {"content": script},
                }
            },
        }

    async def generate(self, *, template_id: str, title: str, script: str, api_key: str) -> str:
        """Submit a template render and return the provider video id.

        Raises:
            UpstreamError: on timeout, transport failure, non-2xx status, or a
                response without ``data.video_id``.
        """
        url = f"{self._base_url}/v2/template/{template_id}/generate"
        headers = {"X-Api-Key": api_key, "Content-Type": "application/json"}
        logger.info("heygen_generate_submit", template_id=template_id)

        try:
            with anyio.fail_after(self._timeout_seconds):
                response = await self._client.post(
                    url, json=self.build_payload(title, script), headers=headers
                )
            response.raise_for_status()
            body = response.json()
        except TimeoutError as exc:
            logger.warning(
                "heygen_generate_timeout",
                template_id=template_id,
                timeout_s=self._timeout_seconds,
            )
            raise UpstreamError("Timed out waiting for HeyGen") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "heygen_generate_rejected",
                template_id=template_id,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise UpstreamError("Failed to create video with HeyGen") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("heygen_generate_failed", template_id=template_id, error=str(exc))
            raise UpstreamError("Failed to create video with HeyGen") from exc

        data = body.get("data") if isinstance(body, dict) else None
        video_id = data.get("video_id") if isinstance(data, dict) else None
        if not isinstance(video_id, str) or not video_id:
            logger.warning("heygen_generate_missing_video_id", template_id=template_id)
            raise UpstreamError("No video ID received from HeyGen API")

        logger.info("heygen_generate_accepted", template_id=template_id, video_id=video_id)
        return video_id

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
