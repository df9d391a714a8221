"""Provider completion callback.

HeyGen posts ``{"event_type": "avatar_video.success", "event_data":
{"video_id": ..., "url": ...}}`` once a job finishes. The route path is
configurable (``PROVIDER_CALLBACK_PATH``) so it is registered on the app in
:func:`reelrelay.api.server.create_app` rather than via a decorator.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import Depends, Request

from reelrelay.api.dependencies import get_coordinator
from reelrelay.api.routes.triggers import read_json_object
from reelrelay.config.settings import settings
from reelrelay.jobs.coordinator import JobCoordinator
from reelrelay.observability.logging import get_logger

logger = get_logger("api.callbacks")


async def provider_callback(
    request: Request,
    coordinator: JobCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    event = await read_json_object(request)
    if settings.log_webhook_payloads:
        logger.info("provider_callback_received", payload=event)

    result = await coordinator.complete(event)
    failed = sum(1 for delivery in result.deliveries if not delivery.success)
    return {
        "success": True,
        "status": result.status,
        "videoId": result.video_id,
        "deliveries": len(result.deliveries) - failed,
        "failedDeliveries": failed,
    }


__all__ = ["provider_callback"]
