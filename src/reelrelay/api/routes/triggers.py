"""Inbound trigger endpoints.

Every active inbound-trigger registration owns one path in the
:class:`~reelrelay.registry.EndpointRegistry`. This router is a single
catch-all that resolves the request path against the registry, so endpoints
appear and disappear without touching the routing table.

Must be included after every other router.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from reelrelay.api.dependencies import get_coordinator, get_registry
from reelrelay.api.schemas import TriggerResponse
from reelrelay.config.settings import settings
from reelrelay.errors import NotFoundError, ValidationError
from reelrelay.jobs.coordinator import JobCoordinator
from reelrelay.observability.logging import get_logger
from reelrelay.registry.endpoints import EndpointRegistry

logger = get_logger("api.triggers")

router = APIRouter(tags=["triggers"])


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object. Empty body -> {}."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


@router.post("/{path:path}", response_model=TriggerResponse)
async def inbound_trigger(
    path: str,
    request: Request,
    registry: EndpointRegistry = Depends(get_registry),
    coordinator: JobCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    endpoint = registry.resolve("/" + path)
    if endpoint is None:
        raise NotFoundError("Not found")

    payload = await read_json_object(request)
    if settings.log_webhook_payloads:
        logger.info("trigger_payload_received", path=endpoint.path, payload=payload)

    result = await coordinator.submit(endpoint, payload)
    return {"success": True, "videoId": result.video_id}


__all__ = ["router", "read_json_object"]
