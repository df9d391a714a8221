"""Registration administration endpoints."""

from __future__ import annotations

from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from reelrelay.api.dependencies import (
    get_influencer_repo,
    get_reconciler,
    get_registration_repo,
)
from reelrelay.api.schemas import (
    ReconcileResponse,
    RegistrationCreate,
    RegistrationOut,
    RegistrationUpdate,
)
from reelrelay.errors import EntityNotFoundError, RegistrationNotFoundError, ValidationError
from reelrelay.observability.logging import get_logger
from reelrelay.registry.reconcile import EndpointReconciler
from reelrelay.storage.models import RegistrationKind
from reelrelay.storage.repositories import InfluencerRepository, RegistrationRepository

logger = get_logger("api.registrations")

router = APIRouter(prefix="/v1/registrations", tags=["registrations"])


def _parse_kind(value: str | None) -> RegistrationKind:
    if value is None:
        return RegistrationKind.INBOUND_TRIGGER
    try:
        return RegistrationKind(value)
    except ValueError as exc:
        allowed = ", ".join(k.value for k in RegistrationKind)
        raise ValidationError(f"kind must be one of: {allowed}") from exc


def _parse_uuids(values: List[str]) -> List[UUID]:
    try:
        return [UUID(str(v)) for v in values]
    except ValueError as exc:
        raise ValidationError("influencerIds must be UUIDs") from exc


@router.post("", status_code=status.HTTP_201_CREATED, response_model=List[RegistrationOut])
async def create_registrations(
    body: RegistrationCreate,
    repo: RegistrationRepository = Depends(get_registration_repo),
    influencers: InfluencerRepository = Depends(get_influencer_repo),
) -> List[Dict[str, Any]]:
    """Create one registration per influencer id."""
    if not (body.userId and body.name and body.url and body.event and body.influencerIds):
        raise ValidationError("userId, name, url, event and influencerIds are required")

    kind = _parse_kind(body.kind)
    influencer_ids = _parse_uuids(body.influencerIds)
    found = {i.id: i for i in await influencers.get_many_async(influencer_ids)}
    missing = [str(i) for i in influencer_ids if i not in found]
    if missing:
        raise EntityNotFoundError(f"Influencer not found: {', '.join(missing)}")

    created = []
    for influencer_id in influencer_ids:
        registration = await repo.create_async(
            user_id=body.userId,
            name=body.name,
            url=body.url,
            event=body.event,
            influencer_id=influencer_id,
            kind=kind,
        )
        row = registration.to_dict()
        row["influencer_name"] = found[influencer_id].name
        created.append(row)
    return created


@router.get("", response_model=List[RegistrationOut])
async def list_registrations(
    user_id: str | None = Query(None, alias="userId"),
    repo: RegistrationRepository = Depends(get_registration_repo),
) -> List[Dict[str, Any]]:
    if not user_id:
        raise ValidationError("userId is required")
    return [r.to_dict() for r in await repo.list_by_user_async(user_id)]


@router.put("/{registration_id}", response_model=RegistrationOut)
async def update_registration(
    registration_id: UUID,
    body: RegistrationUpdate,
    repo: RegistrationRepository = Depends(get_registration_repo),
) -> Dict[str, Any]:
    changes = body.model_dump(exclude_none=True)
    if "kind" in changes:
        changes["kind"] = _parse_kind(changes["kind"])
    registration = await repo.update_async(registration_id, **changes)
    if registration is None:
        raise RegistrationNotFoundError("Webhook not found")
    return registration.to_dict()


@router.delete("/{registration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_registration(
    registration_id: UUID,
    repo: RegistrationRepository = Depends(get_registration_repo),
) -> Response:
    if not await repo.delete_async(registration_id):
        raise RegistrationNotFoundError("Webhook not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_now(
    reconciler: EndpointReconciler = Depends(get_reconciler),
) -> Dict[str, Any]:
    """Run one reconciliation pass now instead of waiting for the next tick."""
    result = await reconciler.reconcile()
    logger.info("registry_reconcile_requested", degraded=result.degraded)
    return result.to_dict()


__all__ = ["router"]
