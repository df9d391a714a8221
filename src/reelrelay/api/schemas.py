"""Shared Pydantic request/response models for OpenAPI."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class HealthResponse(BaseModel):
    status: str
    version: str
    database_ready: Optional[bool] = None
    mounted_endpoints: int = 0
    registry_refresh_running: bool = False
    video_provider: str


class TriggerRequest(BaseModel):
    """Body posted to a mounted inbound trigger endpoint."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    script: Optional[str] = None


class TriggerResponse(BaseModel):
    success: bool = True
    videoId: str


class ProviderEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    video_id: Optional[str] = None
    url: Optional[str] = None
    msg: Optional[str] = None


class ProviderCallback(BaseModel):
    """HeyGen webhook envelope."""

    model_config = ConfigDict(extra="allow")

    event_type: Optional[str] = None
    event_data: Optional[ProviderEventData] = None


class CallbackAck(BaseModel):
    success: bool = True
    status: str
    videoId: str
    deliveries: int = 0
    failedDeliveries: int = 0


class RegistrationCreate(BaseModel):
    userId: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    event: Optional[str] = None
    influencerIds: Optional[List[str]] = None
    kind: Optional[str] = Field(
        None, description="inbound-trigger (default) or automation-subscriber"
    )


class RegistrationUpdate(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    event: Optional[str] = None
    kind: Optional[str] = None
    active: Optional[bool] = None


class RegistrationOut(BaseModel):
    id: str
    user_id: str
    name: str
    url: str
    event: str
    influencer_id: str
    influencer_name: Optional[str] = None
    kind: str
    active: bool
    created_at: Optional[str] = None


class ReconcileResponse(BaseModel):
    mounted: List[str]
    unmounted: List[str]
    skipped: List[str]
    degraded: bool
    mounted_total: int


class CancelSubscriptionRequest(BaseModel):
    email: Optional[str] = None
    subId: Optional[str] = None


class CancelSubscriptionResponse(BaseModel):
    success: bool = True
    canceledSubscription: Dict[str, Any]
