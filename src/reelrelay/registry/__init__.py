"""Dynamic endpoint registry: mounted paths, reconciliation and refresh scheduling."""

from reelrelay.registry.endpoints import (
    EndpointRegistry,
    MountedEndpoint,
    endpoint_path_for,
    normalize_path,
    reserved_prefixes,
)
from reelrelay.registry.reconcile import EndpointReconciler, ReconcileResult
from reelrelay.registry.scheduler import RefreshScheduler

__all__ = [
    "EndpointRegistry",
    "MountedEndpoint",
    "endpoint_path_for",
    "normalize_path",
    "reserved_prefixes",
    "EndpointReconciler",
    "ReconcileResult",
    "RefreshScheduler",
]
