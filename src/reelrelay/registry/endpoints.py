"""In-memory registry of mounted inbound trigger endpoints.

The router never mutates routes at runtime. A single catch-all POST handler
resolves the request path here; reconciliation swaps entries in and out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from urllib.parse import unquote, urlparse
from uuid import UUID

from reelrelay.observability.logging import get_logger
from reelrelay.observability.metrics import mounted_endpoints

logger = get_logger(__name__)

__all__ = [
    "MountedEndpoint",
    "EndpointRegistry",
    "endpoint_path_for",
    "normalize_path",
    "reserved_prefixes",
]

# Paths owned by the application itself.
BUILTIN_PREFIXES = ("/health", "/metrics", "/v1", "/stripe", "/docs", "/redoc", "/openapi.json")


@dataclass(frozen=True)
class MountedEndpoint:
    """Projection of an active inbound-trigger registration."""

    path: str
    registration_id: UUID
    user_id: str
    influencer_id: UUID
    name: str = ""

    @property
    def credential_key(self) -> str:
        # Provider credentials are stored per tenant.
        return self.user_id


def normalize_path(path: str) -> str:
    path = "/" + path.strip().lstrip("/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def endpoint_path_for(url: str) -> str | None:
    """Return the mount path for a registration URL, or None when it has none.

    Only the path component is used; host, query and fragment are ignored.
    The path is percent-decoded to match the decoded request path the router sees.
    """
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return None
    raw = unquote(parsed.path)
    if not raw or raw.strip("/") == "":
        return None
    return normalize_path(raw)


def reserved_prefixes(callback_path: str) -> tuple[str, ...]:
    """Prefixes that no registration can claim."""
    return BUILTIN_PREFIXES + (normalize_path(callback_path),)


class EndpointRegistry:
    """Path -> MountedEndpoint mapping owned by the HTTP layer.

    At most one endpoint per path. Every mutation is a single dict operation on
    the event loop thread, so a concurrent lookup never observes a partial mount.
    """

    def __init__(self, reserved_prefixes: Iterable[str] = ()) -> None:
        self._endpoints: dict[str, MountedEndpoint] = {}
        self._reserved = tuple(normalize_path(p) for p in reserved_prefixes)

    def is_reserved(self, path: str) -> bool:
        path = normalize_path(path)
        for prefix in self._reserved:
            if prefix == "/":
                continue
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    def mount(self, endpoint: MountedEndpoint) -> bool:
        """Mount ``endpoint`` at its path. Returns False if the path is taken or reserved."""
        path = normalize_path(endpoint.path)
        if self.is_reserved(path):
            logger.warning(
                "endpoint_path_reserved",
                path=path,
                registration_id=str(endpoint.registration_id),
            )
            return False
        if path in self._endpoints:
            return False
        self._endpoints[path] = endpoint
        mounted_endpoints.set(len(self._endpoints))
        logger.info(
            "endpoint_mounted",
            path=path,
            registration_id=str(endpoint.registration_id),
            influencer_id=str(endpoint.influencer_id),
        )
        return True

    def unmount(self, path: str) -> bool:
        path = normalize_path(path)
        removed = self._endpoints.pop(path, None)
        if removed is None:
            return False
        mounted_endpoints.set(len(self._endpoints))
        logger.info(
            "endpoint_unmounted",
            path=path,
            registration_id=str(removed.registration_id),
        )
        return True

    def resolve(self, path: str) -> MountedEndpoint | None:
        return self._endpoints.get(normalize_path(path))

    def current_paths(self) -> frozenset[str]:
        return frozenset(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._endpoints
