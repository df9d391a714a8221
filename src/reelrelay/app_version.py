"""Version string reported by the API, ``/health`` and ``reelrelay --version``."""

from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

DIST_NAME = "reelrelay"
# Source checkouts on PYTHONPATH=src carry no dist metadata.
SOURCE_VERSION = "0.0.0+source"


@lru_cache(maxsize=1)
def get_app_version() -> str:
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return SOURCE_VERSION
