"""Generation job lifecycle and completion fan-out."""

from reelrelay.jobs.coordinator import CompleteResult, JobCoordinator, SubmitResult
from reelrelay.jobs.fanout import DeliveryResult, FanoutDispatcher, build_completion_payload

__all__ = [
    "JobCoordinator",
    "SubmitResult",
    "CompleteResult",
    "FanoutDispatcher",
    "DeliveryResult",
    "build_completion_payload",
]
