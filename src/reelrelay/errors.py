"""Domain-specific exceptions mapped to HTTP status codes."""

from __future__ import annotations

from fastapi import status


class DomainError(Exception):
    """Base class for domain errors."""

    error: str = "domain_error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code

    def to_payload(self) -> dict[str, str]:
        return {"error": str(self), "code": self.error}


class ValidationError(DomainError):
    error = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class EntityNotFoundError(NotFoundError):
    error = "influencer_not_found"


class JobNotFoundError(NotFoundError):
    error = "job_not_found"


class RegistrationNotFoundError(NotFoundError):
    error = "registration_not_found"


class CredentialMissingError(DomainError):
    """The tenant has no provider API key; the job cannot be submitted."""

    error = "credential_missing"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(DomainError):
    error = "upstream_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StorageError(DomainError):
    error = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(DomainError):
    error = "configuration_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DeliveryError(DomainError):
    """A single fan-out delivery failed. Logged by the dispatcher, never surfaced."""

    error = "delivery_error"
    status_code = status.HTTP_502_BAD_GATEWAY
