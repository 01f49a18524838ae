"""Service-level errors rendered as ``{"error": {code, message, details}}``.

Engine failures never reach this layer: adapters fold them into error
results. These cover request problems, missing configuration and upstream
failures of the insight backend.
"""

from typing import Any

from fastapi import status


class TrackerError(Exception):
    """Base exception for the brand tracking service."""

    code = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class BadRequestError(TrackerError):
    """Request is missing required data."""

    code = "bad_request"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details={"field": field} if field else None)


class ConfigurationError(TrackerError):
    """A feature is unavailable because the service is not configured for it."""

    code = "configuration_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ExternalServiceError(TrackerError):
    """An upstream the request depends on failed."""

    code = "external_service_error"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}", details={"service": service})
