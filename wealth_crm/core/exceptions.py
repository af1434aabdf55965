"""Domain errors raised by the service layer.

Services never raise HTTPException. Routers translate these into HTTP
responses via ``handle_service_error``. All of them subclass ValueError so
callers that only care about "bad input" can keep catching ValueError.
"""

from fastapi import HTTPException


class ServiceError(ValueError):
    """Base class for service-layer failures."""

    status_code = 400


class ValidationError(ServiceError):
    """Input is well-formed JSON but violates a business rule."""

    status_code = 400


class NotFoundError(ServiceError):
    """Referenced record does not exist (or is not visible to the caller)."""

    status_code = 404


class ConflictError(ServiceError):
    """Uniqueness rule violated (duplicate key, name, default)."""

    status_code = 409


def handle_service_error(exc: ServiceError) -> HTTPException:
    """Map a service error to an HTTPException carrying its message."""
    return HTTPException(status_code=exc.status_code, detail=str(exc))
