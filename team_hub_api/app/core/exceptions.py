"""
Domain exceptions raised by the service layer.

Services raise plain ``ValueError`` for invalid requests.  The
subclasses below let endpoints choose a more precise HTTP status
without parsing messages: ``NotFoundError`` maps to 404 and
``ConflictError`` to 409.  ``CentralApiError`` wraps every failure of
the central application inventory and maps to 502.
"""

from fastapi import HTTPException, status


class NotFoundError(ValueError):
    """Requested record does not exist (or is not visible to the caller)."""


class ConflictError(ValueError):
    """Request clashes with existing data, e.g. a duplicate name."""


class CentralApiError(RuntimeError):
    """The central application inventory could not provide a valid answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# Exceptions endpoints translate with ``to_http_exception``.
DOMAIN_ERRORS = (ValueError, CentralApiError)


def to_http_exception(exc: Exception) -> HTTPException:
    """Map a service exception to the matching ``HTTPException``."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, CentralApiError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
