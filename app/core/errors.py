"""
Service error taxonomy.

Every error the services raise maps to one HTTP status; app.main renders them
as {"message": ...} so routes never build error responses by hand.
"""
from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra}


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class TrialDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ProviderError(ServiceError):
    """Payment provider call failed. Not retried: a retry may create a second transaction."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class CapacityError(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StaleDataError(ServiceError):
    """Exchange-rate or geolocation lookup failed.

    Raised inside the lookup services only; callers degrade to a default value.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
