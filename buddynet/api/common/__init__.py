from .base_router import BaseRouter
from .decorators import handle_route_errors, log_route_call
from .exceptions import (
    APIException,
    BadRequestError,
    ForbiddenError,
    NotFoundAPIError,
    ServiceUnavailableError,
    UnauthorizedError,
    handle_service_error,
)

__all__ = [
    "log_route_call",
    "handle_route_errors",
    "APIException",
    "NotFoundAPIError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "ServiceUnavailableError",
    "handle_service_error",
    "BaseRouter",
]
