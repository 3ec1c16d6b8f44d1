import logging

from fastapi import HTTPException, status

from buddynet.core.config import settings
from buddynet.services.exceptions import (
    BusinessRuleError,
    ConflictError,
    EmptyMessageError,
    NotAuthorizedError,
    NotFoundError,
    ServiceError,
    UnauthenticatedError,
    UnavailableError,
)

logger = logging.getLogger(__name__)


class APIException(HTTPException):
    """Base class for API specific exceptions."""

    def __init__(
        self, status_code: int, detail: any = None, headers: dict | None = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class NotFoundAPIError(APIException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class BadRequestError(APIException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedError(APIException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class ForbiddenError(APIException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ServiceUnavailableError(APIException):
    def __init__(
        self,
        detail: str = "Service temporarily unavailable",
        retry_after: int | None = None,
    ):
        seconds = retry_after or settings.UNAVAILABLE_RETRY_AFTER_SECONDS
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": str(seconds)},
        )


def handle_service_error(e: ServiceError):
    """
    Maps ServiceError subclasses to HTTP responses.
    Called by the @handle_route_errors decorator; always raises.
    """
    logger.warning(f"Handling service error: {e.__class__.__name__} - {e.message}")

    if isinstance(e, UnauthenticatedError):
        raise UnauthorizedError(detail=e.message)
    elif isinstance(e, NotFoundError):
        raise NotFoundAPIError(detail=e.message)
    elif isinstance(e, NotAuthorizedError):
        raise ForbiddenError(detail=e.message)
    elif isinstance(e, EmptyMessageError):
        raise APIException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message
        )
    elif isinstance(e, BusinessRuleError):
        raise BadRequestError(detail=e.message)
    elif isinstance(e, ConflictError):
        raise APIException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    elif isinstance(e, UnavailableError):
        request_id = getattr(e, "request_id", None)
        detail = (
            {"message": e.message, "request_id": str(request_id)}
            if request_id
            else e.message
        )
        raise ServiceUnavailableError(detail=detail)
    raise APIException(status_code=e.status_code, detail=e.message)
