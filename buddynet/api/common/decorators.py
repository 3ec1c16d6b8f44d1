import logging
from functools import wraps

from fastapi import HTTPException, status

from buddynet.api.common.exceptions import handle_service_error
from buddynet.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


def log_route_call(func):
    """
    Logs entry and exit of a route function, and whether it raised.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        route_logger = logging.getLogger(func.__module__)

        # Users are logged by id only
        logged_kwargs = {
            k: (getattr(v, "id", None) if k in ("user", "current_user") else repr(v))
            for k, v in kwargs.items()
            if not k.endswith("_service")
        }

        route_logger.info(f"Entering route: {func.__name__} (kwargs: {logged_kwargs})")
        try:
            result = await func(*args, **kwargs)
            route_logger.info(f"Successfully exited route: {func.__name__}")
            return result
        except Exception as e:
            route_logger.error(
                f"Error during route: {func.__name__}. Exception: {type(e).__name__} - {e}",
                exc_info=False,
            )
            raise

    return wrapper


def handle_route_errors(func):
    """
    Standardizes error handling in API routes.
    Service errors go through handle_service_error; anything unexpected
    becomes a 500 after being logged with its traceback.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except ServiceError as e:
            logger.error(
                f"Service error in {func.__name__} route: {e}",
                exc_info=e.status_code >= 500,
            )
            handle_service_error(e)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in {func.__name__} route: {e}", exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An unexpected server error occurred.",
            ) from e

    return wrapper
