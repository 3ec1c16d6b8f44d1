from buddynet.models import User

from .exceptions import UnauthenticatedError


def require_identity(current_user: User | None) -> User:
    """Returns the caller if it is an authenticated, active user."""
    if current_user is None or current_user.id is None:
        raise UnauthenticatedError()
    if not current_user.is_active:
        raise UnauthenticatedError("User account is inactive.")
    return current_user
