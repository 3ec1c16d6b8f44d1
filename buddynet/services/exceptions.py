import logging

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for service layer errors."""

    retryable = False

    def __init__(self, message="An internal service error occurred.", status_code=500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UnauthenticatedError(ServiceError):
    def __init__(self, message="Authentication required."):
        super().__init__(message, status_code=401)


class NotFoundError(ServiceError):
    """The record does not exist or the caller may not see it."""

    def __init__(self, message="Resource not found."):
        super().__init__(message, status_code=404)


class BuddyRequestNotFoundError(NotFoundError):
    def __init__(self, message="Buddy request not found."):
        super().__init__(message)


class ConversationNotFoundError(NotFoundError):
    def __init__(self, message="Conversation not found."):
        super().__init__(message)


class UserNotFoundError(NotFoundError):
    def __init__(self, message="User not found."):
        super().__init__(message)


class NotAuthorizedError(ServiceError):
    def __init__(self, message="User not authorized for this action."):
        super().__init__(message, status_code=403)


class NotBuddiesError(NotAuthorizedError):
    def __init__(self, message="Conversations are only possible between buddies."):
        super().__init__(message)


class NotParticipantError(NotAuthorizedError):
    def __init__(self, message="User is not a participant in this conversation."):
        super().__init__(message)


class BusinessRuleError(ServiceError):
    """For violations of specific business rules (e.g., requesting yourself)."""

    def __init__(self, message="Action violates business rules."):
        super().__init__(message, status_code=400)


class EmptyMessageError(ServiceError):
    def __init__(self, message="Message text must not be empty."):
        super().__init__(message, status_code=422)


class ConflictError(ServiceError):
    """For operations that conflict with the current state of a record."""

    def __init__(self, message="Operation conflicts with existing state."):
        super().__init__(message, status_code=409)


class DuplicateRequestError(ConflictError):
    def __init__(self, message="A pending buddy request already exists for this user."):
        super().__init__(message)


class AlreadyBuddiesError(ConflictError):
    def __init__(self, message="Users are already buddies."):
        super().__init__(message)


class AlreadyResolvedError(ConflictError):
    def __init__(self, message="Buddy request has already been resolved."):
        super().__init__(message)


class UnavailableError(ServiceError):
    """The store could not be reached. Callers may retry with backoff."""

    retryable = True

    def __init__(self, message="The data store is currently unavailable."):
        super().__init__(message, status_code=503)


class BuddyLinkIncompleteError(UnavailableError):
    """The request is accepted but one or both buddy links were not written."""

    def __init__(
        self,
        request_id=None,
        message="Buddy request accepted but the buddy link could not be completed.",
    ):
        self.request_id = request_id
        super().__init__(message)
