import logging
from typing import Any, Dict, Type, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class ServiceProvider:
    """
    Keeps one process-wide instance per class.

    Used for components that must be shared across requests, such as the
    live update channel that every subscription and publisher talks to.
    Request-scoped services are built fresh per request instead.
    """

    _instances: Dict[Type[T], T] = {}

    @classmethod
    def get_service(cls, service_class: Type[T], **dependencies: Any) -> T:
        """
        Retrieves or creates the shared instance of ``service_class``.
        Keyword dependencies are only used on first creation.
        """
        if service_class not in cls._instances:
            try:
                logger.debug(
                    f"Creating new instance of service: {service_class.__name__}"
                )
                cls._instances[service_class] = service_class(**dependencies)
            except Exception as e:
                logger.error(
                    f"Failed to initialize service {service_class.__name__}: {e}",
                    exc_info=True,
                )
                raise
        return cls._instances[service_class]

    @classmethod
    def clear(cls) -> None:
        """
        Drops all shared instances.
        Tests call this so each case starts with an empty channel.
        """
        logger.debug("Clearing all cached service instances.")
        cls._instances.clear()
