import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Generic, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buddynet.services.exceptions import UnavailableError

T = TypeVar("T")
SnapshotQuery = Callable[[AsyncSession], Awaitable[T]]

logger = logging.getLogger(__name__)


class Subscription(Generic[T]):
    """
    A live view over one query.

    Iterating yields the full current snapshot first, then a fresh snapshot
    after every publish on one of the subscribed topics. Use it as an async
    context manager (or call ``cancel``) so it is detached on every exit path.
    """

    def __init__(
        self,
        channel: "LiveUpdateChannel",
        topics: tuple[str, ...],
        query: SnapshotQuery[T],
    ):
        self._channel = channel
        self.topics = topics
        self._query = query
        self._changed = asyncio.Event()
        # The initial snapshot is owed immediately
        self._changed.set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def notify(self) -> None:
        if not self._cancelled:
            self._changed.set()

    def cancel(self) -> None:
        """Stops delivery immediately. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._channel._detach(self)
        # Wake a pending __anext__ so it can finish
        self._changed.set()
        logger.debug(f"Subscription cancelled for topics {self.topics}")

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._cancelled:
            raise StopAsyncIteration
        await self._changed.wait()
        if self._cancelled:
            raise StopAsyncIteration

        # Cleared before reading: a publish during the read schedules another one
        self._changed.clear()
        try:
            snapshot = await self._channel.fetch(self._query)
        except UnavailableError:
            self.cancel()
            raise

        if self._cancelled:
            raise StopAsyncIteration
        return snapshot

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class LiveUpdateChannel:
    """
    In-process fan-out of "this query may have changed" signals.

    Writers publish topic names after committing; each subscription on a
    published topic re-runs its query in a fresh session and delivers the
    whole result set.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._subscriptions: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(
        self, topics: str | Iterable[str], query: SnapshotQuery[T]
    ) -> Subscription[T]:
        topic_names = (topics,) if isinstance(topics, str) else tuple(topics)
        if not topic_names:
            raise ValueError("A subscription needs at least one topic.")

        subscription = Subscription(self, topic_names, query)
        for topic in topic_names:
            self._subscriptions[topic].add(subscription)
        logger.debug(f"New subscription for topics {topic_names}")
        return subscription

    def publish(self, *topics: str) -> None:
        for topic in topics:
            subscribers = list(self._subscriptions.get(topic, ()))
            if subscribers:
                logger.debug(f"Publishing '{topic}' to {len(subscribers)} subscriber(s)")
            for subscription in subscribers:
                subscription.notify()

    def subscriber_count(self, topic: str | None = None) -> int:
        if topic is not None:
            return len(self._subscriptions.get(topic, ()))
        return len({sub for subs in self._subscriptions.values() for sub in subs})

    async def fetch(self, query: SnapshotQuery[T]) -> T:
        """Runs a snapshot query in its own short-lived session."""
        try:
            async with self.session_factory() as session:
                return await query(session)
        except SQLAlchemyError as e:
            logger.error(f"Database error reading live snapshot: {e}", exc_info=True)
            raise UnavailableError("Failed to read live snapshot from the data store.")

    def _detach(self, subscription: Subscription) -> None:
        for topic in subscription.topics:
            subscribers = self._subscriptions.get(topic)
            if subscribers is None:
                continue
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[topic]
