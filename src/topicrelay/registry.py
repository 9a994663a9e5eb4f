import asyncio
from collections import deque
import logging
import threading

logger = logging.getLogger(__name__)

Frame = str | bytes

DEFAULT_OUTBOX_SIZE = 100


class Subscriber:
    """A live connection bound to one topic for its whole lifetime.

    Outbound frames go into a bounded mailbox drained by the connection's
    writer task. Until ``prime()`` is called, live frames are held back so
    that the history/userlist greeting always reaches the client first.
    """

    def __init__(self, topic: str, client_id: str, username: str, outbox_size: int = DEFAULT_OUTBOX_SIZE):
        self._topic = topic
        self.client_id = client_id
        self.username = username
        self.outbox: asyncio.Queue[Frame] = asyncio.Queue(maxsize=outbox_size)
        self._backlog: deque[Frame] = deque(maxlen=outbox_size)
        self._primed = False

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def identified(self) -> bool:
        return bool(self.client_id) and bool(self.username)

    def push(self, frame: Frame) -> bool:
        """Queue a frame for the writer. Returns False if an older frame had to be dropped."""
        try:
            self.outbox.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            # Drop oldest item to make room
            self.outbox.get_nowait()
            self.outbox.put_nowait(frame)
            logger.warning("Outbox full for client %s on topic %s, dropped oldest frame", self.client_id, self.topic)
            return False

    def deliver(self, frame: Frame) -> bool:
        if not self._primed:
            full = len(self._backlog) == self._backlog.maxlen
            # deque(maxlen=...) discards from the left on append
            self._backlog.append(frame)
            if full:
                logger.warning(
                    "Backlog full for client %s on topic %s, dropped oldest frame", self.client_id, self.topic
                )
                return False
            return True
        return self.push(frame)

    def prime(self) -> None:
        """Release held live frames behind the greeting already in the outbox."""
        self._primed = True
        room = self.outbox.maxsize - self.outbox.qsize()
        overflow = len(self._backlog) - room
        if overflow > 0:
            # The greeting is never evicted for live traffic
            for _ in range(overflow):
                self._backlog.popleft()
            logger.warning("Dropped %d held frames for client %s on topic %s", overflow, self.client_id, self.topic)
        while self._backlog:
            self.push(self._backlog.popleft())

    def __repr__(self):
        return f"<Subscriber {self.username!r} ({self.client_id!r}) topic={self.topic!r}>"


class TopicRegistry:
    """Live subscribers keyed by topic.

    A topic key exists only while it has at least one subscriber. One lock
    guards every topic; it is held for dict/list bookkeeping only, never
    across I/O, so it is safe to call from the event loop and from threads.
    """

    def __init__(self):
        self._topics: dict[str, list[Subscriber]] = {}
        self._slots: dict[Subscriber, int] = {}
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._slots:
                return
            members = self._topics.setdefault(subscriber.topic, [])
            self._slots[subscriber] = len(members)
            members.append(subscriber)
        logger.info(
            "Client subscribed to topic: %s as %s (%s)",
            subscriber.topic,
            subscriber.username,
            subscriber.client_id,
        )

    def unsubscribe(self, subscriber: Subscriber) -> bool:
        """Remove by identity. Returns False if the subscriber was not registered."""
        with self._lock:
            slot = self._slots.pop(subscriber, None)
            if slot is None:
                return False

            members = self._topics[subscriber.topic]
            # Swap with last; order inside a topic carries no meaning
            last = members.pop()
            if last is not subscriber:
                members[slot] = last
                self._slots[last] = slot

            topic_removed = not members
            if topic_removed:
                del self._topics[subscriber.topic]

        logger.info(
            "Client %s (%s) removed from topic %s",
            subscriber.username,
            subscriber.client_id,
            subscriber.topic,
        )
        if topic_removed:
            logger.info("Topic %s removed as it has no more subscribers", subscriber.topic)
        return True

    def snapshot(self, topic: str) -> list[Subscriber]:
        with self._lock:
            return list(self._topics.get(topic, ()))

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._topics)

    def total_subscribers(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, topic: str) -> bool:
        with self._lock:
            return topic in self._topics
