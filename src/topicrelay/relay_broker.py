import asyncio
import logging

from topicrelay.envelope import parse_envelope
from topicrelay.errors import StoreError
from topicrelay.persister import BackgroundPersister
from topicrelay.presence import PresenceNotifier
from topicrelay.registry import Frame
from topicrelay.registry import Subscriber
from topicrelay.registry import TopicRegistry
from topicrelay.schemas import HistoryPacket
from topicrelay.schemas import RelayStats
from topicrelay.settings import Settings
from topicrelay.storage.base import MessageStore
from topicrelay.storage.factory import build_store

logger = logging.getLogger(__name__)


class RelayBroker:
    """Ties the registry, the message store and the presence notifier together.

    The broker never looks inside an envelope beyond its ``tag:payload`` shape
    and never re-encodes a frame: what a subscriber sends is what the other
    subscribers of its topic receive.
    """

    def __init__(
        self,
        store: MessageStore,
        registry: TopicRegistry | None = None,
        persister: BackgroundPersister | None = None,
        outbox_size: int = 100,
        send_timeout: float = 10.0,
    ):
        self.store = store
        self.registry = registry if registry is not None else TopicRegistry()
        self.presence = PresenceNotifier(self.registry)
        self.persister = persister
        self.outbox_size = outbox_size
        self.send_timeout = send_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayBroker":
        store = build_store(settings)
        persister = None
        if settings.persist_mode == "background":
            persister = BackgroundPersister(store, maxsize=settings.persist_queue_size)
        return cls(
            store,
            persister=persister,
            outbox_size=settings.outbox_size,
            send_timeout=settings.send_timeout,
        )

    def new_subscriber(self, topic: str, client_id: str, username: str) -> Subscriber:
        return Subscriber(topic, client_id, username, outbox_size=self.outbox_size)

    async def join(self, subscriber: Subscriber) -> None:
        """Register a subscriber, then greet it with history and the roster."""
        self.registry.subscribe(subscriber)

        # Frames fanned out before the subscribe above reach this subscriber
        # only through history, so their queued appends must land first.
        if self.persister is not None:
            await self.persister.flush()

        try:
            records = await asyncio.to_thread(self.store.history_records, subscriber.topic)
        except StoreError as e:
            logger.error("Error getting message history for topic %s: %s", subscriber.topic, e)
            records = []

        if records:
            subscriber.push(HistoryPacket(messages=records).to_frame())
        self.presence.greet(subscriber)
        subscriber.prime()

        self.presence.announce(subscriber.topic, exclude=subscriber)

    def leave(self, subscriber: Subscriber) -> None:
        """Idempotent; safe for subscribers that never finished joining."""
        if not self.registry.unsubscribe(subscriber):
            return
        self.presence.announce(subscriber.topic)

    async def handle_frame(self, sender: Subscriber, frame: Frame) -> int:
        """Validate, persist if regular, and fan out one inbound frame.

        Returns the number of recipients the frame was queued for; malformed
        frames are dropped and return 0.
        """
        envelope = parse_envelope(frame)
        if envelope is None:
            logger.warning(
                "Received message not in expected tag:payload format from client %s on topic %s: %.50r",
                sender.client_id,
                sender.topic,
                frame,
            )
            return 0

        if not envelope.is_presence:
            await self.persist(sender.topic, envelope.raw)

        return self.fan_out(sender, frame)

    async def persist(self, topic: str, envelope: str) -> None:
        # Best effort: a failed write is logged and delivery still happens
        if self.persister is not None:
            await self.persister.submit(topic, envelope)
            return
        try:
            await asyncio.to_thread(self.store.append, topic, envelope)
        except StoreError as e:
            logger.error("Error saving regular message for topic %s: %s", topic, e)

    def fan_out(self, sender: Subscriber, frame: Frame) -> int:
        delivered = 0
        for recipient in self.registry.snapshot(sender.topic):
            if recipient is sender:
                continue
            recipient.deliver(frame)
            delivered += 1
        return delivered

    def stats(self) -> RelayStats:
        return RelayStats(
            topics=len(self.registry.topics()),
            subscribers=self.registry.total_subscribers(),
            storage_backend=self.store.name,
            persist_mode="background" if self.persister is not None else "inline",
        )

    async def aclose(self) -> None:
        if self.persister is not None:
            await self.persister.stop()
        self.store.close()
