import asyncio
import logging

from topicrelay.errors import StoreError
from topicrelay.storage.base import MessageStore

logger = logging.getLogger(__name__)


class BackgroundPersister:
    """Takes appends off the delivery path.

    A single worker drains a bounded queue in order, so the per-topic log keeps
    the order in which the relay accepted the frames. When the queue is full
    ``submit`` waits for room, which only slows down the publishing connection.
    """

    def __init__(self, store: MessageStore, maxsize: int = 1000):
        self.store = store
        self.queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="topicrelay-persister")

    async def submit(self, topic: str, envelope: str) -> None:
        self.start()
        try:
            self.queue.put_nowait((topic, envelope))
        except asyncio.QueueFull:
            logger.warning("Persist queue full (%d pending), waiting for room", self.queue.qsize())
            await self.queue.put((topic, envelope))

    async def flush(self) -> None:
        """Wait until everything submitted so far has been written (or failed)."""
        if not self.queue.empty():
            self.start()
        await self.queue.join()

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self.flush()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        while True:
            topic, envelope = await self.queue.get()
            try:
                await asyncio.to_thread(self.store.append, topic, envelope)
            except StoreError as e:
                logger.error("Error saving message for topic %s: %s", topic, e)
            finally:
                self.queue.task_done()
