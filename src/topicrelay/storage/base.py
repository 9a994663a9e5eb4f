from abc import ABC
from abc import abstractmethod

from topicrelay.schemas import HistoryMessage


class MessageStore(ABC):
    """Append-only log of regular envelopes, one log per topic.

    Implementations are synchronous and thread-safe; the relay calls them
    through ``asyncio.to_thread`` so the event loop never blocks on I/O.
    Every failure surfaces as ``StoreError``.
    """

    name: str = "abstract"

    @abstractmethod
    def append(self, topic: str, envelope: str) -> None: ...

    @abstractmethod
    def history_records(self, topic: str) -> list[HistoryMessage]:
        """Oldest first. An unknown topic yields an empty list, not an error."""

    def history(self, topic: str) -> list[str]:
        return [record.content for record in self.history_records(topic)]

    def close(self) -> None:
        pass
