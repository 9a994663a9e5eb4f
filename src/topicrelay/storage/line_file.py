import logging
from pathlib import Path
import threading

from topicrelay.errors import StoreError
from topicrelay.schemas import HistoryMessage
from topicrelay.storage.base import MessageStore

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".txt"
UNSAFE_CHARS = ("/", "\\", "\x00")


class LineFileStore(MessageStore):
    """One append-only ``<topic>.txt`` file per topic, one envelope per line."""

    name = "file"

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir).resolve()
        try:
            self.data_dir.mkdir(mode=0o750, parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to create data directory {self.data_dir}: {e}") from e
        self._lock = threading.Lock()

    def path_for(self, topic: str) -> Path:
        # Topic strings are not validated at handshake; keep them inside data_dir
        if any(ch in topic for ch in UNSAFE_CHARS):
            raise StoreError(f"Topic {topic!r} cannot be used as a file name")
        path = (self.data_dir / f"{topic}{FILE_SUFFIX}").resolve()
        if path.parent != self.data_dir:
            raise StoreError(f"Topic {topic!r} does not map to a file inside {self.data_dir}")
        return path

    def append(self, topic: str, envelope: str) -> None:
        if "\n" in envelope or "\r" in envelope:
            raise StoreError("Envelope contains a line break and cannot be stored as one line")

        path = self.path_for(topic)
        try:
            with self._lock, path.open("a", encoding="utf-8", newline="") as f:
                f.write(envelope + "\n")
        except OSError as e:
            raise StoreError(f"Failed to append to {path}: {e}") from e
        logger.debug("Message saved to file for topic: %s", topic)

    def history_records(self, topic: str) -> list[HistoryMessage]:
        path = self.path_for(topic)
        try:
            with path.open("r", encoding="utf-8", newline="") as f:
                lines = f.read().split("\n")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

        return [HistoryMessage(content=line) for line in lines if line.strip()]
