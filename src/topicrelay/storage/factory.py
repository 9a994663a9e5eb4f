from topicrelay.db import make_engine
from topicrelay.settings import Settings
from topicrelay.storage.base import MessageStore
from topicrelay.storage.line_file import LineFileStore
from topicrelay.storage.relational import SqlMessageStore


def build_store(settings: Settings) -> MessageStore:
    if settings.storage_backend == "sql":
        return SqlMessageStore(make_engine(settings.database_url))
    return LineFileStore(settings.data_dir)
