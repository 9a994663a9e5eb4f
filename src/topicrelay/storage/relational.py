import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from topicrelay.db import Base
from topicrelay.db import engine as default_engine
from topicrelay.errors import StoreError
from topicrelay.models import MessageRecord
from topicrelay.schemas import HistoryMessage
from topicrelay.storage import timestamps
from topicrelay.storage.base import MessageStore

logger = logging.getLogger(__name__)


class SqlMessageStore(MessageStore):
    """All topics in one ``messages`` table, indexed by topic."""

    name = "sql"

    def __init__(self, engine: Engine | None = None, create_tables: bool = True):
        self.engine = engine if engine is not None else default_engine
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)
        if create_tables:
            try:
                Base.metadata.create_all(bind=self.engine)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to create message table: {e}") from e

    def append(self, topic: str, envelope: str) -> None:
        with self.session_factory() as db:
            try:
                db.add(MessageRecord(topic=topic, content=envelope, timestamp=timestamps.now()))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"Failed to insert message for topic {topic!r}: {e}") from e
        logger.debug("Message saved to database for topic: %s", topic)

    def history_records(self, topic: str) -> list[HistoryMessage]:
        try:
            with self.session_factory() as db:
                rows = (
                    db.query(MessageRecord.id, MessageRecord.content, MessageRecord.timestamp)
                    .filter_by(topic=topic)
                    .order_by(MessageRecord.id)
                    .all()
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load history for topic {topic!r}: {e}") from e

        # Text timestamps from different writer versions do not sort lexically,
        # so order on the decoded value; insertion id breaks ties.
        decoded = [(timestamps.decode(ts), row_id, content) for row_id, content, ts in rows]
        decoded.sort(key=lambda item: (item[0], item[1]))

        return [
            HistoryMessage(topic=topic, content=content, timestamp=timestamps.encode(moment))
            for moment, _, content in decoded
        ]

    def close(self) -> None:
        self.engine.dispose()
