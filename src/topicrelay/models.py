from sqlalchemy import Column
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text

from topicrelay.db import Base


class MessageRecord(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic = Column(String, index=True, nullable=False)
    content = Column(Text, nullable=False)
    # Stored as text: older writers used several representations, see storage.timestamps
    timestamp = Column(String, nullable=False)
