# schemas.py
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator


_IDENTITY_KEYS = {"clientid": "clientId", "username": "username"}


class ClientIdentity(BaseModel):
    """Second handshake frame sent by every client.

    Keys match case-insensitively, with an exact match winning. A ``null``
    frame or ``null`` field leaves the defaults in place.
    """

    client_id: str = Field(default="", alias="clientId")
    username: str = ""

    model_config = ConfigDict(populate_by_name=True, strict=True)

    @model_validator(mode="before")
    @classmethod
    def fold_keys(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        folded = {}
        # Exact spellings sort last so they overwrite case variants
        for key, value in sorted(data.items(), key=lambda item: item[0] in _IDENTITY_KEYS.values()):
            name = _IDENTITY_KEYS.get(key.lower())
            if name is not None and value is not None:
                folded[name] = value
        return folded


class RosterEntry(BaseModel):
    client_id: str = Field(serialization_alias="clientId")
    username: str


class HistoryMessage(BaseModel):
    topic: str | None = None
    content: str
    timestamp: str | None = None


class HistoryPacket(BaseModel):
    type: Literal["history"] = "history"
    messages: list[HistoryMessage]

    def to_frame(self) -> str:
        return self.model_dump_json(exclude_none=True)


class UserListPacket(BaseModel):
    type: Literal["userlist"] = "userlist"
    users: list[RosterEntry]

    def to_frame(self) -> str:
        return self.model_dump_json(by_alias=True)


class RelayStats(BaseModel):
    topics: int
    subscribers: int
    storage_backend: str
    persist_mode: str
