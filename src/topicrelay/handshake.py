from enum import Enum
import logging

from pydantic import ValidationError
from starlette.websockets import WebSocket
from starlette.websockets import WebSocketDisconnect

from topicrelay.envelope import frame_text
from topicrelay.errors import HandshakeError
from topicrelay.registry import Frame
from topicrelay.registry import Subscriber
from topicrelay.relay_broker import RelayBroker
from topicrelay.schemas import ClientIdentity

logger = logging.getLogger(__name__)


class HandshakeState(str, Enum):
    CONNECTED = "connected"
    AWAITING_IDENTITY = "awaiting_identity"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


async def receive_frame(websocket: WebSocket) -> Frame:
    """Next text or binary frame; a closed connection raises WebSocketDisconnect."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    if message.get("text") is not None:
        return message["text"]
    return message.get("bytes") or b""


class Handshake:
    """Binds a fresh connection to a topic.

    Frame 1 is the topic name, taken verbatim. Frame 2 is the JSON identity
    ``{"clientId": ..., "username": ...}``. Only after both parse is the
    subscriber created and registered.
    """

    def __init__(self, websocket: WebSocket, broker: RelayBroker):
        self.websocket = websocket
        self.broker = broker
        self.state = HandshakeState.CONNECTED
        self.subscriber: Subscriber | None = None

    async def run(self) -> Subscriber:
        try:
            topic = frame_text(await receive_frame(self.websocket))
        except UnicodeDecodeError as e:
            self.state = HandshakeState.CLOSED
            raise HandshakeError(f"Topic frame is not valid UTF-8: {e}") from e

        self.state = HandshakeState.AWAITING_IDENTITY
        raw_identity = await receive_frame(self.websocket)
        try:
            identity = ClientIdentity.model_validate_json(raw_identity)
        except ValidationError as e:
            self.state = HandshakeState.CLOSED
            raise HandshakeError(f"Failed to parse client info JSON: {e.errors()}") from e

        self.subscriber = self.broker.new_subscriber(topic, identity.client_id, identity.username)
        await self.broker.join(self.subscriber)
        self.state = HandshakeState.SUBSCRIBED
        return self.subscriber
