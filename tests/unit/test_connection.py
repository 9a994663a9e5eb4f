import asyncio

from starlette.websockets import WebSocketState

from topicrelay.connection import ConnectionSession
from topicrelay.handshake import HandshakeState

IDENTITY = '{"clientId": "a1", "username": "Alice"}'


class FakeWebSocket:
    """Just enough of starlette's WebSocket for a ConnectionSession."""

    def __init__(self, frames, hang_on_send=False, fail_first_send=False):
        self.inbound = asyncio.Queue()
        for frame in frames:
            key = "bytes" if isinstance(frame, bytes) else "text"
            self.inbound.put_nowait({"type": "websocket.receive", key: frame})
        self.hang_on_send = hang_on_send
        self.fail_next_send = fail_first_send
        self.sent = []
        self.sent_event = asyncio.Event()
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.closed_with = None

    def disconnect(self, code=1001):
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    async def receive(self):
        message = await self.inbound.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def _send(self, data):
        if self.hang_on_send:
            await asyncio.Event().wait()
        if self.fail_next_send:
            self.fail_next_send = False
            raise RuntimeError("socket gone")
        self.sent.append(data)
        self.sent_event.set()

    async def send_text(self, data):
        await self._send(data)

    async def send_bytes(self, data):
        await self._send(data)

    async def close(self, code=1000):
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED


async def test_client_disconnect_releases_subscriber(broker):
    ws = FakeWebSocket(["room1", IDENTITY, "tag:hello"])
    ws.disconnect()
    session = ConnectionSession(ws, broker)

    await asyncio.wait_for(session.run(), timeout=5)

    assert session.handshake.state is HandshakeState.CLOSED
    assert "room1" not in broker.registry
    assert ws.closed_with is None


async def test_unresponsive_client_is_evicted(broker, caplog):
    ws = FakeWebSocket(["room1", IDENTITY], hang_on_send=True)
    session = ConnectionSession(ws, broker, send_timeout=0.05)

    await asyncio.wait_for(session.run(), timeout=5)

    assert ws.closed_with == 1008
    assert "room1" not in broker.registry
    assert "send timed out" in caplog.text


async def test_handshake_error_closes_with_policy_violation(broker):
    ws = FakeWebSocket([b"\xff\xfe", IDENTITY])
    session = ConnectionSession(ws, broker)

    await asyncio.wait_for(session.run(), timeout=5)

    assert ws.closed_with == 1008
    assert session.handshake.subscriber is None
    assert broker.registry.topics() == []


async def test_disconnect_while_awaiting_identity(broker):
    ws = FakeWebSocket(["room1"])
    ws.disconnect()
    session = ConnectionSession(ws, broker)

    await asyncio.wait_for(session.run(), timeout=5)

    assert session.handshake.state is HandshakeState.CLOSED
    assert broker.registry.topics() == []


async def test_write_error_is_logged_and_next_frame_still_sent(broker, caplog):
    ws = FakeWebSocket([], fail_first_send=True)
    session = ConnectionSession(ws, broker)
    subscriber = broker.new_subscriber("room1", "a1", "Alice")
    subscriber.prime()
    subscriber.deliver("t:1")
    subscriber.deliver(b"t:2")

    writer = asyncio.create_task(session._write_loop(subscriber))
    await asyncio.wait_for(ws.sent_event.wait(), timeout=5)
    writer.cancel()
    await asyncio.gather(writer, return_exceptions=True)

    assert ws.sent == [b"t:2"]
    assert "Write error to client a1" in caplog.text
