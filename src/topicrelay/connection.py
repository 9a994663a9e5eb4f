import asyncio
import logging

from starlette import status
from starlette.websockets import WebSocket
from starlette.websockets import WebSocketDisconnect
from starlette.websockets import WebSocketState

from topicrelay.errors import HandshakeError
from topicrelay.handshake import Handshake
from topicrelay.handshake import HandshakeState
from topicrelay.handshake import receive_frame
from topicrelay.registry import Frame
from topicrelay.registry import Subscriber
from topicrelay.relay_broker import RelayBroker

logger = logging.getLogger(__name__)


class ConnectionSession:
    """Lifecycle of one accepted websocket: handshake, relay loop, cleanup.

    Once subscribed, a reader task feeds inbound frames to the broker and a
    writer task drains the subscriber's outbox. When either one stops, the
    other is cancelled and the subscriber is released.
    """

    def __init__(self, websocket: WebSocket, broker: RelayBroker, send_timeout: float = 10.0):
        self.websocket = websocket
        self.broker = broker
        self.send_timeout = send_timeout
        self.handshake = Handshake(websocket, broker)
        self.close_code = status.WS_1000_NORMAL_CLOSURE

    async def run(self) -> None:
        try:
            subscriber = await self.handshake.run()
            await self._relay(subscriber)
        except WebSocketDisconnect as e:
            logger.info("Read error, client disconnected (code %s)", e.code)
        except HandshakeError as e:
            logger.warning("Handshake failed: %s", e)
            self.close_code = status.WS_1008_POLICY_VIOLATION
        finally:
            self.handshake.state = HandshakeState.CLOSED
            if self.handshake.subscriber is not None:
                self.broker.leave(self.handshake.subscriber)
        await self._close()

    async def _relay(self, subscriber: Subscriber) -> None:
        reader = asyncio.create_task(self._read_loop(subscriber))
        writer = asyncio.create_task(self._write_loop(subscriber))
        try:
            done, pending = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            reader.cancel()
            writer.cancel()

        if pending:
            await asyncio.wait(pending)
        for task in done:
            task.result()

    async def _read_loop(self, subscriber: Subscriber) -> None:
        while True:
            frame = await receive_frame(self.websocket)
            await self.broker.handle_frame(subscriber, frame)

    async def _write_loop(self, subscriber: Subscriber) -> None:
        while True:
            frame = await subscriber.outbox.get()
            try:
                await asyncio.wait_for(self._send(frame), timeout=self.send_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Evicting client %s from topic %s: send timed out after %.1fs",
                    subscriber.client_id,
                    subscriber.topic,
                    self.send_timeout,
                )
                self.close_code = status.WS_1008_POLICY_VIOLATION
                return
            except Exception as e:
                # Delivery is per recipient; the reader notices a dead socket
                logger.warning("Write error to client %s: %s", subscriber.client_id, e)

    async def _send(self, frame: Frame) -> None:
        if isinstance(frame, bytes):
            await self.websocket.send_bytes(frame)
        else:
            await self.websocket.send_text(frame)

    async def _close(self) -> None:
        if (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        ):
            await self.websocket.close(code=self.close_code)
