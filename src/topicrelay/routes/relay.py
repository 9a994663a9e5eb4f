from fastapi import APIRouter
from fastapi import Depends
from fastapi import WebSocket

from topicrelay.connection import ConnectionSession
from topicrelay.deps import get_broker
from topicrelay.relay_broker import RelayBroker

router = APIRouter(tags=["relay"])


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, broker: RelayBroker = Depends(get_broker)):
    await websocket.accept()
    await ConnectionSession(websocket, broker, send_timeout=broker.send_timeout).run()
