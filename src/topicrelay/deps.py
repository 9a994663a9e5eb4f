from topicrelay.relay_broker import RelayBroker
from topicrelay.settings import settings

_broker: RelayBroker | None = None


async def get_broker() -> RelayBroker:
    # async so construction happens on the event loop, never in a worker thread
    global _broker
    if _broker is None:
        _broker = RelayBroker.from_settings(settings)
    return _broker
