import air
from air.responses import JSONResponse
from fastapi import Depends

from topicrelay.deps import get_broker
from topicrelay.relay_broker import RelayBroker
from topicrelay.routes.relay import router as relay_router

app = air.Air()

app.include_router(relay_router)


@app.get("/stats")
async def stats(broker: RelayBroker = Depends(get_broker)):
    return JSONResponse(broker.stats().model_dump())


@app.get("/healthz")
def healthz():
    return JSONResponse({"ok": True})
