import os

# Minimal values for tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STORAGE_BACKEND", "file")
os.environ.setdefault("PERSIST_MODE", "inline")

from fastapi.testclient import TestClient
from httpx import ASGITransport
from httpx import AsyncClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from topicrelay.app import app
from topicrelay.deps import get_broker
from topicrelay.relay_broker import RelayBroker
from topicrelay.storage.line_file import LineFileStore
from topicrelay.storage.relational import SqlMessageStore


@pytest.fixture
def file_store(tmp_path):
    return LineFileStore(tmp_path / "data")


@pytest.fixture
def engine():
    # One shared in-memory connection so every thread sees the same tables
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlMessageStore(engine)


@pytest.fixture
def broker(file_store):
    return RelayBroker(file_store)


# ---- Override get_broker so routes use the test broker ----
@pytest.fixture(autouse=True)
def override_get_broker(broker):
    app.dependency_overrides[get_broker] = lambda: broker
    yield
    app.dependency_overrides.pop(get_broker, None)


# ---- HTTP client bound to the ASGI app ----
@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


# ---- Websocket-capable client; one event loop shared by every connection ----
@pytest.fixture
def ws_client():
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def subscribe():
    """Run the two-frame handshake on an open test websocket."""

    def _subscribe(ws, topic, client_id, username):
        ws.send_text(topic)
        ws.send_json({"clientId": client_id, "username": username})

    return _subscribe
