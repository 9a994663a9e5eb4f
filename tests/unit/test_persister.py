from topicrelay.errors import StoreError
from topicrelay.persister import BackgroundPersister
from topicrelay.storage.base import MessageStore


class FlakyStore(MessageStore):
    name = "flaky"

    def __init__(self):
        self.lines = []

    def append(self, topic, envelope):
        if envelope.endswith("bad"):
            raise StoreError("rejected")
        self.lines.append((topic, envelope))

    def history_records(self, topic):
        return []


async def test_flush_waits_for_all_appends(file_store):
    persister = BackgroundPersister(file_store)
    for n in range(5):
        await persister.submit("room1", f"t:{n}")
    await persister.flush()
    assert file_store.history("room1") == [f"t:{n}" for n in range(5)]
    await persister.stop()


async def test_failed_append_is_logged_and_worker_keeps_going(caplog):
    store = FlakyStore()
    persister = BackgroundPersister(store)
    await persister.submit("room1", "t:good")
    await persister.submit("room1", "t:bad")
    await persister.submit("room1", "t:after")
    await persister.flush()

    assert store.lines == [("room1", "t:good"), ("room1", "t:after")]
    assert "rejected" in caplog.text
    await persister.stop()


async def test_full_queue_applies_backpressure(file_store, caplog):
    persister = BackgroundPersister(file_store, maxsize=1)
    for n in range(4):
        await persister.submit("room1", f"t:{n}")
    await persister.stop()

    assert file_store.history("room1") == [f"t:{n}" for n in range(4)]
    assert "Persist queue full" in caplog.text


async def test_stop_without_start_is_a_noop(file_store):
    await BackgroundPersister(file_store).stop()
