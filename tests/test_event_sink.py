import asyncio
from datetime import datetime, timezone

from weight_logger.domain.models import WeightEvent
from weight_logger.services.sink import EventSink

from conftest import RecordingBroadcaster, RecordingRepository


def _event():
    return WeightEvent(
        ts_utc=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        channel_ids=("sensor1", "sensor2"),
        readings=(100.0, 50.0),
    )


def test_publish_stores_and_broadcasts():
    repo, hub = RecordingRepository(), RecordingBroadcaster()
    assert asyncio.run(EventSink(repo, hub).publish(_event())) is True
    assert repo.events == [_event()]
    assert hub.messages == [
        ("weightEvent", {"ts_utc": "2024-05-01T12:00:00+00:00", "readings": {"sensor1": 100.0, "sensor2": 50.0}})
    ]


def test_storage_failure_still_broadcasts():
    repo, hub = RecordingRepository(), RecordingBroadcaster()
    repo.fail = True
    assert asyncio.run(EventSink(repo, hub).publish(_event())) is False
    assert hub.topics() == ["weightEvent"]


def test_broadcast_failure_still_stores():
    repo, hub = RecordingRepository(), RecordingBroadcaster()
    hub.fail = True
    assert asyncio.run(EventSink(repo, hub).publish(_event())) is True
    assert len(repo.events) == 1


def test_unexpected_storage_exception_is_contained():
    class ExplodingRepo(RecordingRepository):
        async def append_weight_event(self, event):
            raise RuntimeError("boom")

    hub = RecordingBroadcaster()
    assert asyncio.run(EventSink(ExplodingRepo(), hub).publish(_event())) is False
    assert hub.topics() == ["weightEvent"]


def test_retry_without_broadcast_only_stores():
    repo, hub = RecordingRepository(), RecordingBroadcaster()
    assert asyncio.run(EventSink(repo, hub).publish(_event(), broadcast=False)) is True
    assert len(repo.events) == 1
    assert hub.messages == []
