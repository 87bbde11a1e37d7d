import pytest

from vidgro.client import RewardLedger, ServiceCallError, ServiceClient
from vidgro.repository import JsonBackend
from vidgro.video_queue import VideoQueue


@pytest.fixture
def backend(tmp_path):
    backend = JsonBackend(tmp_path / "catalog.json")
    backend.add_video("v1", "https://youtu.be/aaaaaaaaaaa", "First", 30, owner_id="other")
    backend.add_video("v2", "https://youtu.be/bbbbbbbbbbb", "Second", 60, owner_id="other")
    backend.add_video("v3", "https://youtu.be/ccccccccccc", "Third", 300, owner_id="other")
    backend.add_video("mine", "https://youtu.be/ddddddddddd", "Mine", 45, owner_id="viewer")
    return backend


@pytest.fixture
def client(backend):
    return ServiceClient("http://localhost:54321", "key").initialize(backend)


@pytest.fixture
def video_queue(client):
    return VideoQueue(client, "viewer")


def test_replenish_skips_own_and_queued_videos(video_queue):
    assert video_queue.replenish() == 3
    assert [item.id for item in video_queue.items] == ["v1", "v2", "v3"]
    assert video_queue.replenish() == 0
    assert video_queue.current().title == "First"
    assert video_queue.current().coin_reward == 10


def test_advance_until_exhausted(video_queue):
    video_queue.replenish()
    video_queue.advance()
    assert video_queue.current().id == "v2"
    assert video_queue.remaining() == 2
    video_queue.advance()
    video_queue.advance()
    assert video_queue.current() is None
    assert video_queue.remaining() == 0
    assert video_queue.items == []


def test_batch_size_limits_fetch(client):
    small = VideoQueue(client, "viewer", batch_size=2)
    assert small.replenish() == 2


def test_zero_length_videos_are_skipped(backend, video_queue):
    backend.add_video("v4", "https://youtu.be/eeeeeeeeeee", "Broken", 0, owner_id="other")
    assert video_queue.replenish() == 3


def test_backend_failure_leaves_queue_unchanged():
    def broken(procedure, params):
        raise ConnectionError("offline")

    video_queue = VideoQueue(ServiceClient("https://api.example.com", "key").initialize(broken), "viewer")
    assert video_queue.replenish() == 0
    assert video_queue.items == []


def test_award_is_recorded_once_and_persisted(tmp_path, backend, client, video_queue):
    video_queue.replenish()
    ledger = RewardLedger(client)
    assert ledger.award("viewer", video_queue.current(), 29.5) == 10
    assert ledger.award("viewer", video_queue.current(), 30) == 0
    assert backend.balance("viewer") == 10

    reloaded = JsonBackend(tmp_path / "catalog.json")
    assert reloaded.balance("viewer") == 10
    assert reloaded.watched_ids("viewer") == ["v1"]
    assert reloaded.data["videos"][0]["views_count"] == 1

    fresh = VideoQueue(ServiceClient("http://localhost:54321", "key").initialize(reloaded), "viewer")
    fresh.replenish()
    assert [item.id for item in fresh.items] == ["v2", "v3"]


def test_videos_at_target_views_are_not_served(backend, video_queue):
    backend.data["videos"][0]["views_count"] = backend.data["videos"][0]["target_views"]
    video_queue.replenish()
    assert "v1" not in [item.id for item in video_queue.items]


def test_unknown_procedure(client):
    with pytest.raises(ServiceCallError):
        client.rpc("delete_everything", {})
