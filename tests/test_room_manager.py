"""
測試房間狀態機（透過 RoomManager 送事件）
"""
import copy

import pytest

from config import Settings
from core.exceptions import RoomNotFound
from core.room_manager import RoomManager
from core.state_machine import RoomStateMachine
from schemas import (
    BidEvent,
    ComputeWinnersEvent,
    JoinEvent,
    LockBidsEvent,
    SetConfigEvent,
    SetTopicsEvent,
    UnlockBidsEvent,
)
from conftest import FakeClock, FakeSession, messages_for


def join(manager, session, room_code="abc", name=None):
    return manager.handle(session, JoinEvent(type="join", roomId=room_code, name=name))


def set_topics(manager, session, topics):
    return manager.handle(session, SetTopicsEvent(type="set_topics", topics=topics))


def bid(manager, session, topic_id, amount):
    return manager.handle(session, BidEvent(type="bid", topicId=topic_id, amount=amount))


def set_config(manager, session, **fields):
    return manager.handle(session, SetConfigEvent(type="set_config", **fields))


@pytest.fixture
def host():
    return FakeSession("h")


@pytest.fixture
def guest():
    return FakeSession("q")


@pytest.fixture
def room_with_topics(manager, host, guest):
    join(manager, host, name="Host")
    join(manager, guest, name="Guest")
    set_topics(manager, host, [
        {"id": "A", "name": "Alpha", "capacity": 1},
        {"id": "B", "name": "Beta", "capacity": 1},
    ])
    return manager.store.get("ABC")


# ============ join ============

def test_first_joiner_becomes_host(manager, host):
    outcome = join(manager, host, room_code="  abc ", name="  Alice  ")

    room = manager.store.get("ABC")
    assert room.host_id == "h"
    assert host.room_id == "ABC"

    joined, update = messages_for(outcome, "h")
    assert joined["type"] == "joined"
    assert joined["participantId"] == "h"
    assert joined["room"]["hostId"] == "h"
    assert joined["room"]["participants"] == [{"id": "h", "name": "Alice", "spent": 0}]
    assert update["type"] == "room_update"
    assert update["room"]["config"] == {"budget": 100, "revealBids": True, "allowJoinAfterLock": True}
    assert update["room"]["revealBids"] is True
    assert update["room"]["bids"] == {"h": {}}


def test_second_joiner_is_broadcast_to_everyone(manager, host, guest):
    join(manager, host)
    outcome = join(manager, guest, room_code="ABC", name="Bob")

    room = manager.store.get("ABC")
    assert room.host_id == "h"
    assert [m["type"] for m in messages_for(outcome, "q")] == ["joined", "room_update"]
    assert [m["type"] for m in messages_for(outcome, "h")] == ["room_update"]


def test_join_name_is_normalized(manager, host, guest):
    join(manager, host, name="   ")
    join(manager, guest, name="x" * 50)
    participants = manager.store.get("ABC").participants
    assert participants["h"].name == "Player"
    assert participants["q"].name == "x" * 32


def test_join_requires_room_code(manager, host):
    outcome = join(manager, host, room_code="   ")
    assert messages_for(outcome, "h") == [{"type": "error", "message": "Room code required."}]
    assert len(manager.store) == 0
    assert host.room_id is None


def test_join_locked_room_is_rejected(manager, host, guest):
    join(manager, host)
    set_config(manager, host, allowJoinAfterLock=False)
    manager.handle(host, LockBidsEvent(type="lock_bids"))

    outcome = join(manager, guest)
    assert messages_for(outcome, "q") == [{"type": "error", "message": "Room is locked."}]
    assert "q" not in manager.store.get("ABC").participants
    assert guest.room_id is None


def test_join_locked_room_allowed_after_lock(manager, host, guest):
    join(manager, host)
    manager.handle(host, LockBidsEvent(type="lock_bids"))
    join(manager, guest)
    assert "q" in manager.store.get("ABC").participants


def test_rejoin_same_room_keeps_bids(manager, room_with_topics, guest):
    bid(manager, guest, "A", 30)
    join(manager, guest, name="Renamed")

    room = room_with_topics
    assert room.participants["q"].name == "Renamed"
    assert room.participants["q"].spent == 30
    assert room.bids["q"]["A"].amount == 30
    # 加入順序不變
    assert list(room.participants) == ["h", "q"]


def test_join_other_room_leaves_previous_room(manager, host, guest):
    join(manager, host)
    join(manager, guest)

    outcome = join(manager, host, room_code="xyz")
    old_room = manager.store.get("ABC")
    assert host.room_id == "XYZ"
    assert list(old_room.participants) == ["q"]
    assert old_room.host_id == "q"
    assert manager.store.get("XYZ").host_id == "h"
    assert [m["type"] for m in messages_for(outcome, "q")] == ["room_update"]


def test_events_before_join_are_ignored(manager, host):
    assert not bid(manager, host, "A", 10)
    assert not manager.handle(host, ComputeWinnersEvent(type="compute_winners"))
    assert len(manager.store) == 0


# ============ set_config ============

def test_non_host_config_is_ignored(manager, room_with_topics, guest):
    outcome = set_config(manager, guest, budget=5, revealBids=False)
    assert not outcome
    assert room_with_topics.config.budget == 100
    assert room_with_topics.config.reveal_bids is True


@pytest.mark.parametrize("budget, expected", [
    (55.7, 55),
    (0, 1),
    (-20, 1),
    (99999, 10000),
    (None, 100),
])
def test_budget_is_floored_and_clamped(manager, room_with_topics, host, budget, expected):
    set_config(manager, host, budget=budget)
    assert room_with_topics.config.budget == expected


def test_only_real_booleans_update_flags(manager, room_with_topics, host):
    set_config(manager, host, revealBids="false", allowJoinAfterLock=0)
    assert room_with_topics.config.reveal_bids is True
    assert room_with_topics.config.allow_join_after_lock is True

    outcome = set_config(manager, host, revealBids=False, allowJoinAfterLock=False)
    assert room_with_topics.config.reveal_bids is False
    assert room_with_topics.config.allow_join_after_lock is False
    update = messages_for(outcome, "q")[0]
    assert update["room"]["revealBids"] is False


def test_budget_decrease_clamps_standing_bids(manager, room_with_topics, host, guest):
    bid(manager, guest, "A", 60)
    bid(manager, guest, "B", 30)
    set_config(manager, host, budget=50)

    bids = room_with_topics.bids["q"]
    assert bids["A"].amount == 50
    assert bids["B"].amount == 0
    assert room_with_topics.participants["q"].spent == 50


# ============ set_topics ============

def test_set_topics_normalizes_entries(manager, room_with_topics, host):
    set_topics(manager, host, [
        {"id": "A", "name": "  Kept  ", "capacity": 3.9},
        {"name": "", "capacity": 0},
        {"id": "Z", "name": "y" * 100, "capacity": 99},
        {},
    ])
    topics = room_with_topics.topics

    assert [t.name for t in topics] == ["Kept", "Topic", "y" * 80, "Topic"]
    assert [t.capacity for t in topics] == [3, 1, 20, 1]
    assert topics[0].id == "A" and topics[2].id == "Z"
    assert topics[1].id and topics[3].id
    assert len({t.id for t in topics}) == 4


def test_set_topics_truncates_to_fifty(manager, room_with_topics, host):
    set_topics(manager, host, [{"name": f"t{i}"} for i in range(60)])
    assert len(room_with_topics.topics) == 50
    assert room_with_topics.topics[-1].name == "t49"


def test_duplicate_topic_ids_get_fresh_ids(manager, room_with_topics, host):
    set_topics(manager, host, [{"id": "A", "name": "one"}, {"id": "A", "name": "two"}])
    first, second = room_with_topics.topics
    assert first.id == "A"
    assert second.id != "A"


def test_set_topics_prunes_bids_on_removed_topics(manager, room_with_topics, host, guest):
    bid(manager, guest, "A", 20)
    bid(manager, guest, "B", 30)
    set_topics(manager, host, [{"id": "B", "name": "Beta"}, {"id": "C", "name": "Gamma"}])

    assert list(room_with_topics.bids["q"]) == ["B"]
    assert room_with_topics.participants["q"].spent == 30


def test_non_host_topics_are_ignored(manager, room_with_topics, guest):
    assert not set_topics(manager, guest, [])
    assert room_with_topics.topic_ids() == ["A", "B"]


# ============ lock / unlock ============

def test_lock_and_unlock(manager, room_with_topics, host, guest):
    outcome = manager.handle(host, LockBidsEvent(type="lock_bids"))
    assert room_with_topics.locked is True
    assert messages_for(outcome, "q")[0]["room"]["locked"] is True

    manager.handle(host, UnlockBidsEvent(type="unlock_bids"))
    assert room_with_topics.locked is False


def test_non_host_cannot_lock(manager, room_with_topics, guest):
    assert not manager.handle(guest, LockBidsEvent(type="lock_bids"))
    assert room_with_topics.locked is False


# ============ bid ============

def test_bid_is_stored_and_broadcast(manager, room_with_topics, guest, clock):
    outcome = bid(manager, guest, "A", 42.9)

    stored = room_with_topics.bids["q"]["A"]
    assert stored.amount == 42
    assert stored.timestamp == clock.current
    assert room_with_topics.participants["q"].spent == 42
    update = messages_for(outcome, "h")[0]
    assert update["room"]["bids"]["q"] == {"A": {"amount": 42, "ts": clock.current}}


def test_bid_overwrites_previous_bid(manager, room_with_topics, guest):
    bid(manager, guest, "A", 40)
    bid(manager, guest, "A", 10)
    assert room_with_topics.bids["q"]["A"].amount == 10
    assert room_with_topics.participants["q"].spent == 10


def test_negative_bid_becomes_zero(manager, room_with_topics, guest):
    bid(manager, guest, "A", -5)
    assert room_with_topics.bids["q"]["A"].amount == 0


def test_bid_over_budget_is_clamped(manager, room_with_topics, guest):
    bid(manager, guest, "A", 60)
    bid(manager, guest, "B", 50)
    bids = room_with_topics.bids["q"]
    assert (bids["A"].amount, bids["B"].amount) == (60, 40)
    assert room_with_topics.participants["q"].spent == 100


def test_locked_room_rejects_bids(manager, room_with_topics, host, guest):
    bid(manager, guest, "A", 20)
    manager.handle(host, LockBidsEvent(type="lock_bids"))

    outcome = bid(manager, guest, "A", 70)
    assert not outcome
    assert room_with_topics.bids["q"]["A"].amount == 20


def test_bid_on_unknown_topic_is_ignored(manager, room_with_topics, guest):
    assert not bid(manager, guest, "NOPE", 20)
    assert room_with_topics.bids["q"] == {}


def test_host_can_bid_too(manager, room_with_topics, host):
    bid(manager, host, "B", 15)
    assert room_with_topics.bids["h"]["B"].amount == 15


# ============ compute_winners ============

def test_compute_winners_broadcasts_result(manager, room_with_topics, host, guest):
    bid(manager, host, "A", 50)
    bid(manager, guest, "A", 80)
    bid(manager, guest, "B", 20)

    outcome = manager.handle(host, ComputeWinnersEvent(type="compute_winners"))
    for participant_id in ("h", "q"):
        (message,) = messages_for(outcome, participant_id)
        assert message == {
            "type": "winners",
            "winners": {
                "winnersByTopic": {"A": ["q"], "B": []},
                "assignmentByPlayer": {"q": "A"},
            },
        }


def test_compute_winners_is_repeatable_and_read_only(manager, room_with_topics, host, guest):
    bid(manager, host, "B", 50)
    bid(manager, guest, "A", 80)
    before = copy.deepcopy(room_with_topics.bids)

    first = manager.handle(host, ComputeWinnersEvent(type="compute_winners"))
    second = manager.handle(host, ComputeWinnersEvent(type="compute_winners"))

    assert messages_for(first, "q") == messages_for(second, "q")
    assert room_with_topics.bids == before


def test_non_host_cannot_compute_winners(manager, room_with_topics, guest):
    assert not manager.handle(guest, ComputeWinnersEvent(type="compute_winners"))


# ============ disconnect ============

def test_host_handoff_on_disconnect(manager, host, guest):
    join(manager, host)
    join(manager, guest)

    outcome = manager.disconnect(host)
    room = manager.store.get("ABC")
    assert room is not None
    assert room.host_id == "q"
    assert "h" not in room.bids
    assert messages_for(outcome, "q")[0]["room"]["hostId"] == "q"
    assert host.room_id is None


def test_non_host_disconnect_keeps_host(manager, room_with_topics, guest):
    bid(manager, guest, "A", 10)
    manager.disconnect(guest)
    assert room_with_topics.host_id == "h"
    assert "q" not in room_with_topics.bids


def test_last_disconnect_evicts_room(manager, host, guest):
    join(manager, host)
    set_config(manager, host, budget=7)

    outcome = manager.disconnect(host)
    assert not outcome
    assert "ABC" not in manager.store
    assert len(manager.locks) == 0

    join(manager, guest)
    room = manager.store.get("ABC")
    assert room.config.budget == 100
    assert room.host_id == "q"


def test_disconnect_without_room_is_noop(manager, host):
    assert not manager.disconnect(host)


def test_budget_holds_after_every_event(manager, room_with_topics, host, guest):
    steps = [
        lambda: bid(manager, guest, "A", 90),
        lambda: bid(manager, guest, "B", 90),
        lambda: set_config(manager, host, budget=30),
        lambda: bid(manager, host, "A", 500),
        lambda: set_topics(manager, host, [{"id": "A"}, {"id": "B"}, {"id": "C"}]),
        lambda: bid(manager, guest, "C", 25),
        lambda: set_config(manager, host, budget=10),
    ]
    for step in steps:
        step()
        room = room_with_topics
        for pid, per_topic in room.bids.items():
            total = sum(b.amount for b in per_topic.values())
            assert total <= room.config.budget
            assert room.participants[pid].spent == total


# ============ server 端遮蔽 ============

def test_redacted_snapshots_hide_other_bids():
    settings = Settings(_env_file=None, redact_hidden_bids=True)
    manager = RoomManager(settings, machine=RoomStateMachine(settings, clock=FakeClock()))
    host, guest, other = FakeSession("h"), FakeSession("q"), FakeSession("r")
    for session in (host, guest, other):
        join(manager, session)
    set_topics(manager, host, [{"id": "A"}])
    set_config(manager, host, revealBids=False)

    outcome = bid(manager, guest, "A", 10)
    bids_seen = {
        pid: messages_for(outcome, pid)[0]["room"]["bids"]
        for pid in ("h", "q", "r")
    }
    assert set(bids_seen["h"]) == {"h", "q", "r"}
    assert set(bids_seen["q"]) == {"q"}
    assert set(bids_seen["r"]) == {"r"}

    with pytest.raises(RoomNotFound):
        manager.snapshot("nope")
    assert manager.snapshot("abc").bids == {}


def test_default_snapshots_always_include_bids(manager, room_with_topics, host, guest):
    set_config(manager, host, revealBids=False)
    outcome = bid(manager, guest, "A", 10)
    assert messages_for(outcome, "h")[0]["room"]["bids"]["q"]["A"]["amount"] == 10
    assert messages_for(outcome, "q")[0]["room"]["bids"]["q"]["A"]["amount"] == 10
