"""
Tests for the usage tracker's check/commit protocol.
"""

import pytest

from novagate.storage.backends.sqlite_store import SQLiteUsageStore
from novagate.usage import Decision, UsageTracker


class FakeClock:
    def __init__(self, now=5_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    return SQLiteUsageStore(str(tmp_path / "usage.db"), clock=clock)


@pytest.fixture
def tracker(store):
    return UsageTracker(store, limit=3, window_seconds=3600, key_prefix="test:")


def _accept(tracker, client_id):
    decision = tracker.check_and_reserve(client_id)
    assert decision.allowed
    tracker.commit(client_id, decision.is_new_window)
    return decision


def test_first_request_opens_window(tracker, store):
    decision = tracker.check_and_reserve("1.2.3.4")
    assert decision == Decision(allowed=True, is_new_window=True, used=0)
    # Checking never writes.
    assert store.get("test:1.2.3.4") is None

    assert tracker.commit("1.2.3.4", True) == 1
    assert store.get("test:1.2.3.4") == 1
    assert store.ttl("test:1.2.3.4") == 3600


def test_existing_window_increments_without_touching_expiry(tracker, store, clock):
    _accept(tracker, "c")
    clock.now += 600
    decision = _accept(tracker, "c")
    assert not decision.is_new_window
    assert store.get("test:c") == 2
    assert store.ttl("test:c") == 3000


def test_limit_reached_is_rejected_and_unchanged(tracker, store):
    for _ in range(3):
        _accept(tracker, "c")

    decision = tracker.check_and_reserve("c")
    assert not decision.allowed
    assert decision.used == 3
    assert store.get("test:c") == 3


def test_window_expiry_starts_fresh(tracker, store, clock):
    for _ in range(3):
        _accept(tracker, "c")
    assert not tracker.check_and_reserve("c").allowed

    clock.now += 3600
    decision = tracker.check_and_reserve("c")
    assert decision.allowed and decision.is_new_window
    tracker.commit("c", decision.is_new_window)
    assert store.get("test:c") == 1


def test_concurrent_first_requests_both_count(tracker, store):
    """Two requests that both saw 'no record' don't reset each other."""
    d1 = tracker.check_and_reserve("c")
    d2 = tracker.check_and_reserve("c")
    assert d1.is_new_window and d2.is_new_window

    tracker.commit("c", d1.is_new_window)
    tracker.commit("c", d2.is_new_window)
    assert store.get("test:c") == 2


def test_commit_after_window_lapsed_reopens_with_expiry(tracker, store, clock):
    _accept(tracker, "c")
    decision = tracker.check_and_reserve("c")
    assert not decision.is_new_window

    clock.now += 3600  # window ends between check and commit
    assert tracker.commit("c", decision.is_new_window) == 1
    assert store.ttl("test:c") == 3600


def test_clients_are_independent(tracker):
    for _ in range(3):
        _accept(tracker, "a")
    assert not tracker.check_and_reserve("a").allowed
    assert tracker.check_and_reserve("b").allowed


def test_usage_report(tracker, clock):
    assert tracker.usage("c") == {"used": 0, "limit": 3, "remaining": 3, "resets_in": None}
    _accept(tracker, "c")
    clock.now += 100
    assert tracker.usage("c") == {"used": 1, "limit": 3, "remaining": 2, "resets_in": 3500}


def test_from_config(store):
    cfg = {"quota": {"limit": 100, "window_seconds": 172800, "key_prefix": "AIDemoUsage:"}}
    tracker = UsageTracker.from_config(store, cfg)
    assert tracker.limit == 100
    assert tracker.window_seconds == 172800
    assert tracker._key("9.9.9.9") == "AIDemoUsage:9.9.9.9"


def test_rejects_nonsense_limits(store):
    with pytest.raises(ValueError):
        UsageTracker(store, limit=0)
    with pytest.raises(ValueError):
        UsageTracker(store, window_seconds=0)


def test_commit_never_leaves_a_counter_without_expiry(tracker, store, clock):
    """A lapsed window reopened at commit time still expires on schedule."""
    _accept(tracker, "c")
    decision = tracker.check_and_reserve("c")
    clock.now += 3600

    tracker.commit("c", decision.is_new_window)
    assert store.ttl("test:c") == 3600

    clock.now += 10**7
    assert store.get("test:c") is None
    assert tracker.check_and_reserve("c").is_new_window


def test_commit_is_a_single_atomic_store_call(tracker):
    from unittest.mock import MagicMock

    tracker.store = MagicMock()
    tracker.store.create_or_increment.return_value = 2

    assert tracker.commit("c", False) == 2
    tracker.store.create_or_increment.assert_called_once_with("test:c", 3600)
    tracker.store.increment.assert_not_called()
    tracker.store.set_with_expiry.assert_not_called()
