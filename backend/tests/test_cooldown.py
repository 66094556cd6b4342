"""Tests for the rate-limited fetch cache and directory display lookups."""
import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from docflow.core.cooldown import CooldownActive, CooldownCache
from docflow.services.directory import UserDirectory


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_success_is_cached_for_ttl(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    fetch = MagicMock(return_value="Uma")

    assert cache.get("u2", fetch) == "Uma"
    clock.now += 59
    assert cache.get("u2", fetch) == "Uma"
    assert fetch.call_count == 1

    clock.now += 2
    cache.get("u2", fetch)
    assert fetch.call_count == 2


def test_failure_suppresses_refetch_during_cooldown(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    fetch = MagicMock(side_effect=RuntimeError("directory down"))

    with pytest.raises(RuntimeError):
        cache.get("u2", fetch)
    clock.now += 10
    with pytest.raises(CooldownActive) as exc_info:
        cache.get("u2", fetch)
    assert fetch.call_count == 1
    assert exc_info.value.retry_in == pytest.approx(20)

    clock.now += 21
    fetch.side_effect = None
    fetch.return_value = "Uma"
    assert cache.get("u2", fetch) == "Uma"


def test_stale_value_served_while_cooling_down(clock):
    cache = CooldownCache(ttl=5, cooldown=30, clock=clock)
    cache.get("u2", lambda: "Uma")

    clock.now += 6
    with pytest.raises(RuntimeError):
        cache.get("u2", MagicMock(side_effect=RuntimeError("directory down")))

    clock.now += 1
    assert cache.get("u2", MagicMock(side_effect=AssertionError("must not fetch"))) == "Uma"


def test_invalidate(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    fetch = MagicMock(return_value="Uma")
    cache.get("u2", fetch)
    cache.invalidate("u2")
    cache.get("u2", fetch)
    assert fetch.call_count == 2


def test_none_result_is_not_cached(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    fetch = MagicMock(return_value=None)

    assert cache.get("ghost", fetch) is None
    assert cache.get("ghost", fetch) is None
    assert fetch.call_count == 2
    assert len(cache) == 0


def test_expired_entries_are_swept(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    for n in range(50):
        cache.get(f"u{n}", lambda: "someone")
    with pytest.raises(RuntimeError):
        cache.get("flaky", MagicMock(side_effect=RuntimeError("directory down")))
    assert len(cache) == 51

    # past ttl + cooldown every entry is dead; the next lookup sweeps them
    clock.now += 91
    cache.get("fresh", lambda: "Uma")
    assert len(cache) == 1


def test_sweep_keeps_stale_fallback_within_cooldown(clock):
    cache = CooldownCache(ttl=60, cooldown=30, clock=clock)
    cache.get("u2", lambda: "Uma")

    clock.now += 61
    with pytest.raises(RuntimeError):
        cache.get("u2", MagicMock(side_effect=RuntimeError("directory down")))

    clock.now += 5
    assert cache.get("u2", MagicMock(side_effect=AssertionError("must not fetch"))) == "Uma"
    assert fetch.call_count == 2


# ─── Directory display data ───────────────────────────────────────────────────

def test_display_data_degrades_when_directory_fails(clock):
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
    directory = UserDirectory(db, cache=CooldownCache(ttl=60, cooldown=30, clock=clock))
    user_id = uuid.uuid4()

    assert directory.display_data([user_id]) == {str(user_id): None}
    # cooling down: no second query
    assert directory.display_data([user_id]) == {str(user_id): None}
    assert db.execute.call_count == 1


def test_display_data_resolves_users(db, make_user, clock):
    uma = make_user("Uma", role="MANAGER", department="Finance")
    directory = UserDirectory(db, cache=CooldownCache(ttl=60, cooldown=30, clock=clock))

    data = directory.display_data([uma.id, uma.id, uuid.uuid4()])

    assert len(data) == 2
    assert data[str(uma.id)].department == "Finance"
    assert data[str(uma.id)].as_dict()["role"] == "MANAGER"
    assert None in data.values()
