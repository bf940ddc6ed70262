"""Unit tests for RedisCacheStore against an in-memory Redis double."""

import json
from datetime import UTC, datetime

import pytest
import redis

from pmp.cache import RedisCacheStore, create_cache_store
from pmp.common.config import CacheConfig
from pmp.common.exceptions import StoreUnavailableError


@pytest.fixture
def store(fake_redis):
    return RedisCacheStore(client=fake_redis, cache_config=CacheConfig(key_prefix="pmp:"))


class TestKeyLayout:
    """Entries, date sets and arrival times live under prefixed keys."""

    def test_put_writes_entry_date_and_arrival_in_one_transaction(self, store, fake_redis):
        ts = datetime(2026, 2, 28, 9, 30, tzinfo=UTC)

        store.put("cables", "2026-02-28", {"date": "2026-02-28", "data": []}, updated_at=ts)

        assert json.loads(fake_redis.strings["pmp:cables:2026-02-28"]) == {"date": "2026-02-28", "data": []}
        assert fake_redis.sets["pmp:cables:dates"] == {"2026-02-28"}
        assert fake_redis.hashes["pmp:cables:updated"]["2026-02-28"] == ts.isoformat()
        assert fake_redis.executed_transactions == 1

    def test_get_round_trips_payload_and_timestamp(self, store):
        ts = datetime(2026, 2, 28, 9, 30, tzinfo=UTC)
        store.put("exchanges", "2026-02-28", {"date": "2026-02-28", "prices": [1.5]}, updated_at=ts)

        entry = store.get("exchanges", "2026-02-28")

        assert entry.payload == {"date": "2026-02-28", "prices": [1.5]}
        assert entry.updated_at == ts

    def test_get_missing_returns_none(self, store):
        assert store.get("cables", "2026-02-28") is None


class TestUpsertSemantics:
    """Idempotence and last-write-wins on the durable backend."""

    def test_reapply_is_idempotent(self, store, fake_redis):
        payload = {"date": "2026-02-28", "data": [1]}

        first = store.put("cables", "2026-02-28", payload)
        second = store.put("cables", "2026-02-28", payload)

        assert first == second
        assert store.list_dates("cables") == ["2026-02-28"]
        assert store.entry_count(["cables"]) == 1

    def test_last_write_wins(self, store):
        store.put("cables", "2026-02-28", {"date": "2026-02-28", "v": 1, "extra": True})
        store.put("cables", "2026-02-28", {"date": "2026-02-28", "v": 2})

        assert store.get("cables", "2026-02-28").payload == {"date": "2026-02-28", "v": 2}

    def test_list_dates_sorted(self, store):
        for date in ["2026-03-02", "2026-01-15", "2026-02-28"]:
            store.put("exchanges", date, {"date": date})

        assert store.list_dates("exchanges") == ["2026-01-15", "2026-02-28", "2026-03-02"]

    def test_entry_count_across_topics(self, store):
        store.put("cables", "2026-02-28", {"date": "2026-02-28"})
        store.put("exchanges", "2026-02-27", {"date": "2026-02-27"})
        store.put("exchanges", "2026-02-28", {"date": "2026-02-28"})

        assert store.entry_count(["cables", "exchanges"]) == 3


class TestSyncClock:
    def test_durable(self, store):
        assert store.durable is True

    def test_unset_clock_is_none(self, store):
        assert store.last_synced_at() is None

    def test_mark_synced_round_trip(self, store, fake_redis):
        ts = datetime(2026, 2, 28, 10, 0, tzinfo=UTC)

        store.mark_synced(ts)

        assert fake_redis.strings["pmp:lastSyncAt"] == ts.isoformat()
        assert store.last_synced_at() == ts

    def test_trailing_z_timestamp_is_accepted(self, store, fake_redis):
        fake_redis.strings["pmp:lastSyncAt"] = "2026-02-28T10:00:00Z"

        assert store.last_synced_at() == datetime(2026, 2, 28, 10, 0, tzinfo=UTC)


class TestErrorMapping:
    """Redis failures and corrupt data surface as StoreUnavailableError."""

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.get("cables", "2026-02-28"),
            lambda s: s.put("cables", "2026-02-28", {"date": "2026-02-28"}),
            lambda s: s.list_dates("cables"),
            lambda s: s.entry_count(["cables"]),
            lambda s: s.last_synced_at(),
            lambda s: s.mark_synced(datetime.now(UTC)),
        ],
    )
    def test_redis_errors_are_translated(self, store, fake_redis, redis_error, operation):
        fake_redis.fail_with = redis_error

        with pytest.raises(StoreUnavailableError) as exc_info:
            operation(store)

        assert isinstance(exc_info.value.__cause__, redis.RedisError)

    def test_failed_put_leaves_no_partial_write(self, store, fake_redis, redis_error):
        fake_redis.fail_with = redis_error

        with pytest.raises(StoreUnavailableError):
            store.put("cables", "2026-02-28", {"date": "2026-02-28"})

        assert fake_redis.strings == {}
        assert fake_redis.sets == {}

    def test_corrupt_json_is_unreadable(self, store, fake_redis):
        fake_redis.strings["pmp:cables:2026-02-28"] = "{not json"

        with pytest.raises(StoreUnavailableError):
            store.get("cables", "2026-02-28")

    def test_non_object_json_is_unreadable(self, store, fake_redis):
        fake_redis.strings["pmp:cables:2026-02-28"] = "[1, 2]"

        with pytest.raises(StoreUnavailableError):
            store.get("cables", "2026-02-28")

    def test_ping_reports_failure_without_raising(self, store, fake_redis, redis_error):
        assert store.ping() is True

        fake_redis.fail_with = redis_error
        assert store.ping() is False


def test_close_closes_client(store, fake_redis):
    store.close()
    assert fake_redis.closed


def test_create_cache_store_selects_redis_backend():
    store = create_cache_store(CacheConfig(backend="redis", redis_url="redis://cache.test:6379/0"))
    assert isinstance(store, RedisCacheStore)
    store.close()
