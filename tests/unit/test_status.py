"""Unit tests for StatusAggregator and cable record helpers."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from pmp.cache import MemoryCacheStore, RedisCacheStore
from pmp.common.exceptions import StoreUnavailableError
from pmp.ingestion.consumer import ConsumerState, ConsumerStatus
from pmp.query.records import hour_key, hourly_prices, payload_records
from pmp.query.status import StatusAggregator, StatusSnapshot


@pytest.fixture
def store():
    store = MemoryCacheStore()
    for date in ["2026-02-28", "2026-02-26", "2026-02-27"]:
        store.put("cables", date, {"date": date})
    store.put("exchanges", "2026-02-28", {"date": "2026-02-28"})
    return store


class TestStatusAggregator:
    """Snapshot composition for both topologies."""

    def test_with_consumer_reports_consumer_state(self, store):
        consumer = MagicMock()
        consumer.state = ConsumerState(ConsumerStatus.CONNECTED)
        consumer.last_message_at = datetime(2026, 2, 28, 12, 0, tzinfo=UTC)

        snapshot = StatusAggregator(store, consumer=consumer).snapshot()

        assert snapshot.status == "connected"
        assert snapshot.last_message_at == consumer.last_message_at
        assert snapshot.cached_entries == 4
        assert snapshot.available_dates == {
            "cables": ["2026-02-26", "2026-02-27", "2026-02-28"],
            "exchanges": ["2026-02-28"],
        }

    def test_consumer_error_is_labelled(self, store):
        consumer = MagicMock()
        consumer.state = ConsumerState(ConsumerStatus.ERROR, reason="TLS credentials not found")
        consumer.last_message_at = None

        snapshot = StatusAggregator(store, consumer=consumer).snapshot()

        assert snapshot.status == "error: TLS credentials not found"
        assert snapshot.last_message_at is None

    def test_without_consumer_uses_sync_clock(self, fake_redis):
        redis_store = RedisCacheStore(client=fake_redis)
        synced = datetime(2026, 2, 28, 6, 0, tzinfo=UTC)
        redis_store.put("cables", "2026-02-28", {"date": "2026-02-28"})
        redis_store.mark_synced(synced)

        snapshot = StatusAggregator(redis_store).snapshot()

        assert snapshot.status == "ok"
        assert snapshot.last_message_at == synced
        assert snapshot.cached_entries == 1

    def test_count_comes_from_store_for_reported_topics(self, store, mocker):
        store.put("legacy", "2026-02-28", {"date": "2026-02-28"})
        spy = mocker.spy(store, "entry_count")

        snapshot = StatusAggregator(store).snapshot()

        spy.assert_called_once_with(["cables", "exchanges"])
        assert snapshot.cached_entries == 4

    def test_empty_store(self):
        snapshot = StatusAggregator(MemoryCacheStore()).snapshot()

        assert snapshot.cached_entries == 0
        assert snapshot.available_dates == {"cables": [], "exchanges": []}

    def test_store_failure_propagates(self, fake_redis, redis_error):
        fake_redis.fail_with = redis_error

        with pytest.raises(StoreUnavailableError):
            StatusAggregator(RedisCacheStore(client=fake_redis)).snapshot()

    def test_to_dict_shape(self):
        snapshot = StatusSnapshot(
            status="ok",
            last_message_at=datetime(2026, 2, 28, 6, 0, tzinfo=UTC),
            cached_entries=2,
            available_dates={"cables": ["2026-02-28"], "exchanges": ["2026-02-28"]},
        )

        assert snapshot.to_dict() == {
            "status": "ok",
            "lastMessageAt": "2026-02-28T06:00:00+00:00",
            "cachedEntries": 2,
            "availableDates": {"cables": ["2026-02-28"], "exchanges": ["2026-02-28"]},
        }


class TestHourlyPrices:
    """Cable records use 1-based hour keys "1".."24"."""

    def test_full_day(self):
        record = {"border": "DK1-DE", "times": {str(h): h * 1.005 for h in range(1, 25)}}

        prices = hourly_prices(record)

        assert len(prices) == 24
        assert prices[0] == round(1.005, 2)
        assert prices[23] == round(24 * 1.005, 2)

    def test_missing_hours_are_none(self):
        prices = hourly_prices({"border": "NO2-DE", "times": {"1": 10.0, "24": 20.0}})

        assert prices[0] == 10.0
        assert prices[23] == 20.0
        assert prices[1:23] == [None] * 22

    def test_no_zero_based_fallback(self):
        prices = hourly_prices({"times": {"0": 99.0, "1": 10.0}})

        assert prices[0] == 10.0
        assert 99.0 not in prices

    def test_non_numeric_values_are_none(self):
        prices = hourly_prices({"times": {"1": "n/a", "2": True, "3": 7}})

        assert prices[:3] == [None, None, 7.0]

    def test_record_without_times(self):
        assert hourly_prices({"border": "SE4-DE"}) == [None] * 24

    @pytest.mark.parametrize("hour", [0, 25])
    def test_hour_key_range(self, hour):
        with pytest.raises(ValueError):
            hour_key(hour)

    def test_payload_records(self):
        assert payload_records({"data": [{"border": "A"}, "junk"]}) == [{"border": "A"}]
        assert payload_records({"data": "nope"}) == []
        assert payload_records({}) == []
