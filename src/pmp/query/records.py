"""Helpers for reading producer payloads.

Cable records look like {"border": "DK1-DE", "times": {"1": 42.1, ..., "24": 39.0}}.
Hour keys are 1-based strings "1" through "24"; there is no 0-based fallback.
"""

from typing import Any

HOURS_PER_DAY = 24


def hour_key(hour: int) -> str:
    """Key in a cable record's `times` map for a 1-based hour."""
    if not 1 <= hour <= HOURS_PER_DAY:
        raise ValueError(f"hour must be between 1 and {HOURS_PER_DAY}, got {hour}")
    return str(hour)


def hourly_prices(record: dict[str, Any]) -> list[float | None]:
    """24 prices for hours 1..24, rounded to 2 decimals; None where missing."""
    times = record.get("times") or {}
    prices: list[float | None] = []
    for hour in range(1, HOURS_PER_DAY + 1):
        value = times.get(hour_key(hour))
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            prices.append(None)
        else:
            prices.append(round(float(value), 2))
    return prices


def payload_records(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Record list carried by a payload's `data` field (empty when absent)."""
    data = payload.get("data")
    if not isinstance(data, list):
        return []
    return [record for record in data if isinstance(record, dict)]
