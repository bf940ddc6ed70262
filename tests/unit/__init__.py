"""Unit tests for PMP.

Unit tests are fast, isolated tests that don't require Kafka or Redis.
Broker sessions and the Redis client are replaced with fakes.

Run: pytest tests/unit/ -v -m unit
"""
