"""Power Market Preview - Kafka-backed cache and read API for power market prices."""

__version__ = "0.1.0"
