"""PMP Query Layer - status snapshots, record helpers and the operator CLI.

Components:
- StatusAggregator: composes consumer/sync state and available dates
- hourly_prices: 1-based hour lookup for cable records
- CLI: Command-line interface (pmp command)
"""

from pmp.query.records import hourly_prices, payload_records
from pmp.query.status import StatusAggregator, StatusSnapshot

__all__ = [
    "StatusAggregator",
    "StatusSnapshot",
    "hourly_prices",
    "payload_records",
]
