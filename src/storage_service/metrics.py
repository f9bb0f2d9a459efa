from __future__ import annotations

from prometheus_client import Counter

PERSISTENCE_FAILURES = Counter(
    "story_persistence_failures_total",
    "Failed reads or writes against the key-value store",
    ["record", "operation"],
)
UNREADABLE_RECORDS = Counter(
    "story_unreadable_records_total",
    "Persisted records that could not be decoded and were treated as empty",
    ["record"],
)
