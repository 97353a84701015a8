"""
In-memory backends для истории и индекса активности.

Context7: используются при локальном запуске без Redis и в тестах.
TTL не применяется: ключи индекса и так разбиты по суткам.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterator, List, Sequence, Set


class InMemoryHistoryStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._accounts: Dict[str, Set[str]] = defaultdict(set)
        self._uses: Dict[str, int] = defaultdict(int)

    def add_unique(self, bucket_key: str, actor_id: str, ttl_seconds: int) -> None:
        with self._lock:
            self._accounts[bucket_key].add(actor_id)

    def unique_count(self, bucket_key: str) -> int:
        with self._lock:
            return len(self._accounts.get(bucket_key, ()))

    def unique_counts(self, bucket_keys: Sequence[str]) -> List[int]:
        with self._lock:
            return [len(self._accounts.get(key, ())) for key in bucket_keys]

    def incr_uses(self, bucket_key: str, ttl_seconds: int) -> None:
        with self._lock:
            self._uses[bucket_key] += 1

    def uses(self, bucket_key: str) -> int:
        with self._lock:
            return self._uses.get(bucket_key, 0)


class InMemoryExpiringSetStore:
    def __init__(self):
        self._lock = threading.Lock()
        # key -> member -> last seen
        self._sets: Dict[str, Dict[str, datetime]] = defaultdict(dict)

    def touch(self, key: str, member: str, at_time: datetime, ttl_seconds: int) -> None:
        with self._lock:
            self._sets[key][member] = at_time

    def scan_active(self, key: str) -> Iterator[str]:
        with self._lock:
            members = list(self._sets.get(key, {}))
        return iter(members)
