"""Opt-in memoisation of analysis results keyed by snapshot content.

Analyses are recomputed from scratch on every call. Callers that render the
same snapshot repeatedly can pass a :class:`SnapshotCache` explicitly; results
are keyed by a fingerprint of the snapshot's content, so any change to a
customer, sale or remark produces a new key and stale results are never
returned.

Design:
- LRU eviction with a configurable maximum size
- Thread-safe for concurrent access
- Tracks hit/miss counts for monitoring
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import astuple, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _canonical(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        return repr(value)
    return str(value)


def snapshot_fingerprint(*collections: Iterable[Any]) -> str:
    """Return a SHA-256 digest over the content of one or more record lists.

    Record order is significant, matching the engine's ordering guarantees
    (e.g. ties in a sorted result keep input order).

    >>> from crm_analytics.foundation.records import Customer
    >>> a = snapshot_fingerprint([Customer("C1", "Acme", "Gold")])
    >>> b = snapshot_fingerprint([Customer("C1", "Acme", "Silver")])
    >>> a == b
    False
    """
    digest = hashlib.sha256()
    for position, collection in enumerate(collections):
        digest.update(f"#collection:{position}\n".encode())
        for record in collection:
            fields = astuple(record) if is_dataclass(record) else (record,)
            digest.update(
                ("\x1f".join(_canonical(f) for f in fields) + "\x1e").encode("utf-8")
            )
    return digest.hexdigest()


class SnapshotCache:
    """LRU cache for analysis results.

    Keys combine the analysis name, the snapshot fingerprint and any
    extra parameters (e.g. ``as_of``) that influence the result.
    """

    def __init__(self, max_size: int = 32):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._entries: OrderedDict[tuple, Any] = OrderedDict()
        self._lock = threading.Lock()
        self.max_size = max_size

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get_or_compute(
        self,
        analysis: str,
        fingerprint: str,
        compute: Callable[[], T],
        *params: Any,
    ) -> T:
        """Return the cached result, computing and storing it on a miss.

        ``compute`` runs outside the lock; two threads missing on the same
        key may both compute, and the later result wins.
        """
        key = (analysis, fingerprint, tuple(_canonical(p) for p in params))
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._hits += 1
                return self._entries[key]
            self._misses += 1

        result = compute()

        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
                self._evictions += 1
        logger.debug(f"Cached {analysis} result for snapshot {fingerprint[:12]}")
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": self._hits / total if total else 0.0,
            }
