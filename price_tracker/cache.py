"""In-memory key/value cache with per-entry expiry.

Entries expire lazily: an expired entry is dropped the first time it is
read after its deadline.  There is no background sweep.  When
``max_size`` is set, adding beyond it evicts the least recently used
entry.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

NEVER_EXPIRES = 0


@dataclass
class _Entry:
    value: Any
    deadline: Optional[float]  # None: never expires


class TTLCache:
    def __init__(self, max_size: int = 0, clock: Callable[[], float] = time.monotonic) -> None:
        self._items: "OrderedDict[Hashable, _Entry]" = OrderedDict()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._clock = clock

    def add(self, key: Hashable, value: Any, ttl: float = NEVER_EXPIRES) -> None:
        """Store *value* under *key* for *ttl* seconds (0 = forever)."""
        deadline = None if ttl == NEVER_EXPIRES else self._clock() + ttl
        with self._lock:
            self._items[key] = _Entry(value, deadline)
            self._items.move_to_end(key)
            if self._max_size > 0:
                while len(self._items) > self._max_size:
                    self._items.popitem(last=False)

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return default
            if entry.deadline is not None and self._clock() >= entry.deadline:
                del self._items[key]
                return default
            self._items.move_to_end(key)
            return entry.value

    def __contains__(self, key: Hashable) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["TTLCache", "NEVER_EXPIRES"]
