"""
Bounded Ordered Cache
=====================

Key-ordered map with smallest-key eviction.

Frame identities grow monotonically under normal operation, so evicting the
smallest key approximates evicting the oldest entry while staying correct
for late arrivals: a straggler with a small key is evicted first, not the
most recently inserted entry.

Keys live in a min-heap alongside a dict. Removal by key only drops the
dict entry; the heap slot goes stale and is discarded when it reaches the
top, or when stale slots outnumber live ones and the heap is rebuilt.
Insert and pop_smallest() are O(log n) amortized.
"""

import heapq
from typing import Any, Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedOrderedCache(Generic[K, V]):
    """
    Ordered map with a nominal capacity.

    The cache never evicts on its own; callers decide when the capacity is
    exceeded and call pop_smallest(). This lets callers account for what
    was evicted.

    Example:
        cache = BoundedOrderedCache(capacity=2)
        cache.put(5, "a")
        cache.put(3, "b")
        cache.put(9, "c")
        if cache.over_capacity:
            cache.pop_smallest()  # (3, "b")
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._heap: List[K] = []
        self._values: Dict[K, V] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._values) >= self._capacity

    @property
    def over_capacity(self) -> bool:
        return len(self._values) > self._capacity

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: Any) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[K]:
        return iter(sorted(self._values))

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        return self._values.get(key, default)

    def put(self, key: K, value: V) -> None:
        """Insert or replace an entry."""
        if key not in self._values:
            heapq.heappush(self._heap, key)
        self._values[key] = value

    def pop(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Remove an entry if present and return its value."""
        if key not in self._values:
            return default
        value = self._values.pop(key)
        if len(self._heap) > 2 * len(self._values) + 16:
            self._compact()
        return value

    def smallest_key(self) -> Optional[K]:
        self._discard_stale()
        return self._heap[0] if self._heap else None

    def pop_smallest(self) -> Tuple[K, V]:
        """
        Remove and return the smallest-keyed entry.

        Raises:
            KeyError: If the cache is empty
        """
        self._discard_stale()
        if not self._heap:
            raise KeyError("pop_smallest(): cache is empty")
        key = heapq.heappop(self._heap)
        return key, self._values.pop(key)

    def clear(self) -> None:
        self._heap.clear()
        self._values.clear()

    def _discard_stale(self) -> None:
        # A key removed and re-inserted leaves duplicate slots; any one of
        # them stands for the live entry, the rest are dropped here
        heap = self._heap
        while heap and heap[0] not in self._values:
            heapq.heappop(heap)

    def _compact(self) -> None:
        self._heap = list(self._values)
        heapq.heapify(self._heap)

    def __repr__(self) -> str:
        return f"BoundedOrderedCache(size={len(self)}, capacity={self._capacity})"
