"""
Bounded Raster Cache

Fixed-capacity, insertion-ordered cache of rendered slices.
"""

from collections import OrderedDict
from typing import List, Optional
import threading

from config import DEFAULT_DISPLAY
from core.base import Raster


class BoundedRasterCache:
    """
    Cache of rasters keyed by slice index.

    Entries are owned copies; readers receive copies as well, so callers
    may mutate returned rasters freely. The oldest insertion is evicted
    once the capacity is exceeded.
    """

    def __init__(self, capacity: int = DEFAULT_DISPLAY.cache_capacity):
        self._capacity = capacity
        self._entries: "OrderedDict[int, Raster]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, slice_index: int) -> Optional[Raster]:
        """Return a copy of the cached raster, or None if absent."""
        with self._lock:
            raster = self._entries.get(slice_index)
            return raster.copy() if raster is not None else None

    def put(self, slice_index: int, raster: Raster) -> None:
        """Store a copy of `raster`, evicting the oldest entries if needed."""
        owned = raster.copy()
        with self._lock:
            # Re-insertion moves the index to the back of the queue
            self._entries.pop(slice_index, None)
            self._entries[slice_index] = owned

            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

    def invalidate_all(self) -> None:
        """Drop every entry (window settings changed)."""
        with self._lock:
            self._entries.clear()

    def indices(self) -> List[int]:
        """Cached slice indices, oldest first."""
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, slice_index: int) -> bool:
        with self._lock:
            return slice_index in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
