"""Tests for the bounded raster cache."""

import numpy as np

from core.base import Raster
from processing.cache import BoundedRasterCache


def raster(value):
    return Raster.from_gray(np.full((2, 3), value, dtype=np.uint8))


def test_default_capacity_is_thirty():
    assert BoundedRasterCache().capacity == 30


def test_keeps_only_the_thirty_most_recent_insertions():
    cache = BoundedRasterCache()
    for i in range(35):
        cache.put(i, raster(i))

    assert len(cache) == 30
    assert cache.indices() == list(range(5, 35))
    for i in range(5):
        assert cache.get(i) is None
    for i in range(5, 35):
        assert cache.get(i).pixels[0, 0, 0] == i


def test_thirty_first_insertion_evicts_index_zero():
    cache = BoundedRasterCache()
    for i in range(31):
        cache.put(i, raster(i))
    assert cache.get(0) is None
    assert cache.get(1) is not None


def test_invalidate_all_drops_every_entry():
    cache = BoundedRasterCache()
    for i in range(10):
        cache.put(i, raster(i))
    cache.invalidate_all()

    assert len(cache) == 0
    for i in range(10):
        assert cache.get(i) is None


def test_put_stores_a_copy():
    cache = BoundedRasterCache()
    original = raster(10)
    cache.put(0, original)
    original.pixels[:] = 99
    assert cache.get(0).pixels[0, 0, 0] == 10


def test_get_returns_a_copy():
    cache = BoundedRasterCache()
    cache.put(0, raster(10))
    first = cache.get(0)
    first.pixels[:] = 99
    assert cache.get(0).pixels[0, 0, 0] == 10


def test_reinsertion_moves_index_to_the_back():
    cache = BoundedRasterCache(capacity=3)
    cache.put(0, raster(0))
    cache.put(1, raster(1))
    cache.put(0, raster(5))
    cache.put(2, raster(2))
    cache.put(3, raster(3))

    assert 1 not in cache
    assert cache.indices() == [0, 2, 3]
    assert cache.get(0).pixels[0, 0, 0] == 5
