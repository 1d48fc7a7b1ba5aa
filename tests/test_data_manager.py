"""Tests for the DataManager display facade."""

import numpy as np
import pytest

from conftest import NUM_SLICES, make_sample
from core.base import Rect
from core.data_manager import DataManager
from core.errors import InvalidArgumentError
from processing.filters import FilterType
from processing.slice_extractor import MPROrientation


@pytest.fixture
def manager(slice_stack):
    return DataManager(slice_stack, max_workers=2)


def test_initial_window_comes_from_first_slice(slice_stack):
    slice_stack[0].window_width = 350
    slice_stack[0].window_center = 50
    manager = DataManager(slice_stack)
    assert (manager.window_width, manager.window_center) == (350, 50)


def test_empty_series_uses_fallback_window():
    manager = DataManager([])
    assert (manager.window_width, manager.window_center) == (400, 40)
    assert manager.total_slices == 0


def test_render_slice_is_cached(manager):
    first = manager.render_slice(1)
    assert 1 in manager.cache
    first.pixels[:] = 0
    assert manager.render_slice(1).pixels.max() > 0


def test_render_with_override_bypasses_cache(manager):
    raster = manager.render_slice(2, width_override=50, center_override=-100)
    assert len(manager.cache) == 0
    assert raster.pixels[..., 0].max() == 255


def test_negative_center_override_is_honoured(manager):
    default = manager.render_slice(0)
    shifted = manager.render_slice(0, center_override=-1000)
    assert not np.array_equal(default.pixels, shifted.pixels)


@pytest.mark.parametrize("index", [-1, NUM_SLICES])
def test_out_of_range_index_is_rejected(manager, index):
    with pytest.raises(InvalidArgumentError):
        manager.render_slice(index)


def test_window_update_clears_cache_and_notifies(manager):
    events = []
    manager.window_changed.connect(lambda w, c: events.append((w, c)))
    manager.preload(0, 3)

    manager.update_window_settings(80, 40)

    assert len(manager.cache) == 0
    assert events == [(80, 40)]
    assert (manager.window_width, manager.window_center) == (80, 40)


def test_window_width_below_one_is_rejected(manager):
    with pytest.raises(InvalidArgumentError):
        manager.update_window_settings(0, 40)


def test_optimize_window_applies_clamped_estimate(manager):
    width, center = manager.optimize_window_settings()
    assert 50 <= width <= 4000
    assert 0 <= center <= 800
    assert (manager.window_width, manager.window_center) == (width, center)


def test_preload_fills_cache_once(manager):
    assert manager.preload(1, 10) == NUM_SLICES - 1
    assert manager.cache.indices() == list(range(1, NUM_SLICES))
    assert manager.preload(1, 10) == 0


def test_slice_navigation_ignores_out_of_range(manager):
    manager.set_slice_index(3)
    manager.set_slice_index(NUM_SLICES)
    assert manager.current_index == 3


def test_filtered_render(manager):
    plain = manager.render_slice(2)
    edge = manager.render_filtered_slice(2, FilterType.EDGE)
    assert edge.size == plain.size
    assert np.all(edge.pixels[0, :, :3] == 0)
    assert np.array_equal(manager.apply_filter(plain, FilterType.NONE).pixels, plain.pixels)


def test_global_view_rendering(slice_stack):
    overview = make_sample(np.full((4, 6), 2000), window_width=400, window_center=40)
    manager = DataManager(slice_stack, global_view=overview)
    assert manager.render_global_view().size == (6, 4)

    with pytest.raises(InvalidArgumentError):
        DataManager(slice_stack).render_global_view()


def test_volume_operations_require_a_build(manager):
    assert not manager.has_volume
    with pytest.raises(InvalidArgumentError):
        manager.extract_oblique_plane(0.0, 0.0)
    with pytest.raises(InvalidArgumentError):
        manager.create_mpr(MPROrientation.AXIAL)
    with pytest.raises(InvalidArgumentError):
        manager.set_clip_range(0, 0)


def test_build_volume_notifies_and_enables_slicing(manager):
    built = []
    manager.volume_changed.connect(built.append)

    cloud = manager.build_volume(0, NUM_SLICES - 1, Rect(0, 0, 15, 15))

    assert len(built) == 1 and built[0] is cloud
    assert manager.has_volume
    assert np.array_equal(manager.visible_indices, cloud.indices)
    assert manager.extract_oblique_plane(0.0, 0.0).size == (16, 16)
    assert manager.create_mpr(MPROrientation.SAGITTAL).size == (16, 16)


def test_clip_range_notifies_visible_count(manager):
    counts = []
    manager.clip_changed.connect(counts.append)
    cloud = manager.build_volume(0, NUM_SLICES - 1)

    indices = manager.set_clip_range(1, 1)

    assert counts == [len(indices)]
    assert len(indices) < cloud.index_count
    assert manager.clip_range == (1, 1)


def test_rebuild_resets_clip_range(manager):
    manager.build_volume(0, NUM_SLICES - 1)
    manager.set_clip_range(1, 1)
    manager.build_volume(0, 2)
    assert manager.clip_range == (0, 0)


def test_clear_drops_volume_and_cache(manager):
    events = []
    manager.build_volume(0, 1)
    manager.volume_changed.connect(events.append)

    manager.clear()

    assert events == [None]
    assert not manager.has_volume
    assert len(manager.cache) == 0
