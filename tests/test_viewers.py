"""Tests for the framework-agnostic slice and volume viewers."""

import numpy as np
import pytest

from conftest import NUM_SLICES
from core.base import Rect
from core.data_manager import DataManager
from core.errors import InvalidArgumentError
from processing.filters import FilterType
from visualization.slice_viewer import (
    SliceViewer,
    displayed_size,
    suggest_region,
    suggest_slice_range,
    to_image_point,
    to_image_rect,
)
from visualization.volume_viewer import RenderBuffers, VolumeViewer


@pytest.fixture
def manager(slice_stack):
    return DataManager(slice_stack, max_workers=2)


# Slice viewer helpers

def test_suggested_region_is_centred_fraction():
    assert suggest_region(100, 200) == Rect(30, 70, 40, 60)


@pytest.mark.parametrize("total, expected", [
    (10, (3, 5, 7)),
    (100, (30, 50, 70)),
    (1, (0, 0, 0)),
    (0, (0, 0, 0)),
])
def test_suggested_slice_range(total, expected):
    assert suggest_slice_range(total) == expected


def test_displayed_size_letterboxes():
    assert displayed_size((200, 100), (100, 100)) == (100, 50)
    assert displayed_size((100, 200), (100, 100)) == (50, 100)
    assert displayed_size((0, 10), (100, 100)) == (0, 0)


def test_display_point_maps_to_image_pixels():
    # 200x100 image shown as 100x50 in a 100x100 box, offset 25 px down
    assert to_image_point((50, 50), (100, 50), (100, 100), (200, 100)) == (100, 50)
    assert to_image_point((50, 10), (100, 50), (100, 100), (200, 100)) is None


def test_display_rect_maps_to_image_rect():
    rect = to_image_rect(Rect(10, 30, 20, 10), (100, 50), (100, 100), (200, 100))
    assert rect == Rect(20, 10, 40, 20)
    assert to_image_rect(Rect(90, 30, 20, 10), (100, 50), (100, 100), (200, 100)) is None


def test_rect_from_drag_points_is_normalized():
    assert Rect.from_points((10, 2), (4, 8)) == Rect(4, 2, 6, 6)


# Slice viewer

def test_preset_sets_manager_window(manager):
    viewer = SliceViewer(manager)
    viewer.apply_preset("Lung")
    assert (viewer.window_width, viewer.window_center) == (1500, -600)


@pytest.mark.parametrize("width", [0, -40])
def test_non_positive_window_width_is_rejected(manager, width):
    viewer = SliceViewer(manager)
    before = (viewer.window_width, viewer.window_center)

    with pytest.raises(InvalidArgumentError):
        viewer.set_window(40, width)
    assert (viewer.window_width, viewer.window_center) == before


def test_set_slice_is_clamped(manager):
    viewer = SliceViewer(manager)
    viewer.set_slice(99)
    assert viewer.current_slice == NUM_SLICES - 1
    viewer.set_slice(-3)
    assert viewer.current_slice == 0


def test_display_raster_uses_filter(manager):
    viewer = SliceViewer(manager)
    viewer.set_slice(2)
    plain = viewer.get_display_raster()
    viewer.set_filter(FilterType.EDGE)
    edged = viewer.get_display_raster()

    assert viewer.filter_type == FilterType.EDGE
    assert not np.array_equal(plain.pixels, edged.pixels)


def test_no_display_raster_without_slices():
    assert SliceViewer(DataManager([])).get_display_raster() is None


def test_suggested_slice_range_is_applied(manager):
    viewer = SliceViewer(manager)
    top, center, bottom = viewer.suggest_slice_range()
    assert (top, center, bottom) == (1, 2, 3)
    assert viewer.slice_range == (1, 3)
    assert viewer.current_slice == 2


def test_selection_modes(manager):
    viewer = SliceViewer(manager)
    assert viewer.active_selection is None

    viewer.set_selection((12, 3), (2, 9))
    assert viewer.active_selection == Rect(2, 3, 10, 6)

    suggested = viewer.suggest_region()
    assert viewer.active_selection == suggested == Rect(5, 6, 6, 4)

    viewer.set_selection((4, 4), (4, 9))
    assert viewer.active_selection is None

    viewer.reset_selections()
    assert viewer.slice_range == (0, NUM_SLICES - 1)


# Render buffers and volume viewer

def test_render_buffers_lifecycle(manager):
    cloud = manager.build_volume(0, NUM_SLICES - 1)
    buffers = RenderBuffers(cloud)
    assert not buffers.is_initialized
    assert buffers.vertices is None

    buffers.initialize()
    assert buffers.is_initialized
    assert buffers.vertices.flags["C_CONTIGUOUS"]
    assert buffers.visible_count == cloud.index_count

    buffers.release()
    assert not buffers.is_initialized
    assert buffers.visible_count == 0
    with pytest.raises(InvalidArgumentError):
        buffers.to_polydata()


def test_index_update_before_initialize_is_ignored(manager):
    cloud = manager.build_volume(0, NUM_SLICES - 1)
    buffers = RenderBuffers(cloud)
    buffers.update_indices(cloud.indices[:3])
    assert buffers.elements is None


def test_polydata_holds_visible_points(manager):
    pytest.importorskip("pyvista")
    cloud = manager.build_volume(0, NUM_SLICES - 1)
    buffers = RenderBuffers(cloud)
    buffers.initialize()
    buffers.update_indices(cloud.indices[:10])

    polydata = buffers.to_polydata()
    assert polydata.n_points == 10
    assert np.allclose(polydata.point_data["intensity"], cloud.colors[cloud.indices[:10], 0])


def test_volume_viewer_follows_manager(manager):
    viewer = VolumeViewer(manager, debounce_ms=0)
    try:
        assert not viewer.has_data
        manager.build_volume(0, NUM_SLICES - 1)
        assert viewer.has_data
        # Middle slice of 0..4 sits at depth 0
        assert viewer.slice_position == (0.0, 0.0)

        viewer.buffers.initialize()
        visible = viewer.set_clip(1, 1)
        assert viewer.buffers.visible_count == visible

        manager.clear()
        assert not viewer.has_data
    finally:
        viewer.close()


def test_initial_plane_is_on_middle_reconstructed_slice(manager):
    viewer = VolumeViewer(manager, debounce_ms=0)
    try:
        manager.build_volume(0, 2)
        assert viewer.slice_position[0] == pytest.approx(-0.0625)
    finally:
        viewer.close()


def test_slice_position_is_clamped(manager):
    viewer = VolumeViewer(manager)
    try:
        assert viewer.set_slice_position(2.0, -3.0) is None
        assert viewer.slice_position == (0.5, -0.5)
    finally:
        viewer.close()


def test_live_slice_preview(manager):
    previews = []
    viewer = VolumeViewer(manager, on_preview=previews.append, debounce_ms=0)
    try:
        manager.build_volume(0, NUM_SLICES - 1)
        viewer.set_live_slice(True)
        future = viewer.set_slice_angles(0.0, 0.0)
        raster = future.result(timeout=5)
    finally:
        viewer.close()

    assert raster.size == (16, 16)
    assert any(p is raster for p in previews)
    assert np.array_equal(raster.pixels, viewer.extract_slice().pixels)


def test_view_presets(manager):
    viewer = VolumeViewer(manager)
    try:
        assert viewer.set_view("Top") == {"azimuth": 0, "elevation": 90}
        assert viewer.current_view == "Top"
        assert viewer.set_view("Nowhere") == VolumeViewer.VIEW_PRESETS["Isometric"]
    finally:
        viewer.close()
