"""
Slice Viewer

Framework-agnostic 2D slice viewing state: current slice, window
presets, display filter, slice range and region selection.
"""

from typing import Optional, Tuple

from config import DEFAULT_VOLUME, WINDOW_PRESETS
from core.base import Raster, Rect
from core.data_manager import DataManager
from processing.filters import FilterType, apply_filter


Size = Tuple[int, int]  # (width, height)
Point = Tuple[int, int]  # (x, y)


def suggest_region(width: int, height: int) -> Rect:
    """
    Centred region of interest covering a fixed fraction of the image.

    Args:
        width: Image width in pixels
        height: Image height in pixels
    """
    frac_w, frac_h = DEFAULT_VOLUME.region_fraction
    rect_width = int(width * frac_w)
    rect_height = int(height * frac_h)
    return Rect(
        (width - rect_width) // 2,
        (height - rect_height) // 2,
        rect_width,
        rect_height,
    )


def suggest_slice_range(total_slices: int) -> Tuple[int, int, int]:
    """
    Fixed-fraction slice range centred on the middle of the stack.

    Returns:
        Tuple of (top, center, bottom) slice indices
    """
    if total_slices <= 0:
        return 0, 0, 0

    center = total_slices // 2
    length = int(total_slices * DEFAULT_VOLUME.range_fraction)
    top = max(0, center - length // 2)
    bottom = min(total_slices - 1, center + length // 2)
    return top, center, bottom


def displayed_size(image_size: Size, box_size: Size) -> Size:
    """Size of an image letterboxed into a display box, aspect preserved."""
    image_w, image_h = image_size
    box_w, box_h = box_size
    if image_w == 0 or image_h == 0 or box_w == 0 or box_h == 0:
        return 0, 0

    image_ratio = image_w / image_h
    box_ratio = box_w / box_h
    if image_ratio > box_ratio:
        return box_w, int(box_w / image_ratio)
    return int(box_h * image_ratio), box_h


def to_image_point(
    display_point: Point,
    shown_size: Size,
    box_size: Size,
    target_size: Size
) -> Optional[Point]:
    """
    Convert a point in display-box coordinates to image pixels.

    Returns:
        Image point, or None if the point falls outside the shown image
    """
    offset_x = (box_size[0] - shown_size[0]) // 2
    offset_y = (box_size[1] - shown_size[1]) // 2
    x = display_point[0] - offset_x
    y = display_point[1] - offset_y

    if x < 0 or y < 0 or x >= shown_size[0] or y >= shown_size[1]:
        return None

    return (
        int(x * target_size[0] / shown_size[0]),
        int(y * target_size[1] / shown_size[1]),
    )


def to_image_rect(
    display_rect: Rect,
    shown_size: Size,
    box_size: Size,
    target_size: Size
) -> Optional[Rect]:
    """Convert a display-box rectangle to image pixels (None if outside)."""
    top_left = to_image_point((display_rect.x, display_rect.y), shown_size, box_size, target_size)
    bottom_right = to_image_point(
        (display_rect.right, display_rect.bottom), shown_size, box_size, target_size
    )
    if top_left is None or bottom_right is None:
        return None
    return Rect.from_points(top_left, bottom_right)


class SliceViewer:
    """
    Framework-agnostic slice viewer for a loaded series.

    This class handles the data logic for slice viewing,
    independent of any GUI framework.
    """

    def __init__(self, manager: DataManager):
        self._manager = manager
        self._filter = FilterType.NONE
        self._min_slice = 0
        self._max_slice = max(manager.total_slices - 1, 0)
        self._selection: Optional[Rect] = None
        self._suggested_region: Optional[Rect] = None
        self._use_suggested_region = False

    def set_slice(self, index: int) -> None:
        """Set the current slice index (clamped to the series)."""
        if self._manager.total_slices == 0:
            return
        self._manager.set_slice_index(max(0, min(index, self._manager.total_slices - 1)))

    def set_window(self, center: int, width: int) -> None:
        """
        Set the display window.

        Args:
            center: Window center (HU)
            width: Window width (HU), at least 1

        Raises:
            InvalidArgumentError: If width is below 1
        """
        self._manager.update_window_settings(width, center)

    def apply_preset(self, name: str) -> None:
        """Apply a named window preset."""
        preset = WINDOW_PRESETS[name]
        self.set_window(preset["center"], preset["width"])

    def optimize_window(self) -> Tuple[int, int]:
        return self._manager.optimize_window_settings()

    def set_filter(self, filter_type: FilterType) -> None:
        self._filter = filter_type

    def get_display_raster(self) -> Optional[Raster]:
        """
        Current slice with the display filter applied.

        Returns:
            Raster ready for display, or None if no series is loaded
        """
        if self._manager.total_slices == 0:
            return None
        raster = self._manager.render_current_slice()
        if self._filter == FilterType.NONE:
            return raster
        return apply_filter(raster, self._filter)

    def set_slice_range(self, min_slice: int, max_slice: int) -> None:
        last = self._manager.total_slices - 1
        self._min_slice = max(0, min(min_slice, last))
        self._max_slice = max(self._min_slice, min(max_slice, last))

    def suggest_slice_range(self) -> Tuple[int, int, int]:
        """Apply and return the fixed-fraction slice range guess."""
        top, center, bottom = suggest_slice_range(self._manager.total_slices)
        self.set_slice_range(top, bottom)
        self.set_slice(center)
        return top, center, bottom

    def set_selection(self, start: Point, end: Point) -> None:
        """Manual selection from two drag points (in image pixels)."""
        rect = Rect.from_points(start, end)
        self._selection = None if rect.is_empty else rect
        self._use_suggested_region = False

    def suggest_region(self) -> Rect:
        """Apply and return the centred region guess for the current slice."""
        slice_record = self._manager.get_slice(self._manager.current_index)
        self._suggested_region = suggest_region(slice_record.columns, slice_record.rows)
        self._use_suggested_region = True
        return self._suggested_region

    @property
    def active_selection(self) -> Optional[Rect]:
        """Region that restricts the volume build, if any."""
        if self._use_suggested_region:
            return self._suggested_region
        return self._selection

    def reset_selections(self) -> None:
        self._selection = None
        self._suggested_region = None
        self._use_suggested_region = False
        self._min_slice = 0
        self._max_slice = max(self._manager.total_slices - 1, 0)

    @property
    def slice_range(self) -> Tuple[int, int]:
        return self._min_slice, self._max_slice

    @property
    def filter_type(self) -> FilterType:
        return self._filter

    @property
    def num_slices(self) -> int:
        return self._manager.total_slices

    @property
    def current_slice(self) -> int:
        return self._manager.current_index

    @property
    def window_center(self) -> int:
        return self._manager.window_center

    @property
    def window_width(self) -> int:
        return self._manager.window_width
