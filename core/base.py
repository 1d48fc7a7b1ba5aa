"""
Core Data Structures

Records passed between the series loader, the processing engine
and the display/export collaborators.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np

from .errors import InvalidArgumentError


@dataclass
class RawSliceSample:
    """
    One slice as delivered by the series parser.

    Attributes:
        rows, columns: Pixel grid dimensions
        bits_allocated, bits_stored, high_bit: Sample bit layout
        pixel_representation: 0 = unsigned, 1 = signed
        rescale_slope, rescale_intercept: Stored value -> HU affine transform
        pixel_spacing: mm per pixel (isotropic in-plane)
        slice_location: mm along the stack axis
        window_width, window_center: Default display window
        pixel_data: Little-endian 16-bit samples, rows * columns * 2 bytes
    """
    rows: int
    columns: int
    pixel_data: bytes
    bits_allocated: int = 16
    bits_stored: int = 16
    high_bit: int = 15
    pixel_representation: int = 0
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    pixel_spacing: float = 1.0
    slice_location: float = 0.0
    window_width: int = 400
    window_center: int = 40

    # Informational tags carried through from the parser
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_sex: Optional[str] = None
    modality: Optional[str] = None
    series_number: Optional[int] = None
    series_time: Optional[str] = None
    content_time: Optional[str] = None
    slice_thickness: Optional[float] = None

    def validate(self) -> None:
        """Raise InvalidArgumentError if the record violates its invariants."""
        if self.rows <= 0 or self.columns <= 0:
            raise InvalidArgumentError(
                f"Slice dimensions must be positive, got {self.columns}x{self.rows}"
            )
        if not (0 < self.bits_stored <= self.bits_allocated <= 16):
            raise InvalidArgumentError(
                f"Invalid bit depth: stored={self.bits_stored}, "
                f"allocated={self.bits_allocated}"
            )
        expected = self.rows * self.columns * 2
        if self.pixel_data is None or len(self.pixel_data) != expected:
            actual = 0 if self.pixel_data is None else len(self.pixel_data)
            raise InvalidArgumentError(
                f"Pixel data length {actual} does not match "
                f"{self.columns}x{self.rows}x2 = {expected}"
            )


@dataclass(eq=False)
class Raster:
    """
    8-bit RGBA image, grayscale replicated across the color channels.

    Attributes:
        pixels: uint8 array of shape (height, width, 4), row-major
    """
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels is None:
            raise InvalidArgumentError("Raster pixels cannot be None")
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise InvalidArgumentError(
                f"Raster must have shape (height, width, 4), got {self.pixels.shape}"
            )
        if self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0:
            raise InvalidArgumentError("Raster cannot be zero-sized")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @classmethod
    def from_gray(cls, gray: np.ndarray) -> "Raster":
        """Build an opaque raster from a (height, width) uint8 intensity map."""
        gray = np.asarray(gray, dtype=np.uint8)
        pixels = np.empty(gray.shape + (4,), dtype=np.uint8)
        pixels[..., :3] = gray[..., np.newaxis]
        pixels[..., 3] = 255
        return cls(pixels)

    @classmethod
    def blank(cls, width: int, height: int) -> "Raster":
        """Opaque black raster."""
        return cls.from_gray(np.zeros((height, width), dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) in pixels."""
        return self.width, self.height

    def gray(self) -> np.ndarray:
        """Per-pixel integer mean of the RGB channels, shape (height, width)."""
        rgb = self.pixels[..., :3].astype(np.int32)
        return (rgb.sum(axis=2) // 3).astype(np.uint8)

    def copy(self) -> "Raster":
        return Raster(self.pixels.copy())

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class Rect:
    """Pixel rectangle; right and bottom edges are inclusive when filtering."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_points(cls, p1: Tuple[int, int], p2: Tuple[int, int]) -> "Rect":
        """Normalized rectangle spanning two corner points."""
        return cls(
            min(p1[0], p2[0]),
            min(p1[1], p2[1]),
            abs(p1[0] - p2[0]),
            abs(p1[1] - p2[1]),
        )
