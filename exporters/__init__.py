"""
Exporters Package

Contains exporters for rendered slice images.
"""

from .image import SliceExporter, raster_to_qimage

__all__ = ['SliceExporter', 'raster_to_qimage']
