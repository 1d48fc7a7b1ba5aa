"""
Slice Image Exporter

Saves rendered rasters as standard image files through Qt's QImage.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union
import logging

from PySide6.QtGui import QImage

from config import DEFAULT_EXPORT, ExportConfig
from core.base import Raster
from core.errors import InvalidArgumentError


def raster_to_qimage(raster: Raster) -> QImage:
    """
    Wrap a raster in a QImage.

    Returns:
        Deep-copied RGBA8888 QImage, independent of the raster's buffer
    """
    data = raster.tobytes()
    image = QImage(data, raster.width, raster.height, raster.width * 4, QImage.Format_RGBA8888)
    return image.copy()


class SliceExporter:
    """
    Exports slice rasters to png/jpg/bmp/tiff files.
    """

    def __init__(self, config: ExportConfig = DEFAULT_EXPORT):
        self.config = config

    def _qt_format(self, fmt: Optional[str]) -> str:
        fmt = (fmt or self.config.default_format).lower().lstrip(".")
        if fmt not in self.config.supported_formats:
            raise InvalidArgumentError(
                f"Unsupported image format '{fmt}'. "
                f"Choose from: {', '.join(sorted(self.config.supported_formats))}"
            )
        return self.config.supported_formats[fmt]

    def export_slice(
        self,
        raster: Raster,
        file_path: Union[str, Path],
        fmt: Optional[str] = None
    ) -> bool:
        """
        Save one raster.

        Args:
            raster: Raster to save
            file_path: Destination file; missing parent directories are created
            fmt: Image format, defaults to the file suffix or png

        Returns:
            True if the file was written
        """
        if raster is None:
            raise InvalidArgumentError("Raster cannot be None")
        if not str(file_path):
            raise InvalidArgumentError("File path cannot be empty")

        file_path = Path(file_path)
        qt_format = self._qt_format(fmt or file_path.suffix or None)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            if not raster_to_qimage(raster).save(str(file_path), qt_format):
                logging.error(f"Failed to export slice to {file_path}")
                return False
        except OSError as e:
            logging.error(f"Failed to export slice to {file_path}: {e}")
            return False

        logging.info(f"Exported slice to {file_path}")
        return True

    def export_slices(
        self,
        rasters: Sequence[Optional[Raster]],
        output_dir: Union[str, Path],
        base_name: str,
        fmt: Optional[str] = None,
        progress_callback=None
    ) -> int:
        """
        Save a numbered series of rasters as base_NNNN.ext.

        Missing (None) entries are skipped but keep their number.

        Args:
            rasters: Rasters to save
            output_dir: Destination directory (created if missing)
            base_name: File name prefix
            fmt: Image format, defaults to png
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            Number of files written
        """
        if not rasters:
            raise InvalidArgumentError("Rasters cannot be empty")
        if not str(output_dir):
            raise InvalidArgumentError("Output directory cannot be empty")

        extension = (fmt or self.config.default_format).lower().lstrip(".")
        qt_format = self._qt_format(extension)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        success_count = 0
        for i, raster in enumerate(rasters):
            if raster is not None:
                file_path = output_dir / f"{base_name}_{i:04d}.{extension}"
                if raster_to_qimage(raster).save(str(file_path), qt_format):
                    success_count += 1
                else:
                    logging.error(f"Failed to export slice {i} to {file_path}")

            if progress_callback:
                progress_callback((i + 1) / len(rasters))

        logging.info(f"Exported {success_count} of {len(rasters)} slices to {output_dir}")
        return success_count

    def export_to_patient_directory(
        self,
        raster: Raster,
        patient_dir: Union[str, Path],
        slice_type: str
    ) -> Optional[Path]:
        """
        Save a raster into the next free layer folder of a patient directory.

        Files land in <patient_dir>/layers/layer#N/<slice_type>_slice_<timestamp>.png.

        Returns:
            Path of the written file, or None if saving failed
        """
        if raster is None:
            raise InvalidArgumentError("Raster cannot be None")
        if not str(patient_dir):
            raise InvalidArgumentError("Patient directory cannot be empty")

        layers_dir = Path(patient_dir) / self.config.layers_dir
        layers_dir.mkdir(parents=True, exist_ok=True)

        layer_number = 1
        while (layers_dir / f"{self.config.layer_prefix}{layer_number}").exists():
            layer_number += 1
        layer_dir = layers_dir / f"{self.config.layer_prefix}{layer_number}"
        layer_dir.mkdir()

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = layer_dir / f"{slice_type}_slice_{timestamp}.png"

        if not self.export_slice(raster, file_path, "png"):
            return None
        return file_path
