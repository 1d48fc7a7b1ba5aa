"""
DICOM Series Loader

Reads a directory of DICOM files into RawSliceSample records for a
single series, sorted by slice location.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Union
import logging

try:
    import pydicom
    from pydicom.errors import InvalidDicomError
    HAS_PYDICOM = True
except ImportError:
    HAS_PYDICOM = False

from core.base import RawSliceSample


@dataclass
class SeriesInfo:
    """Summary of a loaded series."""
    num_slices: int
    rows: int
    columns: int
    pixel_spacing: float
    first_location: float
    last_location: float
    patient_id: Optional[str]
    patient_name: Optional[str]
    modality: Optional[str]

    def __str__(self) -> str:
        return (
            f"Series Info ({self.modality or 'unknown'}):\n"
            f"  Patient: {self.patient_name or '-'} ({self.patient_id or '-'})\n"
            f"  Slices: {self.num_slices}\n"
            f"  Resolution: {self.columns} x {self.rows}\n"
            f"  Pixel spacing: {self.pixel_spacing:.3f} mm\n"
            f"  Locations: {self.first_location:.2f} to {self.last_location:.2f} mm"
        )


def _first_value(value, default):
    """Multi-valued DICOM elements (window, spacing) use their first entry."""
    if value is None:
        return default
    try:
        return value[0]
    except (TypeError, IndexError):
        return value


def _optional_str(dataset, keyword: str) -> Optional[str]:
    value = dataset.get(keyword)
    return None if value is None else str(value)


def sample_from_dataset(dataset) -> RawSliceSample:
    """
    Convert a pydicom dataset into a RawSliceSample.

    Args:
        dataset: pydicom Dataset with pixel data

    Returns:
        Validated RawSliceSample
    """
    series_number = dataset.get("SeriesNumber")
    thickness = dataset.get("SliceThickness")

    sample = RawSliceSample(
        rows=int(dataset.Rows),
        columns=int(dataset.Columns),
        pixel_data=bytes(dataset.PixelData),
        bits_allocated=int(dataset.get("BitsAllocated", 16)),
        bits_stored=int(dataset.get("BitsStored", 16)),
        high_bit=int(dataset.get("HighBit", 15)),
        pixel_representation=int(dataset.get("PixelRepresentation", 0)),
        rescale_slope=float(dataset.get("RescaleSlope", 1.0)),
        rescale_intercept=float(dataset.get("RescaleIntercept", 0.0)),
        pixel_spacing=float(_first_value(dataset.get("PixelSpacing"), 1.0)),
        slice_location=float(dataset.get("SliceLocation", 0.0)),
        window_width=int(float(_first_value(dataset.get("WindowWidth"), 400))),
        window_center=int(float(_first_value(dataset.get("WindowCenter"), 40))),
        patient_id=_optional_str(dataset, "PatientID"),
        patient_name=_optional_str(dataset, "PatientName"),
        patient_sex=_optional_str(dataset, "PatientSex"),
        modality=_optional_str(dataset, "Modality"),
        series_number=None if series_number is None else int(series_number),
        series_time=_optional_str(dataset, "SeriesTime"),
        content_time=_optional_str(dataset, "ContentTime"),
        slice_thickness=None if thickness is None else float(thickness),
    )
    sample.validate()
    return sample


class DicomSeriesLoader:
    """
    Loader for a directory holding one DICOM series.

    The first file (by name) doubles as the global view; only files
    sharing its SeriesNumber are kept as slices.
    """

    def __init__(self, directory: Union[str, Path]):
        if not HAS_PYDICOM:
            raise ImportError(
                "pydicom is required for DICOM loading. "
                "Install it with: pip install pydicom"
            )
        if not str(directory):
            raise ValueError("Directory path cannot be empty")

        self.directory = Path(directory)
        self._slices: List[RawSliceSample] = []
        self._global_view: Optional[RawSliceSample] = None
        self._loaded = False

    def _dicom_files(self) -> List[Path]:
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Directory not found: {self.directory}")

        files = sorted(self.directory.glob("*.dcm"))
        if not files:
            raise FileNotFoundError(f"No DICOM files found in directory: {self.directory}")
        return files

    def load_global_view(self) -> RawSliceSample:
        """Load only the first file of the directory."""
        files = self._dicom_files()
        self._global_view = sample_from_dataset(pydicom.dcmread(files[0]))
        logging.info(f"Loaded global view from {files[0]}")
        return self._global_view

    def load(self) -> List[RawSliceSample]:
        """
        Load every slice of the series.

        Returns:
            Slices sorted by slice location

        Raises:
            FileNotFoundError: If the directory is missing or holds no .dcm files
        """
        if self._loaded and self._slices:
            logging.info("DICOM files already loaded, skipping")
            return self._slices

        files = self._dicom_files()
        logging.info(f"Found {len(files)} DICOM files in {self.directory}")

        first = pydicom.dcmread(files[0])
        self._global_view = sample_from_dataset(first)
        series_number = first.get("SeriesNumber")

        slices = []
        for path in files:
            try:
                dataset = pydicom.dcmread(path)
                if dataset.get("SeriesNumber") != series_number:
                    logging.warning(f"Skipping file {path} - belongs to different series")
                    continue
                slices.append(sample_from_dataset(dataset))
            except (InvalidDicomError, AttributeError, ValueError, OSError) as e:
                logging.warning(f"Skipping unreadable DICOM file {path}: {e}")

        slices.sort(key=lambda s: s.slice_location)
        self._slices = slices
        self._loaded = True

        logging.info(f"Loaded {len(slices)} DICOM slices")
        return slices

    def get_series_info(self) -> SeriesInfo:
        if not self._slices:
            raise ValueError("No slices loaded")

        first = self._slices[0]
        return SeriesInfo(
            num_slices=len(self._slices),
            rows=first.rows,
            columns=first.columns,
            pixel_spacing=first.pixel_spacing,
            first_location=first.slice_location,
            last_location=self._slices[-1].slice_location,
            patient_id=first.patient_id,
            patient_name=first.patient_name,
            modality=first.modality,
        )

    @property
    def slices(self) -> List[RawSliceSample]:
        return self._slices

    @property
    def global_view(self) -> Optional[RawSliceSample]:
        return self._global_view

    @property
    def is_loaded(self) -> bool:
        return self._loaded
