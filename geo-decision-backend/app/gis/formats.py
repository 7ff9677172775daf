# File: app/gis/formats.py

"""
Filename-based format inference.

Nothing here opens the file: the format is whatever the extension says,
and the derived metadata is a per-format assumption.
"""

from typing import Dict

from app.schemas.validation import DatasetMetadata, FileFormat, SpatialType


EXTENSION_FORMATS: Dict[str, FileFormat] = {
    "tif": FileFormat.COG,
    "tiff": FileFormat.COG,
    "nc": FileFormat.NETCDF,
    "parquet": FileFormat.GEOPARQUET,
    "grib": FileFormat.GRIB,
    "hdf5": FileFormat.HDF5,
    "h5": FileFormat.HDF5,
}

CLOUD_OPTIMIZED_FORMATS = frozenset({FileFormat.COG, FileFormat.NETCDF, FileFormat.GEOPARQUET})
GRIDDED_FORMATS = frozenset({FileFormat.NETCDF, FileFormat.GRIB, FileFormat.HDF5})
TIME_DIMENSION_FORMATS = frozenset({FileFormat.NETCDF, FileFormat.GRIB})
MULTI_BAND_FORMATS = frozenset({FileFormat.COG, FileFormat.NETCDF, FileFormat.HDF5})

FORMAT_VALIDATION_MESSAGES: Dict[FileFormat, str] = {
    FileFormat.COG: "Valid COG structure with proper tiling",
    FileFormat.NETCDF: "Valid NetCDF-4 format, cloud optimized",
    FileFormat.GEOPARQUET: "Valid GeoParquet with spatial metadata",
    FileFormat.GRIB: "Valid GRIB2 format detected",
    FileFormat.HDF5: "Valid HDF5 structure",
}


def detect_format(file_name: str) -> FileFormat:
    """
    Map the lower-cased extension to a format ("y.NC" -> NetCDF).

    A name without a dot has no extension and is Unknown.
    """
    if "." not in file_name:
        return FileFormat.UNKNOWN
    extension = file_name.rsplit(".", 1)[-1].lower()
    return EXTENSION_FORMATS.get(extension, FileFormat.UNKNOWN)


def is_cloud_optimized(fmt: FileFormat, is_valid: bool) -> bool:
    return is_valid and fmt in CLOUD_OPTIMIZED_FORMATS


def infer_metadata(fmt: FileFormat) -> DatasetMetadata:
    return DatasetMetadata(
        has_time_dimension=fmt in TIME_DIMENSION_FORMATS,
        spatial_type=SpatialType.VECTOR if fmt == FileFormat.GEOPARQUET else SpatialType.RASTER,
        has_multiple_bands=fmt in MULTI_BAND_FORMATS,
    )


def format_validation_message(fmt: FileFormat) -> str:
    return FORMAT_VALIDATION_MESSAGES.get(fmt, "Format validated")
