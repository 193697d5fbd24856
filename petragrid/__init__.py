"""petragrid - A reader for Petra rectangular and triangulated grid files."""

__version__ = "0.1.0"

from petragrid.config import GridLayout, default_layout, load_layout
from petragrid.decoders import GridType, RectangularData, TriangularData
from petragrid.errors import (
    GridError,
    GridIOError,
    GridFormatError,
    TruncatedDataError,
    MalformedStructureError,
    NotAGridFileError,
    SizeLimitError,
    UnsupportedFeatureError,
    UnsupportedGridTypeError,
    UnsupportedVersionError,
)
from petragrid.grid import Grid, GridData, read_grid, read_grid_file
from petragrid.metadata import Bounds, GridMetadata, SkippedRecord, UnitOfMeasure

__all__ = [
    "GridLayout",
    "default_layout",
    "load_layout",
    "GridType",
    "RectangularData",
    "TriangularData",
    "GridError",
    "GridIOError",
    "GridFormatError",
    "TruncatedDataError",
    "MalformedStructureError",
    "NotAGridFileError",
    "SizeLimitError",
    "UnsupportedFeatureError",
    "UnsupportedGridTypeError",
    "UnsupportedVersionError",
    "Grid",
    "GridData",
    "read_grid",
    "read_grid_file",
    "Bounds",
    "GridMetadata",
    "SkippedRecord",
    "UnitOfMeasure",
]
