"""Decoder for rectangular (rows x columns) grid data.

Grid data section layout::

    rows      uint32
    columns   uint32
    values    rows * columns float64, row-major

Each value is a *z* measurement; *x* and *y* are implicit from the
bounding box.  Rows are returned with row 0 on the ``ymin`` edge whatever
the layout's stored row origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from petragrid.config import GridLayout
from petragrid.directory import SectionDirectory
from petragrid.errors import MalformedStructureError, SizeLimitError
from petragrid.fields import FieldReader, nodata_to_nan
from petragrid.metadata import Bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RectangularData:
    """A read-only ``(rows, columns)`` float64 array, NaN where no data."""

    values: np.ndarray

    @property
    def rows(self) -> int:
        return self.values.shape[0]

    @property
    def cols(self) -> int:
        return self.values.shape[1]

    def __len__(self) -> int:
        return self.values.size

    def __eq__(self, other) -> bool:
        if not isinstance(other, RectangularData):
            return NotImplemented
        return np.array_equal(self.values, other.values, equal_nan=True)

    def __hash__(self) -> int:
        return hash((self.rows, self.cols))


def _check_dimension(value: int, what: str, layout: GridLayout, offset: int) -> None:
    if value == 0:
        raise MalformedStructureError(f"{what} count is zero", "grid data", offset)
    if value > layout.max_dimension:
        raise SizeLimitError(
            f"{what} count {value} exceeds limit {layout.max_dimension}",
            "grid data", offset,
        )


def decode_rectangular(reader: FieldReader, directory: SectionDirectory,
                       bounds: Bounds, layout: GridLayout,
                       warnings: list[str] | None = None) -> RectangularData:
    """Read the rectangular grid data section.

    Raises
    ------
    MalformedStructureError
        Zero rows or columns.
    SizeLimitError
        Dimensions above the layout's ceilings.
    TruncatedDataError
        The file ends before ``rows * columns`` values.
    """
    entry = directory.seek(reader, layout.grid_data_section)
    rows = reader.read_uint32()
    cols = reader.read_uint32()
    _check_dimension(rows, "row", layout, entry.offset)
    _check_dimension(cols, "column", layout, entry.offset + 4)
    if rows * cols > layout.max_cells:
        raise SizeLimitError(
            f"{rows} x {cols} cells exceeds limit {layout.max_cells}",
            "grid data", entry.offset,
        )

    values = reader.read_array(rows * cols, "float64")
    n_nodata, n_nonfinite = nodata_to_nan(values, layout.nodata_bits)
    logger.debug("rectangular grid %d x %d, %d no-data cells", rows, cols, n_nodata)

    if warnings is not None:
        if n_nonfinite:
            warnings.append(f"{n_nonfinite} infinite cell values treated as no-data")
        if cols > 1 and bounds.width == 0:
            warnings.append(f"zero-width bounding box for {cols} columns")
        if rows > 1 and bounds.height == 0:
            warnings.append(f"zero-height bounding box for {rows} rows")

    values = values.reshape(rows, cols)
    if layout.row_origin == "ymax":
        values = values[::-1]
    values = np.ascontiguousarray(values)
    values.setflags(write=False)
    return RectangularData(values)
