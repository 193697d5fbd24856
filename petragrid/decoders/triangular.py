"""Decoder for triangulated grid data.

Grid data section layout::

    count      uint32
    triangles  count x 72 bytes

Each 72-byte record holds nine float64 stored coordinate-major:
``x0 x1 x2 y0 y1 y2 z0 z1 z2``.  We think the vertices are in
counter-clockwise order (they triangulate cleanly with
``matplotlib.tri.Triangulation``) but nothing here depends on it.
Vertices shared by neighbouring triangles are stored, and returned,
once per triangle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from petragrid.config import GridLayout
from petragrid.directory import SectionDirectory
from petragrid.errors import SizeLimitError
from petragrid.fields import FieldReader, nodata_to_nan
from petragrid.metadata import Bounds

logger = logging.getLogger(__name__)

TRIANGLE_RECORD_SIZE = 72


@dataclass(frozen=True, eq=False)
class TriangularData:
    """A read-only ``(n, 3, 3)`` array: triangle, vertex, ``(x, y, z)``."""

    triangles: np.ndarray

    @property
    def count(self) -> int:
        return self.triangles.shape[0]

    def __len__(self) -> int:
        return self.count

    def __eq__(self, other) -> bool:
        if not isinstance(other, TriangularData):
            return NotImplemented
        return np.array_equal(self.triangles, other.triangles, equal_nan=True)

    def __hash__(self) -> int:
        return hash(self.count)


def vertices_outside(triangles: np.ndarray, bounds: Bounds, slack: float) -> int:
    """Count vertices whose ``(x, y)`` falls outside *bounds* by more than
    *slack* times the larger box extent.  NaN coordinates are not counted.
    """
    margin = slack * max(bounds.width, bounds.height, 1.0)
    x = triangles[..., 0]
    y = triangles[..., 1]
    with np.errstate(invalid="ignore"):
        outside = ((x < bounds.xmin - margin) | (x > bounds.xmax + margin)
                   | (y < bounds.ymin - margin) | (y > bounds.ymax + margin))
    return int(np.count_nonzero(outside))


def decode_triangular(reader: FieldReader, directory: SectionDirectory,
                      bounds: Bounds, layout: GridLayout,
                      warnings: list[str] | None = None) -> TriangularData:
    """Read the triangulated grid data section.

    Raises
    ------
    SizeLimitError
        Triangle count above the layout's ceiling.
    TruncatedDataError
        The file ends before ``count`` triangle records.
    """
    entry = directory.seek(reader, layout.grid_data_section)
    count = reader.read_uint32()
    if count > layout.max_triangles:
        raise SizeLimitError(
            f"triangle count {count} exceeds limit {layout.max_triangles}",
            "grid data", entry.offset,
        )

    raw = reader.read_array(count * 9, "float64")
    n_nodata, n_nonfinite = nodata_to_nan(raw, layout.nodata_bits)
    logger.debug("triangulated grid, %d triangles, %d no-data coordinates", count, n_nodata)

    # stored [triangle][coordinate][vertex]
    triangles = np.ascontiguousarray(raw.reshape(count, 3, 3).transpose(0, 2, 1))

    if warnings is not None:
        if n_nonfinite:
            warnings.append(f"{n_nonfinite} infinite coordinates treated as no-data")
        stray = vertices_outside(triangles, bounds, layout.bounds_slack)
        if stray:
            warnings.append(f"{stray} triangle vertices lie outside the bounding box")

    triangles.setflags(write=False)
    return TriangularData(triangles)
