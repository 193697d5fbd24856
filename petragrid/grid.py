"""Assemble a :class:`Grid` from a Petra grid file.

:func:`read_grid` drives the whole decode: directory, metadata,
grid-type dispatch, data, then cross-checks of the decoded data against
what the metadata declared.  Declared metadata is often stale in real
files, so most disagreements only add a warning; the ones that would
mean the data itself was misread are fatal.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np

from petragrid.config import GridLayout, default_layout
from petragrid.decoders import GridType, RectangularData, TriangularData, select_decoder
from petragrid.directory import SectionDirectory
from petragrid.errors import GridIOError, MalformedStructureError
from petragrid.fields import FieldReader
from petragrid.metadata import Bounds, GridMetadata, decode_metadata, same_value

logger = logging.getLogger(__name__)

GridData = Union[RectangularData, TriangularData]


@dataclass(frozen=True, eq=False)
class Grid:
    """A decoded Petra grid.

    ``zmin``/``zmax`` are computed from the decoded values, ignoring
    no-data; both are NaN when the grid holds no data at all.  The range
    the file declared is kept in ``metadata.declared_zmin`` /
    ``metadata.declared_zmax``.
    """

    xmin: float
    xmax: float
    ymin: float
    ymax: float
    zmin: float
    zmax: float
    data: GridData
    metadata: GridMetadata
    warnings: tuple[str, ...] = ()

    @property
    def bounds(self) -> Bounds:
        return Bounds(self.xmin, self.xmax, self.ymin, self.ymax)

    @property
    def grid_type(self) -> GridType:
        if isinstance(self.data, RectangularData):
            return GridType.RECTANGULAR
        return GridType.TRIANGULAR

    @property
    def name(self) -> str | None:
        return self.metadata.name

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        scalars = ("xmin", "xmax", "ymin", "ymax", "zmin", "zmax")
        return (all(same_value(getattr(self, k), getattr(other, k)) for k in scalars)
                and self.data == other.data
                and self.metadata == other.metadata
                and self.warnings == other.warnings)

    def __hash__(self) -> int:
        return hash((self.xmin, self.xmax, self.ymin, self.ymax, self.grid_type))

    @classmethod
    def read(cls, source: BinaryIO, layout: GridLayout | None = None) -> "Grid":
        """Read a grid from a seekable binary source (file or buffer)."""
        return read_grid(source, layout)


def _value_range(data: GridData) -> tuple[float, float]:
    z = data.values if isinstance(data, RectangularData) else data.triangles[..., 2]
    if z.size == 0 or np.isnan(z).all():
        return math.nan, math.nan
    return float(np.nanmin(z)), float(np.nanmax(z))


def _check_dimensions(data: GridData, metadata: GridMetadata, offset: int) -> None:
    """Fatal checks of the optional DIMENSIONS record."""
    if metadata.size is not None and metadata.rows is not None and metadata.columns is not None:
        if metadata.rows * metadata.columns != metadata.size:
            raise MalformedStructureError(
                f"total size {metadata.size} != {metadata.rows} rows x "
                f"{metadata.columns} columns",
                "metadata", offset,
            )
    if not isinstance(data, RectangularData):
        # for triangulated grids these describe the grid before triangulation
        return
    if metadata.rows is not None and metadata.rows != data.rows:
        raise MalformedStructureError(
            f"metadata declares {metadata.rows} rows, grid data holds {data.rows}",
            "grid data", offset,
        )
    if metadata.columns is not None and metadata.columns != data.cols:
        raise MalformedStructureError(
            f"metadata declares {metadata.columns} columns, grid data holds {data.cols}",
            "grid data", offset,
        )


def _check_zrange(zmin: float, zmax: float, metadata: GridMetadata,
                  layout: GridLayout) -> list[str]:
    dzmin, dzmax = metadata.declared_zmin, metadata.declared_zmax
    if dzmin is None or dzmax is None:
        return []
    if math.isnan(zmin):
        if math.isnan(dzmin) and math.isnan(dzmax):
            return []
        return [f"declared z range {dzmin}..{dzmax} but the grid holds no data"]
    scale = max(abs(dzmax - dzmin), abs(dzmin), abs(dzmax)) or 1.0
    if (abs(zmin - dzmin) / scale > layout.zrange_tolerance
            or abs(zmax - dzmax) / scale > layout.zrange_tolerance):
        return [f"declared z range {dzmin}..{dzmax} does not match data range "
                f"{zmin}..{zmax}"]
    return []


def _check_steps(data: GridData, bounds: Bounds, metadata: GridMetadata,
                 layout: GridLayout) -> list[str]:
    """Compare the declared step sizes against bounds and dimensions."""
    if not isinstance(data, RectangularData):
        return []
    problems = []
    specs = (
        ("x", metadata.xstep, data.cols, bounds.xmin, bounds.xmax),
        ("y", metadata.ystep, data.rows, bounds.ymin, bounds.ymax),
    )
    for axis, step, count, lo, hi in specs:
        if step is None or count < 2:
            continue
        scale = max(abs(hi), hi - lo) or 1.0
        rel_err = abs(lo + (count - 1) * step - hi) / scale
        if rel_err > layout.step_tolerance:
            problems.append(
                f"invalid {axis} spec: {lo} to {hi} by {step} but {count} cells"
            )
    return problems


def read_grid(source: BinaryIO, layout: GridLayout | None = None) -> Grid:
    """Read a Petra grid from a seekable binary source.

    The source is read from absolute offsets and is left open.

    Parameters
    ----------
    source : BinaryIO
        File object or buffer supporting ``read``, ``seek`` and ``tell``.
    layout : GridLayout, optional
        Format constants; the bundled layout when *None*.

    Returns
    -------
    Grid

    Raises
    ------
    petragrid.errors.GridError
        Any subclass; no partial grid is ever returned.
    """
    layout = layout or default_layout()
    reader = FieldReader(source)

    directory = SectionDirectory.read(reader, layout)
    bounds, tag, metadata = decode_metadata(reader, directory, layout)
    grid_type, decoder = select_decoder(tag)
    logger.debug("decoding %s grid", grid_type.name.lower())

    warnings: list[str] = []
    data = decoder(reader, directory, bounds, layout, warnings)

    entry = directory.locate(layout.grid_data_section)
    consumed = reader.tell() - entry.offset
    if consumed != entry.length:
        raise MalformedStructureError(
            f"grid data section declares {entry.length} bytes, "
            f"decoded {grid_type.name.lower()} data used {consumed}",
            "grid data", entry.offset,
        )
    _check_dimensions(data, metadata, entry.offset)

    zmin, zmax = _value_range(data)
    warnings.extend(_check_zrange(zmin, zmax, metadata, layout))
    warnings.extend(_check_steps(data, bounds, metadata, layout))
    for message in warnings:
        logger.warning("%s", message)
    warnings.extend(
        f"skipped metadata record 0x{r.tag:x} at 0x{r.offset:x}: {r.reason}"
        for r in metadata.skipped_records if r.known
    )

    return Grid(
        xmin=bounds.xmin,
        xmax=bounds.xmax,
        ymin=bounds.ymin,
        ymax=bounds.ymax,
        zmin=zmin,
        zmax=zmax,
        data=data,
        metadata=metadata,
        warnings=tuple(warnings),
    )


def read_grid_file(path: str | Path, layout: GridLayout | None = None) -> Grid:
    """Open *path* and read the grid it holds."""
    try:
        fh = open(Path(path), "rb")
    except OSError as exc:
        raise GridIOError(f"cannot open {path}: {exc}") from exc
    with fh:
        return read_grid(fh, layout)
