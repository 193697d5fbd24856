"""Layout constants for the Petra grid container.

Most of what is known about the format was derived from a handful of
sample files: the no-data sentinel, the sanity ceilings and the row
origin may not hold for every file in the wild.  They are loaded from a
YAML layout definition so that a newly observed variant can be described
without touching the decoder.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

ROW_ORIGINS = ("ymin", "ymax")


@dataclass(frozen=True)
class GridLayout:
    """Named constants describing one revision of the container."""

    name: str = "Petra GRD"
    signature: bytes = b"PGRD"
    known_versions: tuple[int, ...] = (2,)
    max_sections: int = 64
    metadata_section: int = 1
    grid_data_section: int = 2
    nodata: float = 1.0e30
    max_dimension: int = 100_000
    max_cells: int = 200_000_000
    max_triangles: int = 50_000_000
    zrange_tolerance: float = 1.0e-4
    step_tolerance: float = 1.0e-4
    bounds_slack: float = 1.0e-6
    row_origin: str = "ymin"
    description: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def nodata_bits(self) -> int:
        """Return the sentinel as its raw 64-bit integer pattern."""
        return struct.unpack("<Q", struct.pack("<d", self.nodata))[0]


def _parse_signature(value: str | list | None) -> bytes:
    """Parse the lead-in signature from a config value.

    Accepts a hex string like ``"50 47 52 44"`` or a list of ints.
    """
    if value is None:
        return GridLayout.signature
    if isinstance(value, list):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value.replace(" ", ""))
    raise ValueError(f"Invalid signature value: {value!r}")


def _parse_nodata(data: dict) -> float:
    """Read the sentinel either as a float or as a raw bit pattern."""
    bits = data.get("nodata_bits")
    if bits is not None:
        if isinstance(bits, str):
            bits = int(bits, 16)
        return struct.unpack("<d", struct.pack("<Q", bits))[0]
    return float(data.get("nodata", GridLayout.nodata))


def _parse_layout(data: dict) -> GridLayout:
    """Build a :class:`GridLayout` from a dictionary."""
    sections = data.get("sections", {})
    row_origin = data.get("row_origin", GridLayout.row_origin)
    if row_origin not in ROW_ORIGINS:
        raise ValueError(f"row_origin must be one of {ROW_ORIGINS}, got {row_origin!r}")

    known = {
        "name", "signature", "known_versions", "max_sections", "sections",
        "nodata", "nodata_bits", "max_dimension", "max_cells",
        "max_triangles", "zrange_tolerance", "step_tolerance",
        "bounds_slack", "row_origin", "description",
    }
    return GridLayout(
        name=data.get("name", GridLayout.name),
        signature=_parse_signature(data.get("signature")),
        known_versions=tuple(data.get("known_versions", GridLayout.known_versions)),
        max_sections=int(data.get("max_sections", GridLayout.max_sections)),
        metadata_section=int(sections.get("metadata", GridLayout.metadata_section)),
        grid_data_section=int(sections.get("grid_data", GridLayout.grid_data_section)),
        nodata=_parse_nodata(data),
        max_dimension=int(data.get("max_dimension", GridLayout.max_dimension)),
        max_cells=int(data.get("max_cells", GridLayout.max_cells)),
        max_triangles=int(data.get("max_triangles", GridLayout.max_triangles)),
        zrange_tolerance=float(data.get("zrange_tolerance", GridLayout.zrange_tolerance)),
        step_tolerance=float(data.get("step_tolerance", GridLayout.step_tolerance)),
        bounds_slack=float(data.get("bounds_slack", GridLayout.bounds_slack)),
        row_origin=row_origin,
        description=data.get("description", ""),
        extra={k: v for k, v in data.items() if k not in known},
    )


def load_layout(path: str | Path | None = None) -> GridLayout:
    """Load a grid layout definition from a YAML file.

    Parameters
    ----------
    path : str or Path, optional
        Path to a YAML layout file.  When *None* the built-in
        ``petra_grd.yaml`` shipped with the package is used.

    Returns
    -------
    GridLayout
        Parsed layout.  Keys absent from the file keep their defaults.
    """
    if path is None:
        path = Path(__file__).parent / "configs" / "petra_grd.yaml"
    else:
        path = Path(path)

    with open(path, "r") as fh:
        data = yaml.safe_load(fh) or {}

    layout = (data.get("layout") or {}) if isinstance(data, dict) else None
    if not isinstance(layout, dict):
        raise ValueError(f"{path}: expected a 'layout' mapping")
    return _parse_layout(layout)


@lru_cache(maxsize=1)
def default_layout() -> GridLayout:
    """Return the bundled layout, loaded once."""
    return load_layout()
