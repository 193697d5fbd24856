"""Metadata section decoder.

The metadata section is a run of tagged records, each framed as a tag
(uint32) and payload size (uint32) followed by the payload, filling the
section's declared length exactly.

Only two records are required: the bounding box and the grid-type
discriminator.  Everything else is optional.  Records with an unknown
tag, and optional records whose payload we cannot make sense of, are
skipped by their declared size and remembered as opaque spans; a missing
or damaged required record is fatal.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any

from petragrid.config import GridLayout
from petragrid.directory import SectionDirectory
from petragrid.errors import MalformedStructureError
from petragrid.fields import FieldReader, decode_text

logger = logging.getLogger(__name__)

RECORD_HEADER_FORMAT = "<II"
RECORD_HEADER_SIZE = struct.calcsize(RECORD_HEADER_FORMAT)

# Petra stores dates as Delphi TDateTime: fractional days since this origin
DELPHI_EPOCH = datetime(1899, 12, 30)


class RecordTag(IntEnum):
    NAME = 0x01
    BOUNDS = 0x02
    ZRANGE = 0x03
    GRID_TYPE = 0x04
    STEP = 0x05
    DIMENSIONS = 0x06
    UNITS = 0x07
    CREATED = 0x08
    SOURCE = 0x09
    PROJECTION = 0x0A
    DATUM = 0x0B
    GRID_METHOD = 0x0C
    PROJECTION_CODE = 0x0D
    CM_RLAT = 0x0E


class UnitOfMeasure(Enum):
    """Units of the x/y or z dimension."""

    FEET = 0
    METERS = 1


REQUIRED_RECORDS = (RecordTag.BOUNDS, RecordTag.GRID_TYPE)
_KNOWN_TAGS = frozenset(t.value for t in RecordTag)

# fixed-size records: struct format and the metadata fields it fills
_FIXED_RECORDS: dict[RecordTag, tuple[str, tuple[str, ...]]] = {
    RecordTag.BOUNDS: ("<4d", ("xmin", "xmax", "ymin", "ymax")),
    RecordTag.ZRANGE: ("<2d", ("declared_zmin", "declared_zmax")),
    RecordTag.GRID_TYPE: ("<I", ("grid_type",)),
    RecordTag.STEP: ("<2d", ("xstep", "ystep")),
    RecordTag.DIMENSIONS: ("<3I", ("size", "rows", "columns")),
    RecordTag.UNITS: ("<2I", ("xy_units", "z_units")),
    RecordTag.CREATED: ("<d", ("created",)),
    RecordTag.GRID_METHOD: ("<I", ("grid_method",)),
    RecordTag.PROJECTION_CODE: ("<I", ("projection_code",)),
    RecordTag.CM_RLAT: ("<2d", ("cm", "rlat")),
}

_TEXT_RECORDS: dict[RecordTag, str] = {
    RecordTag.NAME: "name",
    RecordTag.SOURCE: "source",
    RecordTag.PROJECTION: "projection",
    RecordTag.DATUM: "datum",
}


@dataclass(frozen=True)
class Bounds:
    """Planar bounding box of a grid."""

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin


@dataclass(frozen=True)
class SkippedRecord:
    """A metadata record that was stepped over without interpretation."""

    tag: int
    offset: int
    length: int
    reason: str = "unknown tag"

    @property
    def known(self) -> bool:
        return self.tag in _KNOWN_TAGS


def same_value(a: Any, b: Any) -> bool:
    """Equality that treats two NaN floats as the same value."""
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return a == b


def _same_record(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return a.keys() == b.keys() and all(same_value(a[k], b[k]) for k in a)


@dataclass(frozen=True, eq=False)
class GridMetadata:
    """Everything the metadata section told us besides the bounds.

    Optional fields that were absent from the file are *None*.  A NaN
    stored in a float field compares equal to NaN.
    """

    version: int
    grid_type: int
    name: str | None = None
    size: int | None = None
    rows: int | None = None
    columns: int | None = None
    xstep: float | None = None
    ystep: float | None = None
    declared_zmin: float | None = None
    declared_zmax: float | None = None
    xy_units: UnitOfMeasure | None = None
    z_units: UnitOfMeasure | None = None
    created: datetime | None = None
    source: str | None = None
    projection: str | None = None
    datum: str | None = None
    grid_method: int | None = None
    projection_code: int | None = None
    cm: float | None = None
    rlat: float | None = None
    skipped_records: tuple[SkippedRecord, ...] = ()

    def __eq__(self, other) -> bool:
        if not isinstance(other, GridMetadata):
            return NotImplemented
        return all(same_value(getattr(self, f.name), getattr(other, f.name))
                   for f in dataclasses.fields(self))

    def __hash__(self) -> int:
        return hash((self.version, self.grid_type, self.name))


def delphi_datetime(days: float) -> datetime:
    """Convert a Delphi ``TDateTime`` (days since 1899-12-30) to a datetime."""
    if not math.isfinite(days):
        raise ValueError(f"non-finite date value {days!r}")
    return DELPHI_EPOCH + timedelta(days=days)


def _decode_record(tag: RecordTag, payload: bytes) -> dict[str, Any]:
    """Decode one known record; raise ValueError if the payload is unusable."""
    if tag in _TEXT_RECORDS:
        return {_TEXT_RECORDS[tag]: decode_text(payload)}

    fmt, names = _FIXED_RECORDS[tag]
    if len(payload) != struct.calcsize(fmt):
        raise ValueError(
            f"payload is {len(payload)} bytes, expected {struct.calcsize(fmt)}"
        )
    values = dict(zip(names, struct.unpack(fmt, payload)))

    if tag is RecordTag.UNITS:
        # an unknown unit code raises ValueError from the Enum lookup
        values = {k: UnitOfMeasure(v) for k, v in values.items()}
    elif tag is RecordTag.CREATED:
        values["created"] = delphi_datetime(values["created"])
    return values


def _check_bounds(fields: dict[str, Any], offset: int) -> Bounds:
    bounds = Bounds(fields["xmin"], fields["xmax"], fields["ymin"], fields["ymax"])
    if not all(math.isfinite(v) for v in (bounds.xmin, bounds.xmax, bounds.ymin, bounds.ymax)):
        raise MalformedStructureError(f"non-finite bounding box {bounds}", "metadata", offset)
    if bounds.xmin > bounds.xmax or bounds.ymin > bounds.ymax:
        raise MalformedStructureError(f"inverted bounding box {bounds}", "metadata", offset)
    return bounds


def decode_metadata(reader: FieldReader, directory: SectionDirectory,
                    layout: GridLayout) -> tuple[Bounds, int, GridMetadata]:
    """Walk the metadata section.

    Returns
    -------
    tuple
        ``(bounds, grid_type_tag, metadata)``.

    Raises
    ------
    MalformedStructureError
        A required record is missing or damaged, or a record overruns
        the section.
    TruncatedDataError
        The file ends inside the section.
    """
    entry = directory.seek(reader, layout.metadata_section)
    fields: dict[str, Any] = {}
    seen: dict[RecordTag, dict[str, Any]] = {}
    required_offsets: dict[RecordTag, int] = {}
    skipped: list[SkippedRecord] = []

    def skip(tag: int, offset: int, length: int, reason: str) -> None:
        skipped.append(SkippedRecord(tag, offset, length, reason))
        reader.skip(length)

    pos = entry.offset
    while pos < entry.end:
        if entry.end - pos < RECORD_HEADER_SIZE:
            raise MalformedStructureError(
                f"{entry.end - pos} trailing bytes cannot hold a record header",
                "metadata", pos,
            )
        tag, length = struct.unpack(RECORD_HEADER_FORMAT,
                                    reader.read_bytes(RECORD_HEADER_SIZE, pos))
        next_pos = pos + RECORD_HEADER_SIZE + length
        if next_pos > entry.end:
            raise MalformedStructureError(
                f"record tag 0x{tag:x} of {length} bytes overruns the section end "
                f"0x{entry.end:x}",
                "metadata", pos,
            )

        if tag not in _KNOWN_TAGS:
            logger.info("skipping unknown metadata record 0x%x (%d bytes) at 0x%x",
                        tag, length, pos)
            skip(tag, pos, length, "unknown tag")
            pos = next_pos
            continue

        rtag = RecordTag(tag)
        payload = reader.read_bytes(length)
        try:
            values = _decode_record(rtag, payload)
        except (ValueError, OverflowError) as exc:
            if rtag in REQUIRED_RECORDS:
                raise MalformedStructureError(
                    f"required {rtag.name} record unreadable: {exc}", "metadata", pos,
                ) from exc
            logger.warning("skipping unreadable %s record at 0x%x: %s", rtag.name, pos, exc)
            skipped.append(SkippedRecord(tag, pos, length, f"unreadable {rtag.name}: {exc}"))
            pos = next_pos
            continue

        if rtag in seen:
            if not _same_record(seen[rtag], values):
                if rtag in REQUIRED_RECORDS:
                    raise MalformedStructureError(
                        f"conflicting {rtag.name} records", "metadata", pos,
                    )
                logger.warning("ignoring repeated %s record at 0x%x", rtag.name, pos)
                skipped.append(SkippedRecord(tag, pos, length, f"repeated {rtag.name}"))
        else:
            logger.debug("metadata record %s at 0x%x: %s", rtag.name, pos, values)
            seen[rtag] = values
            fields.update(values)
            if rtag in REQUIRED_RECORDS:
                required_offsets[rtag] = pos
        pos = next_pos

    for rtag in REQUIRED_RECORDS:
        if rtag not in seen:
            raise MalformedStructureError(
                f"required {rtag.name} record missing", "metadata", entry.offset,
            )

    bounds = _check_bounds(fields, required_offsets[RecordTag.BOUNDS])
    for name in ("xmin", "xmax", "ymin", "ymax"):
        del fields[name]
    grid_type = fields.pop("grid_type")

    metadata = GridMetadata(
        version=directory.version,
        grid_type=grid_type,
        skipped_records=tuple(skipped),
        **fields,
    )
    return bounds, grid_type, metadata
