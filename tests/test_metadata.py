"""Tests for petragrid.metadata."""

import io
import logging
import math
import struct
from datetime import datetime

import pytest

from petragrid.config import default_layout
from petragrid.directory import SectionDirectory
from petragrid.errors import MalformedStructureError, TruncatedDataError
from petragrid.fields import FieldReader
from petragrid.metadata import (
    Bounds,
    GridMetadata,
    RecordTag,
    UnitOfMeasure,
    decode_metadata,
    delphi_datetime,
)


def _decode(grd, metadata):
    data = grd.file(metadata, grd.rectangular(1, 1, [0.0]))
    reader = FieldReader(io.BytesIO(data))
    layout = default_layout()
    directory = SectionDirectory.read(reader, layout)
    return decode_metadata(reader, directory, layout)


class TestDecodeMetadata:
    def test_minimal(self, grd):
        bounds, tag, meta = _decode(grd, grd.metadata(grid_type=1, bounds=(10, 20, 30, 40)))
        assert bounds == Bounds(10.0, 20.0, 30.0, 40.0)
        assert tag == 1
        assert meta.grid_type == 1
        assert meta.version == 2
        assert meta.name is None
        assert meta.skipped_records == ()

    def test_full(self, grd, full_metadata):
        bounds, tag, meta = _decode(grd, full_metadata)
        assert bounds == Bounds(0.0, 1.0, 0.0, 1.0)
        assert meta.name == "TOP_WOLFCAMP"
        assert (meta.declared_zmin, meta.declared_zmax) == (1.0, 4.0)
        assert (meta.xstep, meta.ystep) == (1.0, 1.0)
        assert (meta.size, meta.rows, meta.columns) == (4, 2, 2)
        assert meta.xy_units is UnitOfMeasure.FEET
        assert meta.z_units is UnitOfMeasure.METERS
        assert meta.created == datetime(2023, 3, 15, 12, 0)
        assert meta.source == "WELLS.TOPS"
        assert meta.projection == "TX-27C"
        assert meta.datum == "NAD27"
        assert meta.grid_method == 3
        assert meta.projection_code == 27
        assert (meta.cm, meta.rlat) == (-100.33, 29.67)
        assert meta.skipped_records == ()

    def test_records_in_any_order(self, grd):
        metadata = grd.grid_type(2) + grd.record(RecordTag.NAME, b"X\x00") + grd.bounds(0, 5, 0, 5)
        bounds, tag, meta = _decode(grd, metadata)
        assert tag == 2
        assert bounds.xmax == 5.0
        assert meta.name == "X"

    def test_unknown_record_skipped(self, grd):
        unknown = grd.record(0x7F, b"\xAA" * 2009)
        bounds, tag, meta = _decode(grd, grd.metadata(extra=[unknown,
                                                            grd.record(RecordTag.NAME, b"AFTER")]))
        assert meta.name == "AFTER"
        assert len(meta.skipped_records) == 1
        skipped = meta.skipped_records[0]
        assert skipped.tag == 0x7F
        assert skipped.length == 2009
        assert not skipped.known

    def test_skip_log_levels(self, grd, caplog):
        unknown = grd.record(0x7F, b"\x00" * 4)
        bad = grd.record(RecordTag.ZRANGE, b"\x00" * 4)
        with caplog.at_level(logging.INFO, logger="petragrid.metadata"):
            _decode(grd, grd.metadata(extra=[unknown, bad]))
        levels = {r.getMessage().split()[1]: r.levelno for r in caplog.records
                  if r.getMessage().startswith("skipping")}
        assert levels == {"unknown": logging.INFO, "unreadable": logging.WARNING}

    def test_optional_record_bad_length_skipped(self, grd):
        bad = grd.record(RecordTag.ZRANGE, struct.pack("<d", 1.0))
        _, _, meta = _decode(grd, grd.metadata(extra=[bad]))
        assert meta.declared_zmin is None
        assert meta.skipped_records[0].known
        assert "ZRANGE" in meta.skipped_records[0].reason

    def test_unknown_unit_code_skipped(self, grd):
        units = grd.record(RecordTag.UNITS, struct.pack("<2I", 0, 9))
        _, _, meta = _decode(grd, grd.metadata(extra=[units]))
        assert meta.xy_units is None
        assert meta.z_units is None
        assert meta.skipped_records[0].tag == RecordTag.UNITS

    def test_repeated_optional_keeps_first(self, grd):
        extra = [grd.record(RecordTag.NAME, b"FIRST"), grd.record(RecordTag.NAME, b"SECOND")]
        _, _, meta = _decode(grd, grd.metadata(extra=extra))
        assert meta.name == "FIRST"
        assert "repeated" in meta.skipped_records[0].reason

    def test_repeated_identical_nan_record_ok(self, grd):
        cm_rlat = grd.record(RecordTag.CM_RLAT, struct.pack("<2d", math.nan, 29.0))
        _, _, meta = _decode(grd, grd.metadata(extra=[cm_rlat, cm_rlat]))
        assert math.isnan(meta.cm)
        assert meta.rlat == 29.0
        assert meta.skipped_records == ()

    def test_metadata_nan_fields_compare_equal(self):
        a = GridMetadata(version=2, grid_type=1, declared_zmin=math.nan, cm=math.nan)
        b = GridMetadata(version=2, grid_type=1, declared_zmin=math.nan, cm=math.nan)
        assert a == b
        assert a != GridMetadata(version=2, grid_type=1, declared_zmin=1.0, cm=math.nan)

    def test_repeated_identical_required_ok(self, grd):
        metadata = grd.metadata() + grd.bounds()
        bounds, _, meta = _decode(grd, metadata)
        assert bounds == Bounds(0.0, 1.0, 0.0, 1.0)
        assert meta.skipped_records == ()


class TestRequiredRecords:
    def test_missing_bounds(self, grd):
        with pytest.raises(MalformedStructureError, match="BOUNDS"):
            _decode(grd, grd.grid_type(1))

    def test_missing_grid_type(self, grd):
        with pytest.raises(MalformedStructureError, match="GRID_TYPE"):
            _decode(grd, grd.bounds())

    def test_required_bad_length(self, grd):
        metadata = grd.record(RecordTag.BOUNDS, struct.pack("<3d", 0, 1, 0)) + grd.grid_type(1)
        with pytest.raises(MalformedStructureError, match="BOUNDS"):
            _decode(grd, metadata)

    def test_grid_type_bad_length(self, grd):
        metadata = grd.bounds() + grd.record(RecordTag.GRID_TYPE, b"\x01\x00")
        with pytest.raises(MalformedStructureError, match="GRID_TYPE"):
            _decode(grd, metadata)

    def test_conflicting_bounds(self, grd):
        metadata = grd.metadata() + grd.bounds(0, 2, 0, 2)
        with pytest.raises(MalformedStructureError, match="conflicting"):
            _decode(grd, metadata)

    def test_inverted_bounds(self, grd):
        with pytest.raises(MalformedStructureError, match="inverted"):
            _decode(grd, grd.metadata(bounds=(1.0, 0.0, 0.0, 1.0)))

    def test_non_finite_bounds(self, grd):
        with pytest.raises(MalformedStructureError, match="non-finite"):
            _decode(grd, grd.metadata(bounds=(0.0, float("nan"), 0.0, 1.0)))

    def test_degenerate_bounds_allowed(self, grd):
        bounds, _, _ = _decode(grd, grd.metadata(bounds=(3.0, 3.0, 4.0, 4.0)))
        assert bounds.width == 0.0
        assert bounds.height == 0.0


class TestFraming:
    def test_record_overruns_section(self, grd):
        overrun = struct.pack("<II", RecordTag.NAME, 500) + b"ABC"
        with pytest.raises(MalformedStructureError, match="overruns"):
            _decode(grd, grd.metadata() + overrun)

    def test_trailing_bytes(self, grd):
        with pytest.raises(MalformedStructureError, match="trailing"):
            _decode(grd, grd.metadata() + b"\x00\x00\x00")

    def test_truncated_file(self, grd):
        data = grd.file(grd.metadata(), b"")
        reader = FieldReader(io.BytesIO(data[:-10]))
        layout = default_layout()
        directory = SectionDirectory.read(reader, layout)
        with pytest.raises(TruncatedDataError):
            decode_metadata(reader, directory, layout)


class TestDelphiDatetime:
    def test_origin(self):
        assert delphi_datetime(0.0) == datetime(1899, 12, 30)

    def test_fractional_day(self):
        assert delphi_datetime(1.25) == datetime(1899, 12, 31, 6, 0)

    def test_non_finite(self):
        with pytest.raises(ValueError):
            delphi_datetime(float("inf"))
