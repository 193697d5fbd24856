"""Tests for petragrid.directory."""

import io
import struct

import pytest

from petragrid.config import default_layout
from petragrid.directory import ENTRY_SIZE, DirectoryEntry, SectionDirectory
from petragrid.errors import (
    MalformedStructureError,
    NotAGridFileError,
    TruncatedDataError,
    UnsupportedFeatureError,
    UnsupportedVersionError,
)
from petragrid.fields import FieldReader


def _read(data):
    return SectionDirectory.read(FieldReader(io.BytesIO(data)), default_layout())


class TestSectionDirectory:
    def test_read(self, rect_bytes):
        directory = _read(rect_bytes)
        assert directory.version == 2
        assert set(directory.entries) == {1, 2}
        meta = directory.locate(1)
        data = directory.locate(2)
        assert meta.offset == 12 + 2 * ENTRY_SIZE
        assert data.offset == meta.end
        assert data.end == len(rect_bytes)

    def test_unknown_sections_tolerated(self, grd):
        data = grd.file(grd.metadata(), grd.rectangular(1, 1, [1.0]),
                        extra_sections=[(99, b"opaque")])
        directory = _read(data)
        assert directory.locate(99) == DirectoryEntry(99, directory.locate(2).end, 6)

    def test_bad_signature(self, rect_bytes):
        with pytest.raises(NotAGridFileError) as info:
            _read(b"XXXX" + rect_bytes[4:])
        assert isinstance(info.value, MalformedStructureError)
        assert info.value.section == "directory"

    def test_bad_signature_wins_over_truncation(self):
        # nothing past the lead-in is ever looked at
        with pytest.raises(NotAGridFileError):
            _read(b"DSBB" + struct.pack("<II", 2, 2))

    def test_unsupported_version(self, rect_bytes):
        data = rect_bytes[:4] + struct.pack("<I", 3) + rect_bytes[8:]
        with pytest.raises(UnsupportedVersionError) as info:
            _read(data)
        assert info.value.version == 3
        assert isinstance(info.value, UnsupportedFeatureError)

    def test_zero_sections(self):
        with pytest.raises(MalformedStructureError, match="section count"):
            _read(b"PGRD" + struct.pack("<II", 2, 0))

    def test_too_many_sections(self):
        with pytest.raises(MalformedStructureError, match="section count"):
            _read(b"PGRD" + struct.pack("<II", 2, 1000) + b"\x00" * 64)

    def test_duplicate_section(self):
        table = struct.pack("<IQQ", 1, 52, 0) + struct.pack("<IQQ", 1, 52, 0)
        with pytest.raises(MalformedStructureError, match="duplicate"):
            _read(b"PGRD" + struct.pack("<II", 2, 2) + table)

    def test_offset_into_directory(self):
        table = struct.pack("<IQQ", 1, 4, 8)
        with pytest.raises(MalformedStructureError, match="into the directory"):
            _read(b"PGRD" + struct.pack("<II", 2, 1) + table)

    def test_truncated_table(self, rect_bytes):
        with pytest.raises(TruncatedDataError):
            _read(rect_bytes[:20])

    def test_short_foreign_source(self):
        with pytest.raises(NotAGridFileError):
            _read(b"ab")

    def test_short_signature_prefix(self):
        with pytest.raises(TruncatedDataError) as info:
            _read(b"PG")
        assert (info.value.expected, info.value.available) == (4, 2)

    def test_empty_source(self):
        with pytest.raises(TruncatedDataError):
            _read(b"")

    def test_locate_missing(self, grd):
        data = b"PGRD" + struct.pack("<II", 2, 1) + struct.pack("<IQQ", 1, 32, 0)
        directory = _read(data)
        with pytest.raises(MalformedStructureError, match="grid data"):
            directory.locate(2)

    def test_directory_does_not_bounds_check(self):
        table = struct.pack("<IQQ", 1, 10_000, 8)
        directory = _read(b"PGRD" + struct.pack("<II", 2, 1) + table)
        assert directory.locate(1).offset == 10_000

    def test_seek_out_of_range(self):
        table = struct.pack("<IQQ", 1, 10_000, 8)
        reader = FieldReader(io.BytesIO(b"PGRD" + struct.pack("<II", 2, 1) + table))
        directory = SectionDirectory.read(reader, default_layout())
        with pytest.raises(TruncatedDataError) as info:
            directory.seek(reader, 1)
        assert info.value.section == "metadata"
