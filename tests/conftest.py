"""Shared test fixtures for petragrid."""

import struct

import pytest

from petragrid.metadata import RecordTag

NODATA = 1.0e30


class GrdBuilder:
    """Assemble synthetic Petra grid files piece by piece."""

    nodata = NODATA

    @staticmethod
    def record(tag, payload):
        return struct.pack("<II", tag, len(payload)) + payload

    @staticmethod
    def text(value, width):
        return value.encode("ascii").ljust(width, b"\x00")

    def bounds(self, xmin=0.0, xmax=1.0, ymin=0.0, ymax=1.0):
        return self.record(RecordTag.BOUNDS, struct.pack("<4d", xmin, xmax, ymin, ymax))

    def grid_type(self, tag):
        return self.record(RecordTag.GRID_TYPE, struct.pack("<I", tag))

    def metadata(self, grid_type=1, bounds=(0.0, 1.0, 0.0, 1.0), extra=()):
        """Minimal metadata: bounds, grid type, then any *extra* records."""
        return self.bounds(*bounds) + self.grid_type(grid_type) + b"".join(extra)

    @staticmethod
    def rectangular(rows, cols, values):
        return struct.pack("<II", rows, cols) + struct.pack(f"<{len(values)}d", *values)

    @staticmethod
    def triangular(triangles):
        """Pack triangles given as ``[(x, y, z), (x, y, z), (x, y, z)]``."""
        out = struct.pack("<I", len(triangles))
        for tri in triangles:
            xs = [v[0] for v in tri]
            ys = [v[1] for v in tri]
            zs = [v[2] for v in tri]
            out += struct.pack("<9d", *xs, *ys, *zs)
        return out

    @staticmethod
    def file(metadata, data, signature=b"PGRD", version=2, extra_sections=()):
        sections = [(1, metadata), (2, data), *extra_sections]
        offset = 12 + 20 * len(sections)
        table = b""
        body = b""
        for section_id, content in sections:
            table += struct.pack("<IQQ", section_id, offset + len(body), len(content))
            body += content
        return signature + struct.pack("<II", version, len(sections)) + table + body


@pytest.fixture
def grd():
    """Provide a :class:`GrdBuilder`."""
    return GrdBuilder()


@pytest.fixture
def full_metadata(grd):
    """Every known optional record, for a 2x2 rectangular grid on (0,0)-(1,1)."""
    return grd.metadata(extra=[
        grd.record(RecordTag.NAME, grd.text("TOP_WOLFCAMP", 81)),
        grd.record(RecordTag.ZRANGE, struct.pack("<2d", 1.0, 4.0)),
        grd.record(RecordTag.STEP, struct.pack("<2d", 1.0, 1.0)),
        grd.record(RecordTag.DIMENSIONS, struct.pack("<3I", 4, 2, 2)),
        grd.record(RecordTag.UNITS, struct.pack("<2I", 0, 1)),
        grd.record(RecordTag.CREATED, struct.pack("<d", 45000.5)),
        grd.record(RecordTag.SOURCE, grd.text("WELLS.TOPS", 246)),
        grd.record(RecordTag.PROJECTION, grd.text("TX-27C", 65)),
        grd.record(RecordTag.DATUM, grd.text("NAD27", 195)),
        grd.record(RecordTag.GRID_METHOD, struct.pack("<I", 3)),
        grd.record(RecordTag.PROJECTION_CODE, struct.pack("<I", 27)),
        grd.record(RecordTag.CM_RLAT, struct.pack("<2d", -100.33, 29.67)),
    ])


@pytest.fixture
def rect_bytes(grd):
    """The 2x2 rectangular grid ``[1, no-data, 3, 4]`` on (0,0)-(1,1)."""
    return grd.file(grd.metadata(grid_type=1),
                    grd.rectangular(2, 2, [1.0, NODATA, 3.0, 4.0]))


@pytest.fixture
def tri_bytes(grd):
    """One triangle (0,0,5), (1,0,6), (0,1,7) on (0,0)-(1,1)."""
    return grd.file(grd.metadata(grid_type=2),
                    grd.triangular([[(0.0, 0.0, 5.0), (1.0, 0.0, 6.0), (0.0, 1.0, 7.0)]]))


@pytest.fixture
def rect_file(tmp_path, rect_bytes):
    p = tmp_path / "rect.grd"
    p.write_bytes(rect_bytes)
    return p


@pytest.fixture
def tri_file(tmp_path, tri_bytes):
    p = tmp_path / "tri.grd"
    p.write_bytes(tri_bytes)
    return p
