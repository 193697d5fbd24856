"""Fixed-width field reads against a seekable byte source.

Every scalar in a Petra grid is little-endian; the byte order is part
of the format, not a reader option.  Reads either return exactly the
requested number of bytes or raise: a short read is a
:class:`~petragrid.errors.TruncatedDataError`, an ``OSError`` from the
source is wrapped in :class:`~petragrid.errors.GridIOError`.
"""

from __future__ import annotations

import os
import struct
from typing import Any, BinaryIO

import numpy as np

from petragrid.errors import GridIOError, MalformedStructureError, TruncatedDataError

_DTYPE_STRUCT = {
    "uint8": ("B", 1),
    "int8": ("b", 1),
    "uint16": ("H", 2),
    "int16": ("h", 2),
    "uint32": ("I", 4),
    "int32": ("i", 4),
    "uint64": ("Q", 8),
    "int64": ("q", 8),
    "float32": ("f", 4),
    "float64": ("d", 8),
}

_NP_DTYPE = {
    "uint8": "<u1", "int8": "<i1",
    "uint16": "<u2", "int16": "<i2",
    "uint32": "<u4", "int32": "<i4",
    "uint64": "<u8", "int64": "<i8",
    "float32": "<f4", "float64": "<f8",
}


def dtype_size(dtype: str) -> int:
    """Return the byte width of a scalar type name."""
    info = _DTYPE_STRUCT.get(dtype)
    if info is None:
        raise ValueError(f"Unsupported dtype: {dtype!r}")
    return info[1]


def nodata_to_nan(values: np.ndarray, nodata_bits: int) -> tuple[int, int]:
    """Replace no-data cells of a little-endian float64 array with NaN, in place.

    A cell is no-data when its raw 64-bit pattern equals *nodata_bits*.
    Infinities are also replaced so that every remaining value is finite
    or NaN.

    Returns
    -------
    tuple[int, int]
        ``(sentinel_count, infinite_count)``.
    """
    sentinel = values.view(np.dtype("<u8")) == np.uint64(nodata_bits)
    n_sentinel = int(np.count_nonzero(sentinel))
    values[sentinel] = np.nan
    infinite = np.isinf(values)
    n_infinite = int(np.count_nonzero(infinite))
    values[infinite] = np.nan
    return n_sentinel, n_infinite


def decode_text(chunk: bytes) -> str:
    """Decode a fixed-width, NUL-padded ASCII field up to the first NUL."""
    return chunk.partition(b"\x00")[0].decode("ascii", errors="replace")


class FieldReader:
    """Read typed fields from a binary file-like object.

    The reader borrows *source*; it never closes it.

    Parameters
    ----------
    source : BinaryIO
        Anything with ``read``, ``seek`` and ``tell``.
    section : str
        Name of the logical section being read, used in error messages.
    """

    def __init__(self, source: BinaryIO, section: str = "lead-in"):
        self.source = source
        self.section = section
        self._size: int | None = None

    # ------------------------------------------------------------------
    # Positioning
    # ------------------------------------------------------------------

    def _io(self, func, *args) -> Any:
        try:
            return func(*args)
        except OSError as exc:
            raise GridIOError(f"I/O error while reading {self.section}: {exc}") from exc

    def size(self) -> int:
        """Return the total length of the source, keeping the cursor."""
        if self._size is None:
            pos = self._io(self.source.tell)
            end = self._io(self.source.seek, 0, os.SEEK_END)
            self._io(self.source.seek, pos)
            self._size = end
        return self._size

    def tell(self) -> int:
        return self._io(self.source.tell)

    def seek(self, offset: int) -> None:
        """Move to an absolute *offset*.

        An offset past the end of the source means the file was cut short.
        """
        if offset < 0:
            raise MalformedStructureError(f"negative offset {offset}", self.section)
        size = self.size()
        if offset > size:
            raise TruncatedDataError(
                "seek past end of data", self.section, offset,
                expected=offset, available=size,
            )
        self._io(self.source.seek, offset)

    def enter(self, section: str, offset: int) -> None:
        """Name the section being decoded and seek to its start."""
        self.section = section
        self.seek(offset)

    # ------------------------------------------------------------------
    # Raw reads
    # ------------------------------------------------------------------

    def read_bytes(self, n: int, offset: int | None = None) -> bytes:
        """Read exactly *n* bytes, optionally after seeking to *offset*."""
        if offset is not None:
            self.seek(offset)
        start = self.tell()
        available = self.size() - start
        if n > available:
            raise TruncatedDataError(
                "unexpected end of data", self.section, start,
                expected=n, available=max(available, 0),
            )
        chunks: list[bytes] = []
        remaining = n
        while remaining > 0:
            chunk = self._io(self.source.read, remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if len(data) != n:
            raise TruncatedDataError(
                "unexpected end of data", self.section, start,
                expected=n, available=len(data),
            )
        return data

    def skip(self, n: int) -> None:
        """Advance past *n* bytes without decoding them."""
        self.seek(self.tell() + n)

    # ------------------------------------------------------------------
    # Typed reads
    # ------------------------------------------------------------------

    def read_scalar(self, dtype: str, offset: int | None = None) -> int | float:
        """Read one scalar of the named type."""
        info = _DTYPE_STRUCT.get(dtype)
        if info is None:
            raise ValueError(f"Unsupported dtype: {dtype!r}")
        fmt_char, size = info
        return struct.unpack(f"<{fmt_char}", self.read_bytes(size, offset))[0]

    def read_uint8(self, offset: int | None = None) -> int:
        return self.read_scalar("uint8", offset)

    def read_uint16(self, offset: int | None = None) -> int:
        return self.read_scalar("uint16", offset)

    def read_uint32(self, offset: int | None = None) -> int:
        return self.read_scalar("uint32", offset)

    def read_uint64(self, offset: int | None = None) -> int:
        return self.read_scalar("uint64", offset)

    def read_int8(self, offset: int | None = None) -> int:
        return self.read_scalar("int8", offset)

    def read_int16(self, offset: int | None = None) -> int:
        return self.read_scalar("int16", offset)

    def read_int32(self, offset: int | None = None) -> int:
        return self.read_scalar("int32", offset)

    def read_int64(self, offset: int | None = None) -> int:
        return self.read_scalar("int64", offset)

    def read_float32(self, offset: int | None = None) -> float:
        return self.read_scalar("float32", offset)

    def read_float64(self, offset: int | None = None) -> float:
        return self.read_scalar("float64", offset)

    def read_text(self, n: int, offset: int | None = None) -> str:
        """Read a fixed-width, NUL-padded text field."""
        return decode_text(self.read_bytes(n, offset))

    def read_array(self, count: int, dtype: str = "float64",
                   offset: int | None = None) -> np.ndarray:
        """Read *count* contiguous scalars into a writable numpy array."""
        np_dtype = _NP_DTYPE.get(dtype)
        if np_dtype is None:
            raise ValueError(f"Unsupported dtype: {dtype!r}")
        data = self.read_bytes(count * dtype_size(dtype), offset)
        return np.frombuffer(data, dtype=np.dtype(np_dtype)).copy()
