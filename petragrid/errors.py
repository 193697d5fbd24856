"""Exception hierarchy for Petra grid decoding.

Three families are kept apart so callers can tell them apart:

* :class:`NotAGridFileError` -- the bytes are not a Petra grid at all;
* :class:`GridFormatError` subclasses -- a Petra grid, but damaged;
* :class:`UnsupportedFeatureError` subclasses -- a Petra grid that uses
  something this reader does not understand yet.

I/O failures of the underlying byte source are reported separately as
:class:`GridIOError`.
"""

from __future__ import annotations


class GridError(Exception):
    """Base class for every error raised while reading a grid."""


class GridIOError(GridError):
    """The byte source failed to read or seek."""


class GridFormatError(GridError):
    """The file is structurally damaged.

    Parameters
    ----------
    message : str
        Human readable description.
    section : str, optional
        Logical section being decoded (``"directory"``, ``"metadata"``, ...).
    offset : int, optional
        Absolute byte offset where the problem was found.
    """

    def __init__(self, message: str, section: str | None = None,
                 offset: int | None = None):
        self.section = section
        self.offset = offset
        where = []
        if section:
            where.append(section)
        if offset is not None:
            where.append(f"offset 0x{offset:x}")
        if where:
            message = f"{message} ({', '.join(where)})"
        super().__init__(message)


class TruncatedDataError(GridFormatError):
    """Fewer bytes are available than a declared count requires."""

    def __init__(self, message: str, section: str | None = None,
                 offset: int | None = None, expected: int = 0,
                 available: int = 0):
        self.expected = expected
        self.available = available
        super().__init__(
            f"{message}: expected {expected} bytes, {available} available",
            section, offset,
        )


class MalformedStructureError(GridFormatError):
    """The structure is inconsistent or a required field is missing."""


class NotAGridFileError(MalformedStructureError):
    """The lead-in signature does not match; this is not a Petra grid."""


class SizeLimitError(GridFormatError):
    """A declared count exceeds the sanity ceiling for its kind."""


class UnsupportedFeatureError(GridError):
    """The file uses a feature of the format this reader does not handle."""


class UnsupportedGridTypeError(UnsupportedFeatureError):
    """The grid-type discriminator is not one of the known tags."""

    def __init__(self, tag: int):
        self.tag = tag
        super().__init__(f"unsupported grid type tag {tag}")


class UnsupportedVersionError(UnsupportedFeatureError):
    """The format version is not one this reader knows."""

    def __init__(self, version: int, known: tuple[int, ...] = ()):
        self.version = version
        known_txt = ", ".join(str(v) for v in known) or "none"
        super().__init__(f"unsupported format version {version} (known: {known_txt})")
