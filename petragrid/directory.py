"""Lead-in and section directory of a Petra grid file.

Layout at offset 0::

    signature      4 bytes   b"PGRD"
    version        uint32
    section count  uint32
    entries        count x (section_id uint32, offset uint64, length uint64)

The directory is the first and strictest gate: a misread directory would
misalign every later read, so any doubt here is fatal.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from petragrid.config import GridLayout
from petragrid.errors import (
    MalformedStructureError,
    NotAGridFileError,
    TruncatedDataError,
    UnsupportedVersionError,
)
from petragrid.fields import FieldReader

logger = logging.getLogger(__name__)

LEAD_IN_SIZE = 12
ENTRY_FORMAT = "<IQQ"
ENTRY_SIZE = struct.calcsize(ENTRY_FORMAT)


@dataclass(frozen=True)
class DirectoryEntry:
    """Location of one section of the file."""

    section_id: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


class SectionDirectory:
    """Resolved section table for a single read.

    Build with :meth:`read`; nothing is cached beyond the instance, so a
    new read of the same file walks the directory again.
    """

    def __init__(self, version: int, entries: dict[int, DirectoryEntry],
                 layout: GridLayout):
        self.version = version
        self.entries = entries
        self.layout = layout
        self._names = {
            layout.metadata_section: "metadata",
            layout.grid_data_section: "grid data",
        }

    @classmethod
    def read(cls, reader: FieldReader, layout: GridLayout) -> "SectionDirectory":
        """Read and validate the lead-in and directory at offset 0."""
        reader.enter("directory", 0)

        # a short source that already disagrees is not a grid at all
        expected = layout.signature
        signature = reader.read_bytes(min(len(expected), reader.size()))
        if signature != expected[:len(signature)]:
            raise NotAGridFileError(
                f"bad signature {signature!r}, expected {expected!r}",
                "directory", 0,
            )
        if len(signature) < len(expected):
            raise TruncatedDataError(
                "unexpected end of data", "directory", 0,
                expected=len(expected), available=len(signature),
            )

        version = reader.read_uint32()
        if version not in layout.known_versions:
            raise UnsupportedVersionError(version, layout.known_versions)

        count_offset = reader.tell()
        count = reader.read_uint32()
        if count < 1 or count > layout.max_sections:
            raise MalformedStructureError(
                f"implausible section count {count} (1..{layout.max_sections})",
                "directory", count_offset,
            )

        table_offset = reader.tell()
        raw = reader.read_bytes(count * ENTRY_SIZE)
        table_end = table_offset + len(raw)

        entries: dict[int, DirectoryEntry] = {}
        for i, (section_id, offset, length) in enumerate(struct.iter_unpack(ENTRY_FORMAT, raw)):
            entry_offset = table_offset + i * ENTRY_SIZE
            if section_id in entries:
                raise MalformedStructureError(
                    f"duplicate section id {section_id}", "directory", entry_offset,
                )
            if offset < table_end:
                raise MalformedStructureError(
                    f"section {section_id} offset 0x{offset:x} points into the directory",
                    "directory", entry_offset,
                )
            entries[section_id] = DirectoryEntry(section_id, offset, length)

        logger.debug("directory: version %d, %d sections: %s", version, count,
                     sorted(entries))
        return cls(version, entries, layout)

    def name_of(self, section_id: int) -> str:
        return self._names.get(section_id, f"section {section_id}")

    def locate(self, section_id: int) -> DirectoryEntry:
        """Return the entry for *section_id*.

        Raises
        ------
        MalformedStructureError
            If the directory has no such section.
        """
        entry = self.entries.get(section_id)
        if entry is None:
            raise MalformedStructureError(
                f"required {self.name_of(section_id)} section (id {section_id}) "
                f"missing from directory",
                "directory",
            )
        return entry

    def seek(self, reader: FieldReader, section_id: int) -> DirectoryEntry:
        """Locate *section_id* and position *reader* at its start."""
        entry = self.locate(section_id)
        reader.enter(self.name_of(section_id), entry.offset)
        return entry
