from __future__ import annotations
"""Single-entry ZIP reader driven by the central directory.

CI artifact archives are written in streaming mode: the local file header of
each entry carries zero sizes and the real sizes live in a trailing data
descriptor. Sizes are therefore always taken from the central directory, while
the local header is only consulted for its own name/extra lengths to find where
the entry data starts.

Only the first non-directory entry is extracted. Entries compressed with a
method other than stored (0) or deflate (8) are returned as raw compressed
bytes.
"""

import logging
import struct
import zlib

from cloud_build_tool.domain.entities import ArchiveEntry, EntryNotFound, ExtractedEntry, ExtractionResult
from cloud_build_tool.domain.errors import (
    ArchiveError,
    ArchiveTooSmall,
    CorruptCentralDirectory,
    EmptyArchive,
    NoCentralDirectory,
)


LOGGER = logging.getLogger(__name__)

EOCD_SIGNATURE = 0x06054B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
EOCD_MIN_SIZE = 22
MAX_COMMENT_LENGTH = 0xFFFF
CENTRAL_RECORD_SIZE = 46
LOCAL_HEADER_SIZE = 30

METHOD_STORED = 0
METHOD_DEFLATE = 8

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


def extract_first_entry(buffer: bytes) -> ExtractionResult:
    """Return the first non-directory entry of a ZIP buffer.

    Never raises for malformed input: parsing failures are reported as
    `EntryNotFound` so callers can fall back to keeping the raw archive.
    """
    try:
        entry = find_first_file_entry(buffer)
    except ArchiveError as error:
        LOGGER.info(
            "zip entry not found",
            extra={"event": "archive.entry.not_found", "reason": str(error), "size": len(buffer)},
        )
        return EntryNotFound(reason=str(error))

    if entry is None:
        return EntryNotFound(reason="archive contains only directory entries")

    try:
        compressed = _read_entry_data(buffer, entry)
    except ArchiveError as error:
        return EntryNotFound(reason=str(error))

    return ExtractedEntry(name=entry.name, data=_decompress(entry, compressed))


def find_first_file_entry(buffer: bytes) -> ArchiveEntry | None:
    """Walk the central directory and return the first file entry, if any.

    Raises:
        ArchiveTooSmall: buffer is shorter than an end-of-central-directory record.
        NoCentralDirectory: no end-of-central-directory signature was found.
        EmptyArchive: the archive declares zero entries.
        CorruptCentralDirectory: a central record is truncated or has a bad signature.
    """
    if len(buffer) < EOCD_MIN_SIZE:
        raise ArchiveTooSmall(f"archive is {len(buffer)} bytes, expected at least {EOCD_MIN_SIZE}")

    eocd_offset = _find_eocd(buffer)
    total_entries = _u16(buffer, eocd_offset + 10)
    offset = _u32(buffer, eocd_offset + 16)
    if total_entries == 0:
        raise EmptyArchive("archive has no entries")

    for _ in range(total_entries):
        if offset + CENTRAL_RECORD_SIZE > len(buffer):
            raise CorruptCentralDirectory(f"central directory record at {offset} is truncated")
        if _u32(buffer, offset) != CENTRAL_DIRECTORY_SIGNATURE:
            raise CorruptCentralDirectory(f"bad central directory signature at {offset}")

        name_length = _u16(buffer, offset + 28)
        extra_length = _u16(buffer, offset + 30)
        comment_length = _u16(buffer, offset + 32)
        name_start = offset + CENTRAL_RECORD_SIZE
        entry = ArchiveEntry(
            name=buffer[name_start : name_start + name_length].decode("utf-8", errors="replace"),
            compression_method=_u16(buffer, offset + 10),
            compressed_size=_u32(buffer, offset + 20),
            uncompressed_size=_u32(buffer, offset + 24),
            local_header_offset=_u32(buffer, offset + 42),
        )

        if not entry.is_directory:
            return entry

        offset = name_start + name_length + extra_length + comment_length

    return None


def _find_eocd(buffer: bytes) -> int:
    lowest = max(0, len(buffer) - (EOCD_MIN_SIZE + MAX_COMMENT_LENGTH))
    for position in range(len(buffer) - EOCD_MIN_SIZE, lowest - 1, -1):
        if _u32(buffer, position) == EOCD_SIGNATURE:
            return position
    raise NoCentralDirectory("end of central directory record not found")


def _read_entry_data(buffer: bytes, entry: ArchiveEntry) -> bytes:
    header = entry.local_header_offset
    if header + LOCAL_HEADER_SIZE > len(buffer):
        raise CorruptCentralDirectory(f"local header offset {header} is outside the archive")

    # Local name/extra lengths may differ from the central record.
    data_start = header + LOCAL_HEADER_SIZE + _u16(buffer, header + 26) + _u16(buffer, header + 28)
    return bytes(buffer[data_start : data_start + entry.compressed_size])


def _decompress(entry: ArchiveEntry, compressed: bytes) -> bytes:
    if entry.compression_method == METHOD_STORED:
        return compressed

    if entry.compression_method == METHOD_DEFLATE:
        try:
            return zlib.decompress(compressed, -zlib.MAX_WBITS)
        except zlib.error as error:
            LOGGER.warning(
                "deflate failed; returning compressed bytes",
                extra={"event": "archive.inflate.failed", "entry": entry.name, "error": str(error)},
            )
            return compressed

    LOGGER.warning(
        "unsupported compression method; returning compressed bytes",
        extra={"event": "archive.method.unsupported", "entry": entry.name, "method": entry.compression_method},
    )
    return compressed


def _u16(buffer: bytes, offset: int) -> int:
    return _U16.unpack_from(buffer, offset)[0]


def _u32(buffer: bytes, offset: int) -> int:
    return _U32.unpack_from(buffer, offset)[0]
