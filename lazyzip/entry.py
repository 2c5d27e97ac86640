"""
Archive entries as seen by the encoders.

A FileEntry is resolved once, when the entry is made, into one of the
source kinds below. Whether its local header defers crc and sizes to a data
descriptor is decided at the same time and recorded in its flags, so the
streaming orchestrator and the length predictor always agree on it.
"""
import datetime
import enum
import os
import time
import zlib
from typing import Any, NamedTuple, Optional, Tuple, Union

from . import consts
from .errors import DateOutOfRangeError, InvalidEntryError

__all__ = ("SourceKind", "Checksum", "FileEntry", "make_entry", "check_entry", "dos_date_time")

DOS_MIN_YEAR: int = 1980
DOS_MAX_YEAR: int = 2107

ModifiedTime = Union[None, datetime.datetime, time.struct_time, int, float]


class SourceKind(enum.Enum):
    NONE = 0     # metadata only
    BUFFER = 1   # bytes held in memory
    FILE = 2     # path on the local filesystem
    STREAM = 3   # iterable, async iterable or readable object


class Checksum(NamedTuple):
    """Completion record of a data pass."""
    crc: int
    size: int


class FileEntry(NamedTuple):
    name: bytes
    mod_time: int
    mod_date: int
    flags: int = 0
    kind: SourceKind = SourceKind.NONE
    content: Any = None
    size: Optional[int] = None
    crc: Optional[int] = None

    @property
    def deferred(self) -> bool:
        """True when crc and sizes are written in a data descriptor."""
        return bool(self.flags & consts.DATA_DESCRIPTOR_FLAG)

    @property
    def display_name(self) -> str:
        return self.name.decode("utf-8", "replace")

    def finalized(self, checksum: Checksum) -> "FileEntry":
        """
        Copy of the entry carrying the crc and size of its streamed content.
        """
        return self._replace(size=checksum.size, crc=checksum.crc, content=None)


def check_entry(entry: FileEntry, index: Optional[int] = None) -> FileEntry:
    """
    Reject an entry whose local header would need a crc or size it lacks.

    Entries built by make_entry always pass. The check matters for
    FileEntry values constructed by hand, where flags may not say the
    entry is deferred although its crc or size is unknown.

    Raises:
        InvalidEntryError: If bit 3 of flags is clear but crc or size is None.
    """
    if not entry.deferred and (entry.size is None or entry.crc is None):
        raise InvalidEntryError(
            f"Entry #{index} {entry.display_name!r} has no data descriptor flag "
            f"but its size or crc is unknown.", index, entry.display_name)
    return entry


def dos_date_time(modified: ModifiedTime = None, index: Optional[int] = None,
                  name: Optional[str] = None) -> Tuple[int, int]:
    """
    Convert a modification time to the (dostime, dosdate) pair in local time.

    Args:
        modified: Naive (local) or aware datetime, POSIX timestamp,
            time.struct_time, or None for the current time.
        index: Entry index, reported in errors.
        name: Entry name, reported in errors.

    Returns:
        Tuple of 16-bit DOS time and 16-bit DOS date.

    Raises:
        DateOutOfRangeError: If the year is outside 1980-2107.
    """
    if modified is None:
        dt = time.localtime()
    elif isinstance(modified, datetime.datetime):
        if modified.tzinfo is not None:
            modified = modified.astimezone()
        dt = modified.timetuple()
    elif isinstance(modified, time.struct_time):
        dt = modified
    elif isinstance(modified, (int, float)):
        try:
            dt = time.localtime(modified)
        except (OverflowError, OSError, ValueError) as exc:
            raise DateOutOfRangeError(
                f"Modification time {modified!r} of entry {name!r} is not representable.",
                index, name) from exc
    else:
        raise TypeError(f"Unsupported modification time {modified!r}.")

    if not DOS_MIN_YEAR <= dt[0] <= DOS_MAX_YEAR:
        raise DateOutOfRangeError(
            f"Year {dt[0]} of entry {name!r} is outside the DOS date range "
            f"{DOS_MIN_YEAR}-{DOS_MAX_YEAR}.", index, name)
    dosdate = ((dt[0] - 1980) << 9 | dt[1] << 5 | dt[2]) & 0xffff
    dostime = (dt[3] << 11 | dt[4] << 5 | (dt[5] // 2)) & 0xffff
    return dostime, dosdate


def _source_kind(content: Any) -> SourceKind:
    if content is None:
        return SourceKind.NONE
    if isinstance(content, (bytes, bytearray, memoryview)):
        return SourceKind.BUFFER
    if isinstance(content, (str, os.PathLike)):
        return SourceKind.FILE
    return SourceKind.STREAM


def make_entry(name: bytes, modified: ModifiedTime = None, *, content: Any = None,
               kind: Optional[SourceKind] = None, size: Optional[int] = None,
               crc: Optional[int] = None, utf8: bool = False,
               index: Optional[int] = None) -> FileEntry:
    """
    Build a FileEntry.

    Buffers get their size and crc computed here and are never deferred.
    Any other entry is deferred unless both size and crc are supplied.

    Args:
        name: Encoded file name.
        modified: Modification time, see dos_date_time.
        content: Bytes, path, or chunk source.
        kind: Source kind, guessed from content when omitted.
        size: Uncompressed size, if known in advance.
        crc: CRC-32 of the content, if known in advance.
        utf8: Set the language encoding flag for the name.
        index: Entry index, reported in errors.

    Returns:
        The resolved FileEntry.

    Raises:
        DateOutOfRangeError: If modified can't be stored as a DOS date.
        InvalidEntryError: On empty names or out of range size/crc.
    """
    if not isinstance(name, (bytes, bytearray)):
        raise TypeError(f"Entry name must be bytes, got {type(name).__name__}.")
    if not name:
        raise InvalidEntryError("Every entry must have a non-empty name.", index)
    if len(name) > 0xffff:
        raise InvalidEntryError("Entry name is longer than 65535 bytes.", index)
    name = bytes(name)
    display = name.decode("utf-8", "replace")

    if kind is None:
        kind = _source_kind(content)
    if kind is SourceKind.BUFFER:
        content = bytes(content)
        size = len(content)
        if crc is None:
            crc = zlib.crc32(content) & 0xffffffff

    if size is not None and not 0 <= size < 1 << 64:
        raise InvalidEntryError(f"Size {size!r} of entry {display!r} is out of range.", index, display)
    if crc is not None and not 0 <= crc <= 0xffffffff:
        raise InvalidEntryError(f"CRC {crc!r} of entry {display!r} is out of range.", index, display)

    mod_time, mod_date = dos_date_time(modified, index, display)
    flags = 0
    if utf8:
        flags |= consts.UTF8_FLAG
    if size is None or crc is None:
        flags |= consts.DATA_DESCRIPTOR_FLAG
    return FileEntry(name=name, mod_time=mod_time, mod_date=mod_date, flags=flags,
                     kind=kind, content=content, size=size, crc=crc)
