#
# ZIP record encoders
# based on official ZIP File Format Specification version 6.3.4
# https://pkware.cachefly.net/webdocs/casestudies/APPNOTE.TXT
#
# Every encoder is paired with a *_length function. Both sides take their
# zip64 decisions from the same helpers, which is what keeps the length
# predictor in step with the streamed archive.
#
import enum
import struct
from typing import List, Optional

from . import consts
from .entry import FileEntry

__all__ = (
    "FieldKind", "needs_zip64", "sentinel",
    "local_file_header", "local_file_header_length",
    "data_descriptor", "data_descriptor_length",
    "central_directory_header", "central_directory_header_length",
    "zip64_extra_field", "zip64_extra_field_length",
    "end_of_central_directory", "end_of_central_directory_length",
)


class FieldKind(enum.Enum):
    LOCAL_SIZE = "entry size in local header"
    CENTRAL_SIZE = "entry size in central directory header"
    CENTRAL_OFFSET = "local header offset in central directory header"
    TOTAL_ENTRIES = "entry count in end record"
    CENTRAL_DIR_SIZE = "central directory size in end record"
    CENTRAL_DIR_OFFSET = "central directory offset in end record"


def _limit(kind: FieldKind) -> int:
    if kind is FieldKind.TOTAL_ENTRIES:
        return consts.ZIP_FILECOUNT_LIMIT
    return consts.ZIP32_LIMIT


def needs_zip64(value: Optional[int], kind: FieldKind) -> bool:
    """
    Decide whether a value has to be moved out of its fixed-width field.

    Args:
        value: True value of the field, None if not known yet.
        kind: Field the value is written to.

    Returns:
        True when the field must hold the sentinel and the value goes to a
        zip64 structure. An unknown size in a local header always does.

    Raises:
        ValueError: If the value is unknown for any field but a local header size.
    """
    if value is None:
        if kind is FieldKind.LOCAL_SIZE:
            return True
        raise ValueError(f"The {kind.value} must be known.")
    return value >= _limit(kind)


def sentinel(value: Optional[int], kind: FieldKind) -> int:
    """
    Value to store in the fixed-width field.
    """
    if needs_zip64(value, kind):
        return _limit(kind)
    return value


def _zip64_values(size: Optional[int], size_kind: FieldKind,
                  offset: Optional[int] = None) -> List[int]:
    # uncompressed size, compressed size, offset; only those that overflow
    values = []
    if size is not None and needs_zip64(size, size_kind):
        values += [size, size]
    if offset is not None and needs_zip64(offset, FieldKind.CENTRAL_OFFSET):
        values.append(offset)
    return values


def _local_zip64_values(entry: FileEntry) -> List[int]:
    if entry.deferred:
        return []
    return _zip64_values(entry.size, FieldKind.LOCAL_SIZE)


def _pack_zip64_extra(values: List[int]) -> bytes:
    if not values:
        return b''
    head = consts.EXTRA_TUPLE(signature=consts.ZIP64_EXTRA_ID,
                              size=consts.ZIP64_FIELD_SIZE * len(values))
    head = consts.EXTRA_STRUCT.pack(*head)
    return head + struct.pack("<%dQ" % len(values), *values)


def _zip64_extra_length(values: List[int]) -> int:
    if not values:
        return 0
    return consts.EXTRA_STRUCT.size + consts.ZIP64_FIELD_SIZE * len(values)


def _require_final(entry: FileEntry) -> None:
    if entry.size is None or entry.crc is None:
        raise ValueError(f"Entry {entry.display_name!r} has no final size and crc yet.")


def zip64_extra_field(entry: FileEntry, offset: Optional[int] = None) -> bytes:
    """
    Create zip64 extended information extra field

    Args:
        entry: Entry whose size is checked for overflow.
        offset: Local header offset, checked for overflow when given.

    Returns:
        Extra field with only the overflowing values, or b'' if none. (bytes)
    """
    return _pack_zip64_extra(_zip64_values(entry.size, FieldKind.CENTRAL_SIZE, offset))


def zip64_extra_field_length(entry: FileEntry, offset: Optional[int] = None) -> int:
    return _zip64_extra_length(_zip64_values(entry.size, FieldKind.CENTRAL_SIZE, offset))


def local_file_header(entry: FileEntry) -> bytes:
    """
    Create local file header

    Deferred entries get a zero crc and sentinel sizes, their real values
    follow the data in a data descriptor. Entries with a known size and crc
    carry them here, with a zip64 extra field when the size overflows.

    Args:
        entry: Entry to describe.

    Returns:
        Local file header including file name and extra field. (bytes)
    """
    values = _local_zip64_values(entry)
    extra = _pack_zip64_extra(values)
    size = None if entry.deferred else entry.size
    zip64 = needs_zip64(size, FieldKind.LOCAL_SIZE)
    fields = {
        "signature": consts.LF_MAGIC,
        "version": consts.ZIP64_VERSION if zip64 else consts.ZIP32_VERSION,
        "flags": entry.flags,
        "compression": consts.COMPRESSION_STORE,
        "mod_time": entry.mod_time,
        "mod_date": entry.mod_date,
        "crc": 0 if entry.deferred else entry.crc,
        "comp_size": sentinel(size, FieldKind.LOCAL_SIZE),
        "uncomp_size": sentinel(size, FieldKind.LOCAL_SIZE),
        "fname_len": len(entry.name),
        "extra_len": len(extra)
    }
    head = consts.LF_TUPLE(**fields)
    head = consts.LF_STRUCT.pack(*head)
    return head + entry.name + extra


def local_file_header_length(entry: FileEntry) -> int:
    return (consts.LF_STRUCT.size + len(entry.name)
            + _zip64_extra_length(_local_zip64_values(entry)))


def data_descriptor(entry: FileEntry) -> bytes:
    """
    Create data descriptor

    Sizes are 8 bytes wide when the size overflows a 32-bit field.

    Args:
        entry: Finalized entry with its streamed crc and size.

    Returns:
        Data descriptor with signature. (bytes)
    """
    _require_final(entry)
    fields = {
        "crc": entry.crc,
        "comp_size": entry.size,
        "uncomp_size": entry.size
    }
    descriptor = consts.DD_TUPLE(**fields)
    if needs_zip64(entry.size, FieldKind.LOCAL_SIZE):
        descriptor = consts.DD_STRUCT64.pack(*descriptor)
    else:
        descriptor = consts.DD_STRUCT.pack(*descriptor)
    return consts.DD_MAGIC + descriptor


def data_descriptor_length(entry: FileEntry) -> int:
    """
    Bytes the data descriptor of an entry occupies, 0 if none is written.
    """
    if not entry.deferred:
        return 0
    if needs_zip64(entry.size, FieldKind.LOCAL_SIZE):
        return len(consts.DD_MAGIC) + consts.DD_STRUCT64.size
    return len(consts.DD_MAGIC) + consts.DD_STRUCT.size


def central_directory_header(entry: FileEntry, offset: int) -> bytes:
    """
    Create central directory file header
    According to the ZIP spec and the structures:
    version (low byte) and system (high byte) form "version made by".

    Args:
        entry: Finalized entry with its streamed crc and size.
        offset: Offset of the entry's local file header.

    Returns:
        Central directory file header including name and extra field. (bytes)
    """
    _require_final(entry)
    values = _zip64_values(entry.size, FieldKind.CENTRAL_SIZE, offset)
    extra = _pack_zip64_extra(values)
    version = consts.ZIP64_VERSION if entry.deferred or values else consts.ZIP32_VERSION
    fields = {
        "signature": consts.CDFH_MAGIC,
        "version": version,
        "system": consts.SYSTEM_UNIX,
        "version_ndd": version,
        "flags": entry.flags,
        "compression": consts.COMPRESSION_STORE,
        "mod_time": entry.mod_time,
        "mod_date": entry.mod_date,
        "crc": entry.crc,
        "comp_size": sentinel(entry.size, FieldKind.CENTRAL_SIZE),
        "uncomp_size": sentinel(entry.size, FieldKind.CENTRAL_SIZE),
        "fname_len": len(entry.name),
        "extra_len": len(extra),
        "fcomm_len": 0,
        "disk_start": 0,
        "attrs_int": 0,
        "attrs_ext": 0,
        "offset": sentinel(offset, FieldKind.CENTRAL_OFFSET)
    }
    cdfh = consts.CDLF_TUPLE(**fields)
    cdfh = consts.CDLF_STRUCT.pack(*cdfh)
    return cdfh + entry.name + extra


def central_directory_header_length(entry: FileEntry, offset: int) -> int:
    values = _zip64_values(entry.size, FieldKind.CENTRAL_SIZE, offset)
    return consts.CDLF_STRUCT.size + len(entry.name) + _zip64_extra_length(values)


def _end_needs_zip64(count: int, cd_size: int, cd_offset: int) -> bool:
    return (needs_zip64(count, FieldKind.TOTAL_ENTRIES)
            or needs_zip64(cd_size, FieldKind.CENTRAL_DIR_SIZE)
            or needs_zip64(cd_offset, FieldKind.CENTRAL_DIR_OFFSET))


def end_of_central_directory(count: int, cd_size: int, cd_offset: int) -> bytes:
    """
    Create end of central directory record, preceded by the zip64 end of
    central directory record and locator when any value overflows.

    Args:
        count: Number of entries.
        cd_size: Size of the central directory.
        cd_offset: Offset of the first central directory header.

    Returns:
        End records. (bytes)
    """
    records = b''
    if _end_needs_zip64(count, cd_size, cd_offset):
        fields = {
            "signature": consts.CD_END_MAGIC64,
            "zip64_eocd_size": consts.CD_END_STRUCT64.size - 12,
            "version": consts.ZIP64_VERSION,
            "version_ndd": consts.ZIP64_VERSION,
            "disk_num": 0,
            "disk_cdstart": 0,
            "disk_entries": count,
            "total_entries": count,
            "cd_size": cd_size,
            "cd_offset": cd_offset
        }
        cdend64 = consts.CD_END_TUPLE64(**fields)
        records += consts.CD_END_STRUCT64.pack(*cdend64)
        fields = {
            "signature": consts.CD_LOC64_MAGIC,
            "disk_cdstart": 0,
            "offset": cd_offset + cd_size,  # the zip64 record follows the central directory
            "disk_count": 1
        }
        locator = consts.CD_LOC64_TUPLE(**fields)
        records += consts.CD_LOC64_STRUCT.pack(*locator)

    fields = {
        "signature": consts.CD_END_MAGIC,
        "disk_num": 0,
        "disk_cdstart": 0,
        "disk_entries": sentinel(count, FieldKind.TOTAL_ENTRIES),
        "total_entries": sentinel(count, FieldKind.TOTAL_ENTRIES),
        "cd_size": sentinel(cd_size, FieldKind.CENTRAL_DIR_SIZE),
        "cd_offset": sentinel(cd_offset, FieldKind.CENTRAL_DIR_OFFSET),
        "comment_len": 0
    }
    cdend = consts.CD_END_TUPLE(**fields)
    return records + consts.CD_END_STRUCT.pack(*cdend)


def end_of_central_directory_length(count: int, cd_size: int, cd_offset: int) -> int:
    length = consts.CD_END_STRUCT.size
    if _end_needs_zip64(count, cd_size, cd_offset):
        length += consts.CD_END_STRUCT64.size + consts.CD_LOC64_STRUCT.size
    return length
