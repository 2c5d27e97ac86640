import logging
from typing import Iterable

from .entry import FileEntry, check_entry
from .errors import MissingSizeError
from .headers import (
    central_directory_header_length,
    data_descriptor_length,
    end_of_central_directory_length,
    local_file_header_length,
)

__all__ = ("predict_length",)

__log__ = logging.getLogger(__name__)


def predict_length(entries: Iterable[FileEntry]) -> int:
    """
    Exact byte length of the archive streamed for the given entries.

    Only metadata is used: names, sizes, and whether crc and sizes are
    deferred to a data descriptor. Content is never read.

    Args:
        entries: Entries in archive order, each with a known size.

    Returns:
        Archive length in bytes.

    Raises:
        MissingSizeError: If any entry has no size. Checked before anything
            is computed.
        InvalidEntryError: If an entry without the data descriptor flag has
            no crc or size.
    """
    entries = list(entries)
    for index, entry in enumerate(entries):
        check_entry(entry, index)
        if entry.size is None:
            raise MissingSizeError(
                f"Missing size for entry #{index} {entry.display_name!r}.",
                index, entry.display_name)

    offset = cdir_size = 0
    for entry in entries:
        cdir_size += central_directory_header_length(entry, offset)
        offset += local_file_header_length(entry) + entry.size + data_descriptor_length(entry)
    length = offset + cdir_size + end_of_central_directory_length(len(entries), cdir_size, offset)
    __log__.debug("Predicted %d bytes for %d entries", length, len(entries))
    return length
