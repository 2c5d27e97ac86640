from typing import Optional


class ZipStreamError(Exception):
    """Base class for exceptions in lazyzip."""


class EntryError(ZipStreamError):
    """
    Base class for failures tied to a single archive entry.

    Args:
        message: Error description.
        index: Position of the entry in the source sequence, if known.
        name: Entry name, if known.
    """

    def __init__(self, message: str, index: Optional[int] = None, name: Optional[str] = None) -> None:
        super().__init__(message)
        self.index = index
        self.name = name


class UnsupportedCompressionError(EntryError):
    """Raised when a compression method other than 'store' is requested."""


class InvalidEntryError(EntryError, ValueError):
    """Raised when an entry description is incomplete or contradicts itself."""


class MissingSourceError(EntryError):
    """Raised when an entry has no 'file', 'data' or 'stream' content to write."""


class SourceReadError(EntryError):
    """Raised when the content source of an entry fails mid-stream."""


class MissingSizeError(EntryError):
    """Raised when the archive length is predicted for an entry of unknown size."""


class DateOutOfRangeError(EntryError):
    """Raised when a modification time cannot be stored as a DOS date."""


class SizeMismatchError(EntryError):
    """Raised when the content length differs from the size written in the local header."""


class ChecksumMismatchError(EntryError):
    """Raised when the content CRC differs from the one written in the local header."""
