from . import consts
from .entry import Checksum, FileEntry, SourceKind, check_entry, make_entry
from .errors import (
    ChecksumMismatchError,
    DateOutOfRangeError,
    EntryError,
    InvalidEntryError,
    MissingSizeError,
    MissingSourceError,
    SizeMismatchError,
    SourceReadError,
    UnsupportedCompressionError,
    ZipStreamError,
)
from .length import predict_length
from .zipstream import ZipStream
from .aiozipstream import AioZipStream

version = "0.5"

__all__ = (
    "ZipStream", "AioZipStream", "predict_length", "make_entry", "check_entry",
    "FileEntry", "SourceKind", "Checksum",
    "ZipStreamError", "UnsupportedCompressionError", "EntryError",
    "InvalidEntryError", "MissingSourceError", "SourceReadError", "MissingSizeError",
    "DateOutOfRangeError", "SizeMismatchError", "ChecksumMismatchError",
    "version",
)
