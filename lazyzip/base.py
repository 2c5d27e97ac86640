import logging
import os
import zlib
from typing import Any, Dict, Generator, List, Optional, Tuple, Union

from .entry import Checksum, FileEntry, SourceKind, check_entry, make_entry
from .errors import (
    ChecksumMismatchError,
    InvalidEntryError,
    MissingSourceError,
    SizeMismatchError,
    SourceReadError,
    UnsupportedCompressionError,
)
from .headers import central_directory_header, end_of_central_directory
from .length import predict_length

__log__ = logging.getLogger(__name__)

Source = Union[Dict[str, Any], FileEntry]


class Processor:
    """
    Passes file data through unchanged while computing its crc and size.

    Entries are always stored, so the chunks forwarded to the archive are
    the chunks read from the source. The result is independent of how the
    content is split into chunks.
    """

    def __init__(self) -> None:
        self.crc = 0
        self.size = 0

    def process(self, chunk: bytes) -> bytes:
        self.size += len(chunk)
        self.crc = zlib.crc32(chunk, self.crc)
        return chunk

    def state(self) -> Checksum:
        """
        Return crc and size of everything processed so far
        """
        return Checksum(crc=self.crc & 0xffffffff, size=self.size)


class ZipBase:
    """
    Base class for ZIP file streaming.

    Args:
        files: Files to include in the archive. Each one is a dict with a
            'file', 'data' or 'stream' key (see _create_file_entry) or a
            FileEntry.
        chunksize: Size of chunks to read from files (default 8KB).
        buffers_are_utf8: How names given as bytes are flagged. True always
            sets the UTF-8 flag, False never does, None sets it when the
            name is valid non-ASCII UTF-8. Names given as str are flagged
            only when they are not pure ASCII.
    """

    def __init__(self, files: Any = None, chunksize: int = 8192,
                 buffers_are_utf8: Optional[bool] = None) -> None:
        self._source_of_files = files if files is not None else []
        self.chunksize = chunksize
        self.buffers_are_utf8 = buffers_are_utf8
        self.__files: List[Tuple[FileEntry, int]] = []
        self.__cdir_size = self.__offset = 0

    def _encode_name(self, name: Union[str, bytes]) -> Tuple[bytes, bool]:
        """
        Encode an entry name.

        Pure ASCII names are never flagged as UTF-8, whether given as str or
        as bytes with buffers_are_utf8 left to None: ASCII reads the same
        under the legacy code page, so readers that ignore bit 11 agree.

        Returns:
            The encoded name and whether the UTF-8 flag must be set.
        """
        if isinstance(name, str):
            try:
                return name.encode("ascii"), False
            except UnicodeError:
                return name.encode("utf-8"), True
        name = bytes(name)
        if self.buffers_are_utf8 is not None:
            return name, self.buffers_are_utf8
        try:
            name.decode("ascii")
            return name, False
        except UnicodeError:
            pass
        try:
            name.decode("utf-8")
            return name, True
        except UnicodeError:
            return name, False

    def _create_file_entry(self, index: int, data: Source, metadata_only: bool = False) -> FileEntry:
        """
        Resolve a file description into a FileEntry.

        Recognized keys:
            file: path of a file, size and mtime are taken from the filesystem.
            data: bytes, size and crc are computed from them.
            stream: iterable of chunks, or readable object.
            name: name in the archive, required unless 'file' is given.
            modified: modification time (datetime, timestamp or struct_time).
            size, crc: known size and crc of a 'stream'.
            compression: None or 'store'.

        Args:
            index: Position of the file in the archive.
            data: File description or ready FileEntry.
            metadata_only: Accept descriptions without content, for length
                prediction.

        Returns:
            The resolved FileEntry.

        Raises:
            MissingSourceError: If there is no content and metadata_only is False.
            UnsupportedCompressionError: If compression other than 'store' is requested.
            InvalidEntryError: If a name is missing, or a FileEntry lacks the
                data descriptor flag while its crc or size is unknown.
            SourceReadError: If a 'file' can't be stat'ed.
        """
        if isinstance(data, FileEntry):
            if data.kind is SourceKind.NONE and not metadata_only:
                raise MissingSourceError(
                    f"Entry #{index} {data.display_name!r} has no content.",
                    index, data.display_name)
            return check_entry(data, index)

        name = data.get('name')
        cmpr = data.get('compression', None)
        if cmpr not in (None, 'store'):
            raise UnsupportedCompressionError(
                f"Unsupported compression method '{cmpr}' for entry #{index}.",
                index, None if name is None else str(name))

        modified = data.get('modified')
        size = data.get('size')
        crc = data.get('crc')

        if 'file' in data:
            content, kind = data['file'], SourceKind.FILE
            if name is None:
                name = os.path.basename(os.fspath(content))
            try:
                stats = os.stat(content)
            except OSError as exc:
                raise SourceReadError(f"Can't read file {content!r}: {exc}", index, str(name)) from exc
            if size is None:
                size = stats.st_size
            if modified is None:
                modified = stats.st_mtime
        elif 'data' in data:
            content, kind = data['data'], SourceKind.BUFFER
        elif 'stream' in data:
            content, kind = data['stream'], SourceKind.STREAM
        elif metadata_only:
            content, kind = None, SourceKind.NONE
        else:
            raise MissingSourceError("No 'file', 'data' or 'stream' key found in data source.",
                                     index, None if name is None else str(name))

        if name is None:
            raise InvalidEntryError(f"Entry #{index} needs a 'name'.", index)
        fname, utf8 = self._encode_name(name)
        return make_entry(fname, modified, content=content, kind=kind, size=size,
                          crc=crc, utf8=utf8, index=index)

    def _entry_offset(self, index: int, entry: FileEntry) -> int:
        offset = self._offset_get()
        __log__.debug("Streaming entry #%d %r at offset %d (%s)", index, entry.display_name,
                      offset, "deferred" if entry.deferred else "sized")
        return offset

    def _finalize_entry(self, index: int, entry: FileEntry, checksum: Checksum) -> FileEntry:
        """
        Check the streamed content against the declared size and crc.

        A mismatch is fatal only when the declared value was written into
        the local header. Otherwise the archive stays valid and only a
        predicted length would be off, so it is logged.

        Raises:
            SizeMismatchError: If a size written in the local header is wrong.
            ChecksumMismatchError: If a crc written in the local header is wrong.
        """
        name = entry.display_name
        if entry.size is not None and entry.size != checksum.size:
            __log__.warning("Size mismatch when adding data for '%s' (expected %d bytes, got %d)",
                            name, entry.size, checksum.size)
            if not entry.deferred:
                raise SizeMismatchError(
                    f"Entry #{index} {name!r} declared {entry.size} bytes "
                    f"but its source produced {checksum.size}.", index, name)
        if entry.crc is not None and entry.crc != checksum.crc:
            __log__.warning("CRC mismatch when adding data for '%s' (expected %08x, got %08x)",
                            name, entry.crc, checksum.crc)
            if not entry.deferred:
                raise ChecksumMismatchError(
                    f"Entry #{index} {name!r} declared crc {entry.crc:08x} "
                    f"but its content has {checksum.crc:08x}.", index, name)
        __log__.debug("Entry #%d %r done: %d bytes, crc %08x", index, name,
                      checksum.size, checksum.crc)
        return entry.finalized(checksum)

    def _make_end_structures(self) -> Generator[bytes, None, None]:
        cdir_offset = self._offset_get()
        # Write all central directory entries
        for entry, offset in self.__files:
            chunk = central_directory_header(entry, offset)
            self.__cdir_size += len(chunk)
            yield chunk
        __log__.debug("Central directory: %d entries, %d bytes at offset %d",
                      len(self.__files), self.__cdir_size, cdir_offset)
        yield end_of_central_directory(len(self.__files), self.__cdir_size, cdir_offset)

    def _offset_add(self, value: int) -> None:
        self.__offset += value

    def _offset_get(self) -> int:
        return self.__offset

    def _add_file_to_cdir(self, entry: FileEntry, offset: int) -> None:
        self.__files.append((entry, offset))

    def _cleanup(self) -> None:
        self.__files = []
        self.__cdir_size = self.__offset = 0

    def predicted_length(self) -> int:
        """
        Exact length of the archive stream() will produce, computed without
        reading any content.

        Returns:
            Archive length in bytes.

        Raises:
            TypeError: If the files were given as a one-shot iterator.
            MissingSizeError: If the size of any file is unknown.
        """
        try:
            one_shot = iter(self._source_of_files) is self._source_of_files
        except TypeError:
            one_shot = True
        if one_shot:
            raise TypeError("predicted_length() needs a re-iterable collection of files.")
        return predict_length(
            self._create_file_entry(index, source, metadata_only=True)
            for index, source in enumerate(self._source_of_files)
        )
