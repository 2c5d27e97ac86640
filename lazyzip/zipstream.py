from contextlib import closing
from typing import Generator

from .base import ZipBase, Processor
from .entry import FileEntry, SourceKind
from .errors import MissingSourceError, SourceReadError
from .headers import data_descriptor, local_file_header

__all__ = ("ZipStream",)


class ZipStream(ZipBase):
    """
    Main class for streaming ZIP archives.

    Args:
        files: List of files to be added to the archive (each file is a dictionary with
            'file', 'data' or 'stream' key, or a FileEntry).
        chunksize: Size of chunks to read from files (default 8KB).
        buffers_are_utf8: UTF-8 flag policy for names given as bytes.
    """

    def __iter__(self) -> Generator[bytes, None, None]:
        return self.stream()

    def data_generator(self, index: int, entry: FileEntry) -> Generator[bytes, None, None]:
        """
        Generator for file data.

        Args:
            index: Position of the entry in the archive.
            entry: Entry to read.

        Yields:
            Chunks of file data (bytes).

        Raises:
            MissingSourceError: If the entry carries metadata only.
            SourceReadError: If reading the source fails.
        """
        if entry.kind is SourceKind.NONE:
            raise MissingSourceError(f"Entry #{index} {entry.display_name!r} has no content.",
                                     index, entry.display_name)
        try:
            if entry.kind is SourceKind.BUFFER:
                yield entry.content
            elif entry.kind is SourceKind.FILE:
                with open(entry.content, "rb") as fh:
                    for part in iter(lambda: fh.read(self.chunksize), b''):
                        yield part
            elif hasattr(entry.content, "read"):
                src = entry.content
                while True:
                    part = src.read(self.chunksize)
                    if not part:
                        break
                    yield part
            else:
                yield from entry.content
        except Exception as exc:
            raise SourceReadError(
                f"Failed reading entry #{index} {entry.display_name!r}: {exc}",
                index, entry.display_name) from exc

    def _stream_single_file(self, index: int, entry: FileEntry, offset: int) -> Generator[bytes, None, None]:
        """
        Streams a single file with headers and data descriptors.

        Args:
            index: Position of the entry in the archive.
            entry: Entry to stream.
            offset: Offset of the entry's local file header.

        Yields:
            Chunks of file data (bytes).
        """
        yield local_file_header(entry)
        pcs = Processor()
        with closing(self.data_generator(index, entry)) as chunks:
            for chunk in chunks:
                if chunk:
                    yield pcs.process(chunk)
        entry = self._finalize_entry(index, entry, pcs.state())
        if entry.deferred:
            yield data_descriptor(entry)
        self._add_file_to_cdir(entry, offset)

    def stream(self) -> Generator[bytes, None, None]:
        """
        Streams the complete archive.

        Closing the generator early stops reading the current source and
        closes it.

        Yields:
            Chunks of the archive (bytes).
        """
        self._cleanup()
        for index, source in enumerate(self._source_of_files):
            entry = self._create_file_entry(index, source)
            offset = self._entry_offset(index, entry)
            with closing(self._stream_single_file(index, entry, offset)) as chunks:
                for chunk in chunks:
                    self._offset_add(len(chunk))
                    yield chunk
        for chunk in self._make_end_structures():
            yield chunk
        self._cleanup()
