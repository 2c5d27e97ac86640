#
# ZIP File streaming
# based on official ZIP File Format Specification version 6.3.4
# https://pkware.cachefly.net/webdocs/casestudies/APPNOTE.TXT
#
import inspect
from typing import Any, AsyncGenerator

from .base import ZipBase, Processor, Source
from .entry import FileEntry, SourceKind
from .errors import MissingSourceError, SourceReadError, ZipStreamError
from .headers import data_descriptor, local_file_header
try:
    import aiofiles
    aio_available = True
except ImportError:
    aio_available = False


__all__ = ("AioZipStream",)


class AioZipStream(ZipBase):
    """
    Asynchronous version of ZipStream

    Files may be given as an iterable or an async iterable. Streams may be
    async iterables, iterables, or objects with a (possibly async) read().
    """

    def __aiter__(self) -> AsyncGenerator[bytes, None]:
        return self.stream()

    def _create_file_entry(self, index: int, data: Source, metadata_only: bool = False) -> FileEntry:
        entry = super(AioZipStream, self)._create_file_entry(index, data, metadata_only)
        if entry.kind is SourceKind.FILE and not metadata_only and not aio_available:
            raise ZipStreamError("aiofiles module is required to stream files asynchronously")
        return entry

    async def _iter_sources(self) -> AsyncGenerator[Any, None]:
        if hasattr(self._source_of_files, "__aiter__"):
            async for source in self._source_of_files:
                yield source
        else:
            for source in self._source_of_files:
                yield source

    async def _read_stream(self, src: Any) -> AsyncGenerator[bytes, None]:
        if hasattr(src, "read"):
            while True:
                part = src.read(self.chunksize)
                if inspect.isawaitable(part):
                    part = await part
                if not part:
                    break
                yield part
        elif hasattr(src, "__aiter__"):
            try:
                async for chunk in src:
                    yield chunk
            finally:
                if inspect.isasyncgen(src):
                    await src.aclose()
        else:
            for chunk in src:
                yield chunk

    async def data_generator(self, index: int, entry: FileEntry) -> AsyncGenerator[bytes, None]:
        if entry.kind is SourceKind.NONE:
            raise MissingSourceError(f"Entry #{index} {entry.display_name!r} has no content.",
                                     index, entry.display_name)
        try:
            if entry.kind is SourceKind.BUFFER:
                yield entry.content
            elif entry.kind is SourceKind.FILE:
                async with aiofiles.open(entry.content, "rb") as fh:
                    while True:
                        part = await fh.read(self.chunksize)
                        if not part:
                            break
                        yield part
            else:
                chunks = self._read_stream(entry.content)
                try:
                    async for chunk in chunks:
                        yield chunk
                finally:
                    await chunks.aclose()
        except Exception as exc:
            raise SourceReadError(
                f"Failed reading entry #{index} {entry.display_name!r}: {exc}",
                index, entry.display_name) from exc

    async def _stream_single_file(self, index: int, entry: FileEntry, offset: int) -> AsyncGenerator[bytes, None]:
        """
        Stream single zip file with header and descriptor at the end.
        """
        yield local_file_header(entry)
        pcs = Processor()
        chunks = self.data_generator(index, entry)
        try:
            async for chunk in chunks:
                if chunk:
                    yield pcs.process(chunk)
        finally:
            await chunks.aclose()
        entry = self._finalize_entry(index, entry, pcs.state())
        if entry.deferred:
            yield data_descriptor(entry)
        self._add_file_to_cdir(entry, offset)

    async def stream(self) -> AsyncGenerator[bytes, None]:
        self._cleanup()
        index = 0
        sources = self._iter_sources()
        try:
            async for source in sources:
                entry = self._create_file_entry(index, source)
                offset = self._entry_offset(index, entry)
                chunks = self._stream_single_file(index, entry, offset)
                try:
                    async for chunk in chunks:
                        self._offset_add(len(chunk))
                        yield chunk
                finally:
                    await chunks.aclose()
                index += 1
        finally:
            await sources.aclose()
        for chunk in self._make_end_structures():
            yield chunk
        self._cleanup()
