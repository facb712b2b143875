from __future__ import annotations

from io import SEEK_END, BytesIO
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    # absolute imports for Sphinx
    import seek_streams  # for RangeStream, RangeRequest

__all__ = ["RangeResponse"]


class BufferLedger(BytesIO):
    """
    A thin wrapper to :class:`io.BytesIO` holding the bytes pulled from the response
    body but not yet delivered to a reader. The cursor is the next unread byte and
    new chunks are appended at the end. Delivered bytes are dropped on every take,
    so at most one chunk plus one read are ever held.
    """

    def __init__(self):
        super().__init__()
        self.end = 0

    @property
    def unread(self) -> int:
        return self.end - self.tell()

    def feed(self, chunk: bytes) -> int:
        told = self.tell()
        self.seek(0, SEEK_END)
        written = self.write(chunk)
        self.end += written
        self.seek(told)
        return written

    def take(self, size: int | None = None) -> bytes:
        taken = self.read(size)
        rest = self.read()
        self.seek(0)
        self.truncate()
        self.end = self.write(rest)
        self.seek(0)
        return taken


class RangeResponse:
    """
    Adapted from `obskyr's ResponseStream demo code
    <https://gist.github.com/obskyr/b9d4b4223e7eaf4eedcd9defabb34f13>`_,
    this class handles the streamed open-ended range request as a file-like object
    that can only be read forwards.

    Don't forget to close the ``httpx.Response`` yourself! The
    :meth:`~seek_streams.response.RangeResponse.aclose` method is available
    (or :meth:`~seek_streams.stream.RangeStream.aclose`) to help you.
    """

    _bytes: BufferLedger

    def __init__(
        self,
        stream: seek_streams.RangeStream,
        range_request: seek_streams.RangeRequest,
        chunk_size: int | None = None,
    ):
        self.parent_stream = stream
        self.request = range_request
        self._aiterator = range_request.aiter_raw(chunk_size=chunk_size)
        self._bytes = BufferLedger()
        self.is_exhausted = False

    def __repr__(self):
        return (
            f"{self.__class__.__name__} ⠶ [{self.request.position}, ...) @ "
            f"'{self.parent_stream.name}' from {self.parent_stream.domain}"
        )

    @property
    def client(self):  # Returns: httpx.AsyncClient
        """
        The request's client.
        """
        return self.request.client

    async def _aload_all(self) -> None:
        while not self.is_exhausted:
            await self._aload_chunk()

    async def _aload_until(self, size: int) -> None:
        """
        Pull chunks from the body until ``size`` bytes are unread in the buffer, or
        the body is exhausted. Probably overshoots (loads a chunk at a time).
        """
        while self._bytes.unread < size and not self.is_exhausted:
            await self._aload_chunk()

    async def _aload_chunk(self) -> None:
        try:
            awaited_bytes = await self._aiterator.__anext__()
        except StopAsyncIteration:
            self.is_exhausted = True
        else:
            self._bytes.feed(awaited_bytes)

    async def aread(self, size: int | None = None) -> bytes:
        """
        File-like reading of up to ``size`` bytes (or all the remaining bytes, if
        ``size`` is ``None`` or negative). Fewer are returned only at the end of the
        body, and an empty :class:`bytes` means it is exhausted.
        """
        if size is None or size < 0:
            await self._aload_all()
            return self._bytes.take()
        await self._aload_until(size)
        return self._bytes.take(size)

    @property
    def is_closed(self) -> bool:
        """
        True if the associated ``httpx.Response`` object is closed.
        """
        return self.request.is_closed

    async def aclose(self) -> None:
        """
        Close the associated ``httpx.Response`` object, discarding any unread bytes.
        """
        self._bytes.take()
        await self._aiterator.aclose()
        await self.request.aclose()
