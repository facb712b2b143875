r""":mod:`seek_streams.stream` exposes a class
:class:`~seek_streams.stream.RangeStream`, a seekable byte stream over a remote
resource that is paged in by open-ended range requests rather than downloaded whole.

The stream holds a single logical cursor. Seeking is cheap (it only releases the
open connection, if the position actually changes) and reading lazily opens a
fresh range request from the cursor whenever no connection is open. Every request
after the first carries the first response's ``etag``/``last-modified`` as
conditional headers, so a stream never mixes bytes from two versions of a resource.
"""

from __future__ import annotations

import asyncio
from io import SEEK_CUR, SEEK_END, SEEK_SET, UnsupportedOperation
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Callable
from urllib.parse import urlparse

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from ranges import Range

from .cursor import Connected, Disconnected
from .log_utils import log
from .range_utils import remaining_range, validate_position
from .request import RangeRequest
from .response import RangeResponse
from .validation import ResourceValidator

if TYPE_CHECKING:  # pragma: no cover
    from .async_utils import AsyncFetcher

__all__ = ["RangeStream", "InvalidOperation"]

READ_FAILURES = (httpx.HTTPError, httpx.StreamError, asyncio.CancelledError)


class InvalidOperation(UnsupportedOperation):
    """
    The stream does not support the operation attempted (it is read-only, its size
    is set by the server, and it has no positional sub-streams).
    """


class RangeStream:
    """
    A class representing a file being streamed from a server which supports
    range requests, read through a single seekable cursor.

    Construction does no network I/O: the first request is sent by
    :meth:`~seek_streams.stream.RangeStream.open` (or use the
    :meth:`~seek_streams.stream.RangeStream.create` constructor to do both),
    which sets :attr:`~seek_streams.stream.RangeStream.size` and
    :attr:`~seek_streams.stream.RangeStream.content_type`.

    Only one ``read``/``seek``/``aclose`` call may be in flight at a time: callers
    must serialise their own calls.
    """

    _length: int | None = None
    _state: Connected | Disconnected

    def __init__(
        self,
        url: str,
        client=None,  # don't hint httpx.AsyncClient (Sphinx gives error)
        timeout_s: float = 5.0,
        chunk_size: int | None = None,
    ):
        """
        Set up a stream for the file at ``url``, starting at position 0 and not
        connected.

        By default (if ``client`` is left as ``None``) a fresh
        :class:`httpx.AsyncClient` will be created for the stream (and closed along
        with it), otherwise the client given is borrowed for each request and left
        for you to close.

        Args:
          url        : (:class:`str`) The URL of the file to be streamed
          client     : (:class:`httpx.AsyncClient` | ``None``) The HTTPX client
                       to use for HTTP requests
          timeout_s  : (:class:`float`) Timeout for a client created by the stream
                       (ignored when a ``client`` is given)
          chunk_size : (:class:`int` | ``None``) Size of the chunks pulled from the
                       response body (``None`` takes them as they arrive)
        """
        self.url = url
        self.set_client(client=client, timeout_s=timeout_s)
        self.chunk_size = chunk_size
        self.validator = ResourceValidator()
        self._content_type = ""
        self._state = Disconnected(position=0)

    @classmethod
    async def create(cls, url: str, client=None, **kwargs) -> RangeStream:
        """
        Construct the stream and :meth:`~seek_streams.stream.RangeStream.open` it.
        Any kwargs are passed through to the constructor.
        """
        stream = cls(url=url, client=client, **kwargs)
        await stream.open()
        return stream

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__} ⠶ {self._state} of {self.size} @@ "
            f"'{self.name}' from {self.domain}"
        )

    async def __aenter__(self) -> RangeStream:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def set_client(self, client, timeout_s: float) -> None:
        """
        Check client type explicitly to handle the optional HTTPX client.

        Args:
          client    : (:class:`httpx.AsyncClient` | ``None``) The client to be used
                      for all HTTP requests made on the stream. If ``None``, a fresh
                      one will be created (and owned by the stream).
          timeout_s : (:class:`float`) The timeout for a freshly created client.
        """
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(timeout=timeout_s))
            self.owns_client = True
        elif not isinstance(client, httpx.AsyncClient):
            raise TypeError(f"{client=} is not async (`httpx.AsyncClient`)")
        else:
            self.owns_client = False
        self.client = client

    @property
    def size(self) -> int | None:
        """
        The total number of bytes (i.e. the length) of the file being streamed, or
        ``None`` before the first response.
        """
        return self._length

    @size.setter
    def size(self, value) -> None:
        raise InvalidOperation("The size of a RangeStream is set by the server")

    def set_length(self, length: int) -> None:
        self._length = length

    @property
    def total_range(self) -> Range:
        if self._length is None:
            raise AttributeError("Cannot use total_range before the stream is opened")
        return Range(0, self._length)

    @property
    def remaining_range(self) -> Range:
        """
        The range of bytes from the cursor to the end of the file (empty at the end).
        """
        return remaining_range(position=self.position, total=self.total_range.end)

    @property
    def content_type(self) -> str:
        return self._content_type

    @property
    def position(self) -> int:
        """
        The logical position: where the next read starts, whether or not a
        connection is open.
        """
        return self._state.position

    def tell(self) -> int:
        return self.position

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    @property
    def is_open(self) -> bool:
        """
        Whether the stream has received a response (so its size is known).
        """
        return self._length is not None

    @property
    def name(self) -> str:
        return Path(urlparse(self.url).path).name

    @property
    def domain(self) -> str:
        return urlparse(self.url).netloc

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    async def open(self) -> None:
        """
        Send the first range request (from the current position, 0 for a new
        stream), setting the size, content type and validation tokens.
        """
        if not self.is_connected:
            await self.connect()

    async def connect(self) -> RangeResponse:
        """
        Open a range request from the current position. Nothing on the stream is
        changed if the request fails; on success the size and content type are
        recorded, validation tokens are captured (unless already pinned), and the
        cursor becomes :class:`~seek_streams.cursor.Connected`.
        """
        if not isinstance(self._state, Disconnected):
            raise ValueError(f"Cannot connect when already connected ({self._state})")
        try:
            range_request = await RangeRequest.send(
                position=self.position,
                url=self.url,
                client=self.client,
                validator=self.validator,
            )
        except Exception as exc:
            log.debug(f"Failed to connect at {self.position:,}: {exc!r}")
            raise
        self.set_length(range_request.total_content_length)
        if (content_type := range_request.content_type) is not None:
            self._content_type = content_type
        self.validator.capture(range_request.response.headers)
        response = RangeResponse(
            stream=self, range_request=range_request, chunk_size=self.chunk_size
        )
        self._state = self._state.connect(response)
        return response

    async def disconnect(self) -> None:
        """
        Release the open connection, if any, keeping the position.
        """
        if isinstance(self._state, Connected):
            connection = self._state.connection
            self._state = self._state.disconnect()
            await connection.aclose()
            log.debug(f"Disconnected at {self.position:,}")

    async def seek(self, position: int, whence: int = SEEK_SET) -> int:
        """
        File-like seeking: set the logical position and return it. Seeking to the
        current position keeps the open connection, otherwise it is released (the
        next read opens a new one). No request is sent, and the new position holds
        even if releasing the connection fails.

        ``SEEK_END`` is relative to the size, so the stream must be open.
        """
        if whence == SEEK_SET:
            target = position
        elif whence == SEEK_CUR:
            target = self.position + position
        elif whence == SEEK_END:
            if self._length is None:
                raise InvalidOperation("Cannot seek from the end before opening")
            target = self._length + position
        else:
            raise ValueError(f"Invalid {whence=} (expected 0, 1, or 2)")
        target = validate_position(target)
        if target != self.position:
            log.debug(f"Seek: {self.position:,} -> {target:,}")
            released = self._state.connection
            self._state = self._state.moved_to(target)
            if released is not None:
                await released.aclose()
        return target

    async def read(self, size: int | None = None) -> bytes:
        """
        Read up to ``size`` bytes from the position (all the remaining bytes if
        ``size`` is ``None`` or negative), connecting first if needed. Fewer bytes
        are returned only at the end of the file, where the result is empty.

        Once the size is known, reading at or past the end sends no request.

        If pulling bytes fails (or is cancelled) the connection is released and the
        position is left unchanged before the error propagates.
        """
        if isinstance(self._state, Disconnected):
            if self.is_open and self.remaining_range.isempty():
                return b""
            await self.connect()
        try:
            read_bytes = await self._state.connection.aread(size)
        except READ_FAILURES as exc:
            log.debug(f"Read failed at {self.position:,}: {exc!r}")
            await self.disconnect()
            raise
        self._state = self._state.advance(len(read_bytes))
        log.debug(f"position = {self.position:,}")
        return read_bytes

    async def readinto(self, buffer) -> int:
        """
        Read into a pre-allocated writable bytes-like object (at most its length),
        returning the number of bytes delivered (``0`` at the end of the file).
        """
        view = memoryview(buffer).cast("B")
        read_bytes = await self.read(len(view))
        n_bytes = len(read_bytes)
        view[:n_bytes] = read_bytes
        return n_bytes

    async def iter_chunks(self, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """
        Read successive chunks from the position until the end of the file.
        """
        while read_bytes := await self.read(chunk_size):
            yield read_bytes

    def clone(self) -> RangeStream:
        """
        A new stream with its own cursor (at position 0, not connected) onto the
        same URL, borrowing this stream's client and pinned to the same version of
        the resource. Sends no request.
        """
        twin = self.__class__(
            url=self.url, client=self.client, chunk_size=self.chunk_size
        )
        twin.validator = self.validator.copy()
        twin._length = self._length
        twin._content_type = self._content_type
        return twin

    def write(self, data) -> int:
        raise InvalidOperation("RangeStream is read-only")

    def flush(self) -> None:
        raise InvalidOperation("RangeStream is read-only")

    def get_output_stream_at(self, position: int):
        raise InvalidOperation("RangeStream is read-only")

    def get_input_stream_at(self, position: int):
        raise InvalidOperation(
            "Positional sub-streams are not supported (use clone and seek)"
        )

    async def aclose(self) -> None:
        """
        Release the open connection, if any (and close the client, if it was created
        by the stream). Safe to call more than once.
        """
        await self.disconnect()
        if self.owns_client:
            await self.client.aclose()

    @classmethod
    def make_async_fetcher(
        cls,
        urls: list[str],
        callback: Callable | None = None,
        verbose: bool = False,
        show_progress_bar: bool = True,
        timeout_s: float = 5.0,
        client=None,
        **kwargs,
    ) -> AsyncFetcher:
        """
        Create an :class:`~seek_streams.async_utils.AsyncFetcher` which opens a
        stream of this class for each of the ``urls``. Any kwargs are passed through
        to the stream class constructor.
        """
        from .async_utils import AsyncFetcher

        return AsyncFetcher(
            stream_cls=cls,
            urls=urls,
            callback=callback,
            verbose=verbose,
            show_progress_bar=show_progress_bar,
            timeout_s=timeout_s,
            client=client,
            **kwargs,
        )
