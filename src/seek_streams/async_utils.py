r""":mod:`seek_streams.async_utils` opens many streams at once over one shared
``httpx.AsyncClient``. Each stream still has its own single cursor: the fetcher
only runs the per-URL work concurrently, it never prefetches.

    >>> from seek_streams import RangeStream
    >>> from seek_streams.async_utils import window_reader
    >>> fetcher = RangeStream.make_async_fetcher(
    ...     urls=urls, callback=window_reader(offset=-128), show_progress_bar=False
    ... ) # doctest: +SKIP
    >>> tails = fetcher.make_calls() # doctest: +SKIP

URLs whose stream fails to open (or whose callback hits a protocol or transport
error) are kept in :attr:`~seek_streams.async_utils.AsyncFetcher.errors` and retried
by the next call to :meth:`~seek_streams.async_utils.AsyncFetcher.make_calls`.
"""

from __future__ import annotations

import asyncio
from asyncio.events import AbstractEventLoop
from functools import partial
from io import SEEK_END, SEEK_SET
from signal import SIGINT, SIGTERM, Signals
from sys import stderr
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Type

from aiostream import pipe, stream

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from tqdm.asyncio import tqdm_asyncio

from .http_utils import ProtocolError
from .log_utils import log, set_up_logging

if TYPE_CHECKING:  # pragma: no cover
    from .stream import RangeStream

__all__ = ["AsyncFetcher", "SignalHaltError", "window_reader"]

FETCH_ERRORS = (ProtocolError, httpx.HTTPError)

Callback = Callable[["AsyncFetcher", "RangeStream", str], Awaitable[Any]]


def window_reader(offset: int = 0, length: int | None = None) -> Callback:
    """
    A callback reading ``length`` bytes (or to the end) from ``offset`` of each
    stream. A negative ``offset`` counts back from the end of the resource.
    """

    async def read_window(fetcher: AsyncFetcher, range_stream: RangeStream, url: str):
        whence = SEEK_END if offset < 0 else SEEK_SET
        await range_stream.seek(offset, whence=whence)
        return await range_stream.read(length)

    return read_window


class AsyncFetcher:
    """
    Open a :class:`~seek_streams.stream.RangeStream` (or subclass) on each of a list
    of URLs concurrently, hand each opened stream to a callback, then close it.

    The value each callback returns is stored by URL in
    :attr:`results` (``None`` without a callback). Protocol and transport errors
    are stored by URL in :attr:`errors` rather than stopping the other fetches;
    any other exception from a callback propagates.
    """

    def __init__(
        self,
        stream_cls: Type[RangeStream],
        urls: list[str],
        callback: Callback | None = None,
        verbose: bool = False,
        show_progress_bar: bool = True,
        timeout_s: float = 5.0,
        client=None,
        task_limit: int = 20,
        **kwargs,
    ):
        """
        Any kwargs are passed through to the stream class constructor.

        Args:
          callback   : An async function to be passed 3 values: the AsyncFetcher which
                       is calling it, the opened stream, and its URL.
          client     : An ``httpx.AsyncClient`` to share between the streams (left
                       open), or ``None`` to create one for each call to
                       :meth:`make_calls` with a timeout of ``timeout_s`` seconds.
          task_limit : The most streams open at any one time.
        """
        if not urls:
            raise ValueError("The list of URLs to fetch cannot be empty")
        self.stream_cls = stream_cls
        self.stream_cls_kwargs = kwargs
        self.urls = list(dict.fromkeys(urls))  # drop repeats, keep order
        self.callback = callback
        self.verbose = verbose
        self.show_progress_bar = show_progress_bar and not verbose
        self.client = client
        self.timeout = httpx.Timeout(timeout=timeout_s)
        self.task_limit = task_limit
        self.results: dict[str, Any] = {}
        self.errors: dict[str, Exception] = {}
        set_up_logging(quiet=not verbose)

    @property
    def pending(self) -> list[str]:
        """
        The URLs with no result yet (never fetched, or failed last time).
        """
        return [url for url in self.urls if url not in self.results]

    def make_calls(self) -> dict[str, Any]:
        """
        Run the event loop to fetch every pending URL, returning :attr:`results`.
        Can be called again to retry the URLs in :attr:`errors`.
        """
        urls = self.pending
        if urls:
            self.pbar = tqdm_asyncio(
                total=len(self.urls),
                initial=len(self.urls) - len(urls),
                disable=not self.show_progress_bar,
            )
            try:
                asyncio.run(self.fetch_all(urls))
            except SignalHaltError:
                self.pbar.disable = True
            finally:
                self.pbar.close()
        return self.results

    async def fetch_all(self, urls: list[str]) -> None:
        """
        Create a client for the duration of the fetch if none was given, otherwise
        borrow the one given (leaving it to the user to close).
        """
        await self.set_async_signal_handlers()
        if self.client is None:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                await self.fetch_with(client=client, urls=urls)
        elif self.client.is_closed:
            raise ValueError(
                "Cannot use a closed client to fetch (was it closed by leaving an "
                "`async with` block?)"
            )
        else:
            await self.fetch_with(client=self.client, urls=urls)

    async def fetch_with(self, client, urls: list[str]) -> None:
        if not isinstance(client, httpx.AsyncClient):  # Not type checked due to Sphinx
            raise TypeError(f"{client=} is not async (`httpx.AsyncClient`)")
        fetches = stream.iterate(urls) | pipe.map(
            partial(self.fetch_one, client), ordered=False, task_limit=self.task_limit
        )
        async with fetches.stream() as outcomes:
            async for url, result, error in outcomes:
                self.record(url=url, result=result, error=error)

    async def fetch_one(self, client, url: str) -> tuple[str, Any, Exception | None]:
        """
        Open a stream on ``url``, run the callback on it and close it. The stream is
        closed on every exit path.
        """
        range_stream = self.stream_cls(url=url, client=client, **self.stream_cls_kwargs)
        try:
            await range_stream.open()
            result = None
            if self.callback is not None:
                result = await self.callback(self, range_stream, url)
        except FETCH_ERRORS as exc:
            log.debug(f"Failed to fetch {url}: {exc!r}")
            return url, None, exc
        finally:
            await range_stream.aclose()
        return url, result, None

    def record(self, url: str, result: Any, error: Exception | None) -> None:
        if error is None:
            self.results[url] = result
            self.errors.pop(url, None)
            log.debug(f"Fetched {url}")
        else:
            self.errors[url] = error
        self.pbar.update()

    def immediate_exit(self, signal_enum: Signals, loop: AbstractEventLoop) -> None:
        loop.stop()
        raise SignalHaltError(signal_enum=signal_enum)

    async def set_async_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signal_enum in (SIGINT, SIGTERM):
            exit_func = partial(self.immediate_exit, signal_enum=signal_enum, loop=loop)
            loop.add_signal_handler(signal_enum, exit_func)


class SignalHaltError(SystemExit):
    """
    Raised from a signal handler to stop the fetch loop, exiting with the signal
    number as the status code.
    """

    def __init__(self, signal_enum: Signals):
        self.signal_enum = signal_enum
        print("", file=stderr)  # end the line the terminal echoed the signal on
        log.critical(msg=repr(self))
        super().__init__(self.exit_code)

    @property
    def exit_code(self) -> int:
        return self.signal_enum.value

    def __repr__(self) -> str:
        return f"Exited due to {self.signal_enum.name}"
