r"""
:mod:`seek_streams` provides a seekable, read-only byte stream over a remote file,
through an API familiar to users of the standard library :mod:`io` module (but
with coroutine ``read`` and ``seek``, built on `HTTPX
<https://www.python-httpx.org/>`_'s :class:`httpx.AsyncClient`).

Servers with support for `HTTP range requests
<https://developer.mozilla.org/en-US/docs/Web/HTTP/Range_requests>`_
can provide partial content responses, so a consumer that seeks around a large
file (a media player, an archive reader) never has to download the bytes it skips.

A :class:`~seek_streams.stream.RangeStream` is initialised by providing:

- a URL (the file to be streamed)
- (optionally) a client (:class:`httpx.AsyncClient`), or else a fresh one
  is created (and closed along with the stream)

No request is sent until the stream is opened, which determines the total file
length (:attr:`~seek_streams.stream.RangeStream.size`) and content type, and pins
the stream to the version of the file identified by its ``ETag`` and
``Last-Modified`` headers.

    >>> from seek_streams import RangeStream, _EXAMPLE_URL
    >>> s = await RangeStream.create(url=_EXAMPLE_URL) # doctest: +SKIP
    >>> s.size # doctest: +SKIP
    11
    >>> await s.seek(7) # doctest: +SKIP
    7
    >>> data = await s.read(3) # doctest: +SKIP
    >>> s.position # doctest: +SKIP
    10

Seeking only moves the logical position (releasing the connection it was reading
from, if the position changed): the next read sends an open-ended range request
(``range: bytes=7-``) carrying ``if-match``/``if-unmodified-since`` headers. A
server that answers a resumed request with anything but 206 (Partial Content), or
that does not declare ``accept-ranges``, raises a
:class:`~seek_streams.http_utils.ProtocolError`.

To open streams on many URLs at once, sharing a single client, use an
:class:`~seek_streams.async_utils.AsyncFetcher` (or the
:meth:`~seek_streams.stream.RangeStream.make_async_fetcher` classmethod).
"""

# Get classes into package namespace but exclude from __all__ so Sphinx can access types

from . import http_utils, range_utils
from .async_utils import AsyncFetcher
from .http_utils import (
    MissingHeaderError,
    PartialContentStatusError,
    ProtocolError,
    RangeRequestsUnsupportedError,
    ResourceChangedError,
)
from .request import RangeRequest
from .response import RangeResponse
from .stream import InvalidOperation, RangeStream
from .validation import ResourceValidator

__all__ = [
    "stream",
    "cursor",
    "request",
    "response",
    "validation",
    "http_utils",
    "range_utils",
    "async_utils",
]

__version__ = "0.1.0"
__author__ = "seek-streams contributors"
__license__ = "MIT"
__description__ = "Seekable streams over HTTP range requests."

_EXAMPLE_URL = "https://www.rfc-editor.org/rfc/rfc7233.txt"
