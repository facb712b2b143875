r"""When preparing a HTTP GET request, the HTTP `range request
<https://developer.mozilla.org/en-US/docs/Web/HTTP/Range_requests>`_
header must be provided as a :class:`dict`. A
:class:`~seek_streams.stream.RangeStream` only ever asks for an open-ended range,
from its logical position to the end of the resource, for example:

.. code-block:: python

    {"range": "bytes=500-"}

would request every byte from position ``500`` onwards. The server answers with a
`Content-Range
<https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Content-Range>`_
header such as ``bytes 500-999/1000``, giving the subrange it sent and the total
size of the resource.

Any response that breaks this contract raises a subclass of
:class:`~seek_streams.http_utils.ProtocolError`.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from ranges import Range

if TYPE_CHECKING:  # pragma: no cover
    import httpx

from .range_utils import validate_position

__all__ = [
    "byte_range_from_position",
    "range_header",
    "parse_content_range",
    "detect_header_value",
    "has_header",
    "ProtocolError",
    "PartialContentStatusError",
    "ResourceChangedError",
    "RangeRequestsUnsupportedError",
    "MissingHeaderError",
]


def byte_range_from_position(position: int) -> str:
    """Prepare the byte range substring for an open-ended HTTP `range request
    <https://developer.mozilla.org/en-US/docs/Web/HTTP/Range_requests>`_.

    For example:

      >>> from seek_streams.http_utils import byte_range_from_position
      >>> byte_range_from_position(500)
      '500-'

    Args:
      position : the first byte to be requested (0-based)
    """
    return f"{validate_position(position)}-"


def range_header(position: int) -> dict[str, str]:
    """
    Prepare a :class:`dict` to pass as a ``httpx`` request header
    with a single key ``range`` whose value is the byte range.

      >>> from seek_streams.http_utils import range_header
      >>> range_header(0)
      {'range': 'bytes=0-'}

    Args:
      position : the first byte to be requested (0-based)
    """
    return {"range": f"bytes={byte_range_from_position(position)}"}


def parse_content_range(value: str) -> tuple[Range | None, int | None]:
    """
    Parse a ``content-range`` header value into the :class:`~ranges.Range` of bytes
    sent (half-open, ``[first, last+1)``) and the total size of the resource.
    Either may be ``None``: the range when the server sent an unsatisfied-range form
    (``bytes */1000``), the total when it is unknown (``bytes 0-9/*``).

      >>> from seek_streams.http_utils import parse_content_range
      >>> parse_content_range("bytes 500-999/1000")
      (Range[500, 1000), 1000)

    Raises :class:`~seek_streams.http_utils.ProtocolError` if malformed.
    """
    try:
        unit, byte_span = value.strip().split(" ", 1)
        span, total = byte_span.strip().split("/", 1)
        if unit.lower() != "bytes":
            raise ValueError(f"unit {unit!r} is not bytes")
        total_bytes = None if total == "*" else int(total)
        if span == "*":
            rng = None
        else:
            first, last = map(int, span.split("-", 1))
            if last < first:
                raise ValueError(f"{first=} after {last=}")
            rng = Range(first, last + 1)
    except ValueError as exc:
        raise ProtocolError(f"Malformed content-range {value!r}") from exc
    return rng, total_bytes


def detect_header_value(headers, key: str, source: str = "Response") -> str:
    """
    Detect a title case, lower case, or capitalised version of the given string
    (``httpx.Headers`` are case-insensitive already, plain dicts are not).
    """
    variants = key.title(), key.lower(), key.capitalize()
    try:
        return next(headers.get(k) for k in variants if k in headers)
    except StopIteration:
        raise MissingHeaderError(f"{source} was missing '{key}' header")


def has_header(headers, key: str) -> bool:
    return any(k in headers for k in (key.title(), key.lower(), key.capitalize()))


class ProtocolError(Exception):
    """
    The server's response violates the range request contract. Never retried: the
    caller decides whether to try again (e.g. after a fresh seek).
    """

    def __init__(
        self,
        message: str,
        *,
        request: httpx.Request | None = None,
        response: httpx.Response | None = None,
    ):
        super().__init__(message)
        self.request = request
        self.response = response


class PartialContentStatusError(ProtocolError):
    """
    The response to a request from a non-zero position had any HTTP status code
    other than 206 (Partial Content).

    May be raised when calling
    :meth:`~seek_streams.validation.ResourceValidator.check`
    """

    def __init__(self, *, request, response):
        super().__init__(
            "expected partial content: "
            f"got HTTP {response.status_code} not 206 (Partial Content)",
            request=request,
            response=response,
        )


class ResourceChangedError(PartialContentStatusError):
    """
    HTTP 412 (Precondition Failed): the resource no longer matches the ``ETag`` or
    ``Last-Modified`` token the stream was pinned to.
    """


class RangeRequestsUnsupportedError(ProtocolError):
    """
    The response had no ``accept-ranges`` header, so the server has not declared
    support for range requests (`RFC 7233 §2.3
    <https://datatracker.ietf.org/doc/html/rfc7233#section-2.3>`_).
    """

    def __init__(self, *, request, response):
        super().__init__(
            "range requests unsupported: response was missing 'accept-ranges' header",
            request=request,
            response=response,
        )


class MissingHeaderError(ProtocolError):
    """
    A header required to interpret the response (``content-length``) was absent.
    """
