from __future__ import annotations

from typing import TYPE_CHECKING, AsyncIterator

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from ranges import Range

from .http_utils import (
    ProtocolError,
    detect_header_value,
    parse_content_range,
    range_header,
)
from .log_utils import log
from .range_utils import range_min, validate_position

if TYPE_CHECKING:  # pragma: no cover
    from .validation import ResourceValidator

__all__ = ["RangeRequest"]


class RangeRequest:
    """
    Store an open-ended partial content GET request and the response stream while
    keeping a reference to the client that spawned it, providing
    :meth:`~seek_streams.request.RangeRequest.aiter_raw` on the underlying
    ``httpx.Response`` suitable for :class:`~seek_streams.response.RangeResponse`
    to pull bytes from.

    The request is built on initialisation but only sent by
    :meth:`~seek_streams.request.RangeRequest.setup_stream` (or use the
    :meth:`~seek_streams.request.RangeRequest.send` constructor to do both).
    """

    response: httpx.Response | None = None

    def __init__(
        self,
        position: int,
        url: str,
        client,  # don't hint httpx.AsyncClient (Sphinx gives error)
        validator: ResourceValidator,
    ):
        """
        Args:
          position  : The first byte to be requested (the range is open-ended).
          url       : The URL to be requested.
          client    : The ``httpx.AsyncClient`` to use for the request.
          validator : The :class:`~seek_streams.validation.ResourceValidator`
                      supplying conditional headers and checking the response.
        """
        self.position = validate_position(position)
        self.url = url
        self.client = client
        self.check_client()
        self.validator = validator
        self.request = self.client.build_request(
            method="GET", url=self.url, headers=self.headers
        )

    @classmethod
    async def send(
        cls, position: int, url: str, client, validator: ResourceValidator
    ) -> RangeRequest:
        """
        Build and send the request, returning once the response headers are received
        and validated (the body is not read).
        """
        range_request = cls(
            position=position, url=url, client=client, validator=validator
        )
        await range_request.setup_stream()
        return range_request

    @property
    def range_header(self) -> dict[str, str]:
        return range_header(self.position)

    @property
    def headers(self) -> dict[str, str]:
        """
        The range header, any conditional headers from the validator, and a request
        for the unencoded representation (byte offsets refer to it).
        """
        return {
            **self.range_header,
            **self.validator.conditional_headers(),
            "accept-encoding": "identity",
        }

    async def setup_stream(self) -> None:
        """
        ``client.stream("GET", url)`` but leave the stream to be manually closed
        rather than using a context manager. If the response fails validation, it is
        closed before the error is raised.
        """
        log.debug(f"GET {self.url} ({self.range_header['range']})")
        self.response = await self.client.send(request=self.request, stream=True)
        try:
            self.validator.check(
                position=self.position, request=self.request, response=self.response
            )
            self.content_length = self.content_length_header()
            self.total_content_length = self.compute_total_length()
        except Exception:
            await self.aclose()
            raise

    def content_length_header(self) -> int:
        """
        The ``content-length`` of the response as an integer (the number of bytes
        from :attr:`position` to the end of the resource).
        """
        value = detect_header_value(
            headers=self.response.headers,
            key="content-length",
            source=f"GET response from {self.position}",
        )
        try:
            return int(value)
        except ValueError:
            raise ProtocolError(
                f"Invalid content-length {value!r}",
                request=self.request,
                response=self.response,
            )

    @property
    def is_partial(self) -> bool:
        return self.response.status_code == 206

    @property
    def content_range(self) -> tuple[Range | None, int | None]:
        """
        The parsed ``content-range`` header: ``(None, None)`` if absent (as for a
        200 response).
        """
        if "content-range" not in self.response.headers:
            return None, None
        return parse_content_range(self.response.headers["content-range"])

    def compute_total_length(self) -> int:
        """
        Obtain the total length of the resource. A partial response counts only the
        bytes from :attr:`position` in its ``content-length``, so prefer the total
        given in its ``content-range`` header where known.
        """
        if not self.is_partial:
            return self.content_length
        sent_range, total = self.content_range
        if sent_range is not None and range_min(sent_range) != self.position:
            msg = f"Got {sent_range} for a range request from {self.position}"
            raise ProtocolError(msg, request=self.request, response=self.response)
        return self.position + self.content_length if total is None else total

    @property
    def content_type(self) -> str | None:
        return self.response.headers.get("content-type")

    def aiter_raw(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """
        Wrap the :meth:`aiter_raw` method of the underlying :class:`httpx.Response`
        (raw, i.e. not decoded, bytes).
        """
        return self.response.aiter_raw(chunk_size=chunk_size)

    @property
    def is_closed(self) -> bool:
        return self.response is None or self.response.is_closed

    async def aclose(self) -> None:
        """
        Close the :attr:`~seek_streams.request.RangeRequest.response`, releasing the
        connection.
        """
        if not self.is_closed:
            await self.response.aclose()

    def check_client(self):
        """
        Type checking workaround (Sphinx type hint extension does not like httpx
        so check the type manually with a method called at initialisation).
        """
        if not isinstance(self.client, httpx.AsyncClient):
            raise TypeError(f"{self.client=} is not async (`httpx.AsyncClient`)")
