"""
:mod:`seek_streams.validation` pins a :class:`~seek_streams.stream.RangeStream` to one
version of the remote resource. The ``etag`` and ``last-modified`` tokens from the
first response that carries them are kept for the lifetime of the stream and sent
back as conditional headers on every later range request, so that bytes fetched
after a seek are guaranteed to come from the same resource as those fetched before.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    import httpx

from .http_utils import (
    PartialContentStatusError,
    RangeRequestsUnsupportedError,
    ResourceChangedError,
    has_header,
)
from .log_utils import log

__all__ = ["ResourceValidator"]


class ResourceValidator:
    """
    Track the validation tokens of a resource and check each range response
    against the partial content contract.
    """

    def __init__(self, etag: str | None = None, last_modified: str | None = None):
        self.etag = etag
        self.last_modified = last_modified

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__} :: "
            f"{{'etag': {self.etag!r}, 'last_modified': {self.last_modified!r}}}"
        )

    @property
    def is_pinned(self) -> bool:
        """
        Whether any token has been captured yet.
        """
        return bool(self.etag or self.last_modified)

    def conditional_headers(self) -> dict[str, str]:
        """
        The ``if-match`` and/or ``if-unmodified-since`` headers asserting the
        resource is unchanged (empty until the first token is captured).
        """
        headers = {}
        if self.etag:
            headers["if-match"] = self.etag
        if self.last_modified:
            headers["if-unmodified-since"] = self.last_modified
        return headers

    def capture(self, headers) -> None:
        """
        Store the ``etag`` and ``last-modified`` of a response, each only if not
        already stored: once set a token is never replaced.
        """
        if not self.etag and (etag := headers.get("etag")):
            self.etag = etag
            log.debug(f"Pinned ETag {etag}")
        if not self.last_modified and (last_modified := headers.get("last-modified")):
            self.last_modified = last_modified
            log.debug(f"Pinned Last-Modified {last_modified}")

    def check(
        self, position: int, request: httpx.Request, response: httpx.Response
    ) -> None:
        """
        Raise a :class:`~seek_streams.http_utils.ProtocolError` if ``response`` cannot
        be used as the byte source from ``position``:

        - HTTP 412 means the pinned tokens no longer hold
          (:class:`~seek_streams.http_utils.ResourceChangedError`)
        - any request from a non-zero position must get 206 (Partial Content)
          (:class:`~seek_streams.http_utils.PartialContentStatusError`), whereas a
          request from position 0 may be answered with the full content
        - the ``accept-ranges`` header must be present, whatever the status
          (:class:`~seek_streams.http_utils.RangeRequestsUnsupportedError`)

        Any other error status is raised as ``httpx.HTTPStatusError``.
        """
        if response.status_code == 412:
            raise ResourceChangedError(request=request, response=response)
        if position != 0 and response.status_code != 206:
            raise PartialContentStatusError(request=request, response=response)
        if not has_header(response.headers, "accept-ranges"):
            raise RangeRequestsUnsupportedError(request=request, response=response)
        response.raise_for_status()

    def copy(self) -> ResourceValidator:
        return self.__class__(etag=self.etag, last_modified=self.last_modified)
