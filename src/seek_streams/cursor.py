"""
The cursor of a :class:`~seek_streams.stream.RangeStream` is a two-state machine:

- :class:`~seek_streams.cursor.Disconnected` (a logical position only)
- :class:`~seek_streams.cursor.Connected` (a logical position plus the open
  :class:`~seek_streams.response.RangeResponse` whose next byte is at that position)

A state is never mutated in place: each transition returns the next state, and the
stream swaps its state attribute for it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .response import RangeResponse

from .range_utils import validate_position

__all__ = ["Disconnected", "Connected"]


class CursorState:
    connection: RangeResponse | None = None

    def __init__(self, position: int):
        self.position = validate_position(position)

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(position={self.position})"

    def __eq__(self, other) -> bool:
        return (
            type(self) is type(other)
            and self.position == other.position
            and self.connection is other.connection
        )

    def moved_to(self, position: int) -> Disconnected:
        """
        The state at a new position: any open body is released (the caller must
        close it).
        """
        return Disconnected(position=position)


class Disconnected(CursorState):
    """
    No body is open: the next read must first send a range request from
    :attr:`position`.
    """

    def connect(self, connection: RangeResponse) -> Connected:
        return Connected(position=self.position, connection=connection)


class Connected(CursorState):
    """
    A body is open and its next unread byte is at :attr:`position`.
    """

    def __init__(self, position: int, connection: RangeResponse):
        super().__init__(position=position)
        self.connection = connection

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(position={self.position}, {self.connection})"

    def advance(self, n_bytes: int) -> Connected:
        """
        The state after ``n_bytes`` were delivered from the open body.
        """
        return Connected(position=self.position + n_bytes, connection=self.connection)

    def disconnect(self) -> Disconnected:
        """
        The state after releasing the body (the caller must have closed it).
        """
        return Disconnected(position=self.position)
