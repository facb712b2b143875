from __future__ import annotations

__all__ = [
    "range_min",
    "validate_position",
    "remaining_range",
]

from ranges import Range


def range_min(rng: Range) -> int:
    """Get the minimum (or start terminus) of a :class:`~ranges.Range`, the first
    position it includes.

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        raise ValueError("Empty range has no termini")
    return rng.start if rng.include_start else rng.start + 1


def validate_position(position: int) -> int:
    """
    A logical position is a non-negative integer byte offset (``bool`` is rejected
    even though it subclasses :class:`int`).
    """
    if isinstance(position, bool) or not isinstance(position, int):
        raise TypeError(f"{position=} must be an integer byte offset")
    if position < 0:
        raise ValueError(f"{position=} must not be negative")
    return position


def remaining_range(position: int, total: int) -> Range:
    """
    The half-open range ``[position, total)`` of bytes not yet read from a resource
    of ``total`` bytes, or the empty range if ``position`` is at or past the end.
    """
    if position >= total:
        return Range(0, 0)
    return Range(position, total)
