"""Fractional position keys for ordered collections.

Positions are doubles on an open scale. A move only ever writes the moved
item: the new key is placed between the keys of its new neighbors. Repeated
inserts into the same gap eventually exhaust double precision, at which point
the caller renumbers the whole collection with ``spaced_positions``.
"""

import math

DEFAULT_POSITION = 1000.0
POSITION_SPACING = 1000.0


class PositionOrderError(ValueError):
    """Neighbor keys are not a valid open interval."""


class PrecisionExhaustedError(Exception):
    """No representable key exists strictly between the neighbors."""

    def __init__(self, before: float | None, after: float | None):
        self.before = before
        self.after = after
        super().__init__(f"No position available between {before!r} and {after!r}")


def _check_finite(value: float | None, name: str) -> None:
    if value is not None and not math.isfinite(value):
        raise PositionOrderError(f"{name} position must be finite, got {value!r}")


def allocate_position(before: float | None, after: float | None) -> float:
    """Return a key strictly between ``before`` and ``after``.

    Either bound may be ``None`` meaning the head (no ``before``) or the tail
    (no ``after``) of the collection. With both absent the collection is empty
    and ``DEFAULT_POSITION`` is returned.

    Raises:
        PositionOrderError: bounds are not finite or ``before >= after``.
        PrecisionExhaustedError: no double lies strictly inside the bounds.
    """
    _check_finite(before, "before")
    _check_finite(after, "after")

    if before is None and after is None:
        return DEFAULT_POSITION

    if before is None:
        candidate = after - POSITION_SPACING
        if not math.isfinite(candidate) or not candidate < after:
            raise PrecisionExhaustedError(before, after)
        return candidate

    if after is None:
        candidate = before + POSITION_SPACING
        if not math.isfinite(candidate) or not candidate > before:
            raise PrecisionExhaustedError(before, after)
        return candidate

    if before >= after:
        raise PositionOrderError(
            f"Invalid ordering: before={before!r} must be < after={after!r}"
        )

    candidate = before + (after - before) / 2
    if not before < candidate < after:
        raise PrecisionExhaustedError(before, after)
    return candidate


def spaced_positions(count: int) -> list[float]:
    """Evenly spaced keys for ``count`` items in ascending order."""
    return [DEFAULT_POSITION + POSITION_SPACING * idx for idx in range(count)]
