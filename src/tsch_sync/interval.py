from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidInterval


@dataclass(frozen=True)
class TimeInterval:
    """A closed interval [start, end] of integer nanoseconds, or the empty interval.

    The empty interval has no bounds at all; it is distinct from a zero-length
    interval, which is non-empty with ``start == end``.
    """

    start: int | None = None
    end: int | None = None

    def __post_init__(self) -> None:
        if (self.start is None) != (self.end is None):
            raise InvalidInterval("start and end must be both set or both omitted")
        if self.start is not None and self.start > self.end:
            raise InvalidInterval(f"start ({self.start}) must not be greater than end ({self.end})")

    @classmethod
    def empty(cls) -> "TimeInterval":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.start is None

    @property
    def length(self) -> int:
        if self.start is None:
            return 0
        return self.end - self.start

    @property
    def midpoint(self) -> float:
        if self.start is None:
            raise InvalidInterval("the empty interval has no midpoint")
        return self.start + self.length / 2.0

    def is_subset_of(self, other: "TimeInterval") -> bool:
        if self.is_empty or other.is_empty:
            return False
        return other.start <= self.start and self.end <= other.end

    @staticmethod
    def intersection(a: "TimeInterval", b: "TimeInterval") -> "TimeInterval":
        if a.is_empty or b.is_empty or a.start > b.end or a.end < b.start:
            return TimeInterval()
        return TimeInterval(max(a.start, b.start), min(a.end, b.end))
