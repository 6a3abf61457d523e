from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, cast

T = TypeVar("T")


class SyncError(ValueError):
    """Base class for usage errors raised by the calculator."""


class InvalidConfiguration(SyncError):
    pass


class InvalidArgument(SyncError):
    pass


class InvalidInterval(InvalidArgument):
    pass


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: SyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return cast(T, self.value)


def attempt(fn: Callable[..., T], *args, **kwargs) -> Outcome[T]:
    try:
        return Outcome(value=fn(*args, **kwargs))
    except SyncError as exc:
        return Outcome(error=exc)
