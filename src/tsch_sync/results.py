from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field, field_validator

from .errors import InvalidArgument


class SyncResults(BaseModel):
    """Average synchronization time and the CDF of the number of steps X.

    A step lasts one slotframe. ``cdf_table[k]`` holds P(X <= k); index 0 is
    always zero and steps past the end of the table saturate at 1.0.
    """

    avg_sync_time: float = Field(..., ge=0.0)
    cdf_table: list[float] = Field(default_factory=lambda: [0.0])

    @field_validator("cdf_table")
    @classmethod
    def _validate_cdf_table(cls, v: list[float]) -> list[float]:
        if len(v) == 0:
            raise ValueError("cdf_table must not be empty")
        prev = 0.0
        for k, p in enumerate(v):
            if p < 0.0 or p > 1.0 + 1e-9:
                raise ValueError(f"cdf value out of range: k={k} p={p}")
            if p < prev - 1e-12:
                raise ValueError(f"cdf must be non-decreasing: k={k} p={p} < {prev}")
            prev = p
        return v

    @classmethod
    def from_step_probabilities(cls, avg_sync_time: float, step_probabilities: Iterable[float]) -> "SyncResults":
        """Builds the CDF as the running sum of P(X = k) for k = 1, 2, ..."""
        table = [0.0]
        for p in step_probabilities:
            table.append(min(1.0, table[-1] + p))
        return cls(avg_sync_time=avg_sync_time, cdf_table=table)

    @property
    def max_step(self) -> int:
        return len(self.cdf_table) - 1

    def cdf(self, steps: int) -> float:
        if steps < 1:
            raise InvalidArgument(f"steps must be greater than zero (got {steps})")
        if steps >= len(self.cdf_table):
            return 1.0
        return self.cdf_table[steps]

    def cdf_points(self, up_to: int | None = None) -> list[float]:
        last = self.max_step if up_to is None else up_to
        return [self.cdf(k) for k in range(1, last + 1)]
