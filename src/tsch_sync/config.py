from __future__ import annotations

import re
from math import gcd
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import InvalidConfiguration

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_S = 1_000_000_000

# Timeslot duration and TX offset of the default 2.4 GHz timeslot template.
SLOT_DURATION_NS = 10 * NS_PER_MS
TX_OFFSET_NS = 2120 * NS_PER_US

MIN_CHANNEL = 11
MAX_CHANNEL = 26

DEFAULT_CHANNEL_HOPPING_SEQUENCES: dict[int, tuple[int, ...]] = {
    1: (11,),
    2: (11, 12),
    3: (11, 13, 12),
    4: (11, 13, 14, 12),
    5: (11, 13, 14, 15, 12),
    6: (16, 12, 15, 11, 13, 14),
    7: (14, 13, 15, 11, 16, 12, 17),
    8: (16, 12, 15, 11, 14, 13, 17, 18),
    9: (11, 13, 12, 16, 17, 18, 19, 14, 15),
    10: (16, 12, 19, 13, 17, 14, 20, 18, 15, 11),
    11: (16, 12, 11, 20, 17, 18, 14, 13, 19, 15, 21),
    12: (16, 19, 15, 20, 13, 12, 21, 18, 22, 11, 14, 17),
    13: (15, 13, 20, 19, 17, 23, 16, 12, 21, 22, 14, 11, 18),
    14: (14, 11, 21, 18, 16, 19, 17, 20, 22, 24, 15, 23, 12, 13),
    15: (17, 22, 24, 18, 12, 11, 25, 13, 19, 16, 14, 15, 20, 23, 21),
    16: (16, 17, 23, 18, 26, 15, 25, 22, 19, 11, 12, 13, 24, 14, 20, 21),
}

_DURATION_UNITS = {"ns": 1, "us": NS_PER_US, "ms": NS_PER_MS, "s": NS_PER_S}
_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ns|us|ms|s)\s*$")


def default_channels(count: int) -> tuple[int, ...]:
    try:
        return DEFAULT_CHANNEL_HOPPING_SEQUENCES[count]
    except KeyError:
        raise InvalidConfiguration(f"No default channel hopping sequence for {count} channels") from None


def parse_duration_ns(value: Any) -> Any:
    """Converts '5250ms' style strings to integer nanoseconds; other values pass through."""
    if not isinstance(value, str):
        return value
    m = _DURATION_RE.match(value)
    if m is None:
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. '5250ms', '4256us')")
    number, unit = m.groups()
    return round(float(number) * _DURATION_UNITS[unit])


class SyncParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    channels: tuple[int, ...] = Field(..., min_length=1)
    slots: int = Field(..., ge=1)
    p_eb: float = Field(..., ge=0.0, le=1.0)
    p_sr: dict[int, float]
    t_scan_ns: int = Field(..., gt=0)
    t_switch_ns: int = Field(0, ge=0)
    t_eb_ns: int = Field(0, ge=0)

    @field_validator("channels")
    @classmethod
    def _validate_channels(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        for ch in v:
            if ch < MIN_CHANNEL or ch > MAX_CHANNEL:
                raise ValueError(f"channel out of range: {ch} (expected {MIN_CHANNEL}..{MAX_CHANNEL})")
        if len(set(v)) != len(v):
            raise ValueError("channels must contain unique elements")
        return v

    @field_validator("t_scan_ns", "t_switch_ns", "t_eb_ns", mode="before")
    @classmethod
    def _parse_durations(cls, v: Any) -> Any:
        return parse_duration_ns(v)

    @model_validator(mode="after")
    def _validate_cross_fields(self) -> "SyncParameters":
        if gcd(len(self.channels), self.slots) != 1:
            raise ValueError(
                f"The number of channels ({len(self.channels)}) and slots ({self.slots}) must be co-primes"
            )
        missing = [ch for ch in self.channels if ch not in self.p_sr]
        if missing:
            raise ValueError(f"p_sr does not contain all the channels: missing {missing}")
        extra = [ch for ch in self.p_sr if ch not in self.channels]
        if extra:
            raise ValueError(f"p_sr contains channels that are not in channels: {extra}")
        for ch, p in self.p_sr.items():
            if p < 0.0 or p > 1.0:
                raise ValueError(f"p_sr contains an invalid probability: channel={ch} p={p}")
        return self

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def slotframe_duration_ns(self) -> int:
        return self.slots * SLOT_DURATION_NS

    @property
    def channel_rotation_cycle_ns(self) -> int:
        return self.channel_count * self.slotframe_duration_ns

    @property
    def scan_ratio(self) -> float:
        return self.t_scan_ns / self.slotframe_duration_ns

    @property
    def average_psr(self) -> float:
        return sum(self.p_sr.values()) / len(self.p_sr)

    @property
    def can_synchronize(self) -> bool:
        return any(self.success_probability(ch) > 0.0 for ch in self.channels)

    def success_probability(self, channel: int) -> float:
        return self.p_eb * self.p_sr[channel]

    def with_scan_duration(self, t_scan_ns: int) -> "SyncParameters":
        return type(self).from_mapping({**self.model_dump(), "t_scan_ns": t_scan_ns})

    def describe(self) -> str:
        psr = ", ".join(f"{ch}:{p:g}" for ch, p in sorted(self.p_sr.items()))
        return (
            f"SyncParameters(chs={list(self.channels)}, s={self.slots}, p_eb={self.p_eb:g}, "
            f"p_sr={{{psr}}}, t_scan={self.t_scan_ns}ns, t_switch={self.t_switch_ns}ns, t_eb={self.t_eb_ns}ns)"
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SyncParameters":
        if not isinstance(data, Mapping):
            raise InvalidConfiguration(f"Invalid sync parameters: expected a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidConfiguration(f"Invalid sync parameters\n{exc}") from exc
