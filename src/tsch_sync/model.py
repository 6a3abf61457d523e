from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from .config import NS_PER_S, SyncParameters
from .errors import InvalidArgument, Outcome, attempt
from .interval import TimeInterval
from .results import SyncResults

logger = logging.getLogger(__name__)

# Probability mass below which the infinite series / decomposition is truncated.
TRUNCATION_THRESHOLD = 1e-9


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


class _Schedule:
    """Minimal-cell channel schedule W seen from each phase offset y.

    Both the slot offset and the channel offset of the minimal cell are zero,
    so the i-th minimal cell of a rotation uses ``channels[(i * S) % C]``.
    """

    def __init__(self, params: SyncParameters) -> None:
        c = params.channel_count
        self.c = c
        self.channels = [params.channels[(i * params.slots) % c] for i in range(c)]
        self._success = [params.success_probability(ch) for ch in self.channels]

    def success(self, k: int, y: int) -> float:
        """Peb * Psr of the channel used at the k-th minimal cell."""
        return self._success[(y + k - 1) % self.c]

    def step(self, k: int, y: int) -> float:
        """Pstep: the receiver listens on the right channel (1/C) and the EB gets through."""
        return self._success[(y + k - 1) % self.c] / self.c


def _first_success_probabilities(schedule: _Schedule) -> Iterator[float]:
    """Psync(k) when the scan period is shorter than a slotframe."""
    c = schedule.c
    survival = [1.0] * c
    k = 1
    while True:
        total = 0.0
        for y in range(c):
            p = schedule.step(k, y)
            total += survival[y] * p
            survival[y] *= 1.0 - p
        yield total / c
        k += 1


def _window_success_probabilities(schedule: _Schedule, n: int) -> Iterator[float]:
    """Psync(k) when the scan period spans exactly n slotframes."""
    c = schedule.c
    survival = [1.0] * c
    window_mass = [0.0] * c
    k = 1
    while True:
        first_in_window = ((k - 1) // n) * n + 1
        missed = (k - first_in_window) // c
        total = 0.0
        for y in range(c):
            p = (1.0 - schedule.success(k, y)) ** missed * schedule.step(k, y)
            total += survival[y] * p
            window_mass[y] += p
        yield total / c
        if k % n == 0:
            for y in range(c):
                survival[y] *= 1.0 - window_mass[y]
                window_mass[y] = 0.0
        k += 1


def _truncated_series(psync: Iterator[float], tsf: int, teb: int) -> tuple[float, list[float]]:
    expectation = 0.0
    cumulative = 0.0
    table = [0.0]
    for k, p in enumerate(psync, start=1):
        cumulative += p
        expectation += p * ((k - 1) * tsf + tsf / 2.0 + teb)
        table.append(p)
        if cumulative >= 1.0 - TRUNCATION_THRESHOLD:
            break
    return expectation, table


@dataclass
class _ScanState:
    q: float
    window: int
    interval: TimeInterval
    phase: int


@dataclass
class _Accumulator:
    expectation: float = 0.0
    step_probabilities: list[float] = field(default_factory=lambda: [0.0])

    def add(self, k: int, p: float) -> None:
        table = self.step_probabilities
        if k >= len(table):
            table.extend([0.0] * (k - len(table) + 1))
        table[k] += p


class _DriftingWindows:
    """Decomposition for a scan period that is longer than, but not a multiple of, a slotframe.

    A state tracks the unallocated probability mass q of scan window i for the
    sub-interval I of slotframe phases (where the EB point lies relative to the
    scan start) that are still unresolved. States are processed from an explicit
    stack, so deep windows do not consume interpreter stack.
    """

    def __init__(self, params: SyncParameters, schedule: _Schedule) -> None:
        self.schedule = schedule
        self.tscan = params.t_scan_ns
        self.tsf = params.slotframe_duration_ns
        self.teb = params.t_eb_ns

    def starts_mid_step(self, i: int) -> bool:
        return ((i - 1) * self.tscan) % self.tsf != 0

    def run(self) -> _Accumulator:
        acc = _Accumulator()
        for y in range(self.schedule.c):
            stack = [_ScanState(1.0, 1, TimeInterval(0, self.tsf), y)]
            while stack:
                state = stack.pop()
                stack.extend(reversed(self._expand(state, acc)))
        return acc

    def _expand(self, state: _ScanState, acc: _Accumulator) -> list[_ScanState]:
        q, i, interval, y = state.q, state.window, state.interval, state.phase
        if interval.is_empty or interval.length == 0 or q < TRUNCATION_THRESHOLD:
            return []

        sched = self.schedule
        c = sched.c
        tsf = self.tsf
        weight = 1.0 / c

        tail = (i * self.tscan) % tsf
        right = TimeInterval(tail, tsf)
        left = TimeInterval(0, tail)
        next_mid_step = self.starts_mid_step(i + 1)
        carried = TimeInterval.intersection(interval, left) if next_mid_step else interval

        if self.starts_mid_step(i):
            k_first = _ceil_div((i - 1) * self.tscan, tsf)
            covers_first = interval.is_subset_of(TimeInterval(((i - 1) * self.tscan) % tsf, tsf))
        else:
            k_first = (i - 1) * self.tscan // tsf + 1
            covers_first = True
        k_last = _ceil_div(i * self.tscan, tsf)

        def opportunities(k: int) -> int:
            return k - k_first + 1 if covers_first else k - k_first

        def elapsed(k: int, covered: TimeInterval) -> float:
            return (k - 1) * tsf + covered.midpoint + self.teb

        p_first = sched.step(k_first, y) if covers_first else 0.0
        acc.expectation += weight * q * p_first * elapsed(k_first, interval)
        acc.add(k_first, weight * q * p_first)

        p_inner_sum = 0.0
        for k in range(k_first + 1, k_last):
            p = (1.0 - sched.success(k, y)) ** ((opportunities(k) - 1) // c) * sched.step(k, y)
            p_inner_sum += p
            acc.expectation += weight * q * p * elapsed(k, interval)
            acc.add(k, weight * q * p)

        last_covered = TimeInterval.intersection(interval, left).length / interval.length if next_mid_step else 1.0
        p_last = (1.0 - sched.success(k_last, y)) ** (opportunities(k_last - 1) // c) * sched.step(k_last, y)
        sync_last = q * last_covered * p_last
        if not carried.is_empty:
            acc.expectation += weight * sync_last * elapsed(k_last, carried)
        acc.add(k_last, weight * sync_last)

        successors = [_ScanState(q * last_covered * (1.0 - (p_first + p_last + p_inner_sum)), i + 1, carried, y)]
        if next_mid_step:
            remainder = TimeInterval.intersection(interval, right)
            q_nc = q * (remainder.length / interval.length) * (1.0 - (p_first + p_inner_sum))
            successors.append(_ScanState(q_nc, i + 1, remainder, y))
        return successors


def timing_case(params: SyncParameters) -> int:
    """1: Tscan < Tsf, 2: Tscan is a multiple of Tsf, 3: otherwise."""
    tsf = params.slotframe_duration_ns
    if params.t_scan_ns < tsf:
        return 1
    if params.t_scan_ns % tsf == 0:
        return 2
    return 3


def calculate(params: SyncParameters) -> SyncResults:
    """Average synchronization time and CDF of the number of steps, from the analytical model.

    The channel switch delay is assumed negligible and is not taken into account.
    """
    if not params.can_synchronize:
        raise InvalidArgument("Synchronization is impossible: Peb * Psr is zero on every channel")

    schedule = _Schedule(params)
    tsf = params.slotframe_duration_ns
    case = timing_case(params)

    if case == 1:
        expectation, table = _truncated_series(_first_success_probabilities(schedule), tsf, params.t_eb_ns)
    elif case == 2:
        n = params.t_scan_ns // tsf
        expectation, table = _truncated_series(_window_success_probabilities(schedule, n), tsf, params.t_eb_ns)
    else:
        acc = _DriftingWindows(params, schedule).run()
        expectation, table = acc.expectation, acc.step_probabilities

    logger.debug("model case=%d n=%.6f max_step=%d avg=%.6fs", case, params.scan_ratio, len(table) - 1,
                 expectation / NS_PER_S)
    return SyncResults.from_step_probabilities(expectation / NS_PER_S, table[1:])


def try_calculate(params: SyncParameters) -> Outcome[SyncResults]:
    return attempt(calculate, params)
