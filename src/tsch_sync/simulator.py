from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from .config import NS_PER_S, SLOT_DURATION_NS, TX_OFFSET_NS, SyncParameters
from .errors import InvalidArgument, Outcome, attempt
from .results import SyncResults

logger = logging.getLogger(__name__)

_CHUNK = 4096


class _DrawStream:
    """Buffered draws from one private numpy Generator."""

    def __init__(self, rng: np.random.Generator, draw: Callable[[np.random.Generator, int], np.ndarray]) -> None:
        self._rng = rng
        self._draw = draw
        self._buffer: list[int | float] = []

    def next(self) -> int | float:
        if not self._buffer:
            self._buffer = self._draw(self._rng, _CHUNK).tolist()
            self._buffer.reverse()
        return self._buffer.pop()


@dataclass
class RandomContext:
    """The randomness owned by one simulator call.

    Scan start times, channel selections and EB reception draws come from
    three independent streams spawned from a single seed sequence.
    """

    start_time: _DrawStream
    channel: _DrawStream
    reception: _DrawStream

    @classmethod
    def create(cls, params: SyncParameters, seed: int | np.random.SeedSequence | None = None) -> "RandomContext":
        seq = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
        start_rng, channel_rng, reception_rng = (np.random.default_rng(s) for s in seq.spawn(3))
        cycle = params.channel_rotation_cycle_ns
        c = params.channel_count
        return cls(
            start_time=_DrawStream(start_rng, lambda rng, size: rng.integers(0, cycle, size=size, endpoint=True)),
            channel=_DrawStream(channel_rng, lambda rng, size: rng.integers(0, c, size=size)),
            reception=_DrawStream(reception_rng, lambda rng, size: rng.random(size=size)),
        )


@dataclass
class _Tally:
    total_time_ns: int = 0
    steps: Counter = field(default_factory=Counter)


def _first_minimal_cell(scan_start: int, slots: int) -> int:
    """ASN of the first minimal cell whose EB the node can still catch."""
    asn = scan_start // SLOT_DURATION_NS
    if asn % slots == 0 and scan_start <= asn * SLOT_DURATION_NS + TX_OFFSET_NS:
        return asn
    return asn + slots - asn % slots


def _simulate_once(params: SyncParameters, rnd: RandomContext) -> tuple[int, int]:
    """One synchronization attempt; returns (elapsed ns including Teb, step)."""
    chs = params.channels
    c = len(chs)
    s = params.slots
    t_scan = params.t_scan_ns
    t_switch = params.t_switch_ns
    tsf = params.slotframe_duration_ns

    scan_start = rnd.start_time.next()
    asn = _first_minimal_cell(scan_start, s)

    selected = chs[rnd.channel.next()]
    last_selection = scan_start
    next_selection = last_selection + t_switch + t_scan
    switched = True

    while True:
        tx_time = asn * SLOT_DURATION_NS + TX_OFFSET_NS
        cell_channel = chs[asn % c]

        if c > 1 and tx_time >= next_selection:
            # replay the channel selections up to the scan period covering tx_time
            while True:
                channel = chs[rnd.channel.next()]
                switched = channel != selected
                selected = channel
                last_selection = next_selection
                next_selection += t_switch + t_scan if switched else t_scan
                if next_selection > tx_time:
                    break

        listening = not switched or tx_time >= last_selection + t_switch
        if listening and cell_channel == selected:
            if rnd.reception.next() < params.success_probability(selected):
                elapsed = tx_time - scan_start
                step = max(1, -(-elapsed // tsf))
                return elapsed + params.t_eb_ns, step

        asn += s


def run(params: SyncParameters, num_runs: int, seed: int | np.random.SeedSequence | None = None) -> SyncResults:
    """Repeats the synchronization procedure num_runs times and summarizes the samples.

    Safe to call concurrently: every call owns its random streams.
    """
    if num_runs <= 0:
        raise InvalidArgument(f"num_runs must be greater than 0 (got {num_runs})")
    if not params.can_synchronize:
        raise InvalidArgument("Synchronization is impossible: Peb * Psr is zero on every channel")

    rnd = RandomContext.create(params, seed)
    tally = _Tally()
    for _ in range(num_runs):
        elapsed, step = _simulate_once(params, rnd)
        tally.total_time_ns += elapsed
        tally.steps[step] += 1

    max_step = max(tally.steps)
    table = [0.0]
    running = 0
    for k in range(1, max_step + 1):
        running += tally.steps.get(k, 0)
        table.append(running / num_runs)

    avg = tally.total_time_ns / num_runs / NS_PER_S
    logger.debug("simulator runs=%d max_step=%d avg=%.6fs", num_runs, max_step, avg)
    return SyncResults(avg_sync_time=avg, cdf_table=table)


def try_run(
    params: SyncParameters, num_runs: int, seed: int | np.random.SeedSequence | None = None
) -> Outcome[SyncResults]:
    return attempt(run, params, num_runs, seed)
