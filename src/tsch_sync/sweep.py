from __future__ import annotations

import csv
import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence

import numpy as np
from pydantic import BaseModel

from . import simulator
from .config import SLOT_DURATION_NS, SyncParameters, default_channels
from .results import SyncResults
from .stats import percentile_interval

logger = logging.getLogger(__name__)

SWEEP_CSV_HEADER = ["SD", "c", "s", "b_avg", "n", "avgSyncTime", "avgSyncTimeCIL", "avgSyncTimeCIU"]


class PsrSpread(str, Enum):
    zero = "0"
    max = "max"


def generate_psr(channels: Sequence[int], average: float, spread: PsrSpread) -> dict[int, float]:
    """Reception probabilities with the given mean.

    ``zero`` gives every channel the mean; ``max`` puts as many channels as
    possible at 1.0, one at the remainder and the rest at 0.0.
    """
    if spread == PsrSpread.zero:
        return {ch: average for ch in channels}
    target_sum = average * len(channels)
    ones = int(target_sum)
    values = [1.0] * ones
    if len(values) < len(channels):
        values.append(target_sum - ones)
    values.extend([0.0] * (len(channels) - len(values)))
    return dict(zip(channels, values))


class SweepRow(BaseModel):
    spread: PsrSpread
    channel_count: int
    slots: int
    b_avg: float
    n: float
    avg_sync_time: float
    ci_lower: float
    ci_upper: float

    def as_csv_row(self) -> list[str]:
        return [
            self.spread.value,
            str(self.channel_count),
            str(self.slots),
            f"{self.b_avg:g}",
            f"{self.n:g}",
            repr(self.avg_sync_time),
            repr(self.ci_lower),
            repr(self.ci_upper),
        ]


def scan_ratio_sweep(
    channel_counts: Iterable[int] = (4, 8, 12, 16),
    averages: Iterable[float] = (0.25, 0.5, 0.75, 1.0),
    spreads: Iterable[PsrSpread] = (PsrSpread.zero, PsrSpread.max),
    ratios: Iterable[float] = tuple(i + j * 0.25 for i in range(21) for j in range(1, 5)),
    slots: int = 101,
    p_eb: float = 1.0,
    t_eb_ns: int = 4_256_000,
    num_samples: int = 100,
    runs_per_sample: int = 1_000_000,
    confidence: float = 0.95,
    seed: int | None = None,
) -> Iterator[SweepRow]:
    """Simulator statistics of the average synchronization time over a grid of scan ratios.

    Each grid point repeats the simulator num_samples times and reports the mean
    of the sample averages with a percentile confidence interval.
    """
    root = np.random.SeedSequence(seed)
    ratios = tuple(ratios)
    spreads = tuple(spreads)
    averages = tuple(averages)
    for c in channel_counts:
        channels = default_channels(c)
        for average in averages:
            for spread in spreads:
                p_sr = generate_psr(channels, average, spread)
                for n in ratios:
                    params = SyncParameters.from_mapping(
                        {
                            "channels": channels,
                            "slots": slots,
                            "p_eb": p_eb,
                            "p_sr": p_sr,
                            "t_scan_ns": round(n * slots * SLOT_DURATION_NS),
                            "t_switch_ns": 0,
                            "t_eb_ns": t_eb_ns,
                        }
                    )
                    means = [
                        simulator.run(params, runs_per_sample, seed=s).avg_sync_time
                        for s in root.spawn(num_samples)
                    ]
                    lo, hi = percentile_interval(means, confidence)
                    logger.debug("sweep c=%d avg=%g spread=%s n=%g", c, average, spread.value, n)
                    yield SweepRow(
                        spread=spread,
                        channel_count=c,
                        slots=slots,
                        b_avg=p_eb * average,
                        n=n,
                        avg_sync_time=sum(means) / len(means),
                        ci_lower=lo,
                        ci_upper=hi,
                    )


def write_sweep_csv(rows: Iterable[SweepRow], path: str | Path) -> int:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with p.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(SWEEP_CSV_HEADER)
        for row in rows:
            writer.writerow(row.as_csv_row())
            written += 1
    return written


def write_cdf_csv(results_by_label: Mapping[str, SyncResults], path: str | Path, max_steps: int | None = None) -> None:
    """One row per step, one column per result set."""
    if not results_by_label:
        raise ValueError("results_by_label must not be empty")
    if max_steps is None:
        max_steps = max(r.max_step for r in results_by_label.values())
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    labels = list(results_by_label)
    with p.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(["step", *labels])
        for k in range(1, max_steps + 1):
            writer.writerow([k, *(repr(results_by_label[label].cdf(k)) for label in labels)])
