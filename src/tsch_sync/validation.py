from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import IntEnum
from math import gcd
from typing import Callable, Sequence

import numpy as np
from pydantic import BaseModel, Field

from . import model, simulator
from .config import MAX_CHANNEL, MIN_CHANNEL, NS_PER_US, SLOT_DURATION_NS, SyncParameters
from .errors import InvalidArgument
from .stats import max_abs_cdf_error, relative_error
from .store import StatisticsStore

logger = logging.getLogger(__name__)

NUM_RANDOM_CASES = 100_000
NUM_SIM_SAMPLES_PER_CASE = 1_000_000
# Relative error for the average, absolute error for the CDF.
MAX_ALLOWED_ERROR = 0.01

ScanRatioSampler = Callable[[np.random.Generator], float]


class Verdict(IntEnum):
    INVALID = -1
    SUBOPTIMAL_SCAN = 0
    VALID = 1


class ValidationRecord(BaseModel):
    parameters: SyncParameters
    model_avg_s: float = Field(..., ge=0.0)
    simulator_avg_s: float = Field(..., ge=0.0)
    relative_error_avg: float = Field(..., ge=0.0)
    max_abs_error_cdf: float = Field(..., ge=0.0)
    optimal_scan_avg_s: float | None = None

    def within(self, max_error: float) -> bool:
        return self.relative_error_avg <= max_error and self.max_abs_error_cdf <= max_error

    @property
    def optimal_scan_holds(self) -> bool:
        """True when a scan period of C slotframes is at least as good as this case's."""
        if self.optimal_scan_avg_s is None:
            return True
        # microsecond resolution absorbs rounding noise
        return self.model_avg_s >= self.optimal_scan_avg_s or round(self.model_avg_s, 6) == round(
            self.optimal_scan_avg_s, 6
        )


def fractional_scan_ratio(rng: np.random.Generator) -> float:
    return float(rng.uniform(0.1, 1.0))


def integer_scan_ratio(rng: np.random.Generator) -> float:
    return float(rng.integers(1, 100, endpoint=True))


def mixed_scan_ratio(rng: np.random.Generator, low: float = 1.0, high: float = 100.0) -> float:
    """Real ratio in (low, high); half of the draws get a dyadic fractional part.

    Dyadic fractions (1/2 .. 1/16) are exact in binary floating point, so they
    produce scan periods whose boundaries land exactly on step boundaries now
    and then, which uniform reals almost never do.
    """
    if rng.random() < 0.5:
        whole = int(rng.integers(int(np.ceil(low)), int(np.floor(high)), endpoint=True))
        return whole + 2.0 ** -int(rng.integers(1, 4, endpoint=True))
    return float(rng.uniform(low, high))


DEFAULT_SAMPLERS: tuple[ScanRatioSampler, ...] = (fractional_scan_ratio, integer_scan_ratio, mixed_scan_ratio)


def random_psr(rng: np.random.Generator, channels: Sequence[int], target_average: float) -> dict[int, float]:
    """Per-channel reception probabilities in [0.1, 1] whose mean is target_average."""
    c = len(channels)
    target_sum = target_average * c
    total = 0.0
    values: list[float] = []
    for j in range(c):
        if j == c - 1:
            value = target_sum - total
        else:
            lo = max(0.1, target_sum - total - c + (j + 1))
            hi = min(1.0, target_sum - total - (c - (j + 1)) * 0.1)
            value = float(rng.uniform(lo, hi))
        values.append(min(1.0, max(0.0, value)))
        total += value
    rng.shuffle(values)
    return dict(zip(channels, values))


def random_parameters(rng: np.random.Generator, scan_ratio: ScanRatioSampler) -> SyncParameters:
    c = int(rng.integers(1, 16, endpoint=True))
    while True:
        s = int(rng.integers(1, 10_000, endpoint=True))
        if gcd(s, c) == 1:
            break
    channels = [int(ch) for ch in rng.choice(np.arange(MIN_CHANNEL, MAX_CHANNEL + 1), size=c, replace=False)]
    p_eb = float(rng.uniform(0.1, 1.0))
    p_sr = random_psr(rng, channels, float(rng.uniform(0.1, 1.0)))
    n = scan_ratio(rng)
    # rounding only matters for non-integer ratios
    t_scan = round(n * s * SLOT_DURATION_NS)
    t_eb = int(rng.integers(1504, 4256, endpoint=True)) * NS_PER_US
    return SyncParameters.from_mapping(
        {
            "channels": channels,
            "slots": s,
            "p_eb": p_eb,
            "p_sr": p_sr,
            "t_scan_ns": t_scan,
            "t_switch_ns": 0,
            "t_eb_ns": t_eb,
        }
    )


def compare(
    params: SyncParameters,
    num_samples: int = NUM_SIM_SAMPLES_PER_CASE,
    seed: int | np.random.SeedSequence | None = None,
    check_optimal_scan: bool = True,
) -> ValidationRecord:
    sim_results = simulator.run(params, num_samples, seed=seed)
    model_results = model.calculate(params)

    optimal_avg = None
    if check_optimal_scan:
        optimal = params.with_scan_duration(params.channel_count * params.slotframe_duration_ns)
        optimal_avg = model.calculate(optimal).avg_sync_time

    return ValidationRecord(
        parameters=params,
        model_avg_s=model_results.avg_sync_time,
        simulator_avg_s=sim_results.avg_sync_time,
        relative_error_avg=relative_error(model_results.avg_sync_time, sim_results.avg_sync_time),
        max_abs_error_cdf=max_abs_cdf_error(model_results, sim_results),
        optimal_scan_avg_s=optimal_avg,
    )


class _Flow:
    """One batch of random cases sharing a scan-ratio sampler."""

    def __init__(self, store: StatisticsStore | None, max_error: float) -> None:
        self.store = store
        self.max_error = max_error
        self.lock = threading.Lock()
        self.failed = threading.Event()
        self.optimal_scan_holds = True

    def worker(self, num_cases: int, sampler: ScanRatioSampler, num_samples: int, seed: np.random.SeedSequence) -> None:
        param_seed, sim_seed = seed.spawn(2)
        rng = np.random.default_rng(param_seed)
        for case_seed in sim_seed.spawn(num_cases):
            if self.failed.is_set():
                return
            params = random_parameters(rng, sampler)
            record = compare(params, num_samples, seed=case_seed)
            logger.debug(
                "case %s: rel_err_avg=%.5f max_abs_err_cdf=%.5f",
                params.describe(),
                record.relative_error_avg,
                record.max_abs_error_cdf,
            )
            with self.lock:
                if self.store is not None:
                    self.store.save(params, record.relative_error_avg, record.max_abs_error_cdf)
                if self.failed.is_set():
                    return
                if not record.within(self.max_error):
                    logger.info("model rejected by case %s", params.describe())
                    self.failed.set()
                    return
                if not record.optimal_scan_holds:
                    self.optimal_scan_holds = False

    def verdict(self) -> Verdict:
        if self.failed.is_set():
            return Verdict.INVALID
        if not self.optimal_scan_holds:
            return Verdict.SUBOPTIMAL_SCAN
        return Verdict.VALID


def _split(total: int, parts: int) -> list[int]:
    return [total // parts + (1 if i < total % parts else 0) for i in range(parts)]


def validate_model(
    num_cases: int = NUM_RANDOM_CASES,
    num_samples: int = NUM_SIM_SAMPLES_PER_CASE,
    workers: int = 1,
    store: StatisticsStore | None = None,
    max_error: float = MAX_ALLOWED_ERROR,
    seed: int | None = None,
    samplers: Sequence[ScanRatioSampler] = DEFAULT_SAMPLERS,
) -> Verdict:
    """Compares the model with the simulator on random cases, one flow per scan-ratio sampler.

    Returns INVALID as soon as one case differs by more than max_error,
    SUBOPTIMAL_SCAN if some random scan period beat a scan period of C
    slotframes, VALID otherwise.
    """
    if workers < 1:
        raise InvalidArgument(f"workers must be greater than zero (got {workers})")
    if num_cases < 1:
        raise InvalidArgument(f"num_cases must be greater than zero (got {num_cases})")

    verdicts: list[Verdict] = []
    flow_seeds = np.random.SeedSequence(seed).spawn(len(samplers))
    for sampler, flow_seed in zip(samplers, flow_seeds):
        flow = _Flow(store, max_error)
        counts = [n for n in _split(num_cases, workers) if n > 0]
        with ThreadPoolExecutor(max_workers=len(counts)) as pool:
            futures = [
                pool.submit(flow.worker, n, sampler, num_samples, s)
                for n, s in zip(counts, flow_seed.spawn(len(counts)))
            ]
            for f in futures:
                f.result()
        verdict = flow.verdict()
        logger.info("flow %s: %s", getattr(sampler, "__name__", sampler), verdict.name)
        verdicts.append(verdict)
        if verdict == Verdict.INVALID:
            return Verdict.INVALID

    return min(verdicts)
