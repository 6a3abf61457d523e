from math import gcd
from pathlib import Path

import numpy as np
import pytest

from tsch_sync import model
from tsch_sync.config import SyncParameters
from tsch_sync.errors import InvalidArgument
from tsch_sync.store import StatisticsStore
from tsch_sync.validation import (
    ValidationRecord,
    Verdict,
    compare,
    fractional_scan_ratio,
    integer_scan_ratio,
    mixed_scan_ratio,
    random_parameters,
    random_psr,
    validate_model,
)


def test_random_parameters_are_valid() -> None:
    rng = np.random.default_rng(0)
    for sampler in (fractional_scan_ratio, integer_scan_ratio, mixed_scan_ratio):
        for _ in range(30):
            params = random_parameters(rng, sampler)
            assert 1 <= params.channel_count <= 16
            assert gcd(params.channel_count, params.slots) == 1
            assert 0.1 <= params.p_eb <= 1.0
            assert all(0.0 <= p <= 1.0 for p in params.p_sr.values())
            assert 1_504_000 <= params.t_eb_ns <= 4_256_000
            assert params.t_switch_ns == 0


def test_fractional_and_integer_samplers_hit_their_timing_cases() -> None:
    rng = np.random.default_rng(1)
    for _ in range(20):
        assert model.timing_case(random_parameters(rng, fractional_scan_ratio)) in {1, 2}
        assert model.timing_case(random_parameters(rng, integer_scan_ratio)) == 2


def test_mixed_scan_ratio_range() -> None:
    rng = np.random.default_rng(2)
    values = [mixed_scan_ratio(rng) for _ in range(200)]
    assert all(1.0 <= n <= 100.5 for n in values)
    # dyadic fractional parts show up
    assert any((n * 16) == int(n * 16) for n in values)


def test_random_psr_hits_target_average() -> None:
    rng = np.random.default_rng(3)
    channels = [11, 12, 13, 14, 15, 16]
    psr = random_psr(rng, channels, 0.55)
    assert set(psr) == set(channels)
    assert sum(psr.values()) / len(psr) == pytest.approx(0.55, abs=1e-9)


def test_compare_record(make_params) -> None:  # noqa: ANN001
    params = make_params(t_scan_ns="505ms")
    record = compare(params, num_samples=20_000, seed=4)
    assert isinstance(record, ValidationRecord)
    assert record.relative_error_avg < 0.05
    assert record.max_abs_error_cdf < 0.05
    assert record.within(0.05)
    assert record.optimal_scan_avg_s is not None
    assert record.optimal_scan_holds


def test_validate_model_records_every_case(tmp_path: Path) -> None:
    with StatisticsStore(tmp_path / "validation.db") as store:
        verdict = validate_model(
            num_cases=3,
            num_samples=300,
            workers=2,
            store=store,
            max_error=1.0,
            seed=5,
            samplers=(fractional_scan_ratio,),
        )
        assert store.count() == 3
    assert verdict in {Verdict.VALID, Verdict.SUBOPTIMAL_SCAN}


def test_validate_model_rejects_on_first_large_error(tmp_path: Path) -> None:
    with StatisticsStore(tmp_path / "validation.db") as store:
        verdict = validate_model(
            num_cases=2,
            num_samples=50,
            workers=1,
            store=store,
            max_error=0.0,
            seed=6,
            samplers=(fractional_scan_ratio, integer_scan_ratio),
        )
        assert store.count() == 1
    assert verdict == Verdict.INVALID


def test_validate_model_argument_errors() -> None:
    with pytest.raises(InvalidArgument):
        validate_model(num_cases=1, workers=0)
    with pytest.raises(InvalidArgument):
        validate_model(num_cases=0)


def test_optimal_scan_flag() -> None:
    params = SyncParameters.from_mapping(
        {"channels": [11], "slots": 3, "p_eb": 1.0, "p_sr": {11: 1.0}, "t_scan_ns": "10ms"}
    )
    slower = ValidationRecord(
        parameters=params,
        model_avg_s=2.0,
        simulator_avg_s=2.0,
        relative_error_avg=0.0,
        max_abs_error_cdf=0.0,
        optimal_scan_avg_s=1.0,
    )
    faster = slower.model_copy(update={"model_avg_s": 0.5})
    assert slower.optimal_scan_holds
    assert not faster.optimal_scan_holds
