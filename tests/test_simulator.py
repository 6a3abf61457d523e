from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from tsch_sync import simulator
from tsch_sync.config import SLOT_DURATION_NS, TX_OFFSET_NS, SyncParameters
from tsch_sync.errors import InvalidArgument


@pytest.mark.parametrize("num_runs", [0, -1, -1000])
def test_non_positive_runs_rejected(concrete_params: SyncParameters, num_runs: int) -> None:
    with pytest.raises(InvalidArgument):
        simulator.run(concrete_params, num_runs)


def test_try_run_reports_error_as_value(concrete_params: SyncParameters) -> None:
    outcome = simulator.try_run(concrete_params, 0)
    assert not outcome.ok
    assert isinstance(outcome.error, InvalidArgument)
    assert simulator.try_run(concrete_params, 10, seed=3).ok


def test_try_run_accepts_seed_sequence(concrete_params: SyncParameters) -> None:
    first = simulator.try_run(concrete_params, 500, seed=np.random.SeedSequence(11)).unwrap()
    second = simulator.run(concrete_params, 500, seed=np.random.SeedSequence(11))
    assert first == second


def test_impossible_synchronization_rejected(make_params) -> None:  # noqa: ANN001
    with pytest.raises(InvalidArgument, match="impossible"):
        simulator.run(make_params(p_sr={11: 0.0, 13: 0.0, 14: 0.0, 12: 0.0}), 10)


def test_single_run_cdf_is_a_step(concrete_params: SyncParameters) -> None:
    results = simulator.run(concrete_params, 1, seed=7)
    step = results.max_step
    assert step >= 1
    for k in range(1, step):
        assert results.cdf(k) == 0.0
    assert results.cdf(step) == 1.0
    assert results.cdf(step + 10) == 1.0
    assert results.avg_sync_time > 0.0


def test_cdf_rejects_non_positive_steps(concrete_params: SyncParameters) -> None:
    results = simulator.run(concrete_params, 100, seed=1)
    with pytest.raises(InvalidArgument):
        results.cdf(0)
    with pytest.raises(InvalidArgument):
        results.cdf(-1)


def test_cdf_is_monotone(concrete_params: SyncParameters) -> None:
    results = simulator.run(concrete_params, 5_000, seed=11)
    values = [results.cdf(k) for k in range(1, results.max_step + 2)]
    assert all(b >= a for a, b in zip(values, values[1:]))
    assert values[-1] == 1.0
    assert results.cdf(results.max_step) == 1.0


def test_same_seed_reproduces_results(concrete_params: SyncParameters) -> None:
    a = simulator.run(concrete_params, 2_000, seed=42)
    b = simulator.run(concrete_params, 2_000, seed=42)
    c = simulator.run(concrete_params, 2_000, seed=43)
    assert a == b
    assert a != c


def test_concurrent_calls_do_not_share_state(concrete_params: SyncParameters) -> None:
    seeds = [1, 2, 3, 4, 5, 6]
    sequential = [simulator.run(concrete_params, 1_000, seed=s) for s in seeds]
    with ThreadPoolExecutor(max_workers=4) as pool:
        concurrent = list(pool.map(lambda s: simulator.run(concrete_params, 1_000, seed=s), seeds))
    assert concurrent == sequential


def test_first_minimal_cell_alignment() -> None:
    slots = 101
    # within the minimal cell, before the TX offset: catch this cell
    assert simulator._first_minimal_cell(0, slots) == 0
    assert simulator._first_minimal_cell(TX_OFFSET_NS, slots) == 0
    # after the TX offset: wait for the next slotframe
    assert simulator._first_minimal_cell(TX_OFFSET_NS + 1, slots) == slots
    # in another slot of the slotframe
    assert simulator._first_minimal_cell(5 * SLOT_DURATION_NS, slots) == slots
    assert simulator._first_minimal_cell(slots * SLOT_DURATION_NS + 1, slots) == slots


def test_single_channel_always_listening_is_geometric() -> None:
    params = SyncParameters.from_mapping(
        {"channels": [20], "slots": 7, "p_eb": 1.0, "p_sr": {20: 1.0}, "t_scan_ns": "1s", "t_eb_ns": 0}
    )
    results = simulator.run(params, 500, seed=5)
    # every attempt succeeds at the first minimal cell, within one slotframe
    assert results.max_step == 1
    assert results.cdf(1) == 1.0
    assert results.avg_sync_time <= params.slotframe_duration_ns / 1e9 + TX_OFFSET_NS / 1e9
