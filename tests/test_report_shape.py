from tsch_sync import model, simulator
from tsch_sync.config import SyncParameters
from tsch_sync.report import build_comparison_report


def test_comparison_report_shape(concrete_params: SyncParameters) -> None:
    model_results = model.calculate(concrete_params)
    sim_results = simulator.run(concrete_params, 2_000, seed=3)

    report = build_comparison_report(
        concrete_params,
        model.timing_case(concrete_params),
        model_results,
        sim_results,
        num_samples=2_000,
        cdf_steps=10,
    )
    payload = report.model_dump(mode="json")

    assert payload["parameters"]["channels"] == [11, 13, 14, 12]
    assert payload["parameters"]["timing_case"] == 3
    assert payload["parameters"]["slotframe_duration_ns"] == 1_010_000_000
    assert payload["num_samples"] == 2_000

    for engine in ["model", "simulator"]:
        summary = payload[engine]
        assert summary["avg_sync_time_s"] > 0.0
        assert len(summary["cdf"]) == 10
        assert summary["cdf"] == sorted(summary["cdf"])

    assert payload["relative_error_avg"] >= 0.0
    assert 0.0 <= payload["max_abs_error_cdf"] <= 1.0
    assert payload["notes"]


def test_model_only_report_has_no_simulator_section(concrete_params: SyncParameters) -> None:
    report = build_comparison_report(concrete_params, 3, model.calculate(concrete_params))
    payload = report.model_dump(mode="json")
    assert payload["simulator"] is None
    assert payload["relative_error_avg"] is None
    assert len(payload["model"]["cdf"]) == 20
