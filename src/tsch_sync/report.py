from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .config import SyncParameters
from .results import SyncResults
from .stats import max_abs_cdf_error, relative_error


class ParameterSummary(BaseModel):
    channels: list[int]
    slots: int = Field(..., ge=1)
    p_eb: float
    p_sr: dict[int, float]
    t_scan_ns: int
    t_switch_ns: int
    t_eb_ns: int
    slotframe_duration_ns: int
    scan_ratio: float
    timing_case: int

    @classmethod
    def from_parameters(cls, params: SyncParameters, timing_case: int) -> "ParameterSummary":
        return cls(
            channels=list(params.channels),
            slots=params.slots,
            p_eb=params.p_eb,
            p_sr=dict(params.p_sr),
            t_scan_ns=params.t_scan_ns,
            t_switch_ns=params.t_switch_ns,
            t_eb_ns=params.t_eb_ns,
            slotframe_duration_ns=params.slotframe_duration_ns,
            scan_ratio=params.scan_ratio,
            timing_case=timing_case,
        )


class EngineSummary(BaseModel):
    avg_sync_time_s: float = Field(..., ge=0.0)
    max_step: int = Field(..., ge=0)
    cdf: list[float]

    @classmethod
    def from_results(cls, results: SyncResults, cdf_steps: int) -> "EngineSummary":
        return cls(
            avg_sync_time_s=results.avg_sync_time,
            max_step=results.max_step,
            cdf=results.cdf_points(cdf_steps),
        )


class ComparisonReport(BaseModel):
    generated_at: str
    parameters: ParameterSummary
    model: EngineSummary
    simulator: EngineSummary | None = None
    num_samples: int | None = None
    relative_error_avg: float | None = None
    max_abs_error_cdf: float | None = None
    notes: list[str] = Field(default_factory=list)


def build_comparison_report(
    params: SyncParameters,
    timing_case: int,
    model_results: SyncResults,
    sim_results: SyncResults | None = None,
    num_samples: int | None = None,
    cdf_steps: int = 20,
) -> ComparisonReport:
    sim_summary = None
    rel = None
    cdf_err = None
    if sim_results is not None:
        sim_summary = EngineSummary.from_results(sim_results, cdf_steps)
        if sim_results.avg_sync_time > 0:
            rel = relative_error(model_results.avg_sync_time, sim_results.avg_sync_time)
        cdf_err = max_abs_cdf_error(model_results, sim_results)

    return ComparisonReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        parameters=ParameterSummary.from_parameters(params, timing_case),
        model=EngineSummary.from_results(model_results, cdf_steps),
        simulator=sim_summary,
        num_samples=num_samples,
        relative_error_avg=rel,
        max_abs_error_cdf=cdf_err,
        notes=[
            "Model ignores the channel switch delay.",
            "A step lasts one slotframe; cdf[k-1] is P(X <= k).",
        ],
    )
