from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import model, simulator
from .io import load_parameters
from .report import build_comparison_report
from .store import StatisticsStore
from .sweep import scan_ratio_sweep, write_sweep_csv
from .validation import MAX_ALLOWED_ERROR, NUM_RANDOM_CASES, NUM_SIM_SAMPLES_PER_CASE, validate_model


def _existing_path(value: str) -> Path:
    path = Path(value)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"File not found: {value}")
    return path


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive integer: {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tsch-sync", add_help=True)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("compare", "Run the model and the simulator and compare them"),
        ("model", "Run the analytical model only"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--params", required=True, type=_existing_path, help="Path to parameters (json|yaml)")
        p.add_argument("--cdf-steps", type=_positive_int, default=20, help="Number of CDF points to report")
        p.add_argument(
            "--output",
            type=Path,
            default=None,
            help="Write report JSON to this path (default: stdout)",
        )
        if name == "compare":
            p.add_argument("--samples", type=_positive_int, default=1_000_000, help="Simulator runs")
            p.add_argument("--seed", type=int, default=None, help="Seed for the simulator")

    v = sub.add_parser("validate", help="Validate the model against the simulator on random cases")
    v.add_argument("--cases", type=_positive_int, default=NUM_RANDOM_CASES, help="Random cases per flow")
    v.add_argument("--samples", type=_positive_int, default=NUM_SIM_SAMPLES_PER_CASE, help="Simulator runs per case")
    v.add_argument("--workers", type=_positive_int, default=1, help="Worker threads")
    v.add_argument("--db", type=Path, default=Path("modelvalidation.db"), help="SQLite database for statistics")
    v.add_argument("--max-error", type=float, default=MAX_ALLOWED_ERROR, help="Largest accepted error")
    v.add_argument("--seed", type=int, default=None)

    s = sub.add_parser("sweep", help="Simulator statistics over a grid of scan ratios (CSV)")
    s.add_argument("--output", type=Path, default=Path("simStatsFig8.csv"), help="CSV output path")
    s.add_argument("--samples", type=_positive_int, default=100, help="Repetitions per grid point")
    s.add_argument("--runs", type=_positive_int, default=1_000_000, help="Simulator runs per repetition")
    s.add_argument("--channel-counts", nargs="+", type=_positive_int, default=[4, 8, 12, 16])
    s.add_argument("--seed", type=int, default=None)
    return parser


def _emit(payload: dict, output: Path | None) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")


def _report(args: argparse.Namespace) -> dict:
    params = load_parameters(args.params)
    model_results = model.calculate(params)
    sim_results = None
    num_samples = None
    if args.command == "compare":
        num_samples = args.samples
        sim_results = simulator.run(params, num_samples, seed=args.seed)
    report = build_comparison_report(
        params,
        model.timing_case(params),
        model_results,
        sim_results,
        num_samples=num_samples,
        cdf_steps=args.cdf_steps,
    )
    return report.model_dump(mode="json")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.command in {"compare", "model"}:
            _emit(_report(args), args.output)
        elif args.command == "validate":
            with StatisticsStore(args.db) as store:
                verdict = validate_model(
                    num_cases=args.cases,
                    num_samples=args.samples,
                    workers=args.workers,
                    store=store,
                    max_error=args.max_error,
                    seed=args.seed,
                )
            print(json.dumps({"verdict": verdict.name, "code": int(verdict)}))
        else:
            rows = scan_ratio_sweep(
                channel_counts=args.channel_counts,
                num_samples=args.samples,
                runs_per_sample=args.runs,
                seed=args.seed,
            )
            written = write_sweep_csv(rows, args.output)
            print(f"wrote {written} rows to {args.output}")
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
