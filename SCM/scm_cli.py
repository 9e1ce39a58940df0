from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .scm_api import compare_policies, run_school_choice
from .scm_domain import ALGORITHMS, STRATEGIES, RunResult
from .scm_io import (
    _write_metrics_extended_csv,
    _write_preference_stats_csv,
    _write_results_csv,
    _write_summary_csv,
    _write_trace_csv,
)

LOG = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="School choice matching: baseline (current system) vs deferred acceptance",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument(
        "--students",
        type=Path,
        default=None,
        help="CSV with StudentID, Score (omit to generate scores from --seed)",
    )
    p.add_argument("--preferences", type=Path, default=Path("tables/preferences.csv"))
    p.add_argument("--schools", type=Path, default=Path("tables/schools.csv"))
    p.add_argument(
        "--algorithm",
        choices=list(ALGORITHMS),
        default=None,
        help="Policy for a single run; baseline when omitted. Not allowed with --compare",
    )
    p.add_argument(
        "--strategy",
        choices=list(STRATEGIES),
        default="none",
        help="Preference truncation applied before baseline matching",
    )
    p.add_argument(
        "--compare",
        action="store_true",
        help="Run baseline (with --strategy) and DA on the same data; outputs get a policy suffix",
    )
    p.add_argument("--seed", type=int, default=42, help="Seed for generated scores (e.g. the session id)")
    p.add_argument("--score-min", type=int, default=0)
    p.add_argument("--score-max", type=int, default=100)
    p.add_argument("--out-results", type=Path, default=Path("results.csv"))
    p.add_argument("--out-trace", type=Path, default=Path("trace.csv"))
    p.add_argument("--out-summary", type=Path, default=Path("summary.csv"))
    p.add_argument("--out-preference-stats", type=Path, default=Path("preference_stats.csv"))
    p.add_argument(
        "--out-metrics-extended",
        type=Path,
        default=Path("metrics_extended.csv"),
        help="CSV with extended metrics",
    )
    p.add_argument(
        "--sanity-checks",
        action="store_true",
        help="Assert capacity, membership and (for DA) stability after the run",
    )
    p.add_argument("--progress", action="store_true", help="Print per-round progress")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity",
    )
    args = p.parse_args()
    if args.compare and args.algorithm is not None:
        p.error("--algorithm cannot be combined with --compare, which runs both policies")
    if args.algorithm is None:
        args.algorithm = "baseline"
    return args


def _suffixed(path: Path, suffix: str | None) -> Path:
    if suffix is None:
        return path
    return path.with_name(f"{path.stem}_{suffix}{path.suffix}")


def _write_outputs(args: argparse.Namespace, result: RunResult, *, suffix: str | None) -> None:
    outcome = result.outcome
    out_results = _suffixed(args.out_results, suffix)

    _write_results_csv(out_results, results=outcome.results, students=result.students)
    _write_trace_csv(_suffixed(args.out_trace, suffix), trace=outcome.trace)
    _write_summary_csv(
        _suffixed(args.out_summary, suffix),
        algorithm=result.algorithm,
        strategy=result.strategy,
        seed=args.seed,
        summary=outcome.summary,
    )
    _write_preference_stats_csv(_suffixed(args.out_preference_stats, suffix), summary=outcome.summary)
    _write_metrics_extended_csv(
        _suffixed(args.out_metrics_extended, suffix),
        metrics=result.metrics_extended,
    )

    print(f"OK: {out_results} ({len(outcome.results)} students, {len(outcome.trace)} trace steps)")
    print(
        f"Metrics [{result.algorithm}]: "
        f"MatchRate={outcome.summary.match_rate:.2f}% "
        f"FirstChoiceRate={outcome.summary.first_choice_rate:.2f}% "
        f"Unmatched={outcome.summary.unmatched_count} "
        f"BlockingPairs={int(result.metrics_extended.values['blocking_pairs'])}"
    )


def main() -> int:
    args = _parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level))
    LOG.debug("Starting run with args=%s", args)

    if args.compare:
        runs = compare_policies(
            args.students,
            args.preferences,
            args.schools,
            seed=args.seed,
            strategy=args.strategy,
            score_min=args.score_min,
            score_max=args.score_max,
            sanity_checks=args.sanity_checks,
            progress=args.progress,
        )
        for algorithm, result in runs.items():
            _write_outputs(args, result, suffix=algorithm)
        return 0

    result = run_school_choice(
        args.students,
        args.preferences,
        args.schools,
        algorithm=args.algorithm,
        strategy=args.strategy,
        seed=args.seed,
        score_min=args.score_min,
        score_max=args.score_max,
        sanity_checks=args.sanity_checks,
        progress=args.progress,
    )
    _write_outputs(args, result, suffix=None)
    return 0
