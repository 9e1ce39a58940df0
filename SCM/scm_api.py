from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Sequence

from .scm_config import _RunConfig
from .scm_domain import (
    ALGORITHMS,
    STRATEGIES,
    MatchingOutcome,
    PreferenceRow,
    RunResult,
    School,
    Student,
    StudentRow,
)
from .scm_engine import _BaselineEngine, _DeferredAcceptanceEngine
from .scm_io import _read_preferences, _read_schools, _read_students
from .scm_metrics import compute_extended_metrics, summarize_results
from .scm_scores import generate_random_scores
from .scm_strategy import apply_safety_first_strategy

LOG = logging.getLogger(__name__)


def run_matching(
    algorithm: str,
    students: Sequence[Student],
    schools: Sequence[School],
    *,
    rank_students: Sequence[Student] | None = None,
    sanity_checks: bool = False,
    progress: bool = False,
) -> MatchingOutcome:
    """
    Run one allocation policy and package results, summary and trace.

    "da" runs deferred acceptance on the students as given; it is strategy-proof,
    so no truncation is ever applied here. "baseline" runs the merit-order
    matcher on the students as given; callers wanting the realistic current-system
    comparison apply `apply_safety_first_strategy` first and pass the original
    students as `rank_students`, so the summary counts ranks on the original lists.
    """

    if algorithm == "da":
        engine_cls = _DeferredAcceptanceEngine
    elif algorithm == "baseline":
        engine_cls = _BaselineEngine
    else:
        raise ValueError(f"Unknown algorithm: {algorithm!r} (expected one of {ALGORITHMS})")

    engine = engine_cls(
        students=students,
        schools=schools,
        sanity_checks=sanity_checks,
        progress=progress,
    )
    results, trace = engine.run()
    summary = summarize_results(results, rank_students if rank_students is not None else students)
    return MatchingOutcome(results=results, summary=summary, trace=trace)


def _build_students(
    student_rows: Sequence[StudentRow],
    preference_rows: Sequence[PreferenceRow],
    *,
    seed: int,
    score_min: int,
    score_max: int,
) -> list[Student]:
    """
    Join the students and preferences tables into Student records (sorted by id).

    If no score is on record for anyone, scores are generated from `seed` so that
    repeated runs on the same dataset see identical scores.
    """

    by_student: dict[int, list[PreferenceRow]] = {}
    for row in preference_rows:
        by_student.setdefault(row.student_id, []).append(row)

    scores: dict[int, float] = {}
    seen: set[int] = set()
    for row in student_rows:
        if row.student_id in seen:
            raise ValueError(f"Duplicate student id: {row.student_id}")
        seen.add(row.student_id)
        if row.score is not None:
            scores[row.student_id] = row.score

    student_ids = sorted({r.student_id for r in student_rows} | set(by_student))
    if not scores:
        LOG.info("No scores on record; generating scores with seed=%d", seed)
        scores.update(generate_random_scores(student_ids, score_min, score_max, seed))
    else:
        missing = [sid for sid in student_ids if sid not in scores]
        if missing:
            LOG.warning("No score on record for %d students; using 0 for %s", len(missing), missing)

    students: list[Student] = []
    for student_id in student_ids:
        rows = sorted(by_student.get(student_id, []), key=lambda r: r.position)
        prefs = tuple(r.school_id for r in rows)
        if len(set(prefs)) != len(prefs):
            raise ValueError(f"Duplicate preference entries for student {student_id}: {prefs}")
        positions = [r.position for r in rows]
        if len(set(positions)) != len(positions):
            raise ValueError(f"Duplicate preference positions for student {student_id}: {positions}")
        students.append(Student(id=student_id, score=scores.get(student_id, 0), preferences=prefs))
    return students


def _validate_snapshot(students: Sequence[Student], schools: Sequence[School]) -> None:
    seen: set[int] = set()
    for school in schools:
        if school.id in seen:
            raise ValueError(f"Duplicate school id: {school.id}")
        seen.add(school.id)
        if school.capacity < 0:
            raise ValueError(f"Capacity must be >= 0, got {school.capacity} for school {school.id}")
    for student in students:
        if not math.isfinite(student.score):
            raise ValueError(f"Score must be finite, got {student.score} for student {student.id}")
        unknown = [c for c in student.preferences if c not in seen]
        if unknown:
            LOG.warning("Student %s lists unknown schools %s", student.id, unknown)


def _run_config(
    *,
    algorithm: str,
    strategy: str,
    seed: int,
    score_min: int,
    score_max: int,
    sanity_checks: bool,
    progress: bool,
) -> _RunConfig:
    if algorithm not in ALGORITHMS:
        raise ValueError(f"algorithm must be one of: {', '.join(ALGORITHMS)}")
    if strategy not in STRATEGIES:
        raise ValueError(f"strategy must be one of: {', '.join(STRATEGIES)}")
    if algorithm == "da" and strategy != "none":
        raise ValueError("strategy applies to baseline only; DA is strategy-proof")
    if score_max < score_min:
        raise ValueError("score_max must be >= score_min")
    return _RunConfig(
        algorithm=algorithm,
        strategy=strategy,
        seed=seed,
        score_min=score_min,
        score_max=score_max,
        sanity_checks=sanity_checks,
        progress=progress,
    )


def _load_snapshot(
    csv_students: Path | None,
    csv_preferences: Path,
    csv_schools: Path,
    *,
    config: _RunConfig,
) -> tuple[list[Student], list[School]]:
    student_rows = _read_students(csv_students) if csv_students is not None else []
    preference_rows = _read_preferences(csv_preferences)
    schools = _read_schools(csv_schools)
    students = _build_students(
        student_rows,
        preference_rows,
        seed=config.seed,
        score_min=config.score_min,
        score_max=config.score_max,
    )
    _validate_snapshot(students, schools)
    return students, schools


def _run_snapshot(students: list[Student], schools: list[School], *, config: _RunConfig) -> RunResult:
    strategic: list[Student] | None = None
    matched_students: Sequence[Student] = students
    if config.strategy == "safety-first":
        strategic = apply_safety_first_strategy(students, schools)
        matched_students = strategic

    LOG.debug(
        "Running %s (strategy=%s) on %d students / %d schools",
        config.algorithm,
        config.strategy,
        len(students),
        len(schools),
    )
    outcome = run_matching(
        config.algorithm,
        matched_students,
        schools,
        rank_students=students,
        sanity_checks=config.sanity_checks,
        progress=config.progress,
    )
    return RunResult(
        algorithm=config.algorithm,
        strategy=config.strategy,
        students=students,
        strategic_students=strategic,
        outcome=outcome,
        metrics_extended=compute_extended_metrics(outcome, students, schools),
    )


def run_school_choice(
    csv_students: Path | None,
    csv_preferences: Path,
    csv_schools: Path,
    *,
    algorithm: str,
    seed: int,
    strategy: str = "none",
    score_min: int = 0,
    score_max: int = 100,
    sanity_checks: bool = False,
    progress: bool = False,
) -> RunResult:
    """
    Public API function: run a single matching from CSV tables.

    This is a thin orchestration layer:
      - Validates parameters
      - Loads CSV inputs and builds the student/school snapshot
      - Optionally applies the safety-first strategy (baseline only)
      - Runs the matcher and computes metrics

    `csv_students` may be None, in which case every score is generated from `seed`.
    """

    config = _run_config(
        algorithm=algorithm,
        strategy=strategy,
        seed=seed,
        score_min=score_min,
        score_max=score_max,
        sanity_checks=sanity_checks,
        progress=progress,
    )
    students, schools = _load_snapshot(csv_students, csv_preferences, csv_schools, config=config)
    return _run_snapshot(students, schools, config=config)


def compare_policies(
    csv_students: Path | None,
    csv_preferences: Path,
    csv_schools: Path,
    *,
    seed: int,
    strategy: str = "safety-first",
    score_min: int = 0,
    score_max: int = 100,
    sanity_checks: bool = False,
    progress: bool = False,
) -> dict[str, RunResult]:
    """
    Run baseline (with `strategy`) and DA on the same snapshot and scores.
    """

    baseline_config = _run_config(
        algorithm="baseline",
        strategy=strategy,
        seed=seed,
        score_min=score_min,
        score_max=score_max,
        sanity_checks=sanity_checks,
        progress=progress,
    )
    da_config = _run_config(
        algorithm="da",
        strategy="none",
        seed=seed,
        score_min=score_min,
        score_max=score_max,
        sanity_checks=sanity_checks,
        progress=progress,
    )
    students, schools = _load_snapshot(csv_students, csv_preferences, csv_schools, config=baseline_config)
    return {
        "baseline": _run_snapshot(students, schools, config=baseline_config),
        "da": _run_snapshot(students, schools, config=da_config),
    }
