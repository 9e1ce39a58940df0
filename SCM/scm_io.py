from __future__ import annotations

import csv
from pathlib import Path
from typing import Sequence

from .scm_domain import (
    ExtendedMetrics,
    MatchingSummary,
    MatchResult,
    PreferenceRow,
    School,
    Student,
    StudentRow,
    TraceStep,
)
from .scm_metrics import matched_rank


def _read_students(path: Path) -> list[StudentRow]:
    """Read the students CSV (StudentID, Score); a blank Score means no score on record."""

    rows: list[StudentRow] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        required = {"StudentID"}
        fieldnames = set(reader.fieldnames or [])
        if reader.fieldnames is None or not required.issubset(fieldnames):
            raise ValueError(f"Students CSV needs columns: {sorted(required)} (file: {path})")
        has_score = "Score" in fieldnames
        for r in reader:
            score_raw = str(r.get("Score") or "").strip() if has_score else ""
            rows.append(
                StudentRow(
                    student_id=int(r["StudentID"]),
                    score=float(score_raw) if score_raw != "" else None,
                )
            )
    return rows


def _read_preferences(path: Path) -> list[PreferenceRow]:
    """Read the preferences CSV (StudentID, SchoolID, Position) into typed records."""

    rows: list[PreferenceRow] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        required = {"StudentID", "SchoolID", "Position"}
        if reader.fieldnames is None or not required.issubset(set(reader.fieldnames)):
            raise ValueError(f"Preferences CSV needs columns: {sorted(required)} (file: {path})")
        for r in reader:
            rows.append(
                PreferenceRow(
                    student_id=int(r["StudentID"]),
                    school_id=int(r["SchoolID"]),
                    position=int(r["Position"]),
                )
            )
    return rows


def _read_schools(path: Path) -> list[School]:
    """Read the schools CSV (SchoolID, Capacity)."""

    rows: list[School] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        required = {"SchoolID", "Capacity"}
        if reader.fieldnames is None or not required.issubset(set(reader.fieldnames)):
            raise ValueError(f"Schools CSV needs columns: {sorted(required)} (file: {path})")
        for r in reader:
            rows.append(School(id=int(r["SchoolID"]), capacity=int(r["Capacity"])))
    return rows


def _write_results_csv(
    path: Path,
    *,
    results: Sequence[MatchResult],
    students: Sequence[Student],
) -> None:
    """
    Write one row per student with the matched school and its original preference order.
    """

    by_id = {s.id: s for s in students}
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["StudentID", "SchoolID", "MatchedPreference"])
        for r in results:
            student = by_id.get(r.student_id)
            rank = matched_rank(student, r.school_id) if student is not None else None
            writer.writerow(
                [
                    r.student_id,
                    ("" if r.school_id is None else r.school_id),
                    ("" if rank is None else rank),
                ]
            )


def _write_trace_csv(path: Path, *, trace: Sequence[TraceStep]) -> None:
    """
    Write the chronological trace; Step preserves the original event order.
    """

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["Step", "Round", "StudentID", "SchoolID", "Action", "Reason"])
        for index, step in enumerate(trace):
            writer.writerow(
                [
                    index,
                    step.round,
                    step.student_id,
                    step.school_id,
                    step.action,
                    (step.reason or ""),
                ]
            )


def _write_summary_csv(
    path: Path,
    *,
    algorithm: str,
    strategy: str,
    seed: int,
    summary: MatchingSummary,
) -> None:
    """
    Write a one-row summary CSV.
    """

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(
            [
                "algorithm",
                "strategy",
                "seed",
                "total_students",
                "matched_students",
                "unmatched_count",
                "match_rate",
                "first_choice_rate",
            ]
        )
        writer.writerow(
            [
                algorithm,
                strategy,
                seed,
                summary.total_students,
                summary.matched_students,
                summary.unmatched_count,
                f"{summary.match_rate:.6f}",
                f"{summary.first_choice_rate:.6f}",
            ]
        )


def _write_preference_stats_csv(path: Path, *, summary: MatchingSummary) -> None:
    """
    Write matched counts and rates per preference order (1-based).
    """

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["PreferenceOrder", "MatchedCount", "MatchedRate"])
        for index, count in enumerate(summary.preference_stats):
            writer.writerow([index + 1, count, f"{summary.preference_rates[index]:.6f}"])


def _write_metrics_extended_csv(
    path: Path,
    *,
    metrics: ExtendedMetrics,
) -> None:
    """
    Write extended metrics as a one-row CSV.
    """

    keys = list(metrics.values.keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(keys)
        writer.writerow([f"{metrics.values[k]:.6f}" for k in keys])
