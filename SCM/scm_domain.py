from __future__ import annotations

from dataclasses import dataclass

ALGORITHMS = ("baseline", "da")
STRATEGIES = ("none", "safety-first")

PROPOSE = "propose"
HOLD = "hold"
REJECT = "reject"
FINALIZE = "finalize"

MIN_PREFERENCE_SLOTS = 5


@dataclass(frozen=True)
class Student:
    """An applicant with an exam score and a ranked list of school ids (index 0 = first choice)."""

    id: int
    score: float
    preferences: tuple[int, ...]


@dataclass(frozen=True)
class School:
    """A school and its number of seats."""

    id: int
    capacity: int


@dataclass(frozen=True)
class MatchResult:
    """Final assignment of one student; `school_id` is None when unmatched."""

    student_id: int
    school_id: int | None


@dataclass(frozen=True)
class TraceStep:
    """One chronological event of a matching run (propose / hold / reject / finalize)."""

    round: int
    student_id: int
    school_id: int
    action: str
    reason: str | None = None


@dataclass(frozen=True)
class MatchingSummary:
    """
    Aggregated statistics over a set of assignments.

    `preference_stats[i]` counts students matched to their (i+1)-th choice;
    `preference_rates` holds the same counts as percentages of `total_students`.
    """

    total_students: int
    matched_students: int
    unmatched_count: int
    match_rate: float
    preference_stats: tuple[int, ...]
    preference_rates: tuple[float, ...]
    first_choice_rate: float


@dataclass(frozen=True)
class MatchingOutcome:
    """Results, summary and trace of a single matching run."""

    results: list[MatchResult]
    summary: MatchingSummary
    trace: list[TraceStep]


@dataclass(frozen=True)
class StudentRow:
    """A row of the students table; `score` is None when no exam score is on record."""

    student_id: int
    score: float | None


@dataclass(frozen=True)
class PreferenceRow:
    """A row of the preferences table (Position 1 is the first choice)."""

    student_id: int
    school_id: int
    position: int


@dataclass(frozen=True)
class ExtendedMetrics:
    """Additional metrics for deeper analysis (exported to metrics_extended CSV)."""

    values: dict[str, float]


@dataclass(frozen=True)
class RunResult:
    """
    Outputs of a file-level run.

    `students` carries the scores actually used (loaded or generated).
    `strategic_students` holds the truncated lists fed to the matcher when the
    safety-first strategy was applied, otherwise None.
    """

    algorithm: str
    strategy: str
    students: list[Student]
    strategic_students: list[Student] | None
    outcome: MatchingOutcome
    metrics_extended: ExtendedMetrics
