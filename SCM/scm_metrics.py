from __future__ import annotations

from typing import Sequence

from .scm_domain import (
    MIN_PREFERENCE_SLOTS,
    PROPOSE,
    REJECT,
    ExtendedMetrics,
    MatchingOutcome,
    MatchingSummary,
    MatchResult,
    School,
    Student,
)


def priority_key(student: Student) -> tuple[float, int]:
    """School priority shared by every matcher: higher score first, then lower id."""

    return (-student.score, student.id)


def _percent(count: int, total: int) -> float:
    return (count / total) * 100 if total > 0 else 0.0


def summarize_results(results: Sequence[MatchResult], students: Sequence[Student]) -> MatchingSummary:
    """
    Aggregate assignments into match-rate and per-rank statistics.

    Ranks are looked up in `students`' preference lists, so pass the original
    (non-truncated) students when summarizing a strategic baseline run.
    """

    total_students = len(results)
    matched_students = sum(1 for r in results if r.school_id is not None)
    unmatched_count = total_students - matched_students

    slots = max([len(s.preferences) for s in students] + [MIN_PREFERENCE_SLOTS])
    stats = [0] * slots
    by_id = {s.id: s for s in students}
    for result in results:
        if result.school_id is None:
            continue
        student = by_id.get(result.student_id)
        if student is None or result.school_id not in student.preferences:
            continue
        stats[student.preferences.index(result.school_id)] += 1

    rates = tuple(_percent(count, total_students) for count in stats)
    return MatchingSummary(
        total_students=total_students,
        matched_students=matched_students,
        unmatched_count=unmatched_count,
        match_rate=_percent(matched_students, total_students),
        preference_stats=tuple(stats),
        preference_rates=rates,
        first_choice_rate=rates[0] if rates else 0.0,
    )


def matched_rank(student: Student, school_id: int | None) -> int | None:
    """1-based rank of `school_id` in the student's list, or None."""

    if school_id is None or school_id not in student.preferences:
        return None
    return student.preferences.index(school_id) + 1


def find_blocking_pairs(
    results: Sequence[MatchResult],
    students: Sequence[Student],
    schools: Sequence[School],
) -> list[tuple[int, int]]:
    """
    Return every (student_id, school_id) pair that blocks the matching.

    A pair blocks when the student ranks the school above their assignment (or is
    unmatched) and the school has a spare seat or holds someone of lower priority.
    """

    assigned = {r.student_id: r.school_id for r in results}
    by_id = {s.id: s for s in students}
    capacity = {c.id: max(c.capacity, 0) for c in schools}
    members: dict[int, list[Student]] = {c.id: [] for c in schools}
    for student_id, school_id in assigned.items():
        if school_id is not None and school_id in members and student_id in by_id:
            members[school_id].append(by_id[student_id])

    pairs: list[tuple[int, int]] = []
    for student in students:
        current = assigned.get(student.id)
        if current is not None and current in student.preferences:
            better = student.preferences[: student.preferences.index(current)]
        else:
            better = student.preferences
        for school_id in better:
            if school_id not in capacity or capacity[school_id] <= 0:
                continue
            held = members[school_id]
            if len(held) < capacity[school_id]:
                pairs.append((student.id, school_id))
                continue
            worst = max(held, key=priority_key)
            if priority_key(student) < priority_key(worst):
                pairs.append((student.id, school_id))
    return sorted(pairs)


def compute_gini_index(values: Sequence[float]) -> float:
    """
    Deterministic Gini index over non-negative values.

    For sorted values x_1..x_n and X = sum(x):
      G = sum_i (2i - n - 1) * x_i / (n * X)    if X > 0
      G = 0                                     if X == 0
    """

    vals = sorted(max(0.0, float(v)) for v in values)
    n = len(vals)
    if n == 0:
        return 0.0
    total = sum(vals)
    if total <= 0.0:
        return 0.0
    numerator = 0.0
    for i, x in enumerate(vals, start=1):
        numerator += (2 * i - n - 1) * x
    return numerator / (n * total)


def rank_utility(rank: int | None, list_length: int) -> float:
    """
    Convert a 1-based matched rank into a [0..1] utility.

    Rank 1 maps to 1, the last choice to 0, unmatched to 0. A single-choice list
    maps rank 1 to 1.
    """

    if rank is None:
        return 0.0
    if list_length <= 1:
        return 1.0 if rank == 1 else 0.0
    return (list_length - rank) / (list_length - 1)


def compute_extended_metrics(
    outcome: MatchingOutcome,
    students: Sequence[Student],
    schools: Sequence[School],
) -> ExtendedMetrics:
    """Secondary statistics of a run; `students` must hold the original preference lists."""

    by_id = {s.id: s for s in students}
    summary = outcome.summary
    total = summary.total_students

    ranks: list[int] = []
    utilities: list[float] = []
    filled: dict[int, int] = {}
    for result in outcome.results:
        student = by_id.get(result.student_id)
        if result.school_id is not None:
            filled[result.school_id] = filled.get(result.school_id, 0) + 1
        if student is None:
            continue
        rank = matched_rank(student, result.school_id)
        if rank is not None:
            ranks.append(rank)
        utilities.append(rank_utility(rank, len(student.preferences)))

    ranks.sort()
    avg_rank = sum(ranks) / len(ranks) if ranks else 0.0
    median_rank = ranks[len(ranks) // 2] if ranks else 0
    top3 = sum(1 for r in ranks if r <= 3)

    seats_total = sum(max(c.capacity, 0) for c in schools)
    seats_filled = sum(filled.get(c.id, 0) for c in schools)
    schools_full = sum(
        1 for c in schools if c.capacity > 0 and filled.get(c.id, 0) >= c.capacity
    )

    rounds = max((step.round for step in outcome.trace if step.action == PROPOSE), default=0)
    proposals = sum(1 for step in outcome.trace if step.action == PROPOSE)
    rejections = sum(1 for step in outcome.trace if step.action == REJECT)

    metrics = {
        "match_rate": summary.match_rate,
        "first_choice_rate": summary.first_choice_rate,
        "top3_rate": _percent(top3, total),
        "avg_matched_rank": avg_rank,
        "median_matched_rank": float(median_rank),
        "seats_total": float(seats_total),
        "seats_filled": float(seats_filled),
        "seat_fill_rate": _percent(seats_filled, seats_total),
        "schools_full": float(schools_full),
        "blocking_pairs": float(len(find_blocking_pairs(outcome.results, students, schools))),
        "rounds": float(rounds),
        "proposals": float(proposals),
        "rejections": float(rejections),
        "gini_rank_utility": compute_gini_index(utilities),
    }
    return ExtendedMetrics(values=metrics)
