from __future__ import annotations

import logging
from typing import Sequence

from .scm_domain import (
    FINALIZE,
    HOLD,
    PROPOSE,
    REJECT,
    MatchResult,
    School,
    Student,
    TraceStep,
)
from .scm_metrics import find_blocking_pairs, priority_key

LOG = logging.getLogger(__name__)

DEFAULT_PROPOSAL_REASON = "applies in preference order"
REASON_SEAT_AVAILABLE = "seat available"
REASON_CAPACITY_FULL = "capacity full"
REASON_NO_SCHOOL_DATA = "no school data"
REASON_HELD = "held within capacity"
REASON_DISPLACED = "displaced by higher priority"
REASON_FINAL = "final assignment"


class _MatchingEngine:
    """
    Shared state and invariant checks for a single matching run.

    An engine instance is built per call and discarded afterwards; nothing is
    shared between runs.
    """

    def __init__(
        self,
        *,
        students: Sequence[Student],
        schools: Sequence[School],
        sanity_checks: bool = False,
        progress: bool = False,
    ) -> None:
        self._students = list(students)
        self._schools = list(schools)
        self._sanity_checks = sanity_checks
        self._progress = progress
        self._school_by_id: dict[int, School] = {c.id: c for c in self._schools}
        self._trace: list[TraceStep] = []

    def _log(self, round_: int, student_id: int, school_id: int, action: str, reason: str | None) -> None:
        self._trace.append(
            TraceStep(round=round_, student_id=student_id, school_id=school_id, action=action, reason=reason)
        )

    # ---- Invariants ----------------------------------------------------

    def _assert_capacity(self, results: Sequence[MatchResult]) -> None:
        assigned: dict[int, int] = {}
        for r in results:
            if r.school_id is not None:
                assigned[r.school_id] = assigned.get(r.school_id, 0) + 1
        for school_id, count in assigned.items():
            school = self._school_by_id.get(school_id)
            capacity = school.capacity if school is not None else 0
            if count > capacity:
                raise AssertionError(f"Capacity exceeded for {school_id}: {count} > {capacity}")

    def _assert_membership(self, results: Sequence[MatchResult]) -> None:
        prefs = {s.id: s.preferences for s in self._students}
        if len(results) != len(prefs):
            raise AssertionError(f"Expected {len(prefs)} results, got {len(results)}")
        for r in results:
            if r.school_id is not None and r.school_id not in prefs.get(r.student_id, ()):
                raise AssertionError(f"Student {r.student_id} matched outside their list: {r.school_id}")

    def _check(self, results: Sequence[MatchResult]) -> None:
        if not self._sanity_checks:
            return
        self._assert_capacity(results)
        self._assert_membership(results)


class _BaselineEngine(_MatchingEngine):
    """
    Single-pass merit-order assignment (the "current system").

    Students are processed by priority; each takes the first listed school that
    still has a seat. Seats are never given back, so a later student cannot
    displace an earlier one.
    """

    def __init__(self, *, proposal_reason: str = DEFAULT_PROPOSAL_REASON, **kwargs) -> None:
        super().__init__(**kwargs)
        self._proposal_reason = proposal_reason

    def run(self) -> tuple[list[MatchResult], list[TraceStep]]:
        capacity_left = {c.id: c.capacity for c in self._schools}
        results: list[MatchResult] = []

        for student in sorted(self._students, key=priority_key):
            matched: int | None = None
            for school_id in student.preferences:
                self._log(1, student.id, school_id, PROPOSE, self._proposal_reason)
                remaining = capacity_left.get(school_id, 0)
                if remaining > 0:
                    capacity_left[school_id] = remaining - 1
                    matched = school_id
                    self._log(1, student.id, school_id, FINALIZE, REASON_SEAT_AVAILABLE)
                    break
                self._log(1, student.id, school_id, REJECT, REASON_CAPACITY_FULL)
            results.append(MatchResult(student_id=student.id, school_id=matched))

        if self._progress:
            matched_count = sum(1 for r in results if r.school_id is not None)
            print(f"Baseline: {matched_count}/{len(results)} matched", flush=True)
        self._check(results)
        return results, self._trace


class _DeferredAcceptanceEngine(_MatchingEngine):
    """
    Student-proposing deferred acceptance (Gale-Shapley) with score priority.

    State per run:
      - next choice index per student (only ever increases)
      - matched school per student (single source of truth for "held")
      - held students per school (never more than capacity)

    Each round, every unmatched student with choices left proposes once. The
    school re-ranks its holds plus the proposer and rejects everyone past its
    capacity, which may displace a previously held student. Rounds repeat until
    one makes no proposal, then all holds are finalized.
    """

    def run(self) -> tuple[list[MatchResult], list[TraceStep]]:
        rank = {s.id: i for i, s in enumerate(sorted(self._students, key=priority_key))}
        next_choice = {s.id: 0 for s in self._students}
        matched: dict[int, int | None] = {s.id: None for s in self._students}
        holds: dict[int, list[int]] = {c.id: [] for c in self._schools}

        round_ = 1
        progressed = True
        while progressed:
            progressed = False
            proposals = 0

            for student in self._students:
                if matched[student.id] is not None:
                    continue
                index = next_choice[student.id]
                if index >= len(student.preferences):
                    continue

                progressed = True
                proposals += 1
                school_id = student.preferences[index]
                next_choice[student.id] = index + 1
                self._log(round_, student.id, school_id, PROPOSE, f"applies to choice #{index + 1}")

                school = self._school_by_id.get(school_id)
                if school is None:
                    self._log(round_, student.id, school_id, REJECT, REASON_NO_SCHOOL_DATA)
                    continue

                candidates = sorted(holds[school_id] + [student.id], key=rank.__getitem__)
                capacity = max(school.capacity, 0)
                kept = candidates[:capacity]
                rejected = candidates[capacity:]
                holds[school_id] = kept

                for student_id in kept:
                    matched[student_id] = school_id
                    self._log(round_, student_id, school_id, HOLD, REASON_HELD)
                for student_id in rejected:
                    matched[student_id] = None
                    # The proposer was never held, so it is turned away rather than displaced.
                    reason = REASON_CAPACITY_FULL if student_id == student.id else REASON_DISPLACED
                    self._log(round_, student_id, school_id, REJECT, reason)

            if self._progress and progressed:
                print(f"Round {round_}: {proposals} proposals", flush=True)
            LOG.debug("DA round %d: %d proposals", round_, proposals)
            round_ += 1

        results = [MatchResult(student_id=s.id, school_id=matched[s.id]) for s in self._students]
        for r in results:
            if r.school_id is not None:
                self._log(round_, r.student_id, r.school_id, FINALIZE, REASON_FINAL)

        self._check(results)
        if self._sanity_checks:
            blocking = find_blocking_pairs(results, self._students, self._schools)
            if blocking:
                raise AssertionError(f"Unstable matching, blocking pairs: {blocking}")
        return results, self._trace
