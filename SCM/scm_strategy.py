from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Sequence

from .scm_domain import School, Student

LOG = logging.getLogger(__name__)


def _estimate_risk_cutoffs(students: Sequence[Student], schools: Sequence[School]) -> dict[int, float]:
    """
    Estimate each school's admission cutoff from everyone's original lists.

    The cutoff is the capacity-th highest score among students who listed the school
    anywhere. Fewer applicants than seats means everyone qualifies (-inf); a school
    without seats admits no one (+inf).
    """

    interested: dict[int, list[float]] = {}
    for student in students:
        for school_id in student.preferences:
            interested.setdefault(school_id, []).append(student.score)

    cutoffs: dict[int, float] = {}
    for school in schools:
        scores = sorted(interested.get(school.id, []), reverse=True)
        if school.capacity <= 0:
            cutoffs[school.id] = math.inf
        elif len(scores) < school.capacity:
            cutoffs[school.id] = -math.inf
        else:
            cutoffs[school.id] = scores[school.capacity - 1]
    return cutoffs


def apply_safety_first_strategy(students: Sequence[Student], schools: Sequence[School]) -> list[Student]:
    """
    Model risk-averse "choice narrowing" under a single-shot admissions regime.

    Each student drops the choices ranked above the first school whose estimated
    cutoff they reach; if none qualifies, only the last choice is kept. Lists of
    length 0 or 1 are left alone. Returns new Student objects; the input is not
    modified and truncation never feeds back into the cutoffs.
    """

    cutoffs = _estimate_risk_cutoffs(students, schools)

    strategic: list[Student] = []
    for student in students:
        prefs = student.preferences
        if len(prefs) <= 1:
            strategic.append(student)
            continue

        safe_index = len(prefs) - 1
        for index, school_id in enumerate(prefs):
            if student.score >= cutoffs.get(school_id, math.inf):
                safe_index = index
                break

        if safe_index == 0:
            strategic.append(student)
            continue
        LOG.debug(
            "Student %s narrows choices: %s -> %s", student.id, prefs, prefs[safe_index:]
        )
        strategic.append(replace(student, preferences=tuple(prefs[safe_index:])))
    return strategic
