from __future__ import annotations

import math
from typing import Sequence

_HASH_ID_MULT = 12.9898
_HASH_SEED_MULT = 78.233
_HASH_SCALE = 43758.5453


def _hash_unit(value: int, seed: int) -> float:
    """
    Sine-based hash of (value, seed) into [0..1).

    Not cryptographic; only needs to be smooth, cheap and reproducible.
    """

    x = math.sin(value * _HASH_ID_MULT + seed * _HASH_SEED_MULT) * _HASH_SCALE
    return x - math.floor(x)


def generate_random_scores(
    student_ids: Sequence[int],
    score_min: int = 0,
    score_max: int = 100,
    seed: int = 0,
) -> dict[int, int]:
    """
    Deterministic pseudo-random exam scores in [score_min, score_max].

    The result depends only on the arguments, so two comparisons sharing a seed
    (e.g. the session id) see the same scores.
    """

    span = score_max - score_min + 1
    scores: dict[int, int] = {}
    for index, student_id in enumerate(student_ids):
        frac = _hash_unit(student_id + index, seed)
        scores[student_id] = min(math.floor(frac * span) + score_min, score_max)
    return scores
