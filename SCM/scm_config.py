from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class _RunConfig:
    """
    User-controlled parameters of a file-level matching run.
    """

    algorithm: str
    strategy: str
    seed: int
    score_min: int
    score_max: int
    sanity_checks: bool
    progress: bool
