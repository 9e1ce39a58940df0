#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence


@dataclass(frozen=True)
class StudentsRow:
    student_id: int
    score: int | None


@dataclass(frozen=True)
class PreferencesRow:
    student_id: int
    school_id: int
    position: int


@dataclass(frozen=True)
class SchoolsRow:
    school_id: int
    capacity: int


def _prompt_positive_int(prompt: str) -> int:
    while True:
        raw = input(prompt).strip()
        try:
            value = int(raw)
        except ValueError:
            print("Enter an integer.")
            continue
        if value <= 0:
            print("The number must be > 0.")
            continue
        return value


def _soft_score_weights(score_min: int, score_max: int) -> list[int]:
    """
    "Soft" distribution: more probability mass in the middle of the scale.
    For the scale 1..5 this gives [1, 3, 5, 3, 1].
    """
    values = list(range(score_min, score_max + 1))
    mid = (score_min + score_max) / 2.0
    weights: list[int] = []
    for v in values:
        dist = abs(v - mid)
        weights.append(int(round((score_max - score_min) - dist)) + 1)
    return [max(1, w) for w in weights]


def _school_popularity(rng: random.Random, school_ids: Sequence[int], *, skew: float) -> list[float]:
    """
    Zipf-like popularity: the school at (shuffled) rank r gets weight 1 / r**skew.
    skew = 0 makes every school equally attractive.
    """
    order = list(school_ids)
    rng.shuffle(order)
    weight_by_id = {school_id: 1.0 / ((rank + 1) ** skew) for rank, school_id in enumerate(order)}
    return [weight_by_id[school_id] for school_id in school_ids]


def _weighted_sample(
    rng: random.Random,
    items: Sequence[int],
    weights: Sequence[float],
    k: int,
) -> list[int]:
    """Sample k distinct items, drawing each next item proportionally to its weight."""
    pool = list(items)
    pool_weights = list(weights)
    chosen: list[int] = []
    for _ in range(min(k, len(pool))):
        idx = rng.choices(range(len(pool)), weights=pool_weights, k=1)[0]
        chosen.append(pool.pop(idx))
        pool_weights.pop(idx)
    return chosen


def generate_students(
    student_ids: Sequence[int],
    rng: random.Random,
    *,
    score_min: int,
    score_max: int,
    with_scores: bool,
) -> list[StudentsRow]:
    values = list(range(score_min, score_max + 1))
    weights = _soft_score_weights(score_min, score_max)
    return [
        StudentsRow(
            student_id=student_id,
            score=(rng.choices(values, weights=weights, k=1)[0] if with_scores else None),
        )
        for student_id in student_ids
    ]


def generate_preferences(
    student_ids: Sequence[int],
    school_ids: Sequence[int],
    rng: random.Random,
    *,
    choices: int,
    skew: float,
) -> list[PreferencesRow]:
    popularity = _school_popularity(rng, school_ids, skew=skew)
    rows: list[PreferencesRow] = []
    for student_id in student_ids:
        picked = _weighted_sample(rng, school_ids, popularity, choices)
        for position, school_id in enumerate(picked, start=1):
            rows.append(PreferencesRow(student_id=student_id, school_id=school_id, position=position))
    return rows


def generate_schools(
    school_ids: Sequence[int],
    rng: random.Random,
    *,
    capacity_min: int,
    capacity_max: int,
) -> list[SchoolsRow]:
    return [
        SchoolsRow(school_id=school_id, capacity=rng.randint(capacity_min, capacity_max))
        for school_id in school_ids
    ]


def _validate_preferences(rows: Sequence[PreferencesRow], *, choices: int) -> None:
    seen: set[tuple[int, int]] = set()
    positions_by_student: dict[int, set[int]] = {}
    for r in rows:
        key = (r.student_id, r.school_id)
        if key in seen:
            raise ValueError(f"Preferences duplicate key: {key}")
        seen.add(key)
        positions_by_student.setdefault(r.student_id, set()).add(r.position)

    for student_id, positions in positions_by_student.items():
        expected = set(range(1, len(positions) + 1))
        if positions != expected or len(positions) > choices:
            raise ValueError(f"Preferences positions invalid for {student_id}: {sorted(positions)}")


def _validate_schools(rows: Sequence[SchoolsRow]) -> None:
    seen: set[int] = set()
    for r in rows:
        if r.school_id in seen:
            raise ValueError(f"Schools duplicate id: {r.school_id}")
        seen.add(r.school_id)
        if r.capacity < 0:
            raise ValueError(f"Schools negative capacity: {r.capacity} for {r.school_id}")


def _write_csv_students(path: Path, rows: Sequence[StudentsRow]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["StudentID", "Score"])
        for r in rows:
            writer.writerow([r.student_id, ("" if r.score is None else r.score)])


def _write_csv_preferences(path: Path, rows: Sequence[PreferencesRow]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["StudentID", "SchoolID", "Position"])
        for r in rows:
            writer.writerow([r.student_id, r.school_id, r.position])


def _write_csv_schools(path: Path, rows: Sequence[SchoolsRow]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["SchoolID", "Capacity"])
        for r in rows:
            writer.writerow([r.school_id, r.capacity])


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description=(
            "Generator of three CSV tables:\n"
            "1) Students (StudentID, Score)\n"
            "2) Preferences (StudentID, SchoolID, Position=1..C)\n"
            "3) Schools (SchoolID, Capacity)\n"
        )
    )
    p.add_argument("--students", type=int, help="Number of students (N)")
    p.add_argument("--schools", type=int, help="Number of schools (K)")
    p.add_argument("--choices", type=int, default=5, help="Preference list length per student")
    p.add_argument("--seed", type=int, default=None, help="Seed for reproducibility")
    p.add_argument("--score-min", type=int, default=0)
    p.add_argument("--score-max", type=int, default=100)
    p.add_argument(
        "--no-scores",
        action="store_true",
        help="Leave Score blank so the matcher generates scores from its seed",
    )
    p.add_argument("--capacity-min", type=int, default=1)
    p.add_argument("--capacity-max", type=int, default=5)
    p.add_argument(
        "--popularity-skew",
        type=float,
        default=1.0,
        help="Zipf exponent of school popularity (0 = uniform)",
    )
    p.add_argument("--out-students", type=Path, default=Path("tables/students.csv"))
    p.add_argument("--out-preferences", type=Path, default=Path("tables/preferences.csv"))
    p.add_argument("--out-schools", type=Path, default=Path("tables/schools.csv"))
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    n_students = args.students if args.students is not None else _prompt_positive_int("Number of students (N): ")
    n_schools = args.schools if args.schools is not None else _prompt_positive_int("Number of schools (K): ")

    if args.score_min >= args.score_max:
        raise SystemExit("--score-min must be less than --score-max")
    if args.choices <= 0:
        raise SystemExit("--choices must be > 0")
    if args.capacity_min < 0 or args.capacity_min > args.capacity_max:
        raise SystemExit("--capacity-min must be in 0..--capacity-max")
    if args.popularity_skew < 0.0:
        raise SystemExit("--popularity-skew must be >= 0")

    student_ids = list(range(1, n_students + 1))
    school_ids = list(range(1, n_schools + 1))

    rng = random.Random(args.seed)

    students = generate_students(
        student_ids,
        rng,
        score_min=args.score_min,
        score_max=args.score_max,
        with_scores=not args.no_scores,
    )
    preferences = generate_preferences(
        student_ids,
        school_ids,
        rng,
        choices=args.choices,
        skew=args.popularity_skew,
    )
    schools = generate_schools(
        school_ids,
        rng,
        capacity_min=args.capacity_min,
        capacity_max=args.capacity_max,
    )

    _validate_preferences(preferences, choices=args.choices)
    _validate_schools(schools)

    for path in (args.out_students, args.out_preferences, args.out_schools):
        path.parent.mkdir(parents=True, exist_ok=True)
    _write_csv_students(args.out_students, students)
    _write_csv_preferences(args.out_preferences, preferences)
    _write_csv_schools(args.out_schools, schools)

    print(f"Done: {args.out_students} ({len(students)} rows)")
    print(f"Done: {args.out_preferences} ({len(preferences)} rows)")
    print(f"Done: {args.out_schools} ({len(schools)} rows)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
