"""Actual-volume and variance calculation for completed workouts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from cyclecoach.services.muscle_attribution import UNKNOWN_EXERCISE, get_exercise_name, resolve_muscles

PRIMARY_WEIGHT = 1.0
SECONDARY_WEIGHT = 0.5


@dataclass(frozen=True)
class VolumeVariance:
    target: float
    actual: float
    diff: float
    percent: int

    def to_dict(self) -> dict[str, float | int]:
        return {"target": self.target, "actual": self.actual, "diff": self.diff, "percent": self.percent}


def normalize_exercise_name(name: str | None) -> str:
    return (name or "").strip().lower()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_variance(
    target: Mapping[str, float],
    actual: Mapping[str, float],
) -> dict[str, VolumeVariance]:
    """
    Per-muscle comparison for every muscle in `target`.

    Muscles only present in `actual` are not reported.
    """
    variance: dict[str, VolumeVariance] = {}
    for muscle, target_sets in target.items():
        actual_sets = actual.get(muscle, 0)
        diff = actual_sets - target_sets
        percent = _round_half_up(diff / target_sets * 100) if target_sets > 0 else 0
        variance[muscle] = VolumeVariance(
            target=target_sets,
            actual=actual_sets,
            diff=diff,
            percent=percent,
        )
    return variance


def calculate_actual_volume(
    exercises: list[Any] | None,
    set_counts: Mapping[str, int],
) -> dict[str, float]:
    """
    Sum weighted set counts per muscle across a workout's exercises.

    `set_counts` is keyed by normalized exercise name and comes from one bulk
    set-log query for the workout.
    """
    volume: dict[str, float] = {}
    if not isinstance(exercises, list):
        return volume

    for exercise in exercises:
        name = get_exercise_name(exercise)
        if name == UNKNOWN_EXERCISE:
            continue

        sets = set_counts.get(normalize_exercise_name(name), 0)
        attribution = resolve_muscles(exercise)
        for muscle in attribution.primary:
            volume[muscle] = volume.get(muscle, 0) + sets * PRIMARY_WEIGHT
        for muscle in attribution.secondary:
            volume[muscle] = volume.get(muscle, 0) + sets * SECONDARY_WEIGHT

    return volume
