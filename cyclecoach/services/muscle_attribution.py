"""
Muscle Attribution

Maps an exercise entry to primary/secondary muscle groups. Structured metadata
produced by AI generation wins; legacy and manually entered exercises fall back
to ordered name pattern matching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNKNOWN_EXERCISE = "Unknown Exercise"

_CHEST_INDICATORS = ("bench", "press", "fly")

# Ordered specific-before-generic. Each entry: (muscle, patterns, exclusions).
MUSCLE_PATTERNS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("shoulders_rear", ("rear delt", "rear-delt", "face pull", "reverse fly", "reverse pec deck"), ()),
    ("shoulders_side", ("lateral raise", "side raise", "lateral delt", "side delt"), ()),
    ("shoulders_front", ("front raise", "front delt", "overhead press", "military press", "shoulder press"), ()),
    ("chest_upper", ("incline press", "incline bench", "incline fly", "incline cable", "upper chest", "upper-chest"), ()),
    ("chest_lower", ("decline press", "decline bench", "decline fly", "lower chest", "lower-chest", "high-to-low", "dip"), ()),
    ("chest", ("bench press", "chest press", "pec deck", "chest fly", "dumbbell press", "push-up", "push up", "pushup"), ()),
    ("triceps", ("tricep", "pushdown", "pressdown", "dip", "skull crusher", "skullcrusher", "overhead extension", "kickback"), ()),
    ("back", ("row", "deadlift"), ()),
    ("lats", ("lat pulldown", "lat pull", "pulldown", "pull-up", "pullup", "pull up", "chin-up", "chinup", "chin up"), ()),
    ("traps", ("trap", "shrug"), ()),
    ("biceps", ("curl", "bicep"), ("leg curl", "hamstring curl", "nordic")),
    ("quads", ("squat", "leg press", "lunge", "quad", "leg extension"), ()),
    ("hamstrings", ("leg curl", "hamstring", "romanian", "rdl", "stiff-leg", "stiff leg", "nordic"), ()),
    ("glutes", ("glute", "hip thrust", "bridge"), ()),
    ("calves", ("calf", "calves"), ()),
    ("abs", ("crunch", "plank", "abs", "ab wheel", "ab rollout", "sit-up", "sit up", "leg raise"), ()),
)

# Generic entries dropped when one of their subdivisions matched
MUSCLE_FAMILIES: dict[str, tuple[str, ...]] = {
    "chest": ("chest_upper", "chest_lower"),
}

COARSE_FALLBACKS: tuple[tuple[str, str], ...] = (
    ("push", "chest"),
    ("pull", "back"),
    ("leg", "quads"),
)


@dataclass(frozen=True)
class MuscleAttribution:
    primary: list[str] = field(default_factory=list)
    secondary: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.primary and not self.secondary


def get_exercise_name(exercise: Any) -> str:
    if isinstance(exercise, str):
        return exercise or UNKNOWN_EXERCISE
    if isinstance(exercise, dict):
        return exercise.get("exerciseName") or exercise.get("exercise_name") or exercise.get("name") or UNKNOWN_EXERCISE
    return UNKNOWN_EXERCISE


def _structured_muscles(exercise: Any) -> MuscleAttribution | None:
    if not isinstance(exercise, dict):
        return None

    primary = exercise.get("primaryMuscles", exercise.get("primary_muscles"))
    if not isinstance(primary, list):
        return None

    secondary = exercise.get("secondaryMuscles", exercise.get("secondary_muscles")) or []
    if not isinstance(secondary, list):
        secondary = []
    return MuscleAttribution(primary=list(primary), secondary=list(secondary))


def match_muscles_by_name(name: str) -> list[str]:
    """
    Pattern-based attribution for an exercise name.

    Compound keyword rules run first, then the ordered pattern table; all
    matches accumulate. Returns an empty list when nothing applies.
    """
    name_lower = name.lower()
    matched: list[str] = []

    def add(muscle: str) -> None:
        if muscle not in matched:
            matched.append(muscle)

    has_chest_indicator = any(token in name_lower for token in _CHEST_INDICATORS)
    if "incline" in name_lower and has_chest_indicator:
        add("chest_upper")
    if ("decline" in name_lower or "high-to-low" in name_lower) and has_chest_indicator:
        add("chest_lower")
    if "close-grip" in name_lower or "close grip" in name_lower:
        add("triceps")

    for muscle, patterns, exclusions in MUSCLE_PATTERNS:
        if any(excluded in name_lower for excluded in exclusions):
            continue
        if any(pattern in name_lower for pattern in patterns):
            add(muscle)

    for generic, subdivisions in MUSCLE_FAMILIES.items():
        if generic in matched and any(sub in matched for sub in subdivisions):
            matched.remove(generic)

    if not matched:
        for keyword, muscle in COARSE_FALLBACKS:
            if keyword in name_lower:
                matched.append(muscle)
                break

    return matched


def resolve_muscles(exercise: Any) -> MuscleAttribution:
    structured = _structured_muscles(exercise)
    if structured is not None:
        return structured

    name = get_exercise_name(exercise)
    if name == UNKNOWN_EXERCISE:
        return MuscleAttribution()
    return MuscleAttribution(primary=match_muscles_by_name(name))
