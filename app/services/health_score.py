"""Deterministic 1-10 health score used when the model does not supply one."""

import math
from typing import Optional

from app.schemas import Nutrition

MIN_SCORE = 1.0
MAX_SCORE = 10.0
NEUTRAL_SCORE = 5.0

CALORIE_THRESHOLD = 800.0  # single-meal kcal above which a penalty applies


def _clamp_score(score: float) -> float:
    return round(max(MIN_SCORE, min(MAX_SCORE, score)), 2)


def estimate_health_score(totals: Optional[Nutrition]) -> float:
    """
    Score a meal's macro balance.

    Protein (up to +3 at 30 g) and fiber (up to +2 at 10 g) are rewarded; fat
    (up to -2 at 25 g) and calories beyond 800 kcal (up to -2 at 1600 kcal)
    are penalized, starting from a neutral 5.

    Returns 5.0 when totals are missing or not finite.
    """
    if totals is None:
        return NEUTRAL_SCORE

    protein = float(totals.protein)
    fiber = float(totals.fiber or 0)
    fat = float(totals.fat)
    calories = float(totals.calories)

    if not all(math.isfinite(v) for v in (protein, fiber, fat, calories)):
        return NEUTRAL_SCORE

    protein_score = min(3.0, (protein / 30.0) * 3.0)
    fiber_score = min(2.0, (fiber / 10.0) * 2.0)
    fat_penalty = min(2.0, (fat / 25.0) * 2.0)
    calorie_penalty = 0.0
    if calories > CALORIE_THRESHOLD:
        calorie_penalty = min(2.0, ((calories - CALORIE_THRESHOLD) / CALORIE_THRESHOLD) * 2.0)

    score = NEUTRAL_SCORE + protein_score + fiber_score - fat_penalty - calorie_penalty
    if not math.isfinite(score):
        return NEUTRAL_SCORE
    return _clamp_score(score)


def resolve_health_score(raw_score: Optional[float], totals: Optional[Nutrition]) -> float:
    """Model-provided score clamped to [1, 10] when numeric, estimate otherwise."""
    if raw_score is not None and math.isfinite(raw_score):
        return _clamp_score(raw_score)
    return estimate_health_score(totals)
