"""
Sanitization of untrusted inference output.

Every value coming back from the model passes through here before it can become
a typed domain value or reach the database. Nothing in this module raises: each
function returns the narrowest legal value instead.
"""

import math
from typing import Any, Optional

from app.models.detected_food import FoodCategory
from app.models.meal import MealType
from app.schemas import DetectedFoodOut, Nutrition, Portion, SanitizedAnalysis
from app.services.meal_heuristics import is_clearly_non_food_name

MAX_PORTION_AMOUNT = 9999.99  # Numeric(6, 2) ceiling of detected_foods.portion_amount
MAX_NUTRIENT_VALUE = 99999.0
MAX_UNIT_LENGTH = 16
DEFAULT_CONFIDENCE = 0.5
DEFAULT_UNIT = "g"

VALID_CATEGORIES = frozenset(c.value for c in FoodCategory)
VALID_MEAL_TYPES = frozenset(t.value for t in MealType)
VALID_PORTION_SIZES = frozenset({"small", "medium", "large"})

CATEGORY_SYNONYMS = {
    "carbs": FoodCategory.CARB.value,
    "carbohydrate": FoodCategory.CARB.value,
    "carbohydrates": FoodCategory.CARB.value,
    "grain": FoodCategory.CARB.value,
    "grains": FoodCategory.CARB.value,
    "proteins": FoodCategory.PROTEIN.value,
    "meat": FoodCategory.PROTEIN.value,
    "vegetables": FoodCategory.VEGETABLE.value,
    "veggie": FoodCategory.VEGETABLE.value,
    "veggies": FoodCategory.VEGETABLE.value,
    "fruits": FoodCategory.FRUIT.value,
    "fats": FoodCategory.FAT.value,
}

MEAL_TYPE_SYNONYMS = {
    # Spanish
    "desayuno": MealType.BREAKFAST.value,
    "almuerzo": MealType.LUNCH.value,
    "comida": MealType.LUNCH.value,
    "cena": MealType.DINNER.value,
    "merienda": MealType.SNACK.value,
    "tentempie": MealType.SNACK.value,
    "tentempié": MealType.SNACK.value,
    "colacion": MealType.SNACK.value,
    "colación": MealType.SNACK.value,
    # Informal English
    "brunch": MealType.BREAKFAST.value,
    "supper": MealType.DINNER.value,
    "snacks": MealType.SNACK.value,
    # Portuguese / French / Italian
    "cafe da manha": MealType.BREAKFAST.value,
    "café da manhã": MealType.BREAKFAST.value,
    "almoco": MealType.LUNCH.value,
    "almoço": MealType.LUNCH.value,
    "jantar": MealType.DINNER.value,
    "lanche": MealType.SNACK.value,
    "petit-dejeuner": MealType.BREAKFAST.value,
    "petit-déjeuner": MealType.BREAKFAST.value,
    "dejeuner": MealType.LUNCH.value,
    "déjeuner": MealType.LUNCH.value,
    "diner": MealType.DINNER.value,
    "dîner": MealType.DINNER.value,
    "colazione": MealType.BREAKFAST.value,
    "pranzo": MealType.LUNCH.value,
}


def _to_finite_number(value: Any, fallback: float) -> float:
    """Coerce numbers and numeric strings; everything else yields fallback."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # json.loads keeps integer literals of any length
            return fallback
        return number if math.isfinite(number) else fallback
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return parsed if math.isfinite(parsed) else fallback
    return fallback


def _to_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _first(data: Any, *keys: str) -> Any:
    """First present key out of snake_case / camelCase alternatives."""
    if not isinstance(data, dict):
        return None
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def clamp_confidence(value: Any) -> float:
    return _clamp(_to_finite_number(value, DEFAULT_CONFIDENCE), 0.0, 1.0)


def clamp_portion_amount(value: Any) -> float:
    return _clamp(_to_finite_number(value, 0.0), 0.0, MAX_PORTION_AMOUNT)


def normalize_category(value: Any) -> str:
    """Map a free-form category onto the closed category set ('mixed' otherwise)."""
    raw = _to_str(value).lower()
    if raw in VALID_CATEGORIES:
        return raw
    return CATEGORY_SYNONYMS.get(raw, FoodCategory.MIXED.value)


def normalize_meal_type(value: Any) -> str:
    """
    Canonical meal type for any write path.

    Accepts canonical values, informal and multilingual synonyms. Unrecognized
    or missing input becomes 'snack'.
    """
    raw = " ".join(_to_str(value).lower().replace("_", " ").split())
    if raw in VALID_MEAL_TYPES:
        return raw
    return MEAL_TYPE_SYNONYMS.get(raw, MealType.SNACK.value)


def normalize_portion_size(value: Any) -> str:
    raw = _to_str(value).lower()
    return raw if raw in VALID_PORTION_SIZES else "medium"


def sanitize_unit(value: Any) -> str:
    unit = _to_str(value).lower()
    if not unit:
        return DEFAULT_UNIT
    return unit[:MAX_UNIT_LENGTH]


def _nutrient(value: Any, fallback: float = 0.0) -> float:
    return round(_clamp(_to_finite_number(value, fallback), 0.0, MAX_NUTRIENT_VALUE), 2)


def _optional_nutrient(value: Any, fallback: Optional[float] = None) -> Optional[float]:
    parsed = _to_finite_number(value, math.nan if fallback is None else fallback)
    return _nutrient(parsed) if math.isfinite(parsed) else None


def _sanitize_nutrition(raw: Any) -> Nutrition:
    return Nutrition(
        calories=int(round(_nutrient(_first(raw, "calories")))),
        protein=_nutrient(_first(raw, "protein")),
        carbs=_nutrient(_first(raw, "carbs")),
        fat=_nutrient(_first(raw, "fat")),
        fiber=_optional_nutrient(_first(raw, "fiber")),
    )


def sanitize_food(raw: Any) -> Optional[DetectedFoodOut]:
    """
    Sanitize one food candidate.

    Returns None for items without a usable name or without any signal
    (zero portion and zero macros), which are model noise.
    """
    if not isinstance(raw, dict):
        return None

    name = _to_str(raw.get("name"))
    if not name or is_clearly_non_food_name(name):
        return None

    portion_raw = raw.get("portion") if isinstance(raw.get("portion"), dict) else {}
    amount_raw = _first(portion_raw, "amount")
    if amount_raw is None:
        amount_raw = _first(raw, "portion_grams", "portion_amount", "portionAmount")
    amount = round(clamp_portion_amount(amount_raw), 2)
    unit = sanitize_unit(_first(portion_raw, "unit") or _first(raw, "portion_unit", "unit"))

    nutrition_raw = raw.get("nutrition") if isinstance(raw.get("nutrition"), dict) else raw
    nutrition = _sanitize_nutrition(nutrition_raw)

    has_signal = amount > 0 or any(
        (nutrition.calories, nutrition.protein, nutrition.carbs, nutrition.fat)
    )
    if not has_signal:
        return None

    return DetectedFoodOut(
        name=name[:255],
        confidence=round(clamp_confidence(raw.get("confidence")), 2),
        portion=Portion(amount=amount, unit=unit),
        nutrition=nutrition,
        category=normalize_category(raw.get("category")),
    )


def sum_nutrition(foods: list[DetectedFoodOut]) -> Nutrition:
    fibers = [f.nutrition.fiber for f in foods if f.nutrition.fiber is not None]
    return Nutrition(
        calories=sum(f.nutrition.calories for f in foods),
        protein=round(sum(f.nutrition.protein for f in foods), 2),
        carbs=round(sum(f.nutrition.carbs for f in foods), 2),
        fat=round(sum(f.nutrition.fat for f in foods), 2),
        fiber=round(sum(fibers), 2) if fibers else None,
    )


def sanitize_totals(raw: Any, foods: list[DetectedFoodOut]) -> Nutrition:
    """
    Totals supplied by the model are trusted but each component is sanitized.

    Components the model left out fall back to the sum over the sanitized foods.
    """
    computed = sum_nutrition(foods)
    if not isinstance(raw, dict):
        return computed

    return Nutrition(
        calories=int(round(_nutrient(raw.get("calories"), computed.calories))),
        protein=_nutrient(raw.get("protein"), computed.protein),
        carbs=_nutrient(raw.get("carbs"), computed.carbs),
        fat=_nutrient(raw.get("fat"), computed.fat),
        fiber=_optional_nutrient(raw.get("fiber"), computed.fiber),
    )


def sanitize_analysis(raw: Any) -> SanitizedAnalysis:
    """Turn the loosely-typed inference dict into a SanitizedAnalysis."""
    if not isinstance(raw, dict):
        raw = {}

    is_food = raw.get("is_food", raw.get("isFood", True))
    foods_raw = raw.get("foods") if isinstance(raw.get("foods"), list) else []
    foods = [food for food in map(sanitize_food, foods_raw) if food is not None]

    context_raw = _first(raw, "meal_context", "mealContext")
    has_context = isinstance(context_raw, dict)
    context = context_raw if has_context else {}

    raw_score = _to_finite_number(_first(context, "health_score", "healthScore"), math.nan)
    estimated_type = _to_str(_first(context, "estimated_meal_type", "estimatedMealType"))

    notes = _to_str(raw.get("notes")) or None
    error = _to_str(raw.get("error")) or None

    return SanitizedAnalysis(
        is_food=is_food is not False,
        error=error,
        foods=foods,
        total_nutrition=sanitize_totals(_first(raw, "total_nutrition", "totalNutrition"), foods),
        has_meal_context=has_context,
        estimated_meal_type=normalize_meal_type(estimated_type) if estimated_type else None,
        portion_size=normalize_portion_size(_first(context, "portion_size", "portionSize")),
        raw_health_score=raw_score if math.isfinite(raw_score) else None,
        notes=notes,
    )
