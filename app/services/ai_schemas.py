"""
Pydantic models for the loose first pass over Claude's JSON responses.

These only check the response is a JSON object with a food list so the
conversational retry in ai_service.py can ask for a fix. Field values are not
trusted here: they are clamped and normalized by app.services.sanitizers.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class RawFoodSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Any = None
    confidence: Any = None
    portion: Any = None
    nutrition: Any = None
    category: Any = None


class MealNutritionAnalysisSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    is_food: bool = True
    error: Any = None
    foods: list[RawFoodSchema] = []
    total_nutrition: Optional[dict[str, Any]] = None
    meal_context: Optional[dict[str, Any]] = None
    notes: Any = None
