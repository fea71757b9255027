"""
Pydantic models for the meal API and for sanitized analysis results.

Everything here is post-sanitization: values have already been clamped and
normalized by app.services.sanitizers. JSON is camelCase on the wire.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Analysis values ---


class Portion(CamelModel):
    amount: float
    unit: str


class Nutrition(CamelModel):
    calories: int = 0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: Optional[float] = None


class DetectedFoodOut(CamelModel):
    name: str
    confidence: float
    portion: Portion
    nutrition: Nutrition
    category: str


class MealContext(CamelModel):
    estimated_meal_type: str
    portion_size: str = "medium"
    health_score: float


class SanitizedAnalysis(CamelModel):
    """Inference output after every field went through the sanitizer."""

    is_food: bool = True
    error: Optional[str] = None
    foods: list[DetectedFoodOut] = []
    total_nutrition: Nutrition
    has_meal_context: bool = False
    estimated_meal_type: Optional[str] = None
    portion_size: str = "medium"
    raw_health_score: Optional[float] = None
    notes: Optional[str] = None


# --- Requests ---


class AnalyzeTextRequest(CamelModel):
    description: str = Field(min_length=1)
    meal_type: Optional[str] = None
    timestamp: Optional[str] = None


class MealUpdateRequest(CamelModel):
    notes: Optional[str] = None
    meal_type: Optional[str] = None


# --- Responses ---


class MealAnalysisResponse(CamelModel):
    meal_id: str
    detected_foods: list[DetectedFoodOut]
    total_nutrition: Nutrition
    image_url: Optional[str] = None
    timestamp: datetime
    meal_context: MealContext
    notes: Optional[str] = None


class MealSummaryOut(CamelModel):
    meal_id: str
    meal_type: str
    image_url: Optional[str] = None
    total_calories: int
    health_score: float
    timestamp: datetime


class Pagination(CamelModel):
    total: int
    page: int


class MealListResponse(CamelModel):
    meals: list[MealSummaryOut]
    pagination: Pagination


class MealDetailOut(CamelModel):
    meal_id: str
    meal_type: str
    image_url: Optional[str] = None
    total_nutrition: Nutrition
    health_score: float
    meal_date: date
    timestamp: datetime
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None
    detected_foods: list[DetectedFoodOut]
