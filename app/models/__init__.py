"""
Database models for the nutrition backend.

Import all models here so Alembic can detect them for migrations.
"""

from app.database import Base
from app.models.user import User
from app.models.session import Session
from app.models.meal import Meal, MealType
from app.models.detected_food import DetectedFood, FoodCategory

__all__ = [
    "Base",
    "User",
    "Session",
    "Meal",
    "MealType",
    "DetectedFood",
    "FoodCategory",
]
