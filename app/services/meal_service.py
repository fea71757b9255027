"""Business logic for reading and managing logged meals."""

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from app.models.detected_food import DetectedFood
from app.models.meal import Meal
from app.schemas import (
    DetectedFoodOut,
    MealDetailOut,
    MealSummaryOut,
    Nutrition,
    Portion,
)
from app.services.file_service import file_service
from app.services.health_score import estimate_health_score
from app.services.sanitizers import normalize_meal_type

logger = logging.getLogger(__name__)


def _as_float(value) -> float:
    return float(value) if value is not None else 0.0


def _as_optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class MealService:
    """Service for meal-related operations."""

    @staticmethod
    def get_meal(db: Session, meal_id: str, user_id: UUID) -> Optional[Meal]:
        """Get a meal owned by user_id, with its detected foods loaded."""
        return (
            db.query(Meal)
            .options(selectinload(Meal.detected_foods))
            .filter(Meal.id == meal_id, Meal.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_user_meals(
        db: Session,
        user_id: UUID,
        meal_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Meal], int]:
        """
        Get a page of a user's meals, newest first.

        Args:
            db: Database session
            user_id: User ID
            meal_date: Only meals logged on this (UTC) date
            limit: Page size
            offset: Number of meals to skip

        Returns:
            (meals, total matching meals) tuple
        """
        query = db.query(Meal).filter(Meal.user_id == user_id)
        if meal_date is not None:
            query = query.filter(Meal.meal_date == meal_date)

        total = query.count()
        meals = (
            query.order_by(Meal.consumed_at.desc(), Meal.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return meals, total

    @staticmethod
    def update_meal(
        db: Session,
        meal: Meal,
        notes: Optional[str] = None,
        meal_type: Optional[str] = None,
    ) -> Meal:
        """
        Update user-editable meal fields.

        The meal type goes through the same normalization as ingestion. The
        stored health score is left unchanged.
        """
        if notes is not None:
            meal.notes = notes
        if meal_type is not None:
            meal.meal_type = normalize_meal_type(meal_type)

        db.commit()
        db.refresh(meal)
        return meal

    @staticmethod
    def delete_meal(db: Session, meal: Meal) -> None:
        """Delete a meal and its foods, then remove its stored image."""
        image_url = meal.image_url
        meal_id = meal.id

        db.delete(meal)
        db.commit()

        if image_url:
            file_service.delete_image(image_url)
        logger.info("Deleted meal %s", meal_id)

    @staticmethod
    def backfill_health_scores(db: Session) -> int:
        """
        Give meals saved without a health score an estimated one.

        Returns:
            Number of meals updated
        """
        meals = db.query(Meal).filter(Meal.health_score.is_(None)).all()
        for meal in meals:
            meal.health_score = estimate_health_score(MealService.meal_totals(meal))
        db.commit()
        return len(meals)

    # =========================================================================
    # RESPONSE MAPPING
    # =========================================================================

    @staticmethod
    def meal_totals(meal: Meal) -> Nutrition:
        return Nutrition(
            calories=meal.total_calories or 0,
            protein=_as_float(meal.total_protein),
            carbs=_as_float(meal.total_carbs),
            fat=_as_float(meal.total_fat),
            fiber=_as_optional_float(meal.total_fiber),
        )

    @staticmethod
    def food_to_schema(food: DetectedFood) -> DetectedFoodOut:
        return DetectedFoodOut(
            name=food.name,
            confidence=_as_float(food.confidence),
            portion=Portion(amount=_as_float(food.portion_amount), unit=food.portion_unit),
            nutrition=Nutrition(
                calories=food.calories or 0,
                protein=_as_float(food.protein),
                carbs=_as_float(food.carbs),
                fat=_as_float(food.fat),
                fiber=_as_optional_float(food.fiber),
            ),
            category=food.category,
        )

    @staticmethod
    def to_summary(meal: Meal) -> MealSummaryOut:
        return MealSummaryOut(
            meal_id=meal.id,
            meal_type=meal.meal_type,
            image_url=meal.image_url,
            total_calories=meal.total_calories or 0,
            health_score=meal.health_score,
            timestamp=meal.consumed_at,
        )

    @staticmethod
    def to_detail(meal: Meal) -> MealDetailOut:
        return MealDetailOut(
            meal_id=meal.id,
            meal_type=meal.meal_type,
            image_url=meal.image_url,
            total_nutrition=MealService.meal_totals(meal),
            health_score=meal.health_score,
            meal_date=meal.meal_date,
            timestamp=meal.consumed_at,
            notes=meal.notes,
            updated_at=meal.updated_at,
            detected_foods=[MealService.food_to_schema(f) for f in meal.detected_foods],
        )


# Singleton instance
meal_service = MealService()
