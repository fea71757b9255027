"""
Meal ingestion pipeline.

Every ingestion walks the same states:

    RECEIVED -> VALIDATED -> INFERRED -> SANITIZED -> PERSISTING -> COMMITTED

and any state may end in FAILED. Validation failures are reported before the
database or any temporary file is touched. Every later failure rolls back the
open transaction, removes the stored image if the commit did not happen and
removes the temporary upload, then re-raises the original error.
"""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.detected_food import DetectedFood
from app.models.meal import Meal
from app.schemas import (
    DetectedFoodOut,
    MealAnalysisResponse,
    MealContext,
    SanitizedAnalysis,
)
from app.services.health_score import resolve_health_score
from app.services.meal_heuristics import USAGE_EXAMPLE, is_likely_meal
from app.services.sanitizers import normalize_meal_type, sanitize_analysis

logger = logging.getLogger(__name__)

_EPOCH_MS_RE = re.compile(r"^\d+$")


class IngestionState(str, enum.Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    INFERRED = "inferred"
    SANITIZED = "sanitized"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    FAILED = "failed"


def parse_client_timestamp(raw: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Resolve the optional client timestamp to an aware UTC datetime.

    Digits only are epoch milliseconds; anything else is read as ISO 8601
    (a trailing "Z" is accepted). Values that cannot be parsed fall back to
    the current time and never fail the request.
    """
    now = now or datetime.now(timezone.utc)
    if raw is None or not str(raw).strip():
        return now

    value = str(raw).strip()
    try:
        if _EPOCH_MS_RE.match(value):
            parsed = datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        else:
            if value.endswith(("Z", "z")):
                value = value[:-1] + "+00:00"
            parsed = datetime.fromisoformat(value)
    except (ValueError, OverflowError, OSError):
        logger.warning("Unparseable meal timestamp %r, using current time", raw)
        return now

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class _Attempt:
    """Bookkeeping for one ingestion, used to decide what to undo."""

    user_id: UUID
    temp_path: Optional[str] = None
    stored_image_url: Optional[str] = None
    state: IngestionState = IngestionState.RECEIVED
    cleaned_up: bool = False


class MealIngestionService:
    """Turns a meal photo or description into a committed Meal with DetectedFoods."""

    def __init__(self, claude_service, file_service):
        self.claude_service = claude_service
        self.file_service = file_service

    # =========================================================================
    # PUBLIC ENTRY POINTS
    # =========================================================================

    async def ingest_image(
        self,
        db: Session,
        user_id: UUID,
        temp_path: Optional[str],
        meal_type: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> MealAnalysisResponse:
        """
        Analyze an uploaded meal photo and persist the result.

        Args:
            db: Database session
            user_id: Owner of the meal
            temp_path: Temporary upload written by FileService.save_temp_upload
            meal_type: Optional client meal type (any supported language)
            timestamp: Optional client timestamp (epoch ms or ISO 8601)

        Returns:
            MealAnalysisResponse for the committed meal

        Raises:
            MealValidationError: Missing or empty upload
            MealNotDetectedError: Nothing edible recognized in the photo
            ServiceUnavailableError, RateLimitError, InferenceError: AI failures
            PersistenceError: Image storage or database failure
        """
        attempt = _Attempt(user_id=user_id, temp_path=temp_path)
        logger.info("Starting image meal ingestion for user %s", user_id)

        if not temp_path or not Path(temp_path).is_file() or Path(temp_path).stat().st_size == 0:
            raise MealValidationError(
                "A non-empty meal image is required",
                details={"field": "image"},
            )
        consumed_at = parse_client_timestamp(timestamp)
        attempt.state = IngestionState.VALIDATED

        try:
            raw = await self.claude_service.analyze_meal_image(temp_path)
            attempt.state = IngestionState.INFERRED

            analysis = self._sanitize(raw, MealNotDetectedError.for_image(raw))
            attempt.state = IngestionState.SANITIZED

            attempt.state = IngestionState.PERSISTING
            try:
                attempt.stored_image_url = self.file_service.store_meal_image(
                    temp_path, user_id
                )
            except Exception as e:
                raise PersistenceError("Could not store meal image") from e

            response = self._persist(db, attempt, analysis, meal_type, consumed_at)
        except BaseException as e:
            self._cleanup(db, attempt, e)
            raise

        # Temp upload is only removed once storage and commit both succeeded
        self._delete_temp(attempt)
        return response

    async def ingest_text(
        self,
        db: Session,
        user_id: UUID,
        description: str,
        meal_type: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> MealAnalysisResponse:
        """
        Analyze a free-text meal description and persist the result.

        Raises:
            InvalidMealDescriptionError: Text rejected before any AI call
            MealNotDetectedError: AI recognized no food in the description
            ServiceUnavailableError, RateLimitError, InferenceError: AI failures
            PersistenceError: Database failure
        """
        attempt = _Attempt(user_id=user_id)
        logger.info("Starting text meal ingestion for user %s", user_id)

        verdict = is_likely_meal(description)
        if not verdict.ok:
            logger.info("Rejected meal description for user %s: %s", user_id, verdict.reason)
            raise InvalidMealDescriptionError(verdict.reason)
        consumed_at = parse_client_timestamp(timestamp)
        attempt.state = IngestionState.VALIDATED

        try:
            raw = await self.claude_service.analyze_meal_description(description.strip())
            attempt.state = IngestionState.INFERRED

            analysis = self._sanitize(raw, MealNotDetectedError.for_text(raw))
            attempt.state = IngestionState.SANITIZED

            attempt.state = IngestionState.PERSISTING
            response = self._persist(db, attempt, analysis, meal_type, consumed_at)
        except BaseException as e:
            self._cleanup(db, attempt, e)
            raise

        return response

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================

    def _sanitize(self, raw: dict, not_detected: "MealNotDetectedError") -> SanitizedAnalysis:
        analysis = sanitize_analysis(raw)
        if not analysis.is_food or not analysis.foods:
            raise not_detected
        return analysis

    def _persist(
        self,
        db: Session,
        attempt: _Attempt,
        analysis: SanitizedAnalysis,
        requested_meal_type: Optional[str],
        consumed_at: datetime,
    ) -> MealAnalysisResponse:
        """Insert the meal and all its foods in one transaction, then commit."""
        meal_type = normalize_meal_type(
            requested_meal_type or analysis.estimated_meal_type
        )
        totals = analysis.total_nutrition
        health_score = resolve_health_score(analysis.raw_health_score, totals)

        try:
            meal = Meal(
                user_id=attempt.user_id,
                meal_type=meal_type,
                image_url=attempt.stored_image_url,
                total_calories=totals.calories,
                total_protein=totals.protein,
                total_carbs=totals.carbs,
                total_fat=totals.fat,
                total_fiber=totals.fiber,
                health_score=health_score,
                meal_date=consumed_at.date(),
                consumed_at=consumed_at,
                notes=analysis.notes,
            )
            db.add(meal)
            db.flush()

            # Child rows share the meal's connection; one flush batches them
            db.add_all(
                [self._build_detected_food(meal.id, food) for food in analysis.foods]
            )
            db.flush()

            db.commit()
        except MealIngestionError:
            raise
        except Exception as e:
            logger.error(
                "Failed to persist meal for user %s", attempt.user_id, exc_info=True
            )
            raise PersistenceError("Could not save meal") from e

        attempt.state = IngestionState.COMMITTED
        logger.info(
            "Committed meal %s for user %s (%d foods, score %.2f)",
            meal.id,
            attempt.user_id,
            len(analysis.foods),
            health_score,
        )

        if analysis.has_meal_context:
            context_type = analysis.estimated_meal_type or meal_type
        else:
            context_type = meal_type

        return MealAnalysisResponse(
            meal_id=meal.id,
            detected_foods=analysis.foods,
            total_nutrition=totals,
            image_url=attempt.stored_image_url,
            timestamp=consumed_at,
            meal_context=MealContext(
                estimated_meal_type=context_type,
                portion_size=analysis.portion_size,
                health_score=health_score,
            ),
            notes=analysis.notes,
        )

    def _build_detected_food(self, meal_id: str, food: DetectedFoodOut) -> DetectedFood:
        return DetectedFood(
            meal_id=meal_id,
            name=food.name,
            confidence=food.confidence,
            portion_amount=food.portion.amount,
            portion_unit=food.portion.unit,
            calories=food.nutrition.calories,
            protein=food.nutrition.protein,
            carbs=food.nutrition.carbs,
            fat=food.nutrition.fat,
            fiber=food.nutrition.fiber,
            category=food.category,
        )

    # =========================================================================
    # FAILURE HANDLING
    # =========================================================================

    def _cleanup(self, db: Session, attempt: _Attempt, error: BaseException) -> None:
        """Undo a failed ingestion. Runs once and never raises."""
        if attempt.cleaned_up:
            return
        attempt.cleaned_up = True
        failed_in = attempt.state
        attempt.state = IngestionState.FAILED

        logger.warning(
            "Meal ingestion for user %s failed in state %s: %s",
            attempt.user_id,
            failed_in.value,
            type(error).__name__,
        )

        if failed_in == IngestionState.PERSISTING:
            try:
                db.rollback()
            except Exception:
                logger.warning("Rollback after failed ingestion raised", exc_info=True)

        if attempt.stored_image_url and failed_in != IngestionState.COMMITTED:
            try:
                self.file_service.delete_image(attempt.stored_image_url)
            except Exception:
                logger.warning(
                    "Could not remove stored image %s", attempt.stored_image_url, exc_info=True
                )

        self._delete_temp(attempt)

    def _delete_temp(self, attempt: _Attempt) -> None:
        if not attempt.temp_path:
            return
        try:
            self.file_service.delete_file(attempt.temp_path)
        except Exception:
            logger.warning("Could not remove temp upload %s", attempt.temp_path, exc_info=True)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class MealIngestionError(Exception):
    """Base class for ingestion failures with a stable client-facing code."""

    code = "INGESTION_FAILED"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class MealValidationError(MealIngestionError):
    """Request is missing or has malformed required input."""

    code = "VALIDATION_FAILED"
    status_code = 400


class InvalidMealDescriptionError(MealIngestionError):
    """Text does not look like a meal description."""

    code = "INVALID_MEAL_DESCRIPTION"
    status_code = 400

    def __init__(self, reason: str):
        super().__init__(
            f"{reason}. Describe what you ate. {USAGE_EXAMPLE}",
            details={"reason": reason},
        )


class MealNotDetectedError(MealIngestionError):
    """AI ran but recognized no food."""

    code = "MEAL_NOT_DETECTED"
    status_code = 422

    @classmethod
    def for_image(cls, raw: Optional[dict] = None) -> "MealNotDetectedError":
        return cls(
            "No food was detected in the photo. Try a clearer, well-lit photo "
            "that shows the whole plate.",
            details=_not_detected_details(raw),
        )

    @classmethod
    def for_text(cls, raw: Optional[dict] = None) -> "MealNotDetectedError":
        return cls(
            "No food was recognized in the description. Add more detail, "
            f"such as foods and quantities. {USAGE_EXAMPLE}",
            details=_not_detected_details(raw),
        )


class PersistenceError(MealIngestionError):
    """Meal could not be stored. Nothing was committed."""

    code = "PERSISTENCE_FAILED"
    status_code = 500


def _not_detected_details(raw: Optional[dict]) -> Optional[dict]:
    if isinstance(raw, dict) and isinstance(raw.get("error"), str) and raw["error"].strip():
        return {"reason": raw["error"].strip()}
    return None
