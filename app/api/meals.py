"""API endpoints for meal analysis and management."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas import (
    AnalyzeTextRequest,
    MealAnalysisResponse,
    MealDetailOut,
    MealListResponse,
    MealUpdateRequest,
    Pagination,
)
from app.services.ai_service import ClaudeService
from app.services.auth.dependencies import get_current_user
from app.services.file_service import file_service
from app.services.ingestion_service import MealIngestionService, MealValidationError
from app.services.meal_service import meal_service
from app.services.rate_limiter import analysis_rate_limiter

router = APIRouter(prefix="/api/meals", tags=["meals"])

# Initialize AI service and ingestion pipeline
claude_service = ClaudeService()
ingestion_service = MealIngestionService(claude_service, file_service)


def _get_owned_meal(db: Session, meal_id: str, user: User):
    meal = meal_service.get_meal(db, meal_id, user.id)
    if not meal:
        raise HTTPException(status_code=404, detail="Meal not found")
    return meal


async def limit_analysis_requests(user: User = Depends(get_current_user)) -> User:
    """Per-user cap on analysis requests, checked before anything is stored or inferred."""
    retry_after = analysis_rate_limiter.hit(str(user.id))
    if retry_after is not None:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many analysis requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
    return user


@router.post(
    "/analyze",
    response_model=MealAnalysisResponse,
    status_code=status.HTTP_201_CREATED,
)
async def analyze_meal_image(
    image: Optional[UploadFile] = File(None),
    meal_type: Optional[str] = Form(None, alias="mealType"),
    timestamp: Optional[str] = Form(None),
    user: User = Depends(limit_analysis_requests),
    db: Session = Depends(get_db),
):
    """
    Analyze a meal photo and log it.

    Multipart fields: image (required), mealType, timestamp (epoch ms or ISO).
    """
    if image is None or not image.filename:
        raise MealValidationError("An image file is required", details={"field": "image"})

    try:
        temp_path = await ingestion_service.file_service.save_temp_upload(image)
    except ValueError as e:
        raise MealValidationError(str(e), details={"field": "image"})

    return await ingestion_service.ingest_image(
        db, user.id, temp_path, meal_type=meal_type, timestamp=timestamp
    )


@router.post(
    "/analyze-text",
    response_model=MealAnalysisResponse,
    status_code=status.HTTP_201_CREATED,
)
async def analyze_meal_text(
    body: AnalyzeTextRequest,
    user: User = Depends(limit_analysis_requests),
    db: Session = Depends(get_db),
):
    """Analyze a free-text meal description and log it."""
    return await ingestion_service.ingest_text(
        db,
        user.id,
        body.description,
        meal_type=body.meal_type,
        timestamp=body.timestamp,
    )


@router.get("", response_model=MealListResponse)
async def list_meals(
    meal_date: Optional[date] = Query(None, alias="date"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the user's meals, newest first, optionally for one day."""
    meals, total = meal_service.get_user_meals(
        db, user.id, meal_date=meal_date, limit=limit, offset=offset
    )
    return MealListResponse(
        meals=[meal_service.to_summary(m) for m in meals],
        pagination=Pagination(total=total, page=offset // limit + 1),
    )


@router.get("/{meal_id}", response_model=MealDetailOut)
async def get_meal(
    meal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meal = _get_owned_meal(db, meal_id, user)
    return meal_service.to_detail(meal)


@router.patch("/{meal_id}", response_model=MealDetailOut)
async def update_meal(
    meal_id: str,
    body: MealUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edit notes and/or meal type. Meal type accepts the same synonyms as ingestion."""
    meal = _get_owned_meal(db, meal_id, user)
    meal = meal_service.update_meal(
        db, meal, notes=body.notes, meal_type=body.meal_type
    )
    return meal_service.to_detail(meal)


@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(
    meal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meal = _get_owned_meal(db, meal_id, user)
    meal_service.delete_meal(db, meal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
