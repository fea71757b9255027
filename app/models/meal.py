from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import uuid

from app.database import Base


class MealType(str, enum.Enum):
    """Canonical meal types stored in meals.meal_type."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


def _new_meal_id() -> str:
    return str(uuid.uuid4())


class Meal(Base):
    """A consumption event with aggregate nutrition and its detected foods."""

    __tablename__ = "meals"

    id = Column(String(36), primary_key=True, default=_new_meal_id)
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    meal_type = Column(String(20), nullable=False, default=MealType.SNACK.value)
    image_url = Column(String(512))  # None for meals logged from text
    total_calories = Column(Integer, nullable=False, default=0)
    total_protein = Column(Numeric(8, 2), nullable=False, default=0)
    total_carbs = Column(Numeric(8, 2), nullable=False, default=0)
    total_fat = Column(Numeric(8, 2), nullable=False, default=0)
    total_fiber = Column(Numeric(8, 2))
    health_score = Column(Float, nullable=False)  # 1-10
    meal_date = Column(Date, nullable=False)  # UTC date of consumed_at
    consumed_at = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="meals")
    detected_foods = relationship(
        "DetectedFood",
        back_populates="meal",
        cascade="all, delete-orphan",
        order_by="DetectedFood.id",
    )

    __table_args__ = (
        Index("idx_meals_user_id", "user_id"),
        Index("idx_meals_user_date", "user_id", "meal_date"),
        Index("idx_meals_consumed_at", "consumed_at"),
    )
