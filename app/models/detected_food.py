from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class FoodCategory(str, enum.Enum):
    """Closed set of food categories accepted in storage."""

    PROTEIN = "protein"
    CARB = "carb"
    VEGETABLE = "vegetable"
    FRUIT = "fruit"
    DAIRY = "dairy"
    FAT = "fat"
    MIXED = "mixed"


class DetectedFood(Base):
    """One food item identified within a meal. Only created with its parent meal."""

    __tablename__ = "detected_foods"

    id = Column(Integer, primary_key=True)
    meal_id = Column(
        String(36), ForeignKey("meals.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    confidence = Column(Numeric(3, 2), nullable=False)  # 0.00-1.00
    portion_amount = Column(Numeric(6, 2), nullable=False)  # max 9999.99
    portion_unit = Column(String(16), nullable=False, default="g")
    calories = Column(Integer, nullable=False, default=0)
    protein = Column(Numeric(8, 2), nullable=False, default=0)
    carbs = Column(Numeric(8, 2), nullable=False, default=0)
    fat = Column(Numeric(8, 2), nullable=False, default=0)
    fiber = Column(Numeric(8, 2))
    category = Column(String(20), nullable=False, default=FoodCategory.MIXED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    meal = relationship("Meal", back_populates="detected_foods")

    __table_args__ = (Index("idx_detected_foods_meal_id", "meal_id"),)
