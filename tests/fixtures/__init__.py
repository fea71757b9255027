"""Test fixtures for the meal ingestion backend."""

from tests.fixtures.mocks import (
    DEFAULT_MEAL_ANALYSIS,
    NO_FOOD_ANALYSIS,
    MockClaudeService,
    create_mock_with_error,
    create_mock_for_meal_analysis,
)

__all__ = [
    "DEFAULT_MEAL_ANALYSIS",
    "NO_FOOD_ANALYSIS",
    "MockClaudeService",
    "create_mock_with_error",
    "create_mock_for_meal_analysis",
]
