"""
Unit tests for ClaudeService with a mocked Anthropic client.

Covers response parsing (prefill, markdown fences, trailing commas), the
conversational schema retry and translation of SDK errors.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import anthropic
import pytest

from app.services.ai_service import (
    ClaudeService,
    InferenceError,
    RateLimitError,
    ServiceUnavailableError,
    _fix_trailing_commas,
    _strip_markdown_json,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_anthropic_client():
    """Create a mock Anthropic client."""
    with patch("app.services.ai_service.Anthropic") as mock_cls:
        mock_client = MagicMock()
        mock_cls.return_value = mock_client
        yield mock_client


@pytest.fixture
def claude_service(mock_anthropic_client):
    """Create a ClaudeService instance with mocked Anthropic client."""
    service = ClaudeService()
    service.client = mock_anthropic_client
    return service


@pytest.fixture
def sample_image_file():
    """Create a temporary image file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".jpg", delete=False) as f:
        # Write minimal JPEG header
        f.write(b"\xff\xd8\xff\xe0\x00\x10JFIF\x00")
        f.flush()
        yield f.name
    Path(f.name).unlink(missing_ok=True)


def create_mock_response(text: str):
    """Helper to create mock API response."""
    mock_response = MagicMock()
    mock_content = MagicMock()
    mock_content.text = text
    mock_response.content = [mock_content]
    return mock_response


def analysis_body(**overrides) -> dict:
    body = {
        "is_food": True,
        "error": None,
        "foods": [
            {
                "name": "banana",
                "confidence": 0.9,
                "portion": {"amount": 120, "unit": "g"},
                "nutrition": {"calories": 105, "protein": 1.3, "carbs": 27, "fat": 0.4, "fiber": 3.1},
                "category": "fruit",
            }
        ],
        "total_nutrition": {"calories": 105, "protein": 1.3, "carbs": 27, "fat": 0.4, "fiber": 3.1},
        "meal_context": {"estimated_meal_type": "snack", "portion_size": "small", "health_score": 7},
        "notes": None,
    }
    body.update(overrides)
    return body


def prefilled(body: dict) -> str:
    """Response text as Claude returns it after the "{" prefill."""
    return json.dumps(body)[1:]


# =============================================================================
# JSON Cleanup Helpers
# =============================================================================


class TestJsonCleanup:
    def test_strips_json_fence(self):
        assert _strip_markdown_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_plain_fence(self):
        assert _strip_markdown_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leaves_bare_json(self):
        assert _strip_markdown_json('{"a": 1}') == '{"a": 1}'

    def test_fixes_trailing_commas(self):
        assert json.loads(_fix_trailing_commas('{"a": [1, 2,], "b": 3,}')) == {"a": [1, 2], "b": 3}


# =============================================================================
# Meal Image Analysis
# =============================================================================


class TestAnalyzeMealImage:
    """Tests for analyze_meal_image method."""

    @pytest.mark.asyncio
    async def test_returns_parsed_analysis(self, claude_service, sample_image_file):
        claude_service.client.messages.create.return_value = create_mock_response(
            prefilled(analysis_body())
        )

        result = await claude_service.analyze_meal_image(sample_image_file)

        assert result["is_food"] is True
        assert result["foods"][0]["name"] == "banana"
        assert result["meal_context"]["health_score"] == 7
        assert result["model"] == claude_service.vision_model
        assert "raw_response" in result

    @pytest.mark.asyncio
    async def test_sends_image_as_base64(self, claude_service, sample_image_file):
        claude_service.client.messages.create.return_value = create_mock_response(
            prefilled(analysis_body())
        )

        await claude_service.analyze_meal_image(sample_image_file)

        call_kwargs = claude_service.client.messages.create.call_args.kwargs
        image_block = call_kwargs["messages"][0]["content"][0]
        assert image_block["type"] == "image"
        assert image_block["source"]["media_type"] == "image/jpeg"
        assert call_kwargs["messages"][-1] == {"role": "assistant", "content": "{"}

    @pytest.mark.asyncio
    async def test_reports_no_food(self, claude_service, sample_image_file):
        body = analysis_body(is_food=False, error="Not a meal", foods=[], meal_context=None)
        claude_service.client.messages.create.return_value = create_mock_response(
            prefilled(body)
        )

        result = await claude_service.analyze_meal_image(sample_image_file)

        assert result["is_food"] is False
        assert result["foods"] == []

    @pytest.mark.asyncio
    async def test_unreadable_image_raises_inference_error(self, claude_service):
        with pytest.raises(InferenceError):
            await claude_service.analyze_meal_image("/nonexistent/meal.jpg")

        claude_service.client.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_tolerates_trailing_commas(self, claude_service, sample_image_file):
        text = prefilled(analysis_body()).replace('"fruit"}', '"fruit",}')
        claude_service.client.messages.create.return_value = create_mock_response(text)

        result = await claude_service.analyze_meal_image(sample_image_file)

        assert result["foods"][0]["category"] == "fruit"
        assert claude_service.client.messages.create.call_count == 1


# =============================================================================
# Meal Description Analysis
# =============================================================================


class TestAnalyzeMealDescription:
    """Tests for analyze_meal_description method."""

    @pytest.mark.asyncio
    async def test_sends_description_text(self, claude_service):
        claude_service.client.messages.create.return_value = create_mock_response(
            prefilled(analysis_body())
        )

        result = await claude_service.analyze_meal_description("a banana")

        call_kwargs = claude_service.client.messages.create.call_args.kwargs
        assert "a banana" in call_kwargs["messages"][0]["content"][0]["text"]
        assert result["foods"][0]["name"] == "banana"

    @pytest.mark.asyncio
    async def test_retries_once_on_invalid_json(self, claude_service):
        claude_service.client.messages.create.side_effect = [
            create_mock_response("this is not json"),
            create_mock_response(prefilled(analysis_body())),
        ]

        result = await claude_service.analyze_meal_description("a banana")

        assert claude_service.client.messages.create.call_count == 2
        retry_messages = claude_service.client.messages.create.call_args.kwargs["messages"]
        assert any(
            m["role"] == "user" and "schema error" in str(m["content"]) for m in retry_messages
        )
        assert result["foods"][0]["name"] == "banana"

    @pytest.mark.asyncio
    async def test_gives_up_after_retry(self, claude_service):
        claude_service.client.messages.create.return_value = create_mock_response("garbage")

        with pytest.raises(InferenceError, match="schema validation"):
            await claude_service.analyze_meal_description("a banana")

        assert claude_service.client.messages.create.call_count == 2

    @pytest.mark.asyncio
    async def test_foods_must_be_a_list(self, claude_service):
        claude_service.client.messages.create.return_value = create_mock_response(
            prefilled(analysis_body(foods="banana"))
        )

        with pytest.raises(InferenceError):
            await claude_service.analyze_meal_description("a banana")

    @pytest.mark.asyncio
    async def test_empty_response_raises_after_retry(self, claude_service):
        empty = MagicMock()
        empty.content = []
        claude_service.client.messages.create.return_value = empty

        with pytest.raises(InferenceError, match="No text content"):
            await claude_service.analyze_meal_description("a banana")


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    """SDK errors become service-level exceptions."""

    @pytest.mark.asyncio
    async def test_connection_error(self, claude_service):
        claude_service.client.messages.create.side_effect = (
            anthropic.APIConnectionError(request=MagicMock())
        )

        with pytest.raises(ServiceUnavailableError):
            await claude_service.analyze_meal_description("two eggs")

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, claude_service):
        mock_response = MagicMock()
        mock_response.status_code = 429
        claude_service.client.messages.create.side_effect = anthropic.RateLimitError(
            message="Rate limited", response=mock_response, body={}
        )

        with pytest.raises(RateLimitError):
            await claude_service.analyze_meal_description("two eggs")

    @pytest.mark.asyncio
    async def test_server_error(self, claude_service):
        mock_response = MagicMock()
        mock_response.status_code = 500
        claude_service.client.messages.create.side_effect = anthropic.APIStatusError(
            message="Server error", response=mock_response, body={}
        )

        with pytest.raises(ServiceUnavailableError):
            await claude_service.analyze_meal_description("two eggs")

    @pytest.mark.asyncio
    async def test_client_error(self, claude_service):
        mock_response = MagicMock()
        mock_response.status_code = 400
        claude_service.client.messages.create.side_effect = anthropic.APIStatusError(
            message="Bad request", response=mock_response, body={}
        )

        with pytest.raises(InferenceError, match="Request error"):
            await claude_service.analyze_meal_description("two eggs")
