"""
Claude AI integration for meal nutrition analysis.

Two capabilities share one JSON output contract:
1. Meal photo analysis (vision)
2. Free-text meal description analysis

The service returns the loosely-validated JSON dict; clamping and enum
normalization happen in app.services.sanitizers.
"""

import base64
import json
import logging
import re
from pathlib import Path

from anthropic import Anthropic
import anthropic
import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from app.config import settings
from app.services.ai_schemas import MealNutritionAnalysisSchema
from app.services.prompts import (
    MEAL_IMAGE_ANALYSIS_SYSTEM_PROMPT,
    MEAL_DESCRIPTION_ANALYSIS_SYSTEM_PROMPT,
)


logger = logging.getLogger(__name__)


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


class ClaudeService:
    """Claude API client for meal nutrition analysis."""

    def __init__(self):
        timeout = httpx.Timeout(
            timeout=settings.anthropic_timeout,
            connect=settings.anthropic_connect_timeout,
        )
        self.client = Anthropic(api_key=settings.anthropic_api_key, timeout=timeout)
        self.vision_model = settings.vision_model

    # =========================================================================
    # SCHEMA VALIDATION + CONVERSATIONAL RETRY
    # =========================================================================

    def _call_with_schema_retry(
        self,
        messages: list[dict],
        schema_class: type[BaseModel],
        request_params: dict,
        max_retries: int = 1,
        prefill: str | None = "{",
    ) -> tuple[dict, str]:
        """
        Call Claude API with JSON schema validation and conversational retry.

        On schema failure: appends the bad response + error feedback to messages,
        re-calls with full conversation context so the LLM can self-correct.

        Args:
            messages: The messages list (will be mutated on retry)
            schema_class: Pydantic model class to validate against
            request_params: Dict of params for client.messages.create
                            (model, max_tokens, system)
            max_retries: Number of retry attempts after initial call
            prefill: Assistant prefill string, or None for no prefill

        Returns:
            (validated_dict, raw_response_text) tuple

        Raises:
            InferenceError: If all attempts fail to produce valid JSON
        """
        for attempt in range(1 + max_retries):
            call_messages = list(messages)
            if prefill:
                call_messages.append({"role": "assistant", "content": prefill})

            response = self.client.messages.create(
                messages=call_messages,
                **request_params,
            )

            response_text = ""
            for block in response.content:
                if hasattr(block, "text"):
                    response_text += block.text

            if not response_text:
                if attempt < max_retries:
                    messages.append(
                        {"role": "assistant", "content": "(empty response)"}
                    )
                    messages.append(
                        {
                            "role": "user",
                            "content": "Your response contained no text. Please respond with valid JSON.",
                        }
                    )
                    continue
                raise InferenceError("No text content in AI response after retries")

            # Reconstruct JSON (handle prefill)
            raw_text = response_text.strip()
            json_str = prefill + raw_text if prefill else raw_text

            json_str = _strip_markdown_json(json_str)
            json_str = _fix_trailing_commas(json_str)

            try:
                parsed = json.loads(json_str)
                validated = TypeAdapter(schema_class).validate_python(parsed)
                return validated.model_dump(), raw_text
            except (json.JSONDecodeError, ValidationError) as e:
                error_msg = str(e)
                logger.warning(
                    "AI response schema validation failed (attempt %d/%d) for %s: %s",
                    attempt + 1,
                    1 + max_retries,
                    schema_class.__name__,
                    error_msg,
                )

                if attempt < max_retries:
                    messages.append(
                        {"role": "assistant", "content": (prefill or "") + raw_text}
                    )
                    messages.append(
                        {
                            "role": "user",
                            "content": (
                                f"Your response had a schema error:\n{error_msg}\n\n"
                                f"Please fix and return valid JSON matching the required schema."
                            ),
                        }
                    )
                    continue

                raise InferenceError(
                    f"AI response failed schema validation after {1 + max_retries} attempts: {error_msg}"
                ) from e

        raise InferenceError("AI response failed schema validation")

    def _analyze(self, user_content: list[dict], system_prompt: str) -> dict:
        """Run one nutrition analysis call and translate SDK errors."""
        try:
            validated, raw_text = self._call_with_schema_retry(
                messages=[{"role": "user", "content": user_content}],
                schema_class=MealNutritionAnalysisSchema,
                request_params={
                    "model": self.vision_model,
                    "max_tokens": 2048,
                    "system": system_prompt,
                },
            )
        except anthropic.APIConnectionError as e:
            raise ServiceUnavailableError("AI service temporarily unavailable") from e
        except anthropic.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise InferenceError(f"Request error: {e.message}") from e

        validated["raw_response"] = raw_text
        validated["model"] = self.vision_model
        return validated

    # =========================================================================
    # MEAL ANALYSIS
    # =========================================================================

    async def analyze_meal_image(self, image_path: str) -> dict:
        """
        Analyze a meal photo and return per-food nutrition.

        Args:
            image_path: Path to the uploaded image file

        Returns:
            {
                "is_food": True,
                "error": None,
                "foods": [
                    {
                        "name": "grilled chicken breast",
                        "confidence": 0.92,
                        "portion": {"amount": 150, "unit": "g"},
                        "nutrition": {"calories": 248, "protein": 46.5, ...},
                        "category": "protein"
                    }
                ],
                "total_nutrition": {...},
                "meal_context": {...},
                "notes": "...",
                "raw_response": "...",
                "model": "claude-sonnet-4-5-20250929"
            }

        Raises:
            ServiceUnavailableError: AI service temporarily down
            RateLimitError: Too many requests
            InferenceError: Unreadable image, invalid response or request error
        """
        try:
            image_data = self._load_image_base64(image_path)
        except OSError as e:
            raise InferenceError(f"Could not read image {image_path}: {e}") from e

        user_content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": self._get_media_type(image_path),
                    "data": image_data,
                },
            },
            {
                "type": "text",
                "text": "Analyze this meal and estimate the nutrition of every food.",
            },
        ]
        return self._analyze(user_content, MEAL_IMAGE_ANALYSIS_SYSTEM_PROMPT)

    async def analyze_meal_description(self, description: str) -> dict:
        """
        Analyze a free-text meal description.

        Returns the same structure as analyze_meal_image().
        """
        user_content = [
            {
                "type": "text",
                "text": f"Meal description: {description}",
            }
        ]
        return self._analyze(user_content, MEAL_DESCRIPTION_ANALYSIS_SYSTEM_PROMPT)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _load_image_base64(self, image_path: str) -> str:
        """Load image file and encode as base64."""
        with open(image_path, "rb") as f:
            return base64.standard_b64encode(f.read()).decode("utf-8")

    def _get_media_type(self, image_path: str) -> str:
        """Determine media type from file extension."""
        suffix = Path(image_path).suffix.lower()
        media_types = {
            ".jpg": "image/jpeg",
            ".jpeg": "image/jpeg",
            ".png": "image/png",
            ".gif": "image/gif",
            ".webp": "image/webp",
        }
        return media_types.get(suffix, "image/jpeg")


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class ServiceUnavailableError(Exception):
    """AI service is temporarily unavailable."""

    pass


class RateLimitError(Exception):
    """Rate limit exceeded."""

    pass


class InferenceError(Exception):
    """AI service responded but the result could not be used."""

    pass
