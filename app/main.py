import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from app.api import meals
from app.config import settings
from app.services.ai_service import (
    InferenceError,
    RateLimitError,
    ServiceUnavailableError,
)
from app.services.ingestion_service import MealIngestionError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Nutrition AI Meal Ingestion", version="0.1.0")

# Stored meal images
app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Render the JSON error envelope shared by every endpoint."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details}},
        headers=headers,
    )


# =============================================================================
# Exception handlers
# =============================================================================


@app.exception_handler(MealIngestionError)
async def ingestion_exception_handler(request: Request, exc: MealIngestionError):
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(ServiceUnavailableError)
async def ai_unavailable_handler(request: Request, exc: ServiceUnavailableError):
    logger.error("AI service unavailable on %s: %s", request.url.path, exc, exc_info=exc)
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "AI_SERVICE_UNAVAILABLE",
        "The meal analysis service is temporarily unavailable. Please try again shortly.",
    )


@app.exception_handler(RateLimitError)
async def ai_rate_limit_handler(request: Request, exc: RateLimitError):
    logger.warning("AI rate limit hit on %s", request.url.path)
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "AI_RATE_LIMITED",
        "Too many analysis requests. Please try again in a minute.",
    )


@app.exception_handler(InferenceError)
async def inference_error_handler(request: Request, exc: InferenceError):
    logger.error("Meal inference failed on %s: %s", request.url.path, exc, exc_info=exc)
    return error_response(
        status.HTTP_502_BAD_GATEWAY,
        "INFERENCE_FAILED",
        "The meal could not be analyzed. Please try again.",
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "VALIDATION_FAILED",
        "Request validation failed",
        details,
    )


_HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
}


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(
        exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


# Include routers
app.include_router(meals.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
