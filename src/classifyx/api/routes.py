"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, Response

from classifyx.api.middleware import require_api_key
from classifyx.api.schemas import (
    ClassificationResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfoResponse,
)
from classifyx.ml.errors import ClassificationError, LabelIndexError

if TYPE_CHECKING:
    from classifyx.config import Settings
    from classifyx.ml.image_classifier import ImageClassifier
    from classifyx.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(require_api_key)])
public_router = APIRouter(prefix="/api/v1")

NO_IMAGE_DETAIL = "No image data received."
CLASSIFICATION_FAILED_DETAIL = "Error during classification"

_IMAGE_BODY = {
    "requestBody": {
        "required": True,
        "content": {"application/octet-stream": {"schema": {"type": "string", "format": "binary"}}},
    }
}


def _text_response(description: str) -> dict[str, object]:
    return {"description": description, "content": {"text/plain": {"schema": {"type": "string"}}}}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_classifier(request: Request) -> ImageClassifier:
    classifier: ImageClassifier = request.app.state.classifier
    return classifier


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


@router.post(
    "/classify",
    response_model=ClassificationResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: _text_response("Empty request body"),
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: _text_response("Request body exceeds the size limit"),
        status.HTTP_500_INTERNAL_SERVER_ERROR: _text_response("Classification failed"),
        status.HTTP_503_SERVICE_UNAVAILABLE: _text_response("No inference slot available"),
    },
    openapi_extra=_IMAGE_BODY,
    summary="Classify an image",
)
async def classify_image(request: Request) -> Response:
    """Classify the raw image bytes sent as the request body."""
    image = await request.body()
    if not image:
        return PlainTextResponse(NO_IMAGE_DETAIL, status_code=status.HTTP_400_BAD_REQUEST)

    settings = _get_settings(request)
    if len(image) > settings.max_file_size:
        return PlainTextResponse(
            f"Image exceeds {settings.max_file_size} bytes.",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    pool = _get_inference_pool(request)
    try:
        result = await pool.classify(_get_classifier(request), image)
    except TimeoutError:
        return PlainTextResponse("Inference queue is full.", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    except LabelIndexError as exc:
        logger.critical("Model and label table disagree: %s", exc)
        return PlainTextResponse(CLASSIFICATION_FAILED_DETAIL, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except ClassificationError as exc:
        logger.error("Error during classification: %r", exc)
        return PlainTextResponse(CLASSIFICATION_FAILED_DETAIL, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = ClassificationResponse(label=result.label, probability=result.probability)
    return Response(content=body.render(), media_type="application/json")


@public_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    classifier = _get_classifier(request)
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        model_loaded=classifier.model is not None,
        label_count=len(classifier.labels),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
    summary="Describe the loaded model",
)
async def model_info(request: Request) -> ModelInfoResponse:
    """Return the loaded model's name, input binding and class count."""
    classifier = _get_classifier(request)
    model = classifier.model
    return ModelInfoResponse(
        name=model.model_name,
        input_name=model.input_name,
        output_name=model.output_name,
        input_shape=list(model.input_shape),
        class_count=len(classifier.labels),
    )
