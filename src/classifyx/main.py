"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from classifyx.config import Settings

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classifyx.api.routes import public_router, router
from classifyx.config import get_settings
from classifyx.ml.engine import InferenceEngine
from classifyx.ml.image_classifier import ImageClassifier
from classifyx.ml.inference import InferencePool
from classifyx.ml.model_provider import ModelProvider
from classifyx.ml.preprocessing import ImagePreprocessor
from classifyx.ml.resources import ensure_resources, load_label_table, load_model_resource

logger = logging.getLogger(__name__)


def build_classifier(settings: Settings) -> ImageClassifier:
    """Load the model and label artifacts and compile the classifier."""
    model_path, labels_path = ensure_resources(settings)
    return ImageClassifier(
        provider=ModelProvider(settings),
        resource=load_model_resource(model_path),
        labels=load_label_table(labels_path),
        preprocessor=ImagePreprocessor(max_image_pixels=settings.max_image_pixels),
        engine=InferenceEngine(),
        recompile_per_request=settings.recompile_per_request,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting ClassifyX (model=%s, labels=%s, max_concurrent=%s, recompile_per_request=%s)",
        settings.model_repo_id or settings.model_path,
        settings.labels_filename if settings.model_repo_id else settings.labels_path,
        settings.max_concurrent,
        settings.recompile_per_request,
    )

    app.state.classifier = build_classifier(settings)
    inference_pool = InferencePool(settings.max_concurrent)
    app.state.inference_pool = inference_pool

    logger.info("ClassifyX ready")
    yield

    logger.info("Shutting down ClassifyX")
    inference_pool.shutdown()
    logger.info("ClassifyX shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="ClassifyX",
        description="Single-shot image classification API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(public_router)
    application.include_router(router)
    return application


app = create_app()
