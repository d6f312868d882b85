"""End-to-end classification: preprocess, infer, resolve.

Each stage fails fast; the first error aborts the request and propagates
unchanged. Nothing is retried and no partial result is returned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from classifyx.ml.errors import (
    ClassificationError,
    LabelIndexError,
    UnknownClassificationError,
)
from classifyx.ml.labels import ClassificationResult, resolve

if TYPE_CHECKING:
    from classifyx.ml.engine import InferenceEngine
    from classifyx.ml.labels import LabelTable
    from classifyx.ml.model_provider import CompiledModel, ModelProvider
    from classifyx.ml.preprocessing import ImagePreprocessor
    from classifyx.ml.resources import ModelResource

__all__ = ["ClassificationResult", "ImageClassifier"]

logger = logging.getLogger(__name__)


class ImageClassifier:
    """Single-image classifier over a fixed model and label table.

    The model is compiled once here and shared read-only by every call. With
    ``recompile_per_request`` a fresh model is compiled for each call instead;
    the scores are identical either way.
    """

    def __init__(
        self,
        provider: ModelProvider,
        resource: ModelResource,
        labels: LabelTable,
        preprocessor: ImagePreprocessor,
        engine: InferenceEngine,
        *,
        recompile_per_request: bool = False,
    ) -> None:
        self._provider = provider
        self._resource = resource
        self._labels = labels
        self._preprocessor = preprocessor
        self._engine = engine
        self._recompile_per_request = recompile_per_request
        self._model = provider.compile(resource)

    @property
    def model(self) -> CompiledModel:
        return self._model

    @property
    def labels(self) -> LabelTable:
        return self._labels

    def classify(self, image_bytes: bytes) -> ClassificationResult:
        """Classify one image.

        Raises:
            ClassificationError: For model, image, I/O and unclassified failures.
            LabelIndexError: If the model predicts a class the label table lacks.
        """
        logger.info("Received image with %d bytes.", len(image_bytes))
        try:
            model = self._provider.compile(self._resource) if self._recompile_per_request else self._model
            tensor = self._preprocessor.preprocess(image_bytes)
            scores = self._engine.run(model, tensor)
            return resolve(scores, self._labels)
        except (ClassificationError, LabelIndexError):
            raise
        except Exception as exc:  # noqa: BLE001
            raise UnknownClassificationError(f"{type(exc).__name__}: {exc}") from exc
