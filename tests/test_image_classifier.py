"""End-to-end tests for the classification pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import encode_image

from classifyx.ml.errors import (
    ErrorKind,
    ImageError,
    LabelIndexError,
    ModelError,
    UnclassifiedError,
    UnknownClassificationError,
)
from classifyx.ml.labels import LabelTable
from classifyx.ml.model_provider import ModelProvider

if TYPE_CHECKING:
    from collections.abc import Callable

    from classifyx.config import Settings
    from classifyx.ml.image_classifier import ImageClassifier


class TestClassify:
    def test_predicts_dominant_channel(self, classifier: ImageClassifier) -> None:
        result = classifier.classify(encode_image((10, 200, 30)))
        assert result.label == "green"
        assert result.class_index == 2
        assert result.probability == float(np.float32(200) / np.float32(255))
        assert result.probability >= 0.5

    def test_each_class_is_reachable(self, classifier: ImageClassifier) -> None:
        assert classifier.classify(encode_image((255, 0, 0))).label == "red"
        assert classifier.classify(encode_image((0, 255, 0), fmt="JPEG")).label == "green"
        assert classifier.classify(encode_image((0, 0, 255), size=(1000, 10))).label == "blue"

    def test_tie_goes_to_first_class(self, classifier: ImageClassifier) -> None:
        result = classifier.classify(encode_image((128, 128, 0)))
        assert result.label == "red"

    def test_same_bytes_same_result(self, classifier: ImageClassifier) -> None:
        data = encode_image((40, 90, 70), size=(333, 111))
        assert classifier.classify(data) == classifier.classify(data)

    def test_recompile_per_request_matches_shared_model(
        self, make_classifier: Callable[..., ImageClassifier]
    ) -> None:
        data = encode_image((40, 90, 70), size=(333, 111))
        shared = make_classifier().classify(data)
        fresh = make_classifier(recompile_per_request=True).classify(data)
        assert fresh == shared

    def test_recompile_per_request_compiles_each_call(
        self, make_classifier: Callable[..., ImageClassifier], settings: Settings
    ) -> None:
        provider = ModelProvider(settings)
        spy = MagicMock(wraps=provider)
        classifier = make_classifier(provider=spy, recompile_per_request=True)
        classifier.classify(encode_image((1, 2, 3)))
        classifier.classify(encode_image((1, 2, 3)))
        assert spy.compile.call_count == 3


class TestClassifyFailures:
    def test_non_image_bytes_are_image_error(self, classifier: ImageClassifier) -> None:
        with pytest.raises(ImageError) as exc_info:
            classifier.classify(b"GIF89a but not really")
        assert exc_info.value.kind == ErrorKind.IMAGE

    def test_empty_scores_are_unclassified(self, make_classifier: Callable[..., ImageClassifier]) -> None:
        engine = MagicMock()
        engine.run.return_value = np.array([], dtype=np.float32)
        classifier = make_classifier(engine=engine)
        with pytest.raises(UnclassifiedError):
            classifier.classify(encode_image((1, 2, 3)))

    def test_label_overflow_is_fatal(self, make_classifier: Callable[..., ImageClassifier]) -> None:
        classifier = make_classifier(labels=LabelTable.from_lines(["red", "green"]))
        assert classifier.classify(encode_image((200, 0, 0))).label == "red"
        with pytest.raises(LabelIndexError) as exc_info:
            classifier.classify(encode_image((0, 0, 200)))
        assert exc_info.value.class_index == 3
        assert exc_info.value.label_count == 2

    def test_engine_failure_propagates_as_model_error(self, make_classifier: Callable[..., ImageClassifier]) -> None:
        engine = MagicMock()
        engine.run.side_effect = ModelError("boom")
        classifier = make_classifier(engine=engine)
        with pytest.raises(ModelError, match="boom"):
            classifier.classify(encode_image((1, 2, 3)))

    def test_unexpected_failure_is_unknown(self, make_classifier: Callable[..., ImageClassifier]) -> None:
        preprocessor = MagicMock()
        preprocessor.preprocess.side_effect = MemoryError("out of memory")
        classifier = make_classifier(preprocessor=preprocessor)
        with pytest.raises(UnknownClassificationError) as exc_info:
            classifier.classify(encode_image((1, 2, 3)))
        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert isinstance(exc_info.value.__cause__, MemoryError)

    def test_image_failure_stops_before_inference(self, make_classifier: Callable[..., ImageClassifier]) -> None:
        engine = MagicMock()
        classifier = make_classifier(engine=engine)
        with pytest.raises(ImageError):
            classifier.classify(b"\xff\xd8 broken jpeg")
        engine.run.assert_not_called()
