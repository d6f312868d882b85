"""Shared fixtures: tiny ONNX graphs, labels and encoded images."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import onnx
import pytest
from onnx import TensorProto, helper
from PIL import Image

from classifyx.config import Settings
from classifyx.ml.engine import InferenceEngine
from classifyx.ml.image_classifier import ImageClassifier
from classifyx.ml.labels import LabelTable
from classifyx.ml.model_provider import ModelProvider
from classifyx.ml.preprocessing import ImagePreprocessor
from classifyx.ml.resources import ModelResource

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

RGB_LABELS = ("red", "green", "blue")


def _serialize(graph: onnx.GraphProto, opset: int = 13) -> bytes:
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", opset)])
    model.ir_version = 8
    return model.SerializeToString()


def build_channel_max_model(input_shape: Sequence[int | str] = ("batch", 224, 224, 3)) -> bytes:
    """Graph whose score for class c is the brightest value of channel c: (N, H, W, 3) -> (N, 3)."""
    node = helper.make_node("ReduceMax", ["image"], ["scores"], axes=[1, 2], keepdims=0)
    graph = helper.make_graph(
        [node],
        "channel_max",
        [helper.make_tensor_value_info("image", TensorProto.FLOAT, list(input_shape))],
        [helper.make_tensor_value_info("scores", TensorProto.FLOAT, [input_shape[0], 3])],
    )
    return _serialize(graph)


def build_identity_model(input_shape: Sequence[int | str], elem_type: int = TensorProto.FLOAT) -> bytes:
    node = helper.make_node("Identity", ["image"], ["scores"])
    graph = helper.make_graph(
        [node],
        "identity",
        [helper.make_tensor_value_info("image", elem_type, list(input_shape))],
        [helper.make_tensor_value_info("scores", elem_type, list(input_shape))],
    )
    return _serialize(graph)


def encode_image(color: tuple[int, int, int], size: tuple[int, int] = (64, 48), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        model_path=tmp_path / "channel_max.onnx",
        labels_path=tmp_path / "labels.txt",
        models_dir=tmp_path / "models",
        max_concurrent=2,
    )


@pytest.fixture()
def max_model_resource() -> ModelResource:
    return ModelResource(name="channel_max", data=build_channel_max_model())


@pytest.fixture()
def rgb_labels() -> LabelTable:
    return LabelTable.from_lines(RGB_LABELS)


@pytest.fixture()
def make_classifier(
    settings: Settings,
    max_model_resource: ModelResource,
    rgb_labels: LabelTable,
) -> Callable[..., ImageClassifier]:
    def _make(labels: LabelTable | None = None, **overrides: object) -> ImageClassifier:
        kwargs: dict[str, object] = {
            "provider": ModelProvider(settings),
            "resource": max_model_resource,
            "labels": labels if labels is not None else rgb_labels,
            "preprocessor": ImagePreprocessor(max_image_pixels=settings.max_image_pixels),
            "engine": InferenceEngine(),
        }
        kwargs.update(overrides)
        return ImageClassifier(**kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def classifier(make_classifier: Callable[..., ImageClassifier]) -> ImageClassifier:
    return make_classifier()
