"""Model provider: deserialize, shape-bind and optimize the classification graph.

The serialized ONNX graph is compiled from memory in two passes. The first,
unoptimized pass only inspects the graph input so that symbolic dimensions
can be pinned to ``INPUT_SHAPE``; the second pass builds the optimized session
that serves requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import (
    ExecutionMode,
    Fail,
    InvalidArgument,
    InvalidGraph,
    InvalidProtobuf,
    NoSuchFile,
    RuntimeException,
)

from classifyx.ml.errors import ModelError, model_error_from

if TYPE_CHECKING:
    from classifyx.config import Settings
    from classifyx.ml.resources import ModelResource

logger = logging.getLogger(__name__)

INPUT_SHAPE: tuple[int, int, int, int] = (1, 224, 224, 3)
INPUT_TYPE = "tensor(float)"

# Everything onnxruntime raises while loading or running a graph.
ORT_ERRORS: tuple[type[BaseException], ...] = (
    Fail,
    InvalidArgument,
    InvalidGraph,
    InvalidProtobuf,
    NoSuchFile,
    RuntimeException,
    RuntimeError,
)

_PROVIDERS = ["CPUExecutionProvider"]


@dataclass(frozen=True)
class CompiledModel:
    """An optimized, shape-bound session ready to run."""

    model_name: str
    session: InferenceSession
    input_name: str
    output_name: str
    input_shape: tuple[int, ...] = INPUT_SHAPE


class ModelProvider:
    """Compiles a ``ModelResource`` into a ``CompiledModel``."""

    def __init__(self, settings: Settings) -> None:
        self._intra_op_threads = settings.intra_op_threads
        self._inter_op_threads = settings.inter_op_threads

    def compile(self, resource: ModelResource) -> CompiledModel:
        """Deserialize, bind to ``INPUT_SHAPE`` and optimize.

        Raises:
            ModelError: If the bytes are not a valid graph or the graph input
                cannot be bound to a float32 ``INPUT_SHAPE`` tensor.
        """
        try:
            inspector = InferenceSession(
                resource.data,
                sess_options=self._build_session_options(optimize=False),
                providers=_PROVIDERS,
            )
        except ORT_ERRORS as exc:
            raise model_error_from(exc) from exc

        inputs = inspector.get_inputs()
        outputs = inspector.get_outputs()
        if not inputs or not outputs:
            raise ModelError(f"Model {resource.name} must have at least one input and one output")

        model_input = inputs[0]
        if model_input.type != INPUT_TYPE:
            raise ModelError(f"Input {model_input.name!r} has type {model_input.type}, expected {INPUT_TYPE}")

        overrides = _bind_shape(model_input.name, model_input.shape)

        opts = self._build_session_options(optimize=True)
        for dim_name, value in overrides.items():
            opts.add_free_dimension_override_by_name(dim_name, value)

        try:
            session = InferenceSession(resource.data, sess_options=opts, providers=_PROVIDERS)
        except ORT_ERRORS as exc:
            raise model_error_from(exc) from exc

        logger.info("Loaded model %s (input=%s, output=%s)", resource.name, model_input.name, outputs[0].name)
        return CompiledModel(
            model_name=resource.name,
            session=session,
            input_name=model_input.name,
            output_name=outputs[0].name,
        )

    def _build_session_options(self, *, optimize: bool) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._intra_op_threads
        opts.inter_op_num_threads = self._inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True
        opts.graph_optimization_level = (
            GraphOptimizationLevel.ORT_ENABLE_ALL if optimize else GraphOptimizationLevel.ORT_DISABLE_ALL
        )
        return opts


def _bind_shape(input_name: str, shape: list[int | str | None]) -> dict[str, int]:
    """Match a graph input shape against ``INPUT_SHAPE``.

    Returns the symbolic dimension overrides needed to pin the input.
    Unnamed dynamic dimensions are left to be resolved at run time.
    """
    if len(shape) != len(INPUT_SHAPE):
        raise ModelError(f"Input {input_name!r} has rank {len(shape)}, expected shape {INPUT_SHAPE}")

    overrides: dict[str, int] = {}
    for dim, expected in zip(shape, INPUT_SHAPE, strict=True):
        if isinstance(dim, str):
            if overrides.get(dim, expected) != expected:
                raise ModelError(f"Symbolic dimension {dim!r} of {input_name!r} cannot be bound to {INPUT_SHAPE}")
            overrides[dim] = expected
        elif isinstance(dim, int) and dim > 0 and dim != expected:
            raise ModelError(f"Input {input_name!r} has shape {shape}, expected {INPUT_SHAPE}")
    return overrides
