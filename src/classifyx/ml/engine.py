"""Forward pass over a compiled model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from classifyx.ml.errors import ModelError, model_error_from
from classifyx.ml.model_provider import ORT_ERRORS

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from classifyx.ml.model_provider import CompiledModel

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Runs one input tensor through a ``CompiledModel``."""

    def run(self, model: CompiledModel, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Execute the graph and return its first output as a flat score vector.

        Raises:
            ModelError: If the tensor does not match the bound input, or execution fails.
        """
        if tensor.dtype != np.float32 or tuple(tensor.shape) != model.input_shape:
            raise ModelError(
                f"Input tensor {tensor.dtype}{tuple(tensor.shape)} does not match float32{model.input_shape}"
            )

        try:
            outputs = model.session.run([model.output_name], {model.input_name: tensor})
        except ORT_ERRORS as exc:
            raise model_error_from(exc) from exc

        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)
