"""Pydantic response schemas for the ClassifyX API."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field


class ClassificationResponse(BaseModel):
    """Response for the classification endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(alias="Predicted label")
    probability: float = Field(alias="Probability", description="Raw maximum model score (no softmax)")

    def render(self) -> str:
        """Serialize with the probability fixed to four decimals."""
        return f'{{"Predicted label": {json.dumps(self.label)}, "Probability": {self.probability:.4f}}}'


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = "ok"
    model_loaded: bool
    label_count: int
    concurrent_requests: int
    queue_depth: int


class ModelInfoResponse(BaseModel):
    """Information about the loaded classification model."""

    name: str
    input_name: str
    output_name: str
    input_shape: list[int]
    class_count: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
