"""Label table and score-to-label resolution.

The label file is newline-delimited; line *i* (1-based) names class *i*, which
is also the position of that class's score in the model output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from classifyx.ml.errors import LabelIndexError, UnclassifiedError

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """A single prediction: label, raw maximum score and 1-based class index."""

    label: str
    probability: float
    class_index: int


@dataclass(frozen=True)
class LabelTable:
    """Immutable, 1-indexed sequence of class labels."""

    labels: tuple[str, ...]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> LabelTable:
        return cls(labels=tuple(lines))

    @classmethod
    def from_text(cls, text: str) -> LabelTable:
        """Parse newline-delimited text. A trailing newline does not add an empty label."""
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return cls.from_lines(line.removesuffix("\r") for line in lines)

    def __len__(self) -> int:
        return len(self.labels)

    def label_for(self, class_index: int) -> str:
        """Return the label on line ``class_index`` (1-based).

        Raises:
            LabelIndexError: If the table has no such line.
        """
        if class_index < 1 or class_index > len(self.labels):
            raise LabelIndexError(class_index, len(self.labels))
        return self.labels[class_index - 1]


def best_class(scores: NDArray[np.float32]) -> tuple[int, float] | None:
    """Return ``(class_index, score)`` of the highest score, or None if there is none.

    Scans with a strict greater-than, so ties go to the earliest class and NaN
    scores never win.
    """
    best: tuple[int, float] | None = None
    for class_index, value in enumerate(scores.tolist(), start=1):
        if math.isnan(value):
            continue
        if best is None or value > best[1]:
            best = (class_index, value)
    return best


def resolve(scores: NDArray[np.float32], labels: LabelTable) -> ClassificationResult:
    """Map the highest-scoring output to its label.

    Raises:
        UnclassifiedError: If ``scores`` has no maximum.
        LabelIndexError: If the winning class has no label line.
    """
    best = best_class(scores)
    if best is None:
        raise UnclassifiedError(f"No maximum in score vector of length {scores.size}")

    class_index, probability = best
    label = labels.label_for(class_index)
    logger.info("Probability: %s, class: %s.", probability, label)
    return ClassificationResult(label=label, probability=probability, class_index=class_index)
