"""Classification error taxonomy.

Every failure inside the pipeline surfaces as one ``ClassificationError``
subclass, tagged with an ``ErrorKind``. Library exceptions are converted at
the call site through the ``*_error_from`` helpers so the original cause is
preserved as ``__cause__``.

``LabelIndexError`` is kept outside the hierarchy: it means the deployed model
and label table disagree, which no request can recover from.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    MODEL = "model"
    IMAGE = "image"
    IO = "io"
    UNCLASSIFIED = "unclassified"
    UNKNOWN = "unknown"


class ClassificationError(Exception):
    """Base class for recoverable classification failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class ModelError(ClassificationError):
    """Graph deserialization, shape binding, optimization or execution failed."""

    kind = ErrorKind.MODEL


class ImageError(ClassificationError):
    """Input bytes could not be decoded as a supported image."""

    kind = ErrorKind.IMAGE


class ResourceIOError(ClassificationError):
    """A model or label resource could not be read or fetched."""

    kind = ErrorKind.IO


class UnclassifiedError(ClassificationError):
    """The model output has no maximum (empty or all-NaN score vector)."""

    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str = "Model output contains no classifiable score") -> None:
        super().__init__(message)


class UnknownClassificationError(ClassificationError):
    kind = ErrorKind.UNKNOWN


class LabelIndexError(Exception):
    """Fatal: the predicted class has no line in the label table."""

    def __init__(self, class_index: int, label_count: int) -> None:
        self.class_index = class_index
        self.label_count = label_count
        super().__init__(
            f"Cannot get prediction label: class {class_index} is outside the label table (1..{label_count})"
        )


def model_error_from(exc: BaseException) -> ModelError:
    return ModelError(f"{type(exc).__name__}: {exc}")


def image_error_from(exc: BaseException) -> ImageError:
    return ImageError(f"{type(exc).__name__}: {exc}")


def io_error_from(exc: BaseException) -> ResourceIOError:
    return ResourceIOError(f"{type(exc).__name__}: {exc}")
