"""Model and label artifacts.

Both artifacts ship inside the package by default. When a Hugging Face Hub
repository is configured they are fetched into ``models_dir`` instead. Either
way they are read once at startup and shared read-only afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError

from classifyx.ml.errors import io_error_from
from classifyx.ml.labels import LabelTable

if TYPE_CHECKING:
    from classifyx.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelResource:
    """Serialized inference graph held in memory."""

    name: str
    data: bytes

    def __repr__(self) -> str:
        return f"ModelResource(name={self.name!r}, size={len(self.data)})"


def ensure_resources(settings: Settings) -> tuple[Path, Path]:
    """Return local paths of the model and label files, downloading them if configured.

    Raises:
        ResourceIOError: If a download fails.
    """
    if settings.model_repo_id is None:
        return settings.model_path, settings.labels_path

    models_dir = Path(settings.models_dir)
    try:
        models_dir.mkdir(parents=True, exist_ok=True)
        paths = tuple(
            Path(
                hf_hub_download(
                    repo_id=settings.model_repo_id,
                    filename=filename,
                    local_dir=str(models_dir),
                )
            )
            for filename in (settings.model_filename, settings.labels_filename)
        )
    except (OSError, HfHubHTTPError) as exc:
        raise io_error_from(exc) from exc

    model_path, labels_path = paths
    logger.info("Fetched %s and %s from %s", model_path.name, labels_path.name, settings.model_repo_id)
    return model_path, labels_path


def load_model_resource(path: Path) -> ModelResource:
    """Read a serialized model graph into memory.

    Raises:
        ResourceIOError: If the file cannot be read.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise io_error_from(exc) from exc
    logger.info("Read model %s (%d bytes)", path.name, len(data))
    return ModelResource(name=path.stem, data=data)


def load_label_table(path: Path) -> LabelTable:
    """Read a newline-delimited UTF-8 label file.

    Raises:
        ResourceIOError: If the file cannot be read or is not valid UTF-8.
    """
    try:
        text = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise io_error_from(exc) from exc
    table = LabelTable.from_text(text)
    logger.info("Read %d labels from %s", len(table), path.name)
    return table
