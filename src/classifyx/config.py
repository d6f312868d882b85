"""Environment-based configuration for ClassifyX."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"


class Settings(BaseSettings):
    """Application settings loaded from CLASSIFYX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLASSIFYX_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082

    # Authentication (None = disabled)
    api_key: str | None = None

    # Bundled artifacts
    model_path: Path = RESOURCES_DIR / "mobilenet_v2_1.4_224.onnx"
    labels_path: Path = RESOURCES_DIR / "labels.txt"

    # Optional Hugging Face Hub source (None = use the bundled artifacts)
    model_repo_id: str | None = None
    model_filename: str = "mobilenet_v2_1.4_224.onnx"
    labels_filename: str = "labels.txt"
    models_dir: Path = Path.home() / ".cache" / "classifyx"

    # Compile the model for every request instead of once at startup
    recompile_per_request: bool = False

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
