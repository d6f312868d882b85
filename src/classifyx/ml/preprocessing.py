"""Image preprocessing pipeline.

Decodes raw bytes of any format Pillow can sniff, converts to 8-bit RGB,
stretches to the model's 224x224 input with a triangle (bilinear) filter and
scales intensities to [0.0, 1.0]. No crop and no mean/std normalization: the
model expects exactly ``pixel / 255``.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, UnidentifiedImageError

from classifyx.ml.errors import ImageError, image_error_from
from classifyx.ml.model_provider import INPUT_SHAPE

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

TARGET_HEIGHT, TARGET_WIDTH = INPUT_SHAPE[1:3]

# What Pillow raises for truncated, corrupt or oversized input.
_DECODE_ERRORS: tuple[type[BaseException], ...] = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
)

# Modes whose samples are wider than 8 bits. Pillow clips these on convert("RGB").
_SIXTEEN_BIT_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")


def _to_8bit(img: Image.Image) -> Image.Image:
    """Rescale 16-bit integer and [0, 1] float images to 8-bit grayscale."""
    if img.mode in _SIXTEEN_BIT_MODES:
        samples = np.clip(np.asarray(img, dtype=np.float64), 0, 65535) / 257.0
    elif img.mode == "F":
        samples = np.clip(np.asarray(img, dtype=np.float64), 0.0, 1.0) * 255.0
    else:
        return img
    return Image.fromarray(np.rint(samples).astype(np.uint8))


class ImagePreprocessor:
    """Turns raw image bytes into the model input tensor."""

    def __init__(self, max_image_pixels: int) -> None:
        self._max_image_pixels = max_image_pixels

    def decode_image(self, image_bytes: bytes) -> NDArray[np.uint8]:
        """Decode raw image bytes into an RGB uint8 numpy array.

        Args:
            image_bytes: Raw file bytes (any supported format).

        Returns:
            HxWx3 RGB uint8 numpy array.

        Raises:
            ImageError: If the image cannot be decoded or exceeds size limits.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                width, height = img.size
                if width * height > self._max_image_pixels:
                    raise ImageError(f"Image has {width * height} pixels, limit is {self._max_image_pixels}")
                rgb = _to_8bit(img).convert("RGB")
        except _DECODE_ERRORS as exc:
            raise image_error_from(exc) from exc
        return np.asarray(rgb, dtype=np.uint8)

    def resize(self, image: NDArray[np.uint8]) -> NDArray[np.uint8]:
        """Stretch an HxWx3 grid to the model resolution, ignoring aspect ratio."""
        resized = Image.fromarray(image).resize(
            (TARGET_WIDTH, TARGET_HEIGHT),
            resample=Image.Resampling.BILINEAR,
        )
        return np.asarray(resized, dtype=np.uint8)

    def to_tensor(self, image: NDArray[np.uint8]) -> NDArray[np.float32]:
        """Scale a 224x224x3 grid to float32 in [0, 1] and add the batch axis."""
        tensor = image.astype(np.float32) / np.float32(255.0)
        return tensor[np.newaxis, ...]

    def preprocess(self, image_bytes: bytes) -> NDArray[np.float32]:
        """Decode, resize and normalize. Returns a ``(1, 224, 224, 3)`` float32 tensor."""
        image = self.decode_image(image_bytes)
        resized = self.resize(image)
        logger.info("Resized image from %dx%d to %dx%d px.", image.shape[1], image.shape[0], TARGET_WIDTH, TARGET_HEIGHT)
        return self.to_tensor(resized)
