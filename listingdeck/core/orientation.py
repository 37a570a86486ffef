"""Orientation classification from pixel dimensions."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from PIL import Image, UnidentifiedImageError

from .models import Orientation

logger = logging.getLogger(__name__)

HORIZONTAL_THRESHOLD = 1.05
VERTICAL_THRESHOLD = 0.95


def classify_dimensions(
    width: int,
    height: int,
    horizontal_threshold: float = HORIZONTAL_THRESHOLD,
    vertical_threshold: float = VERTICAL_THRESHOLD,
) -> Orientation:
    ratio = float(width) / float(height)
    if ratio > horizontal_threshold:
        return Orientation.HORIZONTAL
    if ratio < vertical_threshold:
        return Orientation.VERTICAL
    return Orientation.SQUARE


class ImageAnalyzer:
    """Reads image sizes with Pillow and classifies them.

    Anything that cannot be decoded, including images over Pillow's pixel
    limit, falls back to horizontal.
    """

    def __init__(
        self,
        horizontal_threshold: float = HORIZONTAL_THRESHOLD,
        vertical_threshold: float = VERTICAL_THRESHOLD,
    ) -> None:
        self.horizontal_threshold = horizontal_threshold
        self.vertical_threshold = vertical_threshold

    def _classify(self, width: int, height: int) -> Orientation:
        return classify_dimensions(width, height, self.horizontal_threshold, self.vertical_threshold)

    def _from_image(self, opener, source: str) -> Orientation:
        try:
            with opener() as img:
                width, height = img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            logger.warning("Could not read dimensions of %s (%s); using horizontal", source, type(exc).__name__)
            return Orientation.HORIZONTAL
        if not width or not height or width <= 0 or height <= 0:
            logger.warning("Image %s has no usable size; using horizontal", source)
            return Orientation.HORIZONTAL
        return self._classify(width, height)

    def classify_file(self, path: Path) -> Orientation:
        return self._from_image(lambda: Image.open(path), str(path))

    def classify_bytes(self, data: bytes, name: str = "<bytes>") -> Orientation:
        return self._from_image(lambda: Image.open(io.BytesIO(data)), name)

    def classify_batch(self, files: Iterable[Path]) -> List[Orientation]:
        return [self.classify_file(f) for f in files]

    def orientation_map(self, files: Iterable[Path]) -> Dict[str, str]:
        return {str(idx): ori.value for idx, ori in enumerate(self.classify_batch(files))}
