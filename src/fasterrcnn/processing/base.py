"""Image processor interface.

Each image back-end implements the same three stages:

    preprocess          bytes -> decoded, oriented, resized image
    get_tensor          image -> (3, H, W) float32 tensor
    apply_predictions   detections + image -> JPEG bytes

Images are backend-specific objects (a Pillow ``Image`` or an OpenCV
``ndarray``) and should be acquired through :meth:`ImageProcessor.open`
so they are released on every exit path.

Author: Matthew Hong
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from enum import Enum
from typing import Generic, TypeVar

import numpy as np

from fasterrcnn.config import get_section
from fasterrcnn.postprocess import Detection

ImageT = TypeVar("ImageT")


class ImageBackend(str, Enum):
    """Raster library used for decoding, resizing and drawing."""

    PILLOW = "pillow"
    OPENCV = "opencv"


class ImageProcessor(ABC, Generic[ImageT]):
    """Base class for image back-ends.

    Attributes:
        name: Back-end identifier
        box_color: Outline color as RGB
        text_color: Caption color as RGB
        stroke_width: Outline thickness in pixels
        font_size: Caption size in pixels
        jpeg_quality: Output JPEG quality [1, 100]
    """

    name: ImageBackend

    def __init__(self) -> None:
        rendering = get_section("rendering")
        self.box_color: tuple[int, int, int] = tuple(rendering["box_color"])
        self.text_color: tuple[int, int, int] = tuple(rendering["text_color"])
        self.stroke_width: int = rendering["stroke_width"]
        self.font_size: int = rendering["font_size"]
        self.jpeg_quality: int = rendering["jpeg_quality"]

    @abstractmethod
    def preprocess(self, image_bytes: bytes) -> ImageT:
        """Decode, orient and resize an image.

        Raises:
            DecodeError: If the bytes are not a supported image
        """

    @abstractmethod
    def get_tensor(self, image: ImageT) -> np.ndarray:
        """Build the (3, padded_h, padded_w) float32 model input."""

    @abstractmethod
    def apply_predictions(self, detections: Sequence[Detection], image: ImageT) -> bytes:
        """Draw detections on a copy of ``image`` and encode it as JPEG."""

    @abstractmethod
    def size(self, image: ImageT) -> tuple[int, int]:
        """Return (width, height) of an image."""

    def release(self, image: ImageT) -> None:
        """Free resources held by ``image``. No-op by default."""

    @contextmanager
    def open(self, image_bytes: bytes) -> Iterator[ImageT]:
        """Preprocess ``image_bytes`` and release the result on exit.

        Example:
            >>> with processor.open(data) as image:
            ...     tensor = processor.get_tensor(image)
        """
        image = self.preprocess(image_bytes)
        try:
            yield image
        finally:
            self.release(image)
