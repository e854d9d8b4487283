"""
Processing Module - Image Back-ends for the Faster R-CNN Pipeline

This module provides two interchangeable implementations of the same
pipeline (decode/orient/resize, tensorize, render):

- PillowImageProcessor: Pillow decode, bilinear resize, ImageDraw rendering
- OpenCVImageProcessor: cv2 decode, INTER_LINEAR resize, cv2 rendering

Both delegate tensor arithmetic to transforms.build_tensor so they feed
the model identically laid out input.
"""

from fasterrcnn.processing.base import ImageBackend, ImageProcessor
from fasterrcnn.processing.opencv_processor import OpenCVImageProcessor
from fasterrcnn.processing.pillow_processor import PillowImageProcessor
from fasterrcnn.processing.transforms import (
    FASTER_RCNN_MEAN,
    STRIDE,
    TARGET_SIZE,
    build_tensor,
    padded_size,
    read_orientation,
    scaled_size,
)

_PROCESSORS: dict[ImageBackend, type[ImageProcessor]] = {
    ImageBackend.PILLOW: PillowImageProcessor,
    ImageBackend.OPENCV: OpenCVImageProcessor,
}


def create_processor(backend: ImageBackend | str) -> ImageProcessor:
    """Instantiate the processor for an image back-end.

    Args:
        backend: ImageBackend member or its value ("pillow", "opencv")

    Returns:
        New ImageProcessor instance

    Raises:
        ValueError: If backend is not recognized
    """
    return _PROCESSORS[ImageBackend(backend)]()


__all__ = [
    # Interface
    "ImageBackend",
    "ImageProcessor",
    "create_processor",
    # Back-ends
    "PillowImageProcessor",
    "OpenCVImageProcessor",
    # Low-level transforms
    "build_tensor",
    "padded_size",
    "scaled_size",
    "read_orientation",
    "FASTER_RCNN_MEAN",
    "STRIDE",
    "TARGET_SIZE",
]
