"""
Low-Level Image Transforms

This module contains the back-end independent arithmetic shared by
PillowImageProcessor and OpenCVImageProcessor, so both produce identical
tensors for identical pixels.

Functions:
    scaled_size: Resize target so the shorter edge becomes 800 pixels
    padded_size: Round dimensions up to the next multiple of the stride
    build_tensor: BGR uint8 image -> mean-subtracted (3, H, W) float32 tensor
    read_orientation: EXIF orientation tag from encoded image bytes

Constants:
    TARGET_SIZE: Shorter edge after resizing
    STRIDE: Tensor dimension alignment
    FASTER_RCNN_MEAN: Per-channel means in (B, G, R) order

Author: Matthew Hong
"""

import io
import logging
import math

import numpy as np
from PIL import Image, UnidentifiedImageError

from fasterrcnn.config import get_section

logger = logging.getLogger(__name__)


# =============================================================================
# Constants (Loaded from pipeline.yaml)
# =============================================================================

_preprocessing = get_section("preprocessing")

TARGET_SIZE: int = _preprocessing["target_size"]
"""Length of the shorter image edge after resizing."""

STRIDE: int = _preprocessing["stride"]
"""Tensor height and width are padded to multiples of this."""

FASTER_RCNN_MEAN: np.ndarray = np.array(_preprocessing["mean_bgr"], dtype=np.float32)
"""Channel means subtracted from (B, G, R) pixel values."""

LEGACY_PADDING: bool = bool(_preprocessing.get("legacy_padding", False))

# EXIF orientation tag values
EXIF_ORIENTATION_TAG: int = 0x0112
ORIENTATION_NORMAL: int = 1
ORIENTATION_ROTATE_180: int = 3
ORIENTATION_ROTATE_90_CW: int = 6
ORIENTATION_ROTATE_90_CCW: int = 8


# =============================================================================
# Geometry
# =============================================================================

def scaled_size(width: int, height: int, target_size: int = TARGET_SIZE) -> tuple[int, int]:
    """
    Compute the resize target for an image.

    The ratio maps the shorter edge onto ``target_size``; both products are
    truncated, so the shorter edge can come out one pixel short when the
    ratio is not exactly representable.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        target_size: Desired shorter edge (default: 800)

    Returns:
        (new_width, new_height)

    Raises:
        ValueError: If either dimension is not positive

    Example:
        >>> scaled_size(1600, 1000)
        (1280, 800)
        >>> scaled_size(800, 800)
        (800, 800)
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size: {width}x{height}")

    ratio = target_size / min(width, height)

    return int(ratio * width), int(ratio * height)


def padded_size(height: int, width: int, stride: int = STRIDE) -> tuple[int, int]:
    """
    Round image dimensions up to multiples of ``stride``.

    Args:
        height: Image height
        width: Image width
        stride: Alignment (default: 32)

    Returns:
        (padded_height, padded_width)

    Example:
        >>> padded_size(800, 801)
        (800, 832)
    """
    padded_height = int(math.ceil(height / stride) * stride)
    padded_width = int(math.ceil(width / stride) * stride)

    return padded_height, padded_width


# =============================================================================
# Tensor Construction
# =============================================================================

def build_tensor(
    image_bgr: np.ndarray,
    mean: np.ndarray = FASTER_RCNN_MEAN,
    stride: int = STRIDE,
    legacy_padding: bool = LEGACY_PADDING,
) -> np.ndarray:
    """
    Build the Faster R-CNN input tensor from a BGR image.

    Pipeline:
        1. Allocate a zeroed (3, padded_h, padded_w) float32 tensor
        2. Copy pixels channel-first in (B, G, R) order
        3. Subtract the per-channel mean from filled cells only

    By default the image occupies ``[0, H) x [0, W)`` and the padding sits
    at the bottom and right. With ``legacy_padding`` only rows
    ``[padded_h - H, H)`` and columns ``[padded_w - W, W)`` are filled;
    the leading rows and columns stay zero.

    Args:
        image_bgr: uint8 array with shape [H, W, 3] in BGR order
        mean: Per-channel means in (B, G, R) order
        stride: Dimension alignment (default: 32)
        legacy_padding: Use the legacy fill region

    Returns:
        Contiguous float32 array with shape [3, padded_h, padded_w]

    Raises:
        ValueError: If image has invalid shape or dtype

    Example:
        >>> image = np.zeros((801, 801, 3), dtype=np.uint8)
        >>> build_tensor(image).shape
        (3, 832, 832)
    """
    _validate_image(image_bgr)

    height, width = image_bgr.shape[:2]
    padded_height, padded_width = padded_size(height, width, stride)

    tensor = np.zeros((3, padded_height, padded_width), dtype=np.float32)

    if legacy_padding:
        top = padded_height - height
        left = padded_width - width
    else:
        top = left = 0

    # Empty slice when the lead exceeds the image: tensor stays all zeros
    region = image_bgr[top:height, left:width]

    # HWC -> CHW, then subtract (B, G, R) means
    chw = region.transpose(2, 0, 1).astype(np.float32)
    tensor[:, top:height, left:width] = chw - mean.reshape(3, 1, 1)

    return tensor


def _validate_image(image: np.ndarray) -> None:
    """Validate a decoded image array.

    Raises:
        ValueError: If image has invalid shape or dtype
    """
    if not isinstance(image, np.ndarray):
        raise ValueError(f"Expected numpy array, got {type(image)}")

    if image.ndim != 3:
        raise ValueError(f"Expected 3D array [H, W, C], got {image.ndim}D")

    if image.shape[2] != 3:
        raise ValueError(f"Expected 3 channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise ValueError(f"Expected uint8 dtype, got {image.dtype}")


# =============================================================================
# Metadata
# =============================================================================

def read_orientation(image_bytes: bytes) -> int:
    """
    Read the EXIF orientation tag from encoded image bytes.

    Only the header is parsed; pixel data is not decoded. Images without
    EXIF data, or whose metadata Pillow refuses to read (including images
    over Pillow's decompression-bomb limit), report ``ORIENTATION_NORMAL``.

    Args:
        image_bytes: Raw image bytes (JPEG, PNG, etc.)

    Returns:
        EXIF orientation value (1-8)
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            orientation = image.getexif().get(EXIF_ORIENTATION_TAG, ORIENTATION_NORMAL)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        logger.debug(f"No readable orientation metadata: {e}")
        return ORIENTATION_NORMAL

    try:
        return int(orientation)
    except (TypeError, ValueError):
        return ORIENTATION_NORMAL
