"""Pillow image back-end.

Decodes with ``PIL.Image``, resizes with bilinear filtering and draws
with ``ImageDraw``. Images are RGB ``PIL.Image.Image`` objects and must
be closed after use (see ``ImageProcessor.open``).

Author: Matthew Hong
"""

import io
import logging
from collections.abc import Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from fasterrcnn.config import get_value
from fasterrcnn.errors import DecodeError
from fasterrcnn.postprocess import Detection
from fasterrcnn.processing.base import ImageBackend, ImageProcessor
from fasterrcnn.processing.transforms import (
    EXIF_ORIENTATION_TAG,
    ORIENTATION_NORMAL,
    ORIENTATION_ROTATE_90_CCW,
    ORIENTATION_ROTATE_90_CW,
    ORIENTATION_ROTATE_180,
    build_tensor,
    scaled_size,
)

logger = logging.getLogger(__name__)

# Pillow's ROTATE_* constants turn counter-clockwise
_TRANSPOSE_FOR_ORIENTATION: dict[int, Image.Transpose] = {
    ORIENTATION_ROTATE_180: Image.Transpose.ROTATE_180,
    ORIENTATION_ROTATE_90_CW: Image.Transpose.ROTATE_270,
    ORIENTATION_ROTATE_90_CCW: Image.Transpose.ROTATE_90,
}

# Integer modes Pillow uses for 16-bit greyscale images
_HIGH_BIT_DEPTH_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")


def to_rgb(image: Image.Image) -> Image.Image:
    """Convert a decoded image of any mode to 8-bit RGB.

    16-bit greyscale is scaled down by its high byte, the way OpenCV
    reduces it on decode, instead of being clipped at 255 by
    ``Image.convert``.
    """
    if image.mode in _HIGH_BIT_DEPTH_MODES:
        high_byte = np.asarray(image).astype(np.int64) >> 8
        with Image.fromarray(np.clip(high_byte, 0, 255).astype(np.uint8)) as grey:
            return grey.convert("RGB")
    return image.convert("RGB")


def resolve_font(
    candidates: Sequence[str], size: int
) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the first available TrueType font from ``candidates``.

    Bare file names are looked up in the system font directories by
    Pillow; absolute paths are tried as given. Falls back to Pillow's
    bundled default font when none can be loaded.

    Args:
        candidates: Font file names or paths, in order of preference
        size: Font size in pixels

    Returns:
        A font usable with ``ImageDraw.text``
    """
    for candidate in candidates:
        try:
            font = ImageFont.truetype(candidate, size)
        except OSError:
            continue

        logger.debug(f"Using font {candidate}")
        return font

    logger.debug("No system font found, using Pillow default font")
    return ImageFont.load_default(size=size)


class PillowImageProcessor(ImageProcessor[Image.Image]):
    """Image back-end built on Pillow.

    Example:
        >>> processor = PillowImageProcessor()
        >>> with processor.open(jpeg_bytes) as image:
        ...     tensor = processor.get_tensor(image)
        >>> tensor.shape
        (3, 800, 1088)
    """

    name = ImageBackend.PILLOW

    def __init__(self) -> None:
        super().__init__()
        self.font_candidates: list[str] = list(get_value("rendering", "font_candidates"))
        self._font: ImageFont.FreeTypeFont | ImageFont.ImageFont | None = None

    @property
    def font(self) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        """Caption font, resolved on first use."""
        if self._font is None:
            self._font = resolve_font(self.font_candidates, self.font_size)
        return self._font

    def preprocess(self, image_bytes: bytes) -> Image.Image:
        """Decode, orient and resize an image.

        Args:
            image_bytes: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            RGB image whose shorter edge is 800 pixels

        Raises:
            DecodeError: If image cannot be decoded
        """
        if not image_bytes:
            raise DecodeError("Failed to decode image from bytes: empty input")

        try:
            source = Image.open(io.BytesIO(image_bytes))
            source.load()
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            raise DecodeError("Failed to decode image from bytes") from e

        try:
            orientation = source.getexif().get(EXIF_ORIENTATION_TAG, ORIENTATION_NORMAL)
            rgb = to_rgb(source)
        finally:
            source.close()

        oriented = self._handle_orientation(rgb, orientation)
        if oriented is not rgb:
            rgb.close()

        new_size = scaled_size(*oriented.size)
        if new_size == oriented.size:
            return oriented

        resized = oriented.resize(new_size, Image.Resampling.BILINEAR)
        oriented.close()

        return resized

    def get_tensor(self, image: Image.Image) -> np.ndarray:
        """Build the model input tensor.

        Args:
            image: RGB image from :meth:`preprocess`

        Returns:
            float32 array [3, padded_h, padded_w] in (B, G, R) order
        """
        rgb = np.asarray(image.convert("RGB") if image.mode != "RGB" else image)

        # RGB -> BGR
        return build_tensor(rgb[:, :, ::-1])

    def apply_predictions(self, detections: Sequence[Detection], image: Image.Image) -> bytes:
        """Draw boxes and captions on a copy of ``image``.

        Args:
            detections: Detections to draw
            image: RGB image from :meth:`preprocess`

        Returns:
            JPEG bytes
        """
        output = image.copy()

        try:
            draw = ImageDraw.Draw(output)

            for det in detections:
                xmin, ymin, xmax, ymax = det.box.as_tuple()

                # Four segments: top, right, bottom, left
                draw.line(
                    [(xmin, ymin), (xmax, ymin), (xmax, ymax), (xmin, ymax), (xmin, ymin)],
                    fill=self.box_color,
                    width=self.stroke_width,
                )
                draw.text((xmin, ymin), det.caption, fill=self.text_color, font=self.font)

            buffer = io.BytesIO()
            output.save(buffer, format="JPEG", quality=self.jpeg_quality)
            return buffer.getvalue()
        finally:
            output.close()

    def size(self, image: Image.Image) -> tuple[int, int]:
        return image.size

    def release(self, image: Image.Image) -> None:
        image.close()

    @staticmethod
    def _handle_orientation(image: Image.Image, orientation: int) -> Image.Image:
        """Rotate ``image`` so that row 0 is the visual top.

        Mirrored orientations and unknown values are left untouched.
        """
        transpose = _TRANSPOSE_FOR_ORIENTATION.get(orientation)
        if transpose is None:
            return image

        return image.transpose(transpose)
