"""OpenCV image back-end.

Decodes with ``cv2.imdecode``, resizes with ``INTER_LINEAR`` and draws
with ``cv2.rectangle``/``cv2.putText``. Images are BGR uint8 arrays with
shape [H, W, 3].

OpenCV applies EXIF rotation itself during decode unless told not to;
decoding ignores it here and orientation is applied explicitly so both
back-ends honor the same subset of orientation values.

Author: Matthew Hong
"""

import logging
from collections.abc import Sequence

import cv2
import numpy as np

from fasterrcnn.errors import DecodeError
from fasterrcnn.postprocess import Detection
from fasterrcnn.processing.base import ImageBackend, ImageProcessor
from fasterrcnn.processing.transforms import (
    ORIENTATION_ROTATE_90_CCW,
    ORIENTATION_ROTATE_90_CW,
    ORIENTATION_ROTATE_180,
    build_tensor,
    read_orientation,
    scaled_size,
)

logger = logging.getLogger(__name__)

_ROTATION_FOR_ORIENTATION: dict[int, int] = {
    ORIENTATION_ROTATE_180: cv2.ROTATE_180,
    ORIENTATION_ROTATE_90_CW: cv2.ROTATE_90_CLOCKWISE,
    ORIENTATION_ROTATE_90_CCW: cv2.ROTATE_90_COUNTERCLOCKWISE,
}

FONT_FACE: int = cv2.FONT_HERSHEY_SIMPLEX


class OpenCVImageProcessor(ImageProcessor[np.ndarray]):
    """Image back-end built on OpenCV.

    Example:
        >>> processor = OpenCVImageProcessor()
        >>> image = processor.preprocess(jpeg_bytes)
        >>> image.shape
        (800, 1066, 3)
    """

    name = ImageBackend.OPENCV

    def preprocess(self, image_bytes: bytes) -> np.ndarray:
        """Decode, orient and resize an image.

        Args:
            image_bytes: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            BGR uint8 array whose shorter edge is 800 pixels

        Raises:
            DecodeError: If image cannot be decoded
        """
        if not image_bytes:
            raise DecodeError("Failed to decode image from bytes: empty input")

        nparr = np.frombuffer(image_bytes, np.uint8)

        try:
            bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION)
        except cv2.error as e:
            raise DecodeError("Failed to decode image from bytes") from e

        if bgr is None:
            raise DecodeError("Failed to decode image from bytes")

        bgr = self._handle_orientation(bgr, read_orientation(image_bytes))

        height, width = bgr.shape[:2]
        new_width, new_height = scaled_size(width, height)

        if (new_width, new_height) == (width, height):
            return bgr

        return cv2.resize(bgr, (new_width, new_height), interpolation=cv2.INTER_LINEAR)

    def get_tensor(self, image: np.ndarray) -> np.ndarray:
        """Build the model input tensor.

        Args:
            image: BGR image from :meth:`preprocess`

        Returns:
            float32 array [3, padded_h, padded_w] in (B, G, R) order
        """
        return build_tensor(image)

    def apply_predictions(self, detections: Sequence[Detection], image: np.ndarray) -> bytes:
        """Draw boxes and captions on a copy of ``image``.

        Args:
            detections: Detections to draw
            image: BGR image from :meth:`preprocess`

        Returns:
            JPEG bytes

        Raises:
            RuntimeError: If JPEG encoding fails
        """
        output = image.copy()

        box_bgr = self.box_color[::-1]
        text_bgr = self.text_color[::-1]
        font_scale = cv2.getFontScaleFromHeight(FONT_FACE, self.font_size, self.stroke_width)

        for det in detections:
            xmin, ymin, xmax, ymax = (int(v) for v in det.box.as_tuple())

            cv2.rectangle(output, (xmin, ymin), (xmax, ymax), box_bgr, thickness=self.stroke_width)

            (_, text_height), _ = cv2.getTextSize(det.caption, FONT_FACE, font_scale, self.stroke_width)
            # putText anchors at the baseline; shift down so the text top sits on ymin
            cv2.putText(
                output,
                det.caption,
                (xmin, ymin + text_height),
                FONT_FACE,
                font_scale,
                text_bgr,
                thickness=self.stroke_width,
                lineType=cv2.LINE_AA,
            )

        ok, encoded = cv2.imencode(".jpg", output, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            raise RuntimeError("Failed to encode result image as JPEG")

        return encoded.tobytes()

    def size(self, image: np.ndarray) -> tuple[int, int]:
        height, width = image.shape[:2]
        return width, height

    @staticmethod
    def _handle_orientation(image: np.ndarray, orientation: int) -> np.ndarray:
        """Rotate ``image`` so that row 0 is the visual top.

        Mirrored orientations and unknown values are left untouched.
        """
        rotation = _ROTATION_FOR_ORIENTATION.get(orientation)
        if rotation is None:
            return image

        return cv2.rotate(image, rotation)
