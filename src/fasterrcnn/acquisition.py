"""Image acquisition sources.

Every source returns encoded image bytes (or None when the user cancels),
so the detector sees one input shape regardless of origin:

- SAMPLE: the bundled demo image
- CAPTURE: a single frame from a camera (OpenCV VideoCapture)
- PICK: a file chosen from the photo library

Source failures are wrapped in AcquisitionError with a readable message;
the original exception is chained.
"""

import logging
from enum import Enum
from pathlib import Path

import cv2

from fasterrcnn.errors import AcquisitionError

logger = logging.getLogger(__name__)

CAPTURE_JPEG_QUALITY: int = 95


class ImageSource(str, Enum):
    """Where the image to analyze comes from."""

    SAMPLE = "sample"
    CAPTURE = "capture"
    PICK = "pick"


class FeatureNotSupportedError(RuntimeError):
    """Raised when the device lacks the requested capability."""


def _read_bytes(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def get_sample_image(path: Path) -> bytes:
    """Read the bundled sample image.

    Raises:
        AcquisitionError: If the sample image is missing or unreadable
    """
    try:
        return _read_bytes(Path(path))
    except FileNotFoundError as e:
        raise AcquisitionError(
            f"Sample image not found: {path}. Run 'python scripts/setup_assets.py' first."
        ) from e
    except OSError as e:
        raise AcquisitionError("The get_sample_image method threw an exception") from e


def pick_photo(path: Path | None) -> bytes | None:
    """Read a photo chosen by the user.

    Args:
        path: Selected file, or None if the user cancelled

    Returns:
        File contents, or None when nothing was picked

    Raises:
        AcquisitionError: If the file cannot be read
    """
    if path is None:
        return None

    try:
        return _read_bytes(Path(path))
    except PermissionError as e:
        raise AcquisitionError("Permissions not granted") from e
    except (FileNotFoundError, IsADirectoryError) as e:
        raise AcquisitionError(f"Photo not found: {path}") from e
    except OSError as e:
        raise AcquisitionError("The pick_photo method threw an exception") from e


def capture_photo(camera_index: int = 0) -> bytes:
    """Capture one frame from a camera and encode it as JPEG.

    Args:
        camera_index: OpenCV device index

    Returns:
        JPEG bytes of the captured frame

    Raises:
        AcquisitionError: If no camera is available or capture fails
    """
    try:
        return _capture_frame(camera_index)
    except FeatureNotSupportedError as e:
        raise AcquisitionError("Feature is not supported on the device") from e
    except PermissionError as e:
        raise AcquisitionError("Permissions not granted") from e
    except (cv2.error, OSError, RuntimeError) as e:
        raise AcquisitionError("The capture_photo method threw an exception") from e


def _capture_frame(camera_index: int) -> bytes:
    capture = cv2.VideoCapture(camera_index)

    try:
        if not capture.isOpened():
            raise FeatureNotSupportedError(f"Camera {camera_index} is not available")

        ok, frame = capture.read()
        if not ok or frame is None:
            raise FeatureNotSupportedError(f"Camera {camera_index} returned no frame")

        ok, encoded = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), CAPTURE_JPEG_QUALITY])
        if not ok:
            raise RuntimeError("Failed to encode captured frame")

        logger.info(f"Captured {frame.shape[1]}x{frame.shape[0]} frame from camera {camera_index}")
        return encoded.tobytes()
    finally:
        capture.release()


def acquire_image(
    source: ImageSource | str,
    *,
    sample_path: Path | None = None,
    photo_path: Path | None = None,
    camera_index: int = 0,
) -> bytes | None:
    """Acquire image bytes from a source.

    Args:
        source: Which source to use
        sample_path: Bundled sample image (SAMPLE)
        photo_path: Picked photo, None if cancelled (PICK)
        camera_index: Camera device index (CAPTURE)

    Returns:
        Image bytes, or None if the user cancelled

    Raises:
        AcquisitionError: If the source fails
    """
    source = ImageSource(source)

    if source == ImageSource.CAPTURE:
        return capture_photo(camera_index)

    if source == ImageSource.PICK:
        return pick_photo(photo_path)

    if sample_path is None:
        raise AcquisitionError("No sample image configured")

    return get_sample_image(sample_path)
