"""Exception types raised by the detection pipeline.

Errors raised by ONNX Runtime itself are not wrapped; they reach the
caller unmodified.
"""


class FasterRcnnError(Exception):
    """Base class for pipeline errors."""


class DecodeError(FasterRcnnError, ValueError):
    """Raised when image bytes are empty, corrupt or in an unsupported format."""


class AcquisitionError(FasterRcnnError, RuntimeError):
    """Raised when an image source (camera, photo library, sample) fails.

    The original exception is always chained as ``__cause__``.
    """
