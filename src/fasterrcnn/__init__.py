"""
Faster R-CNN Sample - Object Detection with ONNX Runtime

This package runs the Faster R-CNN (ResNet-50 FPN) ONNX model over a
single image and draws the detected objects on it:

- processing: Decode/orient/resize and tensor building (Pillow or OpenCV)
- engine: ONNX Runtime sessions per session mode
- postprocess: Confidence filtering and COCO label lookup
- detector: End-to-end pipeline returning a rendered JPEG
- acquisition: Sample image, camera capture and photo picking
- app: FastAPI service exposing the pipeline over HTTP
"""

from fasterrcnn.detector import DetectionResult, FasterRcnnObjectDetector
from fasterrcnn.engine import EngineRegistry, ExecutionConfig, InferenceEngine, SessionMode
from fasterrcnn.errors import AcquisitionError, DecodeError, FasterRcnnError
from fasterrcnn.postprocess import Box, Detection, decode_predictions
from fasterrcnn.processing import ImageBackend, create_processor

__all__ = [
    "FasterRcnnObjectDetector",
    "DetectionResult",
    "EngineRegistry",
    "ExecutionConfig",
    "InferenceEngine",
    "SessionMode",
    "ImageBackend",
    "create_processor",
    "Box",
    "Detection",
    "decode_predictions",
    "FasterRcnnError",
    "DecodeError",
    "AcquisitionError",
]

__version__ = "0.1.0"
