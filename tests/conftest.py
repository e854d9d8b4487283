"""
Pytest Fixtures - Shared Test Fixtures for the Faster R-CNN Sample

This module provides reusable fixtures for all test modules.

Fixtures:
    temp_dir: Temporary directory removed after the test
    sample_image_bgr: Random BGR image (600x900) for tensor tests
    png_bytes / jpeg_bytes: Encoded test images
    two_tone_jpeg: Encoder for red-left/blue-right JPEGs with EXIF orientation
    mock_onnx_model: Tiny ONNX graph with Faster R-CNN inputs and outputs
    registry / detector: Pipeline objects over the mock model

Author: Matthew Hong
"""

import io
import tempfile
from pathlib import Path
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from fasterrcnn.processing.transforms import EXIF_ORIENTATION_TAG

PROJECT_ROOT = Path(__file__).parent.parent

REAL_MODEL_PATH = PROJECT_ROOT / "models" / "faster_rcnn.onnx"
REAL_SAMPLE_PATH = PROJECT_ROOT / "assets" / "demo.jpg"

# Outputs of the mock model: only boxes 0 and 2 pass the 0.7 threshold
MOCK_BOXES = np.array(
    [
        [10.0, 20.0, 110.0, 220.0],
        [0.0, 0.0, 50.0, 50.0],
        [300.0, 100.0, 400.0, 300.0],
    ],
    dtype=np.float32,
)
MOCK_LABELS = np.array([1, 3, 17], dtype=np.int64)  # person, car, dog
MOCK_SCORES = np.array([0.9, 0.5, 0.71], dtype=np.float32)


def encode_image(rgb: np.ndarray, fmt: str = "PNG", orientation: int | None = None) -> bytes:
    """Encode an RGB array, optionally tagging it with an EXIF orientation."""
    image = Image.fromarray(rgb)
    buffer = io.BytesIO()

    params = {}
    if fmt == "JPEG":
        params["quality"] = 95
    if orientation is not None:
        exif = Image.Exif()
        exif[EXIF_ORIENTATION_TAG] = orientation
        params["exif"] = exif.tobytes()

    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


# =============================================================================
# Filesystem Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Path:
    """Create temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_image_bgr() -> np.ndarray:
    """
    Random BGR image for tensor tests.

    Returns:
        uint8 array with shape [600, 900, 3]
    """
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (600, 900, 3), dtype=np.uint8)


@pytest.fixture
def sample_rgb_square() -> np.ndarray:
    """
    Random 800x800 RGB image (already at target size, no resize).

    Returns:
        uint8 array with shape [800, 800, 3]
    """
    rng = np.random.default_rng(43)
    return rng.integers(0, 256, (800, 800, 3), dtype=np.uint8)


@pytest.fixture
def png_bytes(sample_rgb_square: np.ndarray) -> bytes:
    """Lossless 800x800 PNG."""
    return encode_image(sample_rgb_square, "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """1600x1000 JPEG, resized by the pipeline to 1280x800."""
    rng = np.random.default_rng(44)
    rgb = rng.integers(0, 256, (1000, 1600, 3), dtype=np.uint8)
    return encode_image(rgb, "JPEG")


@pytest.fixture
def black_png_bytes() -> bytes:
    """Black 800x800 PNG for rendering tests."""
    return encode_image(np.zeros((800, 800, 3), dtype=np.uint8), "PNG")


@pytest.fixture
def two_tone_jpeg() -> Callable[[int | None], bytes]:
    """
    Factory for 400x200 JPEGs: left half red, right half blue.

    The returned callable takes an EXIF orientation (or None for no tag).
    """
    rgb = np.zeros((200, 400, 3), dtype=np.uint8)
    rgb[:, :200] = (255, 0, 0)
    rgb[:, 200:] = (0, 0, 255)

    def _encode(orientation: int | None = None) -> bytes:
        return encode_image(rgb, "JPEG", orientation)

    return _encode


# =============================================================================
# Model Fixtures
# =============================================================================

@pytest.fixture
def mock_onnx_model(temp_dir: Path) -> Path:
    """
    Create a minimal ONNX model with the Faster R-CNN signature.

    Input ``image`` is float32 [3, H, W]; outputs are boxes [3, 4],
    labels [3] (int64) and scores [3] (float32) taken from MOCK_*.
    The image feeds the scores through ReduceMean * 0 so the input is
    consumed by the graph. Uses IR version 9 for onnxruntime compatibility.
    """
    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper, numpy_helper

    image = helper.make_tensor_value_info("image", TensorProto.FLOAT, [3, "height", "width"])
    boxes = helper.make_tensor_value_info("boxes", TensorProto.FLOAT, [3, 4])
    labels = helper.make_tensor_value_info("labels", TensorProto.INT64, [3])
    scores = helper.make_tensor_value_info("scores", TensorProto.FLOAT, [3])

    nodes = [
        helper.make_node("Constant", [], ["boxes"], value=numpy_helper.from_array(MOCK_BOXES)),
        helper.make_node("Constant", [], ["labels"], value=numpy_helper.from_array(MOCK_LABELS)),
        helper.make_node("Constant", [], ["base_scores"], value=numpy_helper.from_array(MOCK_SCORES)),
        helper.make_node(
            "Constant", [], ["zero"], value=numpy_helper.from_array(np.array(0.0, dtype=np.float32))
        ),
        helper.make_node("ReduceMean", ["image"], ["image_mean"], keepdims=0),
        helper.make_node("Mul", ["image_mean", "zero"], ["no_offset"]),
        helper.make_node("Add", ["base_scores", "no_offset"], ["scores"]),
    ]

    graph = helper.make_graph(nodes, "mock_faster_rcnn", [image], [boxes, labels, scores])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 9

    model_path = temp_dir / "faster_rcnn.onnx"
    onnx.save(model, str(model_path))

    return model_path


@pytest.fixture
def registry(mock_onnx_model: Path):
    """EngineRegistry over the mock model."""
    pytest.importorskip("onnxruntime")
    from fasterrcnn.engine import EngineRegistry

    return EngineRegistry(mock_onnx_model)


@pytest.fixture
def detector(registry):
    """FasterRcnnObjectDetector over the mock model."""
    from fasterrcnn.detector import FasterRcnnObjectDetector

    return FasterRcnnObjectDetector(registry)
