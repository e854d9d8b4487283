"""Model and Sample Image Assets.

This module downloads and verifies the two files the sample needs at
runtime: the Faster R-CNN ONNX graph and the demo image used by the
SAMPLE acquisition source.

Functions:
    download_model: Fetch the ONNX model (idempotent)
    download_sample_image: Fetch the demo image (idempotent)
    verify_onnx_model: Check the model graph with the onnx checker
    compute_checksum: SHA256 of a file

Author: Matthew Hong
"""

import hashlib
import logging
import urllib.request
from pathlib import Path
from typing import Any

from fasterrcnn.config import get_model_config

logger = logging.getLogger(__name__)


# =============================================================================
# Constants (Loaded from pipeline.yaml)
# =============================================================================

_model_config = get_model_config()

MODEL_URL: str = _model_config["url"]
MODEL_FILE_NAME: str = _model_config["file_name"]
SAMPLE_IMAGE_URL: str = _model_config["sample_image_url"]
SAMPLE_IMAGE_NAME: str = _model_config["sample_image_name"]
MODEL_NUM_OUTPUTS: int = _model_config["num_outputs"]


# =============================================================================
# Download Progress
# =============================================================================

class DownloadProgressBar:
    """Progress bar callback for urllib downloads.

    Displays download progress to console with percentage and MB transferred.
    """

    def __init__(self) -> None:
        self.downloaded = 0
        self.last_percent = -1

    def __call__(self, block_num: int, block_size: int, total_size: int) -> None:
        """Update progress bar.

        Args:
            block_num: Current block number
            block_size: Size of each block in bytes
            total_size: Total file size in bytes (-1 if unknown)
        """
        self.downloaded += block_size
        downloaded_mb = self.downloaded / (1024 * 1024)

        if total_size <= 0:
            print(f"\r  {downloaded_mb:.1f} MB", end="", flush=True)
            return

        percent = min(int(100 * self.downloaded / total_size), 100)
        if percent != self.last_percent:
            bar_length = 40
            filled = int(bar_length * percent / 100)
            bar = "█" * filled + "░" * (bar_length - filled)
            total_mb = total_size / (1024 * 1024)
            print(
                f"\r  [{bar}] {percent}% - {downloaded_mb:.1f} MB / {total_mb:.1f} MB",
                end="",
                flush=True,
            )
            self.last_percent = percent


# =============================================================================
# Download Functions
# =============================================================================

def download_file(url: str, dest: Path, force: bool = False, progress: bool = True) -> Path:
    """Download ``url`` to ``dest`` unless it already exists.

    The file is written to a temporary name first so an interrupted
    download never leaves a truncated asset behind.

    Args:
        url: Source URL
        dest: Destination file path
        force: Re-download even if dest exists
        progress: Print a progress bar

    Returns:
        Path to the downloaded file

    Raises:
        RuntimeError: If the download fails
    """
    dest = Path(dest)

    if dest.exists() and not force:
        logger.info(f"Already present: {dest}")
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_suffix(dest.suffix + ".part")

    logger.info(f"Downloading {url}")
    logger.info(f"  Destination: {dest}")

    try:
        urllib.request.urlretrieve(url, partial, DownloadProgressBar() if progress else None)
        if progress:
            print()  # New line after progress bar
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise RuntimeError(f"Download failed: {e}") from e

    partial.replace(dest)
    logger.info(f"  ✓ {dest.stat().st_size / (1024 * 1024):.2f} MB")

    return dest


def download_model(models_dir: Path, force: bool = False) -> Path:
    """Download the Faster R-CNN ONNX model into ``models_dir``."""
    return download_file(MODEL_URL, Path(models_dir) / MODEL_FILE_NAME, force=force)


def download_sample_image(assets_dir: Path, force: bool = False) -> Path:
    """Download the demo image into ``assets_dir``."""
    return download_file(SAMPLE_IMAGE_URL, Path(assets_dir) / SAMPLE_IMAGE_NAME, force=force)


# =============================================================================
# Verification
# =============================================================================

def compute_checksum(file_path: Path) -> str:
    """
    Compute SHA256 checksum of a file.

    Args:
        file_path: Path to file

    Returns:
        Hex-encoded SHA256 checksum string

    Example:
        >>> checksum = compute_checksum(Path("faster_rcnn.onnx"))
        >>> len(checksum)
        64
    """
    sha256_hash = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256_hash.update(chunk)

    return sha256_hash.hexdigest()


def _shape_of(value_info: Any) -> tuple:
    shape = []
    for dim in value_info.type.tensor_type.shape.dim:
        if dim.dim_value:
            shape.append(dim.dim_value)
        elif dim.dim_param:
            shape.append(dim.dim_param)  # Dynamic dimension
        else:
            shape.append(-1)
    return tuple(shape)


def verify_onnx_model(model_path: Path) -> dict:
    """
    Verify the ONNX model is valid and looks like a Faster R-CNN graph.

    Checks:
    - File exists and is readable
    - Valid ONNX format (passes onnx.checker)
    - At least three outputs (boxes, labels, scores)

    Args:
        model_path: Path to ONNX model file

    Returns:
        Dictionary with verification results:
        - valid: bool
        - opset_version: int
        - input_shapes: list of input shapes
        - output_shapes: list of output shapes
        - error: Optional error message
    """
    result: dict[str, Any] = {
        "valid": False,
        "opset_version": None,
        "input_shapes": [],
        "output_shapes": [],
        "error": None,
    }

    model_path = Path(model_path)
    if not model_path.exists():
        result["error"] = f"File not found: {model_path}"
        return result

    import onnx
    from google.protobuf.message import DecodeError as ProtobufDecodeError
    from onnx import checker

    try:
        model = onnx.load(str(model_path))
        checker.check_model(model)
    except (checker.ValidationError, ProtobufDecodeError, OSError, ValueError) as e:
        result["error"] = f"Invalid ONNX model: {e}"
        return result

    result["opset_version"] = model.opset_import[0].version
    result["input_shapes"] = [_shape_of(inp) for inp in model.graph.input]
    result["output_shapes"] = [_shape_of(out) for out in model.graph.output]

    if len(model.graph.output) < MODEL_NUM_OUTPUTS:
        result["error"] = (
            f"Expected at least {MODEL_NUM_OUTPUTS} outputs (boxes, labels, scores), "
            f"got {len(model.graph.output)}"
        )
        return result

    result["valid"] = True
    return result
