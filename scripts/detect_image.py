"""
Detect Image Script - Run Faster R-CNN on one image from the command line.

Acquires an image from the demo file, a camera or a chosen photo, runs the
detector and writes the rendered JPEG.

Usage:
    python scripts/detect_image.py                                  # Demo image
    python scripts/detect_image.py --source pick --path photo.jpg  # Chosen photo
    python scripts/detect_image.py --source capture                 # Camera frame
    python scripts/detect_image.py --backend opencv --session-mode platform

Author: Matthew Hong
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from fasterrcnn.acquisition import ImageSource, acquire_image
from fasterrcnn.assets import MODEL_FILE_NAME, SAMPLE_IMAGE_NAME
from fasterrcnn.detector import FasterRcnnObjectDetector
from fasterrcnn.engine import EngineRegistry, SessionMode, resolve_platform_providers
from fasterrcnn.errors import FasterRcnnError
from fasterrcnn.processing import ImageBackend


# =============================================================================
# Configuration
# =============================================================================

MODEL_PATH = PROJECT_ROOT / "models" / MODEL_FILE_NAME
SAMPLE_PATH = PROJECT_ROOT / "assets" / SAMPLE_IMAGE_NAME
OUTPUT_PATH = PROJECT_ROOT / "output.jpg"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect objects in one image")

    parser.add_argument(
        "--source",
        choices=[s.value for s in ImageSource],
        default=ImageSource.SAMPLE.value,
        help="Image source (default: sample)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Photo to analyze with --source pick, or demo image with --source sample",
    )
    parser.add_argument(
        "--backend",
        choices=[b.value for b in ImageBackend],
        default=ImageBackend.PILLOW.value,
        help="Image back-end (default: pillow)",
    )
    parser.add_argument(
        "--session-mode",
        choices=[m.value for m in SessionMode],
        default=SessionMode.DEFAULT.value,
        help="Execution providers (default: CPU only)",
    )
    parser.add_argument(
        "--model",
        type=Path,
        default=MODEL_PATH,
        help=f"ONNX model (default: {MODEL_PATH})",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=OUTPUT_PATH,
        help=f"Rendered JPEG (default: {OUTPUT_PATH})",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    source = ImageSource(args.source)
    mode = SessionMode(args.session_mode)

    try:
        image_bytes = acquire_image(
            source,
            sample_path=args.path or SAMPLE_PATH,
            photo_path=args.path,
        )
        if image_bytes is None:
            logger.info("No photo selected")
            return 0

        platform_providers = resolve_platform_providers() if mode == SessionMode.PLATFORM else None
        registry = EngineRegistry(args.model, platform_providers=platform_providers)
        detector = FasterRcnnObjectDetector(registry)

        result = detector.detect(image_bytes, args.backend, mode)

    except (FasterRcnnError, FileNotFoundError) as e:
        logger.error(f"✗ {e}")
        return 1

    args.output.write_bytes(result.image)

    width, height = result.image_size
    logger.info(f"Image: {width}x{height}")
    for detection in result.detections:
        box = detection.box
        logger.info(
            f"  {detection.caption:<24} "
            f"[{box.xmin:.1f}, {box.ymin:.1f}, {box.xmax:.1f}, {box.ymax:.1f}]"
        )
    logger.info(f"✓ {len(result.detections)} objects, wrote {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
