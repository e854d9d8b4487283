"""
Setup Assets Script - Download the Faster R-CNN model and demo image.

This script is a thin CLI wrapper around fasterrcnn.assets.
It is idempotent: existing files are skipped unless --force is used.

Usage:
    python scripts/setup_assets.py            # Download model + demo image
    python scripts/setup_assets.py --force    # Re-download even if present
    python scripts/setup_assets.py --verify   # Verify existing assets

Author: Matthew Hong
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from fasterrcnn.assets import (
    MODEL_FILE_NAME,
    SAMPLE_IMAGE_NAME,
    compute_checksum,
    download_model,
    download_sample_image,
    verify_onnx_model,
)


# =============================================================================
# Configuration
# =============================================================================

MODELS_DIR = PROJECT_ROOT / "models"
ASSETS_DIR = PROJECT_ROOT / "assets"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Functions
# =============================================================================

def print_header(models_dir: Path, assets_dir: Path) -> None:
    """Print script header."""
    print()
    print("=" * 60)
    print("Faster R-CNN - Asset Setup")
    print("=" * 60)
    print(f"  Models directory: {models_dir}")
    print(f"  Assets directory: {assets_dir}")
    print()


def verify_assets(models_dir: Path, assets_dir: Path) -> bool:
    """Verify the model and demo image are present and valid."""
    print("Verifying assets...")
    all_valid = True

    model_path = models_dir / MODEL_FILE_NAME
    result = verify_onnx_model(model_path)
    if result["valid"]:
        size_mb = model_path.stat().st_size / (1024 * 1024)
        print(f"  ✓ Model: {size_mb:.2f} MB, opset {result['opset_version']}")
        print(f"      Inputs:  {result['input_shapes']}")
        print(f"      Outputs: {result['output_shapes']}")
        print(f"      SHA256:  {compute_checksum(model_path)}")
    else:
        print(f"  ✗ Model: {result['error']}")
        all_valid = False

    image_path = assets_dir / SAMPLE_IMAGE_NAME
    if image_path.exists():
        print(f"  ✓ Demo image: {image_path}")
    else:
        print(f"  ✗ Demo image: Not found")
        all_valid = False

    return all_valid


def fetch_assets(models_dir: Path, assets_dir: Path, force: bool = False) -> bool:
    """Download the model and demo image."""
    try:
        print("→ Faster R-CNN model")
        download_model(models_dir, force=force)

        print("\n→ Demo image")
        download_sample_image(assets_dir, force=force)

    except RuntimeError as e:
        print(f"  ✗ {e}")
        return False

    return True


# =============================================================================
# Main
# =============================================================================

def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Download the Faster R-CNN model and demo image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/setup_assets.py            # Download everything
  python scripts/setup_assets.py --verify   # Verify existing assets
  python scripts/setup_assets.py --force    # Re-download everything
        """,
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-download even if files exist",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify existing assets without downloading",
    )
    parser.add_argument(
        "--models-dir",
        type=Path,
        default=MODELS_DIR,
        help=f"Models directory (default: {MODELS_DIR})",
    )
    parser.add_argument(
        "--assets-dir",
        type=Path,
        default=ASSETS_DIR,
        help=f"Assets directory (default: {ASSETS_DIR})",
    )

    args = parser.parse_args()

    print_header(args.models_dir, args.assets_dir)

    if args.verify:
        success = verify_assets(args.models_dir, args.assets_dir)
    else:
        success = fetch_assets(args.models_dir, args.assets_dir, force=args.force)
        if success:
            print()
            success = verify_assets(args.models_dir, args.assets_dir)

    print()
    print("=" * 60)
    if success:
        print("✓ Complete")
    else:
        print("✗ Some operations failed")
    print("=" * 60)
    print()

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
