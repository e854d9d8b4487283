"""
Pipeline Configuration Module

This module provides a Python interface to pipeline.yaml, the single
source of truth for the constants shared by both image back-ends
(target size, stride, channel means, threshold, rendering style).

Usage:
    from fasterrcnn.config import get_config, get_value, get_section

    # Get full config
    config = get_config()

    # Get a single value
    target = get_value("preprocessing", "target_size")

    # Get a whole section
    rendering = get_section("rendering")

Author: Matthew Hong
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml


# =============================================================================
# Constants
# =============================================================================

# pipeline.yaml ships inside the package next to this module
_CONFIG_PATH = Path(__file__).parent / "pipeline.yaml"

REQUIRED_SECTIONS: tuple[str, ...] = (
    "model",
    "preprocessing",
    "postprocessing",
    "rendering",
    "onnx_runtime",
)


# =============================================================================
# Configuration Loading
# =============================================================================

@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Load and cache the pipeline configuration.

    Returns:
        Complete pipeline configuration dictionary

    Raises:
        FileNotFoundError: If pipeline.yaml not found
        yaml.YAMLError: If YAML parsing fails

    Example:
        >>> config = get_config()
        >>> config["preprocessing"]["target_size"]
        800
    """
    if not _CONFIG_PATH.exists():
        raise FileNotFoundError(
            f"Pipeline configuration not found: {_CONFIG_PATH}\n"
            f"Expected location: {_CONFIG_PATH.absolute()}"
        )

    with open(_CONFIG_PATH, "r") as f:
        return yaml.safe_load(f)


def reload_config() -> Dict[str, Any]:
    """
    Force reload of configuration (clears cache).

    Returns:
        Freshly loaded configuration dictionary
    """
    get_config.cache_clear()
    return get_config()


# =============================================================================
# Section Access
# =============================================================================

def get_section(section: str) -> Dict[str, Any]:
    """
    Get all values of a top-level section.

    Args:
        section: Section name (e.g., "preprocessing", "rendering")

    Returns:
        Dictionary of all values in the section

    Raises:
        KeyError: If section not found

    Example:
        >>> get_section("postprocessing")["confidence_threshold"]
        0.7
    """
    config = get_config()

    if section not in config:
        available = list(config.keys())
        raise KeyError(
            f"Section '{section}' not found. Available: {available}"
        )

    return config[section]


def get_value(section: str, key: str) -> Any:
    """
    Get a single configuration value by section and key.

    Args:
        section: Top-level section name (e.g., "preprocessing")
        key: Key within the section (e.g., "stride")

    Returns:
        The configured value

    Raises:
        KeyError: If section or key not found

    Example:
        >>> get_value("preprocessing", "stride")
        32
    """
    section_data = get_section(section)

    if key not in section_data:
        available = list(section_data.keys())
        raise KeyError(
            f"Key '{key}' not found in {section}. "
            f"Available keys: {available}"
        )

    return section_data[key]


def get_model_config() -> Dict[str, Any]:
    """Model file name, input name and download URLs."""
    return get_section("model")


def get_onnx_runtime_config() -> Dict[str, Any]:
    """ONNX Runtime thread settings."""
    return get_section("onnx_runtime")


def get_spec_version() -> str:
    """
    Get the configuration version.

    Returns:
        Version string
    """
    return get_config().get("metadata", {}).get("spec_version", "0.0.0")


# =============================================================================
# Validation
# =============================================================================

def validate_config() -> List[str]:
    """
    Validate the pipeline configuration.

    Returns:
        List of validation error messages (empty if valid)

    Example:
        >>> errors = validate_config()
        >>> if errors:
        ...     print("Validation failed:", errors)
    """
    errors = []

    try:
        config = get_config()
    except (OSError, yaml.YAMLError) as e:
        return [f"Failed to load config: {e}"]

    for section in REQUIRED_SECTIONS:
        if section not in config:
            errors.append(f"Missing required section: {section}")

    pre = config.get("preprocessing", {})
    for field in ["target_size", "stride", "mean_bgr"]:
        if field not in pre:
            errors.append(f"Missing preprocessing field: {field}")

    mean = pre.get("mean_bgr", [])
    if len(mean) != 3:
        errors.append(f"preprocessing.mean_bgr must have 3 values, got {len(mean)}")

    if pre.get("stride", 1) <= 0:
        errors.append("preprocessing.stride must be positive")

    threshold = config.get("postprocessing", {}).get("confidence_threshold")
    if threshold is None:
        errors.append("Missing postprocessing field: confidence_threshold")
    elif not 0.0 <= threshold <= 1.0:
        errors.append(f"confidence_threshold out of range: {threshold}")

    rendering = config.get("rendering", {})
    quality = rendering.get("jpeg_quality", 0)
    if not 1 <= quality <= 100:
        errors.append(f"rendering.jpeg_quality out of range: {quality}")

    onnx = config.get("onnx_runtime", {})
    for field in ["intra_op_num_threads", "inter_op_num_threads"]:
        if field not in onnx:
            errors.append(f"Missing onnx_runtime field: {field}")

    return errors
