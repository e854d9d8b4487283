"""
Unit Tests for Pipeline Configuration Module

This module tests fasterrcnn/config.py which provides the Python interface
to pipeline.yaml.

Test Categories:
- Config loading: File parsing and caching
- Section access: Sections and single values
- Validation: Config integrity checks

Author: Matthew Hong
"""

from typing import Any, Dict
from unittest.mock import patch

import pytest

from fasterrcnn import config as config_module
from fasterrcnn.config import (
    REQUIRED_SECTIONS,
    get_config,
    get_model_config,
    get_onnx_runtime_config,
    get_section,
    get_spec_version,
    get_value,
    reload_config,
    validate_config,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def clear_config_cache():
    """Clear config cache before and after each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def config() -> Dict[str, Any]:
    """Load the actual config for testing."""
    return get_config()


# =============================================================================
# Config Loading Tests
# =============================================================================

class TestConfigLoading:
    """Test configuration file loading."""

    def test_config_loads_successfully(self, config: Dict[str, Any]) -> None:
        """Config should load into a dictionary."""
        assert isinstance(config, dict)

    def test_config_is_cached(self) -> None:
        """Repeated calls should return the same object."""
        assert get_config() is get_config()

    def test_reload_config_returns_fresh_object(self) -> None:
        """reload_config should bypass the cache."""
        first = get_config()
        second = reload_config()

        assert first is not second
        assert first == second

    def test_required_sections_present(self, config: Dict[str, Any]) -> None:
        """All required sections should be present."""
        for section in REQUIRED_SECTIONS:
            assert section in config

    def test_missing_file_raises(self, temp_dir) -> None:
        """A missing pipeline.yaml should raise FileNotFoundError."""
        with patch.object(config_module, "_CONFIG_PATH", temp_dir / "missing.yaml"):
            get_config.cache_clear()
            with pytest.raises(FileNotFoundError):
                get_config()


# =============================================================================
# Section Access Tests
# =============================================================================

class TestSectionAccess:
    """Test section and value accessors."""

    def test_preprocessing_constants(self) -> None:
        """Preprocessing constants should match the model's expectations."""
        assert get_value("preprocessing", "target_size") == 800
        assert get_value("preprocessing", "stride") == 32
        assert get_value("preprocessing", "mean_bgr") == pytest.approx(
            [102.9801, 115.9465, 122.7717]
        )

    def test_confidence_threshold(self) -> None:
        """Confidence threshold should be 0.7."""
        assert get_value("postprocessing", "confidence_threshold") == 0.7

    def test_jpeg_quality(self) -> None:
        """Output JPEGs should use quality 95."""
        assert get_value("rendering", "jpeg_quality") == 95

    def test_model_config(self) -> None:
        """Model section should name the input and output count."""
        model = get_model_config()

        assert model["input_name"] == "image"
        assert model["num_outputs"] == 3
        assert model["url"].endswith(".onnx")

    def test_onnx_runtime_config(self) -> None:
        """Thread settings should be positive integers."""
        onnx = get_onnx_runtime_config()

        assert onnx["intra_op_num_threads"] >= 1
        assert onnx["inter_op_num_threads"] >= 1

    def test_unknown_section_raises(self) -> None:
        """Unknown section should raise KeyError listing sections."""
        with pytest.raises(KeyError, match="Available"):
            get_section("nonexistent")

    def test_unknown_key_raises(self) -> None:
        """Unknown key should raise KeyError listing keys."""
        with pytest.raises(KeyError, match="Available keys"):
            get_value("preprocessing", "nonexistent")

    def test_spec_version(self) -> None:
        """Version should be a dotted string."""
        assert get_spec_version().count(".") == 2


# =============================================================================
# Validation Tests
# =============================================================================

class TestValidateConfig:
    """Test configuration validation."""

    def test_shipped_config_is_valid(self) -> None:
        """The shipped pipeline.yaml should validate cleanly."""
        assert validate_config() == []

    def test_detects_bad_values(self) -> None:
        """Out-of-range values should be reported."""
        broken = {
            "model": {},
            "preprocessing": {"target_size": 800, "stride": 0, "mean_bgr": [1, 2]},
            "postprocessing": {"confidence_threshold": 1.5},
            "rendering": {"jpeg_quality": 0},
            "onnx_runtime": {},
        }

        with patch.object(config_module, "get_config", return_value=broken):
            errors = validate_config()

        assert any("mean_bgr" in e for e in errors)
        assert any("stride" in e for e in errors)
        assert any("confidence_threshold" in e for e in errors)
        assert any("jpeg_quality" in e for e in errors)
        assert any("intra_op_num_threads" in e for e in errors)

    def test_detects_missing_sections(self) -> None:
        """Missing sections should be reported."""
        with patch.object(config_module, "get_config", return_value={}):
            errors = validate_config()

        for section in REQUIRED_SECTIONS:
            assert f"Missing required section: {section}" in errors
