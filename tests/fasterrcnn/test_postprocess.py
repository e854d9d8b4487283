"""
Unit Tests for Output Decoding

This module tests fasterrcnn/postprocess.py.

Test Categories:
- Threshold: Inclusive 0.7 filter, evaluated per box
- Ordering: Engine order preserved
- Labels: COCO names and numeric fallback
- Shapes: Flat and [N, 4] boxes, mismatched lengths

Author: Matthew Hong
"""

from pathlib import Path

import numpy as np
import pytest

from fasterrcnn.postprocess import (
    COCO_LABEL_COUNT,
    MIN_CONFIDENCE,
    Box,
    Detection,
    decode_predictions,
    label_for,
    load_label_names,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="module")
def label_names() -> list[str]:
    return load_label_names()


# =============================================================================
# Label Tests
# =============================================================================

class TestLabels:
    """Tests for COCO label loading and lookup."""

    def test_label_count(self, label_names: list[str]) -> None:
        """Labels file should have background plus 80 classes."""
        assert len(label_names) == COCO_LABEL_COUNT

    @pytest.mark.parametrize(
        "label_id,name",
        [(0, "__background"), (1, "person"), (3, "car"), (17, "dog"), (80, "toothbrush")],
    )
    def test_known_ids(self, label_names: list[str], label_id: int, name: str) -> None:
        """Label ids should index into the COCO names."""
        assert label_for(label_id, label_names) == name

    @pytest.mark.parametrize("label_id", [81, 1000, -1])
    def test_unknown_id_falls_back_to_number(
        self, label_names: list[str], label_id: int
    ) -> None:
        """Ids outside the table should render as their decimal value."""
        assert label_for(label_id, label_names) == str(label_id)

    def test_missing_file_raises(self, temp_dir: Path) -> None:
        """Missing labels file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_label_names(temp_dir / "missing.txt")

    def test_wrong_count_raises(self, temp_dir: Path) -> None:
        """A labels file with the wrong line count should raise ValueError."""
        path = temp_dir / "labels.txt"
        path.write_text("__background\nperson\n")

        with pytest.raises(ValueError, match="Expected 81"):
            load_label_names(path)


# =============================================================================
# Decoding Tests
# =============================================================================

class TestDecodePredictions:
    """Tests for decode_predictions."""

    def test_threshold_default(self) -> None:
        """Default threshold should be 0.7."""
        assert MIN_CONFIDENCE == pytest.approx(0.7)

    def test_filters_by_score(self, label_names: list[str]) -> None:
        """Scores [0.9, 0.5, 0.71] should keep boxes 0 and 2 in order."""
        boxes = np.array(
            [[1, 2, 3, 4], [5, 6, 7, 8], [9, 10, 11, 12]], dtype=np.float32
        )
        labels = np.array([1, 3, 17], dtype=np.int64)
        scores = np.array([0.9, 0.5, 0.71], dtype=np.float32)

        detections = decode_predictions(boxes, labels, scores, label_names)

        assert [d.label for d in detections] == ["person", "dog"]
        assert detections[0].box == Box(1.0, 2.0, 3.0, 4.0)
        assert detections[1].box == Box(9.0, 10.0, 11.0, 12.0)
        assert detections[0].confidence == pytest.approx(0.9)
        assert detections[1].confidence == pytest.approx(0.71)

    def test_threshold_is_inclusive(self, label_names: list[str]) -> None:
        """A score of exactly 0.7 (as float32) should be kept."""
        boxes = np.zeros((1, 4), dtype=np.float32)
        scores = np.array([0.7], dtype=np.float32)

        detections = decode_predictions(boxes, np.array([1]), scores, label_names)

        assert len(detections) == 1

    def test_just_below_threshold_dropped(self, label_names: list[str]) -> None:
        """A score just below 0.7 should be dropped."""
        boxes = np.zeros((1, 4), dtype=np.float32)
        scores = np.array([np.nextafter(np.float32(0.7), np.float32(0))], dtype=np.float32)

        assert decode_predictions(boxes, np.array([1]), scores, label_names) == []

    def test_engine_order_preserved(self, label_names: list[str]) -> None:
        """Detections should keep engine order, not score order."""
        boxes = np.arange(12, dtype=np.float32).reshape(3, 4)
        scores = np.array([0.75, 0.99, 0.8], dtype=np.float32)

        detections = decode_predictions(boxes, np.array([1, 2, 3]), scores, label_names)

        assert [d.label for d in detections] == ["person", "bicycle", "car"]

    def test_last_box_is_decoded(self, label_names: list[str]) -> None:
        """The final complete quadruple should be considered."""
        boxes = np.zeros(8, dtype=np.float32)
        scores = np.array([0.1, 0.95], dtype=np.float32)

        detections = decode_predictions(boxes, np.array([1, 17]), scores, label_names)

        assert [d.label for d in detections] == ["dog"]

    def test_flat_and_matrix_boxes_agree(self, label_names: list[str]) -> None:
        """Flat [4N] and [N, 4] boxes should decode identically."""
        boxes = np.arange(8, dtype=np.float32)
        labels = np.array([1, 2])
        scores = np.array([0.8, 0.9], dtype=np.float32)

        flat = decode_predictions(boxes, labels, scores, label_names)
        matrix = decode_predictions(boxes.reshape(2, 4), labels, scores, label_names)

        assert flat == matrix

    def test_trailing_values_ignored(self, label_names: list[str]) -> None:
        """Values that do not form a full quadruple are ignored."""
        boxes = np.arange(6, dtype=np.float32)

        detections = decode_predictions(boxes, np.array([1]), np.array([0.9]), label_names)

        assert len(detections) == 1
        assert detections[0].box == Box(0.0, 1.0, 2.0, 3.0)

    def test_empty_outputs(self, label_names: list[str]) -> None:
        """No boxes should give no detections."""
        detections = decode_predictions(
            np.zeros((0, 4), dtype=np.float32),
            np.zeros(0, dtype=np.int64),
            np.zeros(0, dtype=np.float32),
            label_names,
        )

        assert detections == []

    def test_unknown_label_uses_number(self, label_names: list[str]) -> None:
        """Out-of-range label ids should be shown as numbers."""
        detections = decode_predictions(
            np.zeros((1, 4), dtype=np.float32), np.array([91]), np.array([0.9]), label_names
        )

        assert detections[0].label == "91"

    def test_short_scores_raise(self, label_names: list[str]) -> None:
        """Fewer scores than boxes should raise ValueError."""
        with pytest.raises(ValueError, match="boxes"):
            decode_predictions(
                np.zeros((2, 4), dtype=np.float32), np.array([1, 1]), np.array([0.9]), label_names
            )

    def test_custom_threshold(self, label_names: list[str]) -> None:
        """min_confidence should override the default."""
        boxes = np.zeros((2, 4), dtype=np.float32)
        scores = np.array([0.3, 0.6], dtype=np.float32)

        detections = decode_predictions(
            boxes, np.array([1, 1]), scores, label_names, min_confidence=0.5
        )

        assert len(detections) == 1


class TestDetection:
    """Tests for the Detection value type."""

    def test_caption_format(self) -> None:
        """Caption should be 'label, score' with two decimals."""
        detection = Detection(Box(0, 0, 1, 1), "person", 0.98765)

        assert detection.caption == "person, 0.99"

    def test_box_dimensions(self) -> None:
        """Width and height should be derived from the corners."""
        box = Box(10.0, 20.0, 110.0, 220.0)

        assert box.width == 100.0
        assert box.height == 200.0
        assert box.as_tuple() == (10.0, 20.0, 110.0, 220.0)
