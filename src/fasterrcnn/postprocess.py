"""Faster R-CNN output decoding.

The ONNX Faster R-CNN graph already performs proposal filtering and NMS,
so decoding is a confidence filter over the raw outputs:

    boxes:  float32 [N, 4] (xmin, ymin, xmax, ymax), padded-tensor space
    labels: int64 [N] COCO label ids
    scores: float32 [N] confidences in [0, 1]

Output order matches the engine's order; nothing is sorted.

Author: Matthew Hong
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from fasterrcnn.config import get_value

MIN_CONFIDENCE: float = get_value("postprocessing", "confidence_threshold")
"""Detections scoring below this are dropped."""

LABELS_FILE: Path = Path(__file__).parent / "data" / "coco_labels.txt"

COCO_LABEL_COUNT: int = 81
"""80 COCO classes plus the background entry at index 0."""


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class Box:
    """Axis-aligned bounding box in pixel coordinates."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.xmin, self.ymin, self.xmax, self.ymax


@dataclass(frozen=True)
class Detection:
    """A single detected object.

    Attributes:
        box: Bounding box in padded-tensor coordinates
        label: Human-readable class name
        confidence: Detection confidence score [0, 1]
    """

    box: Box
    label: str
    confidence: float

    @property
    def caption(self) -> str:
        """Text drawn next to the box, e.g. ``"person, 0.98"``."""
        return f"{self.label}, {self.confidence:.2f}"


@dataclass
class RawPredictions:
    """Unprocessed outputs of one engine run."""

    boxes: np.ndarray
    labels: np.ndarray
    scores: np.ndarray


# =============================================================================
# Labels
# =============================================================================


def load_label_names(labels_file: Path = LABELS_FILE) -> list[str]:
    """Load COCO class labels from file.

    Args:
        labels_file: Path to labels file (one per line, background first)

    Returns:
        List of 81 class names indexed by model label id

    Raises:
        FileNotFoundError: If labels file not found
        ValueError: If labels file doesn't contain exactly 81 lines
    """
    if not labels_file.exists():
        raise FileNotFoundError(f"COCO labels file not found: {labels_file}")

    with open(labels_file) as f:
        labels = [line.strip() for line in f if line.strip()]

    if len(labels) != COCO_LABEL_COUNT:
        raise ValueError(
            f"Expected {COCO_LABEL_COUNT} COCO labels, got {len(labels)}. "
            f"Check {labels_file} format."
        )

    return labels


def label_for(label_id: int, label_names: Sequence[str]) -> str:
    """Map a model label id to its name, falling back to the numeric id."""
    if 0 <= label_id < len(label_names):
        return label_names[label_id]
    return str(label_id)


# =============================================================================
# Decoding
# =============================================================================


def decode_predictions(
    boxes: np.ndarray,
    labels: np.ndarray,
    scores: np.ndarray,
    label_names: Sequence[str],
    min_confidence: float = MIN_CONFIDENCE,
) -> list[Detection]:
    """Convert raw engine outputs into detections.

    Boxes are walked as a flat array in steps of four; the label and score
    for the quadruple starting at offset ``i`` live at ``i // 4``.
    Trailing values that do not form a full quadruple are ignored.

    Args:
        boxes: Box coordinates, flat [4N] or [N, 4]
        labels: Label ids [N]
        scores: Confidence scores [N]
        label_names: Names indexed by label id
        min_confidence: Inclusive score threshold

    Returns:
        Detections in engine order

    Raises:
        ValueError: If labels/scores are shorter than the number of boxes

    Example:
        >>> boxes = np.zeros(12, dtype=np.float32)
        >>> dets = decode_predictions(boxes, np.array([1, 1, 1]),
        ...                           np.array([0.9, 0.5, 0.71]), ["bg", "person"])
        >>> len(dets)
        2
    """
    flat_boxes = np.asarray(boxes, dtype=np.float32).reshape(-1)
    labels = np.asarray(labels).reshape(-1)
    scores = np.asarray(scores, dtype=np.float32).reshape(-1)

    num_boxes = flat_boxes.size // 4
    if labels.size < num_boxes or scores.size < num_boxes:
        raise ValueError(
            f"Got {num_boxes} boxes but {labels.size} labels and "
            f"{scores.size} scores"
        )

    # Compare in float32, the precision the engine reports scores in
    threshold = np.float32(min_confidence)
    detections: list[Detection] = []

    for i in range(0, num_boxes * 4, 4):
        index = i // 4
        score = scores[index]

        if score >= threshold:
            detections.append(
                Detection(
                    box=Box(
                        float(flat_boxes[i]),
                        float(flat_boxes[i + 1]),
                        float(flat_boxes[i + 2]),
                        float(flat_boxes[i + 3]),
                    ),
                    label=label_for(int(labels[index]), label_names),
                    confidence=float(score),
                )
            )

    return detections
