"""Faster R-CNN detection pipeline.

This module orchestrates one detection request:
1. Decode, orient and resize the image (selected image back-end)
2. Build the (3, H, W) mean-subtracted tensor
3. Run the ONNX Runtime engine for the selected session mode
4. Decode raw outputs into detections (confidence >= 0.7)
5. Draw boxes and captions and encode the result as JPEG

Stages run strictly in sequence. The async entry points move the whole
chain onto a worker thread so an event loop is never blocked.

Author: Matthew Hong
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from fasterrcnn.engine import EngineRegistry, SessionMode
from fasterrcnn.postprocess import Detection, decode_predictions, load_label_names
from fasterrcnn.processing import ImageBackend, ImageProcessor, create_processor

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Result container for one detection request.

    Attributes:
        image: Rendered JPEG bytes
        detections: Detections drawn on the image, in engine order
        image_size: (width, height) of the resized image
        timing: Stage durations in milliseconds
    """

    image: bytes
    detections: list[Detection]
    image_size: tuple[int, int]
    timing: dict[str, float] = field(default_factory=dict)


class FasterRcnnObjectDetector:
    """Runs the full detection pipeline over a shared EngineRegistry.

    Image processors are created once per back-end and reused; they hold
    no per-request state.

    Attributes:
        registry: Engines per session mode
        label_names: COCO label names indexed by model label id
    """

    def __init__(
        self,
        registry: EngineRegistry,
        label_names: Sequence[str] | None = None,
    ) -> None:
        self.registry = registry
        self.label_names = list(label_names) if label_names is not None else load_label_names()
        self._processors: dict[ImageBackend, ImageProcessor] = {
            backend: create_processor(backend) for backend in ImageBackend
        }

    def processor(self, backend: ImageBackend | str) -> ImageProcessor:
        return self._processors[ImageBackend(backend)]

    def detect(
        self,
        image_bytes: bytes,
        backend: ImageBackend | str = ImageBackend.PILLOW,
        mode: SessionMode | str = SessionMode.DEFAULT,
    ) -> DetectionResult:
        """Detect objects in an image and render them.

        Args:
            image_bytes: Raw image bytes (JPEG, PNG, etc.)
            backend: Image back-end used for decoding and drawing
            mode: Session mode selecting the execution providers

        Returns:
            DetectionResult with rendered JPEG, detections and timing

        Raises:
            DecodeError: If image cannot be decoded
        """
        processor = self.processor(backend)
        engine = self.registry.get_engine(mode)
        timing: dict[str, float] = {}

        t0 = time.perf_counter()

        with processor.open(image_bytes) as image:
            t1 = time.perf_counter()
            timing["preprocess_ms"] = (t1 - t0) * 1000

            tensor = processor.get_tensor(image)
            t2 = time.perf_counter()
            timing["tensor_ms"] = (t2 - t1) * 1000

            raw = engine.run(tensor)
            detections = decode_predictions(raw.boxes, raw.labels, raw.scores, self.label_names)
            t3 = time.perf_counter()
            timing["inference_ms"] = (t3 - t2) * 1000

            output = processor.apply_predictions(detections, image)
            image_size = processor.size(image)
            t4 = time.perf_counter()
            timing["render_ms"] = (t4 - t3) * 1000

        timing["total_ms"] = (time.perf_counter() - t0) * 1000

        logger.info(
            f"Detected {len(detections)} objects "
            f"({ImageBackend(backend).value}, {SessionMode(mode).value}) "
            f"in {timing['total_ms']:.1f} ms"
        )

        return DetectionResult(
            image=output,
            detections=detections,
            image_size=image_size,
            timing=timing,
        )

    def get_image_with_objects(
        self,
        image_bytes: bytes,
        backend: ImageBackend | str = ImageBackend.PILLOW,
        mode: SessionMode | str = SessionMode.DEFAULT,
    ) -> bytes:
        """Return only the rendered JPEG for an image."""
        return self.detect(image_bytes, backend, mode).image

    async def detect_async(
        self,
        image_bytes: bytes,
        backend: ImageBackend | str = ImageBackend.PILLOW,
        mode: SessionMode | str = SessionMode.DEFAULT,
    ) -> DetectionResult:
        """Run :meth:`detect` on a worker thread."""
        return await asyncio.to_thread(self.detect, image_bytes, backend, mode)

    async def get_image_with_objects_async(
        self,
        image_bytes: bytes,
        backend: ImageBackend | str = ImageBackend.PILLOW,
        mode: SessionMode | str = SessionMode.DEFAULT,
    ) -> bytes:
        """Run :meth:`get_image_with_objects` on a worker thread."""
        result = await self.detect_async(image_bytes, backend, mode)
        return result.image
