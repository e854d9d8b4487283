"""Pydantic models for API response schemas.

Author: Matthew Hong
"""

from pydantic import BaseModel, Field

from fasterrcnn.detector import DetectionResult


class BoundingBox(BaseModel):
    """Bounding box in padded-tensor pixel coordinates."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float


class DetectionOut(BaseModel):
    """One detected object.

    Attributes:
        box: Bounding box
        label: COCO class name
        confidence: Detection confidence score [0, 1]
    """

    box: BoundingBox
    label: str
    confidence: float


class DetectResponse(BaseModel):
    """Response model for the /detect endpoints with ``format=json``.

    Attributes:
        request_id: Unique request identifier for tracing
        backend: Image back-end that processed the request
        session_mode: Session mode used for inference
        width: Resized image width
        height: Resized image height
        detections: Detected objects in engine order
        timing: Performance breakdown in milliseconds
    """

    request_id: str
    backend: str
    session_mode: str
    width: int
    height: int
    detections: list[DetectionOut]
    timing: dict[str, float] = Field(
        description="Performance timing breakdown in milliseconds"
    )

    @classmethod
    def from_result(
        cls,
        request_id: str,
        backend: str,
        session_mode: str,
        result: DetectionResult,
    ) -> "DetectResponse":
        width, height = result.image_size
        return cls(
            request_id=request_id,
            backend=backend,
            session_mode=session_mode,
            width=width,
            height=height,
            detections=[
                DetectionOut(
                    box=BoundingBox(
                        xmin=d.box.xmin,
                        ymin=d.box.ymin,
                        xmax=d.box.xmax,
                        ymax=d.box.ymax,
                    ),
                    label=d.label,
                    confidence=d.confidence,
                )
                for d in result.detections
            ],
            timing=result.timing,
        )


class HealthResponse(BaseModel):
    """Response model for /health endpoint.

    Attributes:
        status: Service health status
        models_loaded: Whether engines are loaded and ready
        in_flight: Requests currently being processed
    """

    status: str = "healthy"
    models_loaded: bool
    in_flight: int = 0
