"""FastAPI application for the Faster R-CNN detection service.

This module provides the HTTP API:
- POST /detect: Detect objects in an uploaded photo
- POST /detect/sample: Detect objects in the bundled demo image
- POST /detect/capture: Detect objects in a camera frame
- GET /health: Service health check

Every detect endpoint returns the rendered JPEG, or detections and timing
as JSON with ``?format=json``. Engines for both session modes are loaded
at startup.

Author: Matthew Hong
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from fasterrcnn.acquisition import ImageSource, acquire_image
from fasterrcnn.assets import download_model
from fasterrcnn.detector import FasterRcnnObjectDetector
from fasterrcnn.engine import EngineRegistry, SessionMode, resolve_platform_providers
from fasterrcnn.errors import AcquisitionError, DecodeError
from fasterrcnn.postprocess import load_label_names
from fasterrcnn.processing import ImageBackend

from .config import get_settings
from .logger import request_id_var, setup_logging
from .models import DetectResponse, HealthResponse

# Global state (initialized during lifespan)
registry: EngineRegistry | None = None
detector: FasterRcnnObjectDetector | None = None
in_flight: int = 0
logger = logging.getLogger(__name__)


class ResponseFormat(str, Enum):
    """Body returned by the detect endpoints."""

    IMAGE = "image"
    JSON = "json"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown:
    - Startup: Setup logging, fetch the model if missing, preload engines
    - Shutdown: Release engines

    Args:
        app: FastAPI application instance
    """
    global registry, detector
    settings = get_settings()

    # Setup JSON structured logging
    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting detection service", extra={"port": settings.PORT})

    models_dir = Path(settings.MODELS_DIR)
    model_path = models_dir / settings.MODEL_FILE
    if not model_path.exists():
        logger.info("Model not found locally, downloading")
        model_path = await asyncio.to_thread(download_model, models_dir)

    platform_providers = settings.PLATFORM_PROVIDERS or resolve_platform_providers()

    logger.info("Initializing engines")
    registry = EngineRegistry(model_path, platform_providers=platform_providers)
    registry.preload_all()

    detector = FasterRcnnObjectDetector(registry, load_label_names())
    logger.info("Service ready for requests")

    yield

    # Cleanup
    logger.info("Shutting down detection service")
    registry.clear()
    registry = None
    detector = None


# Create FastAPI app with lifespan
app = FastAPI(
    title="Faster R-CNN Detection Service",
    description="Faster R-CNN object detection with ONNX Runtime",
    version="1.0.0",
    lifespan=lifespan,
)


async def _run_detection(
    endpoint: str,
    source: ImageSource,
    upload: UploadFile | None,
    backend: ImageBackend | None,
    session_mode: SessionMode | None,
    response_format: ResponseFormat,
):
    """Acquire an image, run the pipeline and build the response."""
    global in_flight

    request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    settings = get_settings()
    backend = backend or settings.IMAGE_BACKEND
    session_mode = session_mode or settings.SESSION_MODE
    log_extra = {
        "endpoint": endpoint,
        "backend": backend.value,
        "session_mode": session_mode.value,
        "source": source.value,
    }

    logger.info("Received detect request", extra=log_extra)

    if detector is None:
        logger.error("Detector not initialized", extra=log_extra)
        raise HTTPException(status_code=503, detail="Service not ready")

    in_flight += 1
    try:
        if source == ImageSource.PICK:
            image_bytes = await upload.read()
        else:
            image_bytes = await asyncio.to_thread(
                acquire_image,
                source,
                sample_path=Path(settings.SAMPLE_IMAGE),
                camera_index=settings.CAMERA_INDEX,
            )

        result = await detector.detect_async(image_bytes, backend, session_mode)

        logger.info(
            "Detect complete",
            extra={
                **log_extra,
                "latency_ms": result.timing["total_ms"],
                "timing": result.timing,
                "detections": len(result.detections),
                "status_code": 200,
            },
        )

        if response_format == ResponseFormat.JSON:
            return DetectResponse.from_result(
                request_id, backend.value, session_mode.value, result
            )

        return Response(
            content=result.image,
            media_type="image/jpeg",
            headers={"X-Request-ID": request_id},
        )

    except DecodeError as e:
        logger.warning(f"Decode failed: {e}", extra={**log_extra, "status_code": 400})
        raise HTTPException(status_code=400, detail=str(e))

    except AcquisitionError as e:
        logger.warning(f"Acquisition failed: {e}", extra={**log_extra, "status_code": 503})
        raise HTTPException(status_code=503, detail=str(e))

    except Exception as e:
        logger.error(
            f"Detect failed: {e}",
            extra={**log_extra, "status_code": 500},
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=str(e))

    finally:
        in_flight -= 1


@app.post("/detect", response_model=None)
async def detect(
    file: UploadFile = File(...),
    backend: ImageBackend | None = Query(None),
    session_mode: SessionMode | None = Query(None),
    format: ResponseFormat = Query(ResponseFormat.IMAGE),
):
    """Detect objects in an uploaded photo.

    Args:
        file: Uploaded image file (JPEG, PNG, etc.)
        backend: Image back-end (default from settings)
        session_mode: Session mode (default from settings)
        format: ``image`` for the rendered JPEG, ``json`` for detections

    Raises:
        HTTPException: 400 if the image cannot be decoded, 500 on failure
    """
    return await _run_detection("/detect", ImageSource.PICK, file, backend, session_mode, format)


@app.post("/detect/sample", response_model=None)
async def detect_sample(
    backend: ImageBackend | None = Query(None),
    session_mode: SessionMode | None = Query(None),
    format: ResponseFormat = Query(ResponseFormat.IMAGE),
):
    """Detect objects in the bundled demo image."""
    return await _run_detection(
        "/detect/sample", ImageSource.SAMPLE, None, backend, session_mode, format
    )


@app.post("/detect/capture", response_model=None)
async def detect_capture(
    backend: ImageBackend | None = Query(None),
    session_mode: SessionMode | None = Query(None),
    format: ResponseFormat = Query(ResponseFormat.IMAGE),
):
    """Detect objects in a single camera frame.

    Raises:
        HTTPException: 503 if no camera is available
    """
    return await _run_detection(
        "/detect/capture", ImageSource.CAPTURE, None, backend, session_mode, format
    )


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint.

    Returns:
        HealthResponse indicating service health and engine status
    """
    request_id_var.set(str(uuid.uuid4()))

    models_loaded = registry is not None and all(
        registry.is_loaded(mode) for mode in SessionMode
    )

    return HealthResponse(
        status="healthy",
        models_loaded=models_loaded,
        in_flight=in_flight,
    )


def run() -> None:
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run("fasterrcnn.app.main:app", host="0.0.0.0", port=get_settings().PORT)


if __name__ == "__main__":
    run()
