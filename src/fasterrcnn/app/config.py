"""Configuration module using pydantic-settings.

This module provides environment variable management for the detection
service. Uses pydantic-settings for automatic validation and .env file
support.

Author: Matthew Hong
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from fasterrcnn.engine import SessionMode
from fasterrcnn.processing import ImageBackend


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        PORT: FastAPI server port
        MODELS_DIR: Directory containing the ONNX model
        MODEL_FILE: Model file name inside MODELS_DIR
        SAMPLE_IMAGE: Path to the bundled demo image
        IMAGE_BACKEND: Default image back-end (pillow, opencv)
        SESSION_MODE: Default session mode (default, platform)
        CAMERA_INDEX: OpenCV device index for captures
        PLATFORM_PROVIDERS: Execution providers for platform mode;
            empty means pick from what this onnxruntime build offers
    """

    LOG_LEVEL: str = "INFO"
    PORT: int = 8300
    MODELS_DIR: str = "./models"
    MODEL_FILE: str = "faster_rcnn.onnx"
    SAMPLE_IMAGE: str = "./assets/demo.jpg"
    IMAGE_BACKEND: ImageBackend = ImageBackend.PILLOW
    SESSION_MODE: SessionMode = SessionMode.DEFAULT
    CAMERA_INDEX: int = 0
    PLATFORM_PROVIDERS: list[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern).

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
