"""ONNX Runtime Inference Engine.

This module wraps the Faster R-CNN ONNX graph behind a small interface:
load the model bytes once, build one inference session, feed a
(3, H, W) tensor and read back boxes, labels and scores.

Features:
- Explicit ownership: engines are created at startup and passed by reference
- Session modes: generic CPU execution or platform accelerators
- Thread configuration: intra_op/inter_op settings from pipeline.yaml
- Concurrent reads: ``InferenceSession.run`` may be called from several
  threads at once; model bytes are never mutated after loading

Author: Matthew Hong
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import Lock

import numpy as np

from fasterrcnn.config import get_model_config, get_onnx_runtime_config
from fasterrcnn.postprocess import RawPredictions

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

CPU_PROVIDER: str = "CPUExecutionProvider"

PLATFORM_PROVIDER_PREFERENCE: tuple[str, ...] = (
    "CoreMLExecutionProvider",
    "NnapiExecutionProvider",
    "CUDAExecutionProvider",
    "DmlExecutionProvider",
    "OpenVINOExecutionProvider",
)
"""Accelerators tried for SessionMode.PLATFORM, most preferred first."""

_onnx_config = get_onnx_runtime_config()

DEFAULT_INTRA_OP_THREADS: int = _onnx_config["intra_op_num_threads"]
"""ONNX Runtime intra-op parallelism (within single operator)."""

DEFAULT_INTER_OP_THREADS: int = _onnx_config["inter_op_num_threads"]
"""ONNX Runtime inter-op parallelism (across operators)."""

MODEL_INPUT_NAME: str = get_model_config()["input_name"]


# =============================================================================
# Data Classes
# =============================================================================


class SessionMode(str, Enum):
    """Execution provider selection for an inference session."""

    DEFAULT = "default"
    PLATFORM = "platform"


@dataclass
class ExecutionConfig:
    """Configuration for an ONNX Runtime inference session.

    Attributes:
        mode: DEFAULT for generic CPU execution, PLATFORM for accelerators
        platform_providers: Providers used in PLATFORM mode, resolved by the
            caller (see resolve_platform_providers)
        intra_op_threads: Number of threads for intra-op parallelism
        inter_op_threads: Number of threads for inter-op parallelism
    """

    mode: SessionMode = SessionMode.DEFAULT
    platform_providers: list[str] = field(default_factory=list)
    intra_op_threads: int = DEFAULT_INTRA_OP_THREADS
    inter_op_threads: int = DEFAULT_INTER_OP_THREADS

    @property
    def providers(self) -> list[str]:
        """Execution providers in priority order.

        PLATFORM mode without configured providers runs on the CPU.
        """
        if self.mode == SessionMode.PLATFORM and self.platform_providers:
            providers = list(self.platform_providers)
            if CPU_PROVIDER not in providers:
                providers.append(CPU_PROVIDER)
            return providers

        return [CPU_PROVIDER]


def resolve_platform_providers(available: Iterable[str] | None = None) -> list[str]:
    """Pick the platform accelerators supported by this ONNX Runtime build.

    Args:
        available: Provider names to choose from
            (default: ``onnxruntime.get_available_providers()``)

    Returns:
        Preferred accelerators that are available, followed by the CPU provider

    Example:
        >>> resolve_platform_providers(["CPUExecutionProvider", "CUDAExecutionProvider"])
        ['CUDAExecutionProvider', 'CPUExecutionProvider']
    """
    if available is None:
        import onnxruntime as ort

        available = ort.get_available_providers()

    available = set(available)
    providers = [p for p in PLATFORM_PROVIDER_PREFERENCE if p in available]
    providers.append(CPU_PROVIDER)

    return providers


# =============================================================================
# Inference Engine
# =============================================================================


class InferenceEngine:
    """One ONNX Runtime session over in-memory model bytes.

    The model file is read once; the session is built from those bytes and
    reused for every request. ``run`` holds no lock: ONNX Runtime sessions
    support concurrent ``run`` calls.

    Example:
        >>> engine = InferenceEngine.from_file(Path("models/faster_rcnn.onnx"))
        >>> predictions = engine.run(tensor)
        >>> predictions.boxes.shape
        (N, 4)

    Attributes:
        model_bytes: Serialized ONNX graph
        config: Session configuration (mode, providers, threads)
        input_name: Name of the image input
    """

    def __init__(
        self,
        model_bytes: bytes,
        config: ExecutionConfig | None = None,
        input_name: str = MODEL_INPUT_NAME,
    ) -> None:
        import onnxruntime as ort

        self.model_bytes = model_bytes
        self.config = config or ExecutionConfig()
        self.input_name = input_name

        sess_options = ort.SessionOptions()
        sess_options.intra_op_num_threads = self.config.intra_op_threads
        sess_options.inter_op_num_threads = self.config.inter_op_threads

        self.session = ort.InferenceSession(
            self.model_bytes,
            sess_options,
            providers=self.config.providers,
        )

        logger.info(f"Created {self.config.mode.value} session")
        logger.info(f"  Providers: {self.session.get_providers()}")
        logger.info(f"  Intra-op threads: {self.config.intra_op_threads}")
        logger.info(f"  Inter-op threads: {self.config.inter_op_threads}")

    @classmethod
    def from_file(cls, model_path: Path, config: ExecutionConfig | None = None) -> "InferenceEngine":
        """Read an ONNX model from disk and build an engine for it.

        Raises:
            FileNotFoundError: If model file not found
        """
        model_path = Path(model_path)

        if not model_path.exists():
            raise FileNotFoundError(
                f"Model file not found: {model_path}. "
                f"Run 'python scripts/setup_assets.py' first."
            )

        logger.info(f"Loading model from {model_path}")
        return cls(model_path.read_bytes(), config)

    @property
    def providers_in_use(self) -> Sequence[str]:
        return tuple(self.session.get_providers())

    def run(self, tensor: np.ndarray) -> RawPredictions:
        """Run the detector on one image tensor.

        Args:
            tensor: float32 array [3, H, W]

        Returns:
            RawPredictions with boxes [N, 4], labels [N] and scores [N]

        Raises:
            ValueError: If tensor is not a 3D float32 array
        """
        if tensor.ndim != 3 or tensor.shape[0] != 3:
            raise ValueError(f"Expected tensor shape (3, H, W), got {tensor.shape}")

        if tensor.dtype != np.float32:
            raise ValueError(f"Expected float32 tensor, got {tensor.dtype}")

        outputs = self.session.run(None, {self.input_name: tensor})

        # Outputs by position: boxes, labels, scores
        return RawPredictions(
            boxes=np.asarray(outputs[0], dtype=np.float32),
            labels=np.asarray(outputs[1]).astype(np.int64),
            scores=np.asarray(outputs[2], dtype=np.float32),
        )


# =============================================================================
# Engine Registry
# =============================================================================


class EngineRegistry:
    """Holds one InferenceEngine per SessionMode over shared model bytes.

    Created once at startup and passed to the detector. Engines are built
    under a lock; after ``preload_all`` every lookup is a plain dict read.

    Attributes:
        model_path: Path to the ONNX model file
        platform_providers: Providers used for SessionMode.PLATFORM
    """

    def __init__(
        self,
        model_path: Path,
        platform_providers: Sequence[str] | None = None,
        intra_op_threads: int = DEFAULT_INTRA_OP_THREADS,
        inter_op_threads: int = DEFAULT_INTER_OP_THREADS,
    ) -> None:
        self.model_path = Path(model_path)
        self.platform_providers = list(platform_providers or [])
        self.intra_op_threads = intra_op_threads
        self.inter_op_threads = inter_op_threads

        self._model_bytes: bytes | None = None
        self._engines: dict[SessionMode, InferenceEngine] = {}
        self._lock = Lock()

        logger.info("EngineRegistry initialized")
        logger.info(f"  Model: {self.model_path}")
        logger.info(f"  Platform providers: {self.platform_providers or [CPU_PROVIDER]}")

    def get_engine(self, mode: SessionMode | str = SessionMode.DEFAULT) -> InferenceEngine:
        """Get the engine for a session mode, creating it if needed.

        Raises:
            FileNotFoundError: If model file not found
        """
        mode = SessionMode(mode)

        with self._lock:
            if mode not in self._engines:
                self._engines[mode] = InferenceEngine(
                    self._load_model_bytes(),
                    self._execution_config(mode),
                )

            return self._engines[mode]

    def is_loaded(self, mode: SessionMode | str) -> bool:
        return SessionMode(mode) in self._engines

    def preload_all(self) -> None:
        """Create engines for every session mode.

        Called at startup so no request pays the model loading cost.
        """
        for mode in SessionMode:
            self.get_engine(mode)

    def clear(self) -> None:
        """Drop all engines and the cached model bytes."""
        with self._lock:
            self._engines.clear()
            self._model_bytes = None
            logger.info("Engine registry cleared")

    def _execution_config(self, mode: SessionMode) -> ExecutionConfig:
        return ExecutionConfig(
            mode=mode,
            platform_providers=self.platform_providers,
            intra_op_threads=self.intra_op_threads,
            inter_op_threads=self.inter_op_threads,
        )

    def _load_model_bytes(self) -> bytes:
        if self._model_bytes is None:
            if not self.model_path.exists():
                raise FileNotFoundError(
                    f"Model file not found: {self.model_path}. "
                    f"Run 'python scripts/setup_assets.py' first."
                )

            logger.info(f"Loading model: {self.model_path}")
            self._model_bytes = self.model_path.read_bytes()
            logger.info(f"  ✓ Loaded {len(self._model_bytes) / (1024 * 1024):.2f} MB")

        return self._model_bytes
