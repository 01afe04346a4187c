"""
Model loading for the face detection system.

Responsibility:
    Load the RFB-640 ONNX network from disk, configure the compute
    backend, and return a ready-to-infer cv2.dnn.Net object.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - A missing model file raises FileNotFoundError with the exact
      missing path and expected location.
    - An unreadable model or unavailable backend raises InitializationError.
"""

import logging
from pathlib import Path

import cv2

from faceblur.config import ModelConfig, get_project_root
from faceblur.errors import InitializationError

logger = logging.getLogger(__name__)


def resolve_model_path(config: ModelConfig) -> Path:
    """Resolve config.model_path against the project root."""
    path = Path(config.model_path)
    if not path.is_absolute():
        path = get_project_root() / path
    return path


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the face detection network.

    Args:
        config: ModelConfig containing the model path and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        InitializationError: If the model cannot be parsed or the
                             requested backend is unavailable.
    """
    model_path = resolve_model_path(config)

    if not model_path.is_file():
        raise FileNotFoundError(
            f"Face detection model not found.\n"
            f"  Expected: {model_path}\n"
            f"  Download version-RFB-640.onnx and place it at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", model_path)
    try:
        net = cv2.dnn.readNetFromONNX(str(model_path))
    except cv2.error as e:
        raise InitializationError(
            f"Failed to read ONNX model '{model_path}'.\n"
            f"  OpenCV error: {e}"
        ) from e

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise InitializationError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net
