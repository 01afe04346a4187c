"""
Detector — the public API for face detection.

Public contract:
    Detector.detect(pixels: np.ndarray) -> list[Region]

Constraints:
    - Input must be an RGBA (or RGB) uint8 numpy array.
    - The anchor sequence is generated once per Detector and never mutated.
    - Network loading happens at most once at a time; concurrent callers
      of initialize() share the same load and its outcome.
    - detect() fails open: on any pipeline failure it logs the cause and
      returns an empty list, so the image is simply left unblurred.

Non-goals:
    - No image decoding or encoding.
    - No anonymization (see faceblur.anonymizer).
    - No tracking or temporal state.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import numpy as np

from faceblur.config import AppConfig, load_config
from faceblur.detection import Box, Region
from faceblur.model_loader import load_model
from faceblur.postprocessor import postprocess
from faceblur.preprocessor import preprocess
from faceblur.priors import Anchor, generate_priors, priors_to_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of a fail-open detection call.

    Attributes:
        regions: Detected faces; empty when none were found or on failure.
        error: The swallowed exception, or None if detection ran through.
    """

    regions: List[Region] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """True when detection ran; False when regions is empty due to failure."""
        return self.error is None


class Detector:
    """Face detector using the UltraFace RFB-640 network via OpenCV DNN.

    The Detector is an explicit context object: it owns the anchor
    sequence and the network, and nothing is kept in module globals.

    Usage:
        detector = Detector()                      # Uses safe defaults
        detector = Detector(config=my_config)      # Custom config
        detector.initialize()                      # Optional; detect() loads lazily
        regions = detector.detect(pixels)          # RGBA numpy array
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        net: Optional[cv2.dnn.Net] = None,
    ) -> None:
        """Create the detector and its anchors. The network loads lazily.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).
            net: An already loaded network to use instead of
                 config.model.model_path.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._anchors: Tuple[Anchor, ...] = generate_priors(config.model.input_size)
        self._prior_array = priors_to_array(self._anchors)

        self._init_lock = threading.Lock()
        self._infer_lock = threading.Lock()
        self._net_future: Optional[Future] = None
        if net is not None:
            self._net_future = Future()
            self._net_future.set_result(net)

        logger.info(
            "Detector created (anchors=%d, score_threshold=%.2f, iou_threshold=%.2f)",
            len(self._anchors),
            config.detection.score_threshold,
            config.detection.iou_threshold,
        )

    # -- Initialization -----------------------------------------------------

    def initialize(self) -> cv2.dnn.Net:
        """Load the network once and return it.

        Concurrent callers wait on the same load. If it fails, every
        waiter sees the same exception and the detector stays
        uninitialized; calling initialize() again retries.

        Raises:
            FileNotFoundError: If the model file is missing.
            InitializationError: If the model cannot be loaded.
        """
        with self._init_lock:
            future = self._net_future
            owner = future is None
            if owner:
                future = Future()
                self._net_future = future

        if owner:
            try:
                future.set_result(load_model(self._config.model))
            except BaseException as e:
                # Waiters must never block on an abandoned load
                with self._init_lock:
                    self._net_future = None
                future.set_exception(e)
                logger.error("Detector initialization failed: %r", e)
                if not isinstance(e, Exception):
                    raise
            else:
                logger.info("Detector initialized (backend=%s)", self._config.model.backend)

        return future.result()

    @property
    def is_ready(self) -> bool:
        """True once the network has been loaded successfully."""
        future = self._net_future
        return future is not None and future.done() and future.exception() is None

    # -- Detection ----------------------------------------------------------

    def run_network(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Forward a preprocessed blob and return (scores, offsets)."""
        net = self.initialize()
        model = self._config.model

        with self._infer_lock:
            net.setInput(blob)
            scores, offsets = net.forward([model.score_output, model.box_output])

        return scores, offsets

    def detect_boxes(self, pixels: np.ndarray) -> List[Box]:
        """Detect faces and return the raw boxes. Errors propagate.

        Args:
            pixels: An (H, W, 4) RGBA or (H, W, 3) RGB uint8 array.

        Returns:
            Boxes in original-image pixels, score-descending.

        Raises:
            TypeError: If pixels is not a numpy ndarray.
            ValueError: If pixels has the wrong shape or is empty.
            InitializationError: If the network cannot be loaded.
            InputShapeMismatch: If the network outputs do not match the anchors.
        """
        self._validate_frame(pixels)

        blob = preprocess(pixels, self._config.model)
        scores, offsets = self.run_network(blob)

        h, w = pixels.shape[:2]
        detection = self._config.detection
        boxes = postprocess(
            self._prior_array,
            scores,
            offsets,
            frame_width=w,
            frame_height=h,
            score_threshold=detection.score_threshold,
            iou_threshold=detection.iou_threshold,
            center_variance=detection.center_variance,
            size_variance=detection.size_variance,
        )

        logger.debug("Detected %d face(s) in %dx%d image", len(boxes), w, h)
        return boxes

    def detect_with_status(self, pixels: np.ndarray) -> DetectionResult:
        """Fail-open detection that still reports whether it failed."""
        try:
            boxes = self.detect_boxes(pixels)
        except Exception as e:
            logger.exception("Face detection failed, returning no faces: %s", e)
            return DetectionResult(regions=[], error=e)

        return DetectionResult(regions=[box.to_region() for box in boxes])

    def detect(self, pixels: np.ndarray) -> List[Region]:
        """Detect faces in a single RGBA image.

        Returns:
            Regions in image pixel coordinates, score-descending.
            Returns an empty list if no faces are found OR if detection
            failed for any reason (the cause is logged).
        """
        return self.detect_with_status(pixels).regions

    # -- Accessors ----------------------------------------------------------

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def anchors(self) -> Tuple[Anchor, ...]:
        """The anchor sequence the network outputs are aligned with."""
        return self._anchors

    @staticmethod
    def _validate_frame(pixels: np.ndarray) -> None:
        """Validate that the input image meets the API contract.

        Raises:
            TypeError: If pixels is not a numpy ndarray.
            ValueError: If pixels is empty or has wrong dimensions.
        """
        if not isinstance(pixels, np.ndarray):
            raise TypeError(
                f"Expected pixels to be a numpy ndarray, "
                f"got {type(pixels).__name__}. "
                f"Use faceblur.image_io.decode_image() to obtain a pixel grid."
            )

        if pixels.size == 0:
            raise ValueError("Image is empty (zero size).")

        if pixels.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional image (H, W, C), "
                f"got {pixels.ndim} dimensions with shape {pixels.shape}."
            )

        if pixels.shape[2] not in (3, 4):
            raise ValueError(
                f"Expected 4 channels (RGBA) or 3 channels (RGB), "
                f"got {pixels.shape[2]} channels."
            )
