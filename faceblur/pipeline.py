"""
End-to-end entry points.

Responsibility:
    Wire decoding, detection, anonymization and encoding together for
    callers that hold encoded image bytes.

Error policy:
    - Undecodable input raises DecodeError (no partial result).
    - Detection failures are swallowed by Detector.detect(): the image
      comes back with no faces anonymized.
    - Bad regions are skipped by the anonymizer.
"""

import logging
from typing import Iterable, List, Optional

import numpy as np

from faceblur.anonymizer import anonymize
from faceblur.config import AppConfig
from faceblur.detection import Region
from faceblur.detector import Detector
from faceblur.image_io import decode_image, encode_image

logger = logging.getLogger(__name__)


def blur_faces_in_grid(
    pixels: np.ndarray,
    detector: Detector,
    config: Optional[AppConfig] = None,
) -> List[Region]:
    """Detect faces in an RGBA grid and anonymize them in place.

    Returns:
        The regions that were anonymized.
    """
    if config is None:
        config = detector.config

    regions = detector.detect(pixels)
    anonymize(pixels, regions, config.anonymize)
    return regions


def blur_faces(
    image_bytes: bytes,
    detector: Detector,
    config: Optional[AppConfig] = None,
) -> bytes:
    """Detect and anonymize every face in an encoded image.

    Args:
        image_bytes: Encoded image (PNG, JPEG, ...).
        detector: Detection context; loads its network on first use.
        config: Overrides detector.config for anonymization and encoding.

    Returns:
        The encoded result in config.output.image_format.

    Raises:
        DecodeError: If image_bytes cannot be decoded.
    """
    if config is None:
        config = detector.config

    pixels = decode_image(image_bytes)
    regions = blur_faces_in_grid(pixels, detector, config)
    logger.info("Anonymized %d face(s)", len(regions))
    return encode_image(pixels, config.output.image_format)


def anonymize_image(
    image_bytes: bytes,
    regions: Iterable[Region],
    circular: Optional[bool] = None,
    config: Optional[AppConfig] = None,
) -> bytes:
    """Anonymize caller-supplied regions of an encoded image.

    Args:
        image_bytes: Encoded image.
        regions: Rectangles in image pixels, applied in order.
        circular: One flag for the whole list; None uses the config value.
        config: Anonymization and output settings. None uses defaults.

    Raises:
        DecodeError: If image_bytes cannot be decoded.
    """
    if config is None:
        config = AppConfig()

    pixels = decode_image(image_bytes)
    anonymize(pixels, regions, config.anonymize, circular=circular)
    return encode_image(pixels, config.output.image_format)
