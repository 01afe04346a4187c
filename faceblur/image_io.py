"""
Image decoding and encoding.

Responsibility:
    Turn encoded image bytes (any raster format OpenCV reads) into the
    RGBA uint8 pixel grid the rest of the pipeline works on, and encode
    a grid back to bytes.

Non-goals:
    - No file or network access; callers hand in and receive bytes.
    - No resizing (the preprocessor resizes for the network only).
"""

import logging

import cv2
import numpy as np

from faceblur.errors import DecodeError

logger = logging.getLogger(__name__)

# Formats that keep the alpha channel when encoding
_ALPHA_FORMATS = {".png", ".webp", ".tiff", ".tif"}


def decode_image(data: bytes) -> np.ndarray:
    """Decode image bytes into an (H, W, 4) RGBA uint8 array.

    Grayscale, BGR and BGRA sources are all normalized to RGBA; 16-bit
    sources are reduced to 8 bits.

    Raises:
        DecodeError: If data is not bytes, is empty or is not a decodable image.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(
            f"Expected encoded image bytes, got {type(data).__name__}."
        )

    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Cannot decode an empty image buffer.")

    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"Image decoding failed: {e}") from e

    if image is None:
        raise DecodeError(
            f"Unrecognized or corrupt image data ({buffer.size} bytes)."
        )

    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise DecodeError(f"Unsupported sample type: {image.dtype}.")

    if image.ndim == 2:
        rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    elif image.shape[2] == 3:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    elif image.shape[2] == 4:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    else:
        raise DecodeError(f"Unsupported channel count: {image.shape[2]}.")

    logger.debug("Decoded %dx%d image", rgba.shape[1], rgba.shape[0])
    return rgba


def encode_image(pixels: np.ndarray, ext: str = ".png") -> bytes:
    """Encode an RGBA (or RGB) uint8 array into image bytes.

    Args:
        pixels: (H, W, 4) RGBA or (H, W, 3) RGB array.
        ext: Target format as a file extension, e.g. '.png' or '.jpg'.
             Formats without alpha support drop the alpha channel.

    Raises:
        ValueError: If the array has the wrong shape or encoding fails.
    """
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected an (H, W, 4) RGBA or (H, W, 3) RGB image, "
            f"got shape {pixels.shape}."
        )

    ext = ext.lower()
    if pixels.shape[2] == 4 and ext in _ALPHA_FORMATS:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA)
    elif pixels.shape[2] == 4:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGR)
    else:
        bgr = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)

    ok, encoded = cv2.imencode(ext, bgr)
    if not ok:
        raise ValueError(f"OpenCV could not encode image as '{ext}'.")

    return encoded.tobytes()
