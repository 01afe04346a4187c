"""
Preprocessing for the face detection pipeline.

Responsibility:
    Convert an RGBA pixel grid (numpy array) into the 4D input tensor of
    the RFB-640 network using cv2.dnn.blobFromImage.

Non-goals:
    - No image decoding or I/O.
    - No inference or coordinate mapping.
    - No model-awareness beyond the blob parameters.

Hard-coded:
    - Channel order is R, G, B (the grid is already RGB; swapRB is False).
    - The resize ignores aspect ratio; the decoder maps boxes back onto
      the original width and height independently.
"""

import numpy as np
import cv2

from faceblur.config import ModelConfig


def preprocess(pixels: np.ndarray, config: ModelConfig) -> np.ndarray:
    """Convert an RGBA/RGB grid into a network input blob.

    Each sample becomes (raw - mean_value) * scale_factor, i.e.
    (raw - 127) / 128 with the default config.

    Args:
        pixels: Input image as an (H, W, 4) RGBA or (H, W, 3) RGB array.
        config: ModelConfig providing input_size, mean_value and scale_factor.

    Returns:
        A 4D float32 array of shape (1, 3, H_in, W_in).

    Raises:
        ValueError: If the grid is empty or has unexpected dimensions.
    """
    if pixels is None or pixels.size == 0:
        raise ValueError(
            "Cannot preprocess an empty image. "
            "Ensure the image was decoded successfully."
        )

    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected an (H, W, 4) RGBA or (H, W, 3) RGB image, "
            f"got shape {pixels.shape}."
        )

    rgb = np.ascontiguousarray(pixels[:, :, :3])

    blob = cv2.dnn.blobFromImage(
        image=rgb,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=(config.mean_value,) * 3,
        swapRB=False,   # Hard-coded: grid is RGB, model expects RGB
        crop=False,
    )

    return blob
