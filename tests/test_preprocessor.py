"""
Tests for the preprocessing module.
"""

import numpy as np
import pytest

from faceblur.config import ModelConfig
from faceblur.preprocessor import preprocess


def test_preprocess_valid_input():
    """Test standard preprocessing on a valid RGBA image."""
    config = ModelConfig()

    pixels = np.zeros((300, 200, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255

    blob = preprocess(pixels, config)

    assert isinstance(blob, np.ndarray)
    assert blob.shape == (1, 3, 480, 640)
    assert blob.dtype == np.float32


def test_preprocess_normalization_and_channel_order():
    """Test (raw - 127) / 128 per channel in R, G, B order."""
    config = ModelConfig()
    pixels = np.empty((60, 80, 4), dtype=np.uint8)
    pixels[:, :] = (255, 127, 0, 10)

    blob = preprocess(pixels, config)

    assert np.allclose(blob[0, 0], 1.0, atol=1e-5)
    assert np.allclose(blob[0, 1], 0.0, atol=1e-5)
    assert np.allclose(blob[0, 2], -127.0 / 128.0, atol=1e-5)


def test_preprocess_rgb_input():
    """Test that a 3-channel grid is accepted."""
    blob = preprocess(np.zeros((48, 64, 3), dtype=np.uint8), ModelConfig())
    assert blob.shape == (1, 3, 480, 640)


def test_preprocess_empty_frame():
    """Test that preprocessing rejects empty images."""
    with pytest.raises(ValueError):
        preprocess(np.array([]), ModelConfig())


def test_preprocess_none_frame():
    """Test that preprocessing rejects None."""
    with pytest.raises(ValueError):
        preprocess(None, ModelConfig())


def test_preprocess_wrong_shape():
    """Test that grayscale arrays are rejected."""
    with pytest.raises(ValueError, match="RGBA"):
        preprocess(np.zeros((10, 10), dtype=np.uint8), ModelConfig())


def test_preprocess_custom_size():
    """Test that the blob follows the configured input size."""
    config = ModelConfig(input_size=(320, 240))
    blob = preprocess(np.zeros((200, 200, 4), dtype=np.uint8), config)
    assert blob.shape == (1, 3, 240, 320)
