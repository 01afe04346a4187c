"""
Exception types for the face blurring pipeline.

Argument and configuration problems keep raising the built-in
ValueError / TypeError / FileNotFoundError. The classes below mark the
failures a caller may want to tell apart from those.
"""


class FaceBlurError(Exception):
    """Base class for pipeline failures."""


class InitializationError(FaceBlurError, RuntimeError):
    """The inference engine or its weights could not be loaded."""


class InputShapeMismatch(FaceBlurError, ValueError):
    """Raw network outputs do not line up with the anchor sequence."""


class DecodeError(FaceBlurError, ValueError):
    """Encoded image bytes could not be decoded into a pixel grid."""
