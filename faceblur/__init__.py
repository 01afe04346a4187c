"""
faceblur — face detection and anonymization with the UltraFace RFB-640 model.

Public API:
    - Detector: Face detection context (anchors + network).
    - Region / Box: Data transfer objects for detected faces.
    - anonymize / pixelate_regions / blur_regions: In-place region effects.
    - blur_faces / anonymize_image: Encoded-bytes entry points.
    - load_config: Layered configuration loader.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from faceblur import Detector, blur_faces

    detector = Detector()
    output_png = blur_faces(image_bytes, detector)
"""

from faceblur.anonymizer import anonymize, blur_regions, pixelate_regions
from faceblur.config import AppConfig, load_config
from faceblur.detection import Box, Region
from faceblur.detector import DetectionResult, Detector
from faceblur.errors import DecodeError, FaceBlurError, InitializationError, InputShapeMismatch
from faceblur.pipeline import anonymize_image, blur_faces

__all__ = [
    "AppConfig",
    "Box",
    "DecodeError",
    "DetectionResult",
    "Detector",
    "FaceBlurError",
    "InitializationError",
    "InputShapeMismatch",
    "Region",
    "anonymize",
    "anonymize_image",
    "blur_faces",
    "blur_regions",
    "load_config",
    "pixelate_regions",
]
