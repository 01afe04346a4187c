"""
Postprocessing for the face detection pipeline.

Responsibility:
    Turn the two raw network outputs (per-anchor class scores and
    per-anchor box offsets) into Box objects in original-image pixels.
    Apply score thresholding, SSD prior decoding and hard NMS.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.
    - No clamping to the image; boxes may extend past the edges.

Hard-coded:
    - Score layout: [N, 2] pairs (background, face); only the face slot
      is read.
    - Offset layout: [N, 4] rows of (Δcx, Δcy, Δw, Δh).
"""

import logging
from typing import List, Sequence, Tuple, Union

import numpy as np

from faceblur.detection import Box
from faceblur.errors import InputShapeMismatch
from faceblur.nms import hard_nms
from faceblur.priors import Anchor, priors_to_array

logger = logging.getLogger(__name__)

AnchorsLike = Union[Sequence[Anchor], np.ndarray]


def validate_outputs(
    scores: np.ndarray,
    offsets: np.ndarray,
    anchor_count: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Check raw output sizes against the anchor count.

    Args:
        scores: Raw score output, any shape holding 2 * anchor_count values.
        offsets: Raw offset output, any shape holding 4 * anchor_count values.
        anchor_count: Number of anchors the outputs must line up with.

    Returns:
        (scores, offsets) reshaped to (N, 2) and (N, 4).

    Raises:
        InputShapeMismatch: If either output has the wrong number of values.
    """
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    offsets = np.asarray(offsets, dtype=np.float64).reshape(-1)

    if scores.size != 2 * anchor_count:
        raise InputShapeMismatch(
            f"Score output has {scores.size} values, "
            f"expected {2 * anchor_count} (2 x {anchor_count} anchors)."
        )

    if offsets.size != 4 * anchor_count:
        raise InputShapeMismatch(
            f"Offset output has {offsets.size} values, "
            f"expected {4 * anchor_count} (4 x {anchor_count} anchors)."
        )

    return scores.reshape(anchor_count, 2), offsets.reshape(anchor_count, 4)


def decode(
    anchors: AnchorsLike,
    scores: np.ndarray,
    offsets: np.ndarray,
    orig_width: int,
    orig_height: int,
    score_threshold: float = 0.4,
    center_variance: float = 0.1,
    size_variance: float = 0.2,
) -> List[Box]:
    """Decode raw outputs into candidate boxes.

    Args:
        anchors: Anchor sequence, or its (N, 4) array form.
        scores: Raw score output (2 values per anchor).
        offsets: Raw offset output (4 values per anchor).
        orig_width: Width of the original (pre-resize) image.
        orig_height: Height of the original image.
        score_threshold: Anchors scoring at or below this are skipped.
        center_variance: SSD variance applied to the center deltas.
        size_variance: SSD variance applied to the size deltas.

    Returns:
        Candidate boxes in anchor order (not sorted by score).

    Raises:
        InputShapeMismatch: If the outputs do not match the anchors.
        ValueError: If the original image dimensions are not positive.
    """
    if orig_width <= 0 or orig_height <= 0:
        raise ValueError(
            f"Original image dimensions must be positive, "
            f"got {orig_width}x{orig_height}."
        )

    priors = anchors if isinstance(anchors, np.ndarray) else priors_to_array(anchors)
    score_pairs, deltas = validate_outputs(scores, offsets, priors.shape[0])

    face_scores = score_pairs[:, 1]
    keep = np.flatnonzero(face_scores > score_threshold)
    if keep.size == 0:
        return []

    p = priors[keep]
    d = deltas[keep]

    cx = p[:, 0] + d[:, 0] * center_variance * p[:, 2]
    cy = p[:, 1] + d[:, 1] * center_variance * p[:, 3]
    w = p[:, 2] * np.exp(d[:, 2] * size_variance)
    h = p[:, 3] * np.exp(d[:, 3] * size_variance)

    # Normalized center/size → absolute corners of the original image
    x1 = (cx - w / 2.0) * orig_width
    y1 = (cy - h / 2.0) * orig_height
    x2 = x1 + w * orig_width
    y2 = y1 + h * orig_height

    return [
        Box(
            x1=float(x1[k]),
            y1=float(y1[k]),
            x2=float(x2[k]),
            y2=float(y2[k]),
            score=float(face_scores[idx]),
        )
        for k, idx in enumerate(keep)
    ]


def postprocess(
    anchors: AnchorsLike,
    scores: np.ndarray,
    offsets: np.ndarray,
    frame_width: int,
    frame_height: int,
    score_threshold: float = 0.4,
    iou_threshold: float = 0.3,
    center_variance: float = 0.1,
    size_variance: float = 0.2,
) -> List[Box]:
    """Decode raw outputs and reduce them to the final face boxes.

    Returns:
        Boxes surviving hard NMS, score-descending (ties in anchor order).
        Empty list if nothing clears the score threshold.
    """
    candidates = decode(
        anchors,
        scores,
        offsets,
        frame_width,
        frame_height,
        score_threshold=score_threshold,
        center_variance=center_variance,
        size_variance=size_variance,
    )
    logger.debug("Decoded %d candidates above score %.2f", len(candidates), score_threshold)

    if not candidates:
        return []

    return hard_nms(candidates, iou_threshold)
