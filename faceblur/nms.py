"""
Hard non-maximum suppression.

Responsibility:
    Reduce a list of overlapping face candidates to one box per face by
    greedy, score-ordered suppression.

Guarantees:
    - Never returns more boxes than it was given.
    - Every returned element is one of the input objects (no copies).
    - Survivors come out in score-descending order; equal scores keep
      their input order.
"""

import logging
from typing import List, Sequence

from faceblur.detection import Box

logger = logging.getLogger(__name__)


def iou(a: Box, b: Box) -> float:
    """Intersection-over-Union of two boxes.

    A pair whose union is zero (two zero-area boxes) has nothing in
    common and yields 0.0.
    """
    inter_w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1))
    inter_h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1))
    inter_area = inter_w * inter_h

    union = a.area + b.area - inter_area
    if union <= 0.0:
        return 0.0
    return inter_area / union


def hard_nms(boxes: Sequence[Box], iou_threshold: float = 0.3) -> List[Box]:
    """Suppress boxes overlapping a higher-scoring kept box.

    Args:
        boxes: Candidate boxes in any order.
        iou_threshold: A later candidate is dropped when its IoU with a
                       kept box is strictly greater than this value.

    Returns:
        The surviving boxes, score-descending.
    """
    # sorted() is stable, also with reverse=True
    ordered = sorted(boxes, key=lambda box: box.score, reverse=True)
    suppressed = [False] * len(ordered)
    picked: List[Box] = []

    for i, candidate in enumerate(ordered):
        if suppressed[i]:
            continue
        picked.append(candidate)

        for j in range(i + 1, len(ordered)):
            if suppressed[j]:
                continue
            if iou(candidate, ordered[j]) > iou_threshold:
                suppressed[j] = True

    logger.debug("NMS kept %d of %d candidates", len(picked), len(ordered))
    return picked
