"""
Anchor (prior box) generation for the RFB-640 face detector.

Responsibility:
    Produce the fixed, ordered sequence of prior boxes that the network's
    score and offset outputs are aligned with. Index i of the sequence
    corresponds to row i of both raw outputs.

Hard-coded:
    - Feature maps, steps and min sizes of the 640x480 UltraFace model.
    - Emission order: level, row, column, min size. Changing it breaks
      the alignment with the network outputs.
"""

from typing import NamedTuple, Sequence, Tuple

import numpy as np

REFERENCE_SIZE: Tuple[int, int] = (640, 480)

FEATURE_MAPS: Tuple[Tuple[int, int], ...] = ((80, 60), (40, 30), (20, 15), (10, 8))
STEPS: Tuple[int, ...] = (8, 16, 32, 64)
MIN_SIZES: Tuple[Tuple[float, ...], ...] = (
    (10.0, 16.0, 24.0),
    (32.0, 48.0),
    (64.0, 96.0),
    (128.0, 192.0, 256.0),
)


class Anchor(NamedTuple):
    """A prior box in normalized [0, 1] center/size coordinates."""

    cx: float
    cy: float
    w: float
    h: float


def expected_prior_count() -> int:
    """Closed-form anchor count: sum of cols * rows * len(min_sizes) per level."""
    return sum(
        cols * rows * len(sizes)
        for (cols, rows), sizes in zip(FEATURE_MAPS, MIN_SIZES)
    )


def generate_priors(input_size: Tuple[int, int] = REFERENCE_SIZE) -> Tuple[Anchor, ...]:
    """Generate the anchor sequence.

    Args:
        input_size: Reference resolution (width, height) the steps and
                    min sizes are expressed in.

    Returns:
        An immutable tuple of Anchor, ordered level → row → column → size.

    Raises:
        ValueError: If input_size differs from REFERENCE_SIZE, which the
                    feature maps and steps are laid out for.
    """
    if tuple(input_size) != REFERENCE_SIZE:
        raise ValueError(
            f"Anchors are laid out for a {REFERENCE_SIZE} input, got {input_size}."
        )

    input_w, input_h = input_size
    priors = []

    for (cols, rows), step, sizes in zip(FEATURE_MAPS, STEPS, MIN_SIZES):
        for row in range(rows):
            for col in range(cols):
                cx = (col + 0.5) * step / input_w
                cy = (row + 0.5) * step / input_h
                for size in sizes:
                    priors.append(Anchor(cx, cy, size / input_w, size / input_h))

    return tuple(priors)


def priors_to_array(anchors: Sequence[Anchor]) -> np.ndarray:
    """Pack anchors into a read-only (N, 4) float64 array for vectorized decoding."""
    array = np.array(anchors, dtype=np.float64).reshape(-1, 4)
    array.setflags(write=False)
    return array
