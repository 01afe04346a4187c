"""
Region anonymization for the face blurring pipeline.

Responsibility:
    Overwrite listed regions of a pixel grid with an anonymized version:
    block-averaged pixelation (default) or a Gaussian blur. Either effect
    can be restricted to each region's inscribed ellipse.

Contract:
    - The grid is an (H, W, 4) RGBA (or (H, W, 3) RGB) uint8 numpy array
      and is modified IN PLACE. Alpha is never touched.
    - Nothing outside a region clipped to the grid is written.
    - Regions are applied in the given order; overlaps resolve as
      last-write-wins.
    - Bad regions (empty, fully off-grid) are skipped, never raised.

Non-goals:
    - No detection, decoding or encoding.
"""

import logging
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from faceblur.config import AnonymizeConfig
from faceblur.detection import Region

logger = logging.getLogger(__name__)

_Bounds = Tuple[int, int, int, int]


def block_size_for(
    width: int,
    height: int,
    min_block_size: int = 8,
    block_divisor: int = 10,
) -> int:
    """Pixelation block edge for a region: larger faces get coarser blocks."""
    return max(min_block_size, int(min(width, height) / block_divisor))


def _validate_grid(pixels: np.ndarray) -> None:
    """Validate that the pixel grid meets the in-place contract.

    Raises:
        TypeError: If pixels is not a uint8 numpy ndarray.
        ValueError: If pixels is not (H, W, 3|4) or is read-only.
    """
    if not isinstance(pixels, np.ndarray):
        raise TypeError(
            f"Expected pixels to be a numpy ndarray, got {type(pixels).__name__}."
        )

    if pixels.dtype != np.uint8:
        raise TypeError(f"Expected uint8 pixels, got dtype {pixels.dtype}.")

    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected an (H, W, 4) RGBA or (H, W, 3) RGB grid, "
            f"got shape {pixels.shape}."
        )

    if not pixels.flags.writeable:
        raise ValueError("Pixel grid is read-only; pass a writeable array.")


def _clip(region: Region, grid_w: int, grid_h: int) -> Optional[_Bounds]:
    """Intersect a region with the grid. Returns (x0, y0, x1, y1) or None."""
    x0 = max(region.x, 0)
    y0 = max(region.y, 0)
    x1 = min(region.x + region.width, grid_w)
    y1 = min(region.y + region.height, grid_h)
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1


def _ellipse_mask(region: Region, bounds: _Bounds) -> np.ndarray:
    """Boolean mask over the clipped bounds: True inside the inscribed ellipse.

    Sample offsets are measured from the declared region's top-left, so a
    region partly off-grid keeps its own ellipse.
    """
    x0, y0, x1, y1 = bounds
    rx = region.width / 2.0
    ry = region.height / 2.0

    nx = (np.arange(x0, x1) - region.x - rx) / rx
    ny = (np.arange(y0, y1) - region.y - ry) / ry
    return ny[:, np.newaxis] ** 2 + nx[np.newaxis, :] ** 2 <= 1.0


def _round_mean(samples: np.ndarray) -> np.ndarray:
    """Per-channel mean of (..., 3) samples, rounded half-up to uint8."""
    mean = samples.reshape(-1, 3).mean(axis=0)
    return np.floor(mean + 0.5).astype(np.uint8)


def _pixelate_one(
    pixels: np.ndarray,
    region: Region,
    bounds: _Bounds,
    block_size: int,
    mask: Optional[np.ndarray],
) -> None:
    x0, y0, x1, y1 = bounds
    rgb = pixels[y0:y1, x0:x1, :3]

    # Cells tile the declared region from its own top-left corner
    first_y = region.y + ((y0 - region.y) // block_size) * block_size
    first_x = region.x + ((x0 - region.x) // block_size) * block_size

    for cell_y in range(first_y, y1, block_size):
        r0 = max(cell_y, y0) - y0
        r1 = min(cell_y + block_size, y1) - y0

        for cell_x in range(first_x, x1, block_size):
            c0 = max(cell_x, x0) - x0
            c1 = min(cell_x + block_size, x1) - x0

            cell = rgb[r0:r1, c0:c1]
            if mask is None:
                cell[...] = _round_mean(cell)
                continue

            inside = mask[r0:r1, c0:c1]
            if not inside.any():
                continue
            cell[inside] = _round_mean(cell[inside])


def pixelate_regions(
    pixels: np.ndarray,
    regions: Iterable[Region],
    circular: bool = False,
    block_size: Optional[int] = None,
    min_block_size: int = 8,
    block_divisor: int = 10,
) -> np.ndarray:
    """Pixelate each region of the grid in place.

    Args:
        pixels: (H, W, 4) RGBA uint8 grid, modified in place.
        regions: Rectangles in grid coordinates, applied in order.
        circular: Only average and write samples inside each region's
                  inscribed ellipse.
        block_size: Fixed block edge. None derives it per region with
                    block_size_for().
        min_block_size: Lower bound for the derived block edge.
        block_divisor: Divisor for the derived block edge.

    Returns:
        The same array object, for chaining.
    """
    _validate_grid(pixels)
    if block_size is not None and block_size < 1:
        raise ValueError(f"block_size must be >= 1, got {block_size}.")

    grid_h, grid_w = pixels.shape[:2]
    applied = 0

    for region in regions:
        if region.is_empty:
            logger.debug("Skipping empty region %s", region)
            continue

        bounds = _clip(region, grid_w, grid_h)
        if bounds is None:
            logger.debug("Skipping region outside the image: %s", region)
            continue

        size = block_size or block_size_for(
            region.width, region.height, min_block_size, block_divisor
        )
        mask = _ellipse_mask(region, bounds) if circular else None
        _pixelate_one(pixels, region, bounds, size, mask)
        applied += 1

    logger.debug("Pixelated %d region(s) (circular=%s)", applied, circular)
    return pixels


def blur_regions(
    pixels: np.ndarray,
    regions: Iterable[Region],
    circular: bool = False,
    sigma: float = 20.0,
) -> np.ndarray:
    """Gaussian-blur each region of the grid in place.

    Each region is blurred on its own crop, so pixels outside the region
    do not bleed in.

    Args:
        pixels: (H, W, 4) RGBA uint8 grid, modified in place.
        regions: Rectangles in grid coordinates, applied in order.
        circular: Only replace samples inside the inscribed ellipse.
        sigma: Gaussian standard deviation in pixels.

    Returns:
        The same array object, for chaining.
    """
    _validate_grid(pixels)
    if sigma <= 0:
        raise ValueError(f"sigma must be positive, got {sigma}.")

    grid_h, grid_w = pixels.shape[:2]

    for region in regions:
        if region.is_empty:
            continue

        bounds = _clip(region, grid_w, grid_h)
        if bounds is None:
            continue

        x0, y0, x1, y1 = bounds
        rgb = pixels[y0:y1, x0:x1, :3]
        blurred = cv2.GaussianBlur(
            np.ascontiguousarray(rgb), (0, 0), sigmaX=sigma, sigmaY=sigma
        )

        if circular:
            inside = _ellipse_mask(region, bounds)
            rgb[inside] = blurred[inside]
        else:
            rgb[...] = blurred

    return pixels


def anonymize(
    pixels: np.ndarray,
    regions: Iterable[Region],
    config: Optional[AnonymizeConfig] = None,
    circular: Optional[bool] = None,
) -> np.ndarray:
    """Apply the configured anonymization to every region, in place.

    Args:
        pixels: (H, W, 4) RGBA uint8 grid.
        regions: Rectangles to anonymize, applied in order.
        config: Anonymization settings. None uses defaults.
        circular: Overrides config.circular when given.

    Returns:
        The same array object.
    """
    if config is None:
        config = AnonymizeConfig()
    if circular is None:
        circular = config.circular

    if config.mode == "blur":
        return blur_regions(pixels, regions, circular=circular, sigma=config.blur_sigma)

    return pixelate_regions(
        pixels,
        regions,
        circular=circular,
        min_block_size=config.min_block_size,
        block_divisor=config.block_divisor,
    )
