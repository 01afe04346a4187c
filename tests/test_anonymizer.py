"""
Tests for the region anonymizer.
"""

import numpy as np
import pytest

from faceblur.anonymizer import (
    anonymize,
    block_size_for,
    blur_regions,
    pixelate_regions,
)
from faceblur.config import AnonymizeConfig
from faceblur.detection import Region


def _solid(h, w, rgba):
    grid = np.empty((h, w, 4), dtype=np.uint8)
    grid[:, :] = rgba
    return grid


def _random(h, w, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(h, w, 4), dtype=np.uint8)


def _ellipse(width, height):
    """Inscribed-ellipse mask of a width x height region."""
    rx, ry = width / 2.0, height / 2.0
    nx = (np.arange(width) - rx) / rx
    ny = (np.arange(height) - ry) / ry
    return ny[:, None] ** 2 + nx[None, :] ** 2 <= 1.0


def test_block_size_for():
    """Test the block size rule max(8, min(w, h) / 10)."""
    assert block_size_for(100, 200) == 10
    assert block_size_for(50, 50) == 8
    assert block_size_for(85, 300) == 8
    assert block_size_for(200, 199) == 19
    assert block_size_for(40, 40, min_block_size=2, block_divisor=4) == 10


@pytest.mark.parametrize("circular", [False, True])
@pytest.mark.parametrize("block_size", [None, 1, 3, 8, 25])
def test_solid_region_is_noop(circular, block_size):
    """Test that pixelating a solid color changes nothing."""
    grid = _solid(30, 40, (10, 200, 30, 255))
    original = grid.copy()

    pixelate_regions(grid, [Region(3, 4, 30, 20)], circular=circular, block_size=block_size)

    assert np.array_equal(grid, original)


def test_two_halves_single_block():
    """Test averaging proportional to the pixel count of each color."""
    grid = _solid(8, 8, (200, 100, 40, 77))
    grid[:, :2, :3] = 0

    pixelate_regions(grid, [Region(0, 0, 8, 8)])

    # 2 black columns + 6 colored columns → 6/8 of the color
    assert np.all(grid[:, :, :3] == (150, 75, 30))
    assert np.all(grid[:, :, 3] == 77)


def test_straddling_block_is_weighted():
    """Test a block straddling a color boundary with block size = min dimension."""
    grid = _solid(10, 20, (100, 200, 50, 255))
    grid[:, :7, :3] = 0

    pixelate_regions(grid, [Region(0, 0, 20, 10)], block_size=10)

    assert np.all(grid[:, :10, :3] == (30, 60, 15))
    assert np.all(grid[:, 10:, :3] == (100, 200, 50))


def test_partial_edge_cells_average_in_bounds_samples():
    """Test that short cells at the region edge average only their samples."""
    grid = _random(10, 10)
    original = grid.copy()

    pixelate_regions(grid, [Region(0, 0, 10, 10)], block_size=8)

    corner = original[8:10, 8:10, :3].reshape(-1, 3).mean(axis=0)
    expected = np.floor(corner + 0.5).astype(np.uint8)
    assert np.all(grid[8:10, 8:10, :3] == expected)
    assert np.all(grid[0:8, 0:8, :3] == grid[0, 0, :3])


def test_pixels_outside_region_untouched():
    """Test that only the region is written."""
    grid = _random(30, 30)
    original = grid.copy()

    pixelate_regions(grid, [Region(5, 5, 10, 10)])

    outside = np.ones((30, 30), dtype=bool)
    outside[5:15, 5:15] = False
    assert np.array_equal(grid[outside], original[outside])


def test_alpha_untouched():
    """Test that the alpha channel is never modified."""
    grid = _random(20, 20)
    original = grid.copy()

    pixelate_regions(grid, [Region(0, 0, 20, 20)], circular=True)

    assert np.array_equal(grid[:, :, 3], original[:, :, 3])


def test_region_partly_off_grid_is_clipped():
    """Test that a region hanging off the top-left is clipped, not rejected."""
    grid = _random(20, 20)
    original = grid.copy()

    pixelate_regions(grid, [Region(-5, -5, 10, 10)])

    outside = np.ones((20, 20), dtype=bool)
    outside[0:5, 0:5] = False
    assert np.array_equal(grid[outside], original[outside])
    # Cells are anchored at the declared origin (-5, -5), first cell ends at 3
    assert np.all(grid[0:3, 0:3, :3] == grid[0, 0, :3])


def test_bad_regions_are_skipped():
    """Test that empty and off-grid regions do nothing and do not abort the batch."""
    grid = _random(20, 20)
    original = grid.copy()

    pixelate_regions(
        grid,
        [
            Region(100, 100, 10, 10),
            Region(0, 0, 0, 10),
            Region(0, 0, 10, -3),
            Region(-30, 0, 10, 10),
        ],
    )
    assert np.array_equal(grid, original)

    pixelate_regions(grid, [Region(100, 100, 10, 10), Region(0, 0, 8, 8)])
    assert not np.array_equal(grid[0:8, 0:8], original[0:8, 0:8])


def test_circular_leaves_outside_of_ellipse_untouched():
    """Test that samples outside the inscribed ellipse keep their values."""
    grid = _random(24, 32)
    original = grid.copy()

    pixelate_regions(grid, [Region(0, 0, 32, 24)], circular=True)

    mask = _ellipse(32, 24)
    assert np.array_equal(grid[~mask], original[~mask])
    assert not np.array_equal(grid[mask], original[mask])


def test_circular_excludes_outside_samples_from_average():
    """Test that corner samples do not bleed into the ellipse average."""
    mask = _ellipse(20, 20)
    grid = _solid(20, 20, (250, 250, 250, 255))
    grid[mask] = (10, 20, 30, 255)

    pixelate_regions(grid, [Region(0, 0, 20, 20)], circular=True, block_size=20)

    assert np.all(grid[mask][:, :3] == (10, 20, 30))
    assert np.all(grid[~mask][:, :3] == 250)


def test_pixelation_is_idempotent():
    """Test that re-pixelating already blocky regions is a no-op."""
    grid = _random(40, 40)
    regions = [Region(2, 3, 30, 25)]

    pixelate_regions(grid, regions, circular=True)
    once = grid.copy()
    pixelate_regions(grid, regions, circular=True)

    assert np.array_equal(grid, once)


def test_regions_apply_in_order():
    """Test that a list of regions equals applying them one by one."""
    regions = [Region(0, 0, 20, 20), Region(10, 10, 16, 16)]
    batch = _random(30, 30)
    sequential = batch.copy()

    pixelate_regions(batch, regions)
    for region in regions:
        pixelate_regions(sequential, [region])

    assert np.array_equal(batch, sequential)


def test_rgb_grid_supported():
    """Test that a 3-channel grid is accepted."""
    grid = np.zeros((16, 16, 3), dtype=np.uint8)
    grid[:, 8:] = 255

    pixelate_regions(grid, [Region(0, 0, 16, 16)], block_size=16)

    assert np.all(grid == 128)


def test_returns_same_array():
    """Test in-place operation."""
    grid = _random(10, 10)
    assert pixelate_regions(grid, [Region(0, 0, 5, 5)]) is grid


def test_invalid_grids_rejected():
    """Test grid validation."""
    with pytest.raises(TypeError):
        pixelate_regions([[0]], [])

    with pytest.raises(TypeError, match="uint8"):
        pixelate_regions(np.zeros((4, 4, 4), dtype=np.float32), [])

    with pytest.raises(ValueError, match="shape"):
        pixelate_regions(np.zeros((4, 4), dtype=np.uint8), [])

    read_only = np.zeros((4, 4, 4), dtype=np.uint8)
    read_only.setflags(write=False)
    with pytest.raises(ValueError, match="read-only"):
        pixelate_regions(read_only, [])

    with pytest.raises(ValueError, match="block_size"):
        pixelate_regions(np.zeros((4, 4, 4), dtype=np.uint8), [], block_size=0)


def test_blur_changes_region_only():
    """Test that Gaussian blur smooths the region and nothing else."""
    grid = _solid(40, 40, (0, 0, 0, 255))
    grid[::2, ::2, :3] = 255
    original = grid.copy()

    blur_regions(grid, [Region(10, 10, 20, 20)], sigma=3.0)

    region = grid[10:30, 10:30, :3]
    assert region.std() < original[10:30, 10:30, :3].std()

    outside = np.ones((40, 40), dtype=bool)
    outside[10:30, 10:30] = False
    assert np.array_equal(grid[outside], original[outside])
    assert np.array_equal(grid[:, :, 3], original[:, :, 3])


def test_blur_solid_region_is_stable():
    """Test that blurring a solid color leaves it (nearly) unchanged."""
    grid = _solid(30, 30, (40, 120, 200, 255))
    original = grid.copy()

    blur_regions(grid, [Region(0, 0, 30, 30)])

    assert np.allclose(grid.astype(int), original.astype(int), atol=1)


def test_blur_circular():
    """Test that circular blur keeps the corners outside the ellipse."""
    grid = _random(20, 20)
    original = grid.copy()

    blur_regions(grid, [Region(0, 0, 20, 20)], circular=True, sigma=2.0)

    mask = _ellipse(20, 20)
    assert np.array_equal(grid[~mask], original[~mask])


def test_blur_invalid_sigma():
    """Test that a non-positive sigma is rejected."""
    with pytest.raises(ValueError, match="sigma"):
        blur_regions(_random(4, 4), [], sigma=0)


def test_anonymize_dispatches_on_mode():
    """Test that anonymize() picks the configured effect."""
    regions = [Region(2, 2, 12, 12)]

    pixelated = _random(16, 16)
    expected = pixelated.copy()
    anonymize(pixelated, regions, AnonymizeConfig(mode="pixelate"))
    pixelate_regions(expected, regions)
    assert np.array_equal(pixelated, expected)

    blurred = _random(16, 16)
    expected = blurred.copy()
    anonymize(blurred, regions, AnonymizeConfig(mode="blur", blur_sigma=5.0))
    blur_regions(expected, regions, sigma=5.0)
    assert np.array_equal(blurred, expected)


def test_anonymize_circular_override():
    """Test that the call-level circular flag overrides the config."""
    grid = _random(20, 20)
    original = grid.copy()

    anonymize(grid, [Region(0, 0, 20, 20)], AnonymizeConfig(circular=False), circular=True)

    mask = _ellipse(20, 20)
    assert np.array_equal(grid[~mask], original[~mask])
