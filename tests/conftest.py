"""Pytest configuration and fixtures."""

import numpy as np
import pytest


def make_lab(h: int, w: int, value=(128, 128, 128)) -> np.ndarray:
    """Uniform LAB image."""
    image = np.empty((h, w, 3), dtype=np.uint8)
    image[:] = value
    return image


@pytest.fixture
def uniform_gray():
    """100x100 uniform gray LAB image."""
    return make_lab(100, 100)


@pytest.fixture
def four_blocks():
    """120x120 LAB image made of four flat coloured quadrants."""
    image = make_lab(120, 120)
    image[:60, :60] = (60, 150, 110)
    image[:60, 60:] = (200, 110, 150)
    image[60:, :60] = (120, 90, 170)
    image[60:, 60:] = (230, 128, 128)
    return image


@pytest.fixture
def textured():
    """90x110 LAB image with smooth structure plus seeded noise."""
    rng = np.random.default_rng(7)
    yy, xx = np.mgrid[0:90, 0:110]
    image = np.empty((90, 110, 3), dtype=np.float64)
    image[..., 0] = 128 + 60 * np.sin(xx / 9.0) * np.cos(yy / 13.0)
    image[..., 1] = 128 + 40 * (xx > 55)
    image[..., 2] = 100 + 50 * (yy > 45)
    image += rng.normal(0, 4, image.shape)
    return np.clip(np.rint(image), 0, 255).astype(np.uint8)
