"""Seed placement and per-frame temporal policy."""
import logging
from typing import Optional, Tuple

import numpy as np

from slicvid.types import CentreStore, ConfigurationError, SlicConfig, VideoMode

logger = logging.getLogger(__name__)


def gradient_map(channel: np.ndarray) -> np.ndarray:
    """
    Squared gradient magnitude of one channel from central differences.

    Border pixels have no full neighbourhood and are set to +inf so they are
    never picked as a seed location.

    Args:
        channel: 2D array (H, W), the first colour channel

    Returns:
        Gradient map (H, W)
    """
    channel = np.asarray(channel, dtype=np.float64)
    gradient = np.full(channel.shape, np.inf)
    if channel.shape[0] < 3 or channel.shape[1] < 3:
        return gradient

    dx = channel[1:-1, 2:] - channel[1:-1, :-2]
    dy = channel[:-2, 1:-1] - channel[2:, 1:-1]
    gradient[1:-1, 1:-1] = dx * dx + dy * dy
    return gradient


def find_lowest_gradient(gradient: np.ndarray, x: int, y: int) -> Tuple[int, int]:
    """
    Find the pixel with the lowest gradient in the 3x3 surrounding of (x, y).

    The grid point itself is the starting candidate and a neighbour only
    replaces it when strictly lower, so flat regions leave seeds in place.
    """
    h, w = gradient.shape
    best_x, best_y = x, y
    best = gradient[y, x]

    for ny in range(y - 1, y + 2):
        for nx in range(x - 1, x + 2):
            if nx < 0 or ny < 0 or nx >= w or ny >= h:
                continue
            if gradient[ny, nx] < best:
                best = gradient[ny, nx]
                best_x, best_y = nx, ny

    return best_x, best_y


def seed_grid(image: np.ndarray, sampling_step: int) -> CentreStore:
    """
    Place one centre per grid point (S, S), (2S, S), ... inside the image.

    Each grid point is moved to the lowest-gradient pixel of its 3x3
    neighbourhood and takes that pixel's colour.

    Args:
        image: LAB image (H, W, 3)
        sampling_step: Grid spacing S

    Returns:
        CentreStore whose previous snapshot equals the fresh centres

    Raises:
        ConfigurationError: If the grid has no point inside the image
    """
    h, w = image.shape[:2]
    gradient = gradient_map(image[..., 0])

    centres = []
    for y in range(sampling_step, h, sampling_step):
        for x in range(sampling_step, w, sampling_step):
            sx, sy = find_lowest_gradient(gradient, x, y)
            l, a, b = image[sy, sx, :3]
            centres.append((l, a, b, sx, sy))

    if not centres:
        raise ConfigurationError(
            f"sampling_step {sampling_step} leaves no grid point inside a {w}x{h} image"
        )

    logger.debug(f"Seeded {len(centres)} centres with step {sampling_step}")
    return CentreStore.from_centres(np.array(centres, dtype=np.float64))


def needs_reseed(
    store: Optional[CentreStore],
    config: SlicConfig,
    frame_index: int,
    image_shape: Tuple[int, int],
    previous_shape: Optional[Tuple[int, int]]
) -> bool:
    """Decide whether this frame starts from a fresh grid or reuses centres."""
    if store is None or len(store) == 0:
        return True
    if previous_shape is None or tuple(image_shape) != tuple(previous_shape):
        return True

    mode = config.video_mode
    if mode is VideoMode.INDEPENDENT:
        return True
    if mode.uses_key_frames and frame_index % config.key_frames_ratio == 0:
        return True
    if mode.adds_superpixels and len(store) > config.max_clusters:
        logger.info(
            f"Cluster count {len(store)} exceeds cap {config.max_clusters}, reseeding"
        )
        return True
    return False


def perturb_positions(store: CentreStore, std: float, rng: np.random.Generator) -> None:
    """
    Add Gaussian jitter to every centre position in place.

    Colours are left untouched so each centre keeps tracking the same
    visual region.
    """
    if std == 0 or len(store) == 0:
        return
    store.centres[:, 3:] += rng.normal(0.0, std, size=(len(store), 2))
