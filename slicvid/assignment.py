"""Assignment step: nearest centre per pixel within bounded search windows.

Work is partitioned by pixel, never by centre. Each worker owns a band of
image rows and, for every pixel in it, keeps the minimum combined distance
over the centres whose search window covers that pixel. Centres are visited
in ascending index order with a strict comparison, so ties always go to the
lowest index and the result does not depend on the number of workers or on
scheduling.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from slicvid.types import CentreStore

logger = logging.getLogger(__name__)


def resolve_workers(parallel_workers: int, rows: int) -> int:
    """Number of row bands to split an image of `rows` rows into."""
    if parallel_workers == -1:
        workers = os.cpu_count() or 1
    else:
        workers = max(1, parallel_workers)
    return max(1, min(workers, rows))


def window_bounds(coords: np.ndarray, sampling_step: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-axis search window [lo, hi) around centre coordinates.

    A pixel p is inside the window of a centre at c when
    trunc(c) - S - 1 <= p < c + S + 1, giving a (2S + 2)-wide window.
    """
    coords = np.asarray(coords, dtype=np.float64)
    lo = np.trunc(coords).astype(np.int64) - sampling_step - 1
    hi = np.ceil(coords + sampling_step + 1).astype(np.int64)
    return lo, hi


def combined_distance(
    centre: np.ndarray,
    block: np.ndarray,
    x0: int,
    y0: int,
    distance_factor: float
) -> np.ndarray:
    """
    Colour distance plus weighted spatial distance for a block of pixels.

    Args:
        centre: [L, A, B, x, y]
        block: Pixel colours (h, w, 3) whose top-left pixel is (x0, y0)
        x0: Column of the block's first pixel
        y0: Row of the block's first pixel
        distance_factor: spatial_weight^2 / sampling_step^2

    Returns:
        Distances (h, w)
    """
    bh, bw = block.shape[:2]
    diff = block - centre[:3]
    # Elementwise sums so every pixel's value is independent of the block shape
    color_distance = diff[..., 0] ** 2 + diff[..., 1] ** 2 + diff[..., 2] ** 2

    dx = np.arange(x0, x0 + bw, dtype=np.float64) - centre[3]
    dy = np.arange(y0, y0 + bh, dtype=np.float64) - centre[4]
    space_distance = dy[:, None] ** 2 + dx[None, :] ** 2

    return color_distance + distance_factor * space_distance


def row_bands(rows: int, count: int) -> List[Tuple[int, int]]:
    """Split [0, rows) into `count` contiguous, disjoint bands."""
    edges = np.linspace(0, rows, count + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def _assign_band(
    image: np.ndarray,
    centres: np.ndarray,
    bounds: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray],
    band: Tuple[int, int],
    distance_factor: float,
    labels: np.ndarray,
    distances: np.ndarray,
    reached: Optional[np.ndarray]
) -> None:
    """Assign every pixel of rows [r0, r1); writes only inside that band."""
    r0, r1 = band
    w = image.shape[1]
    x_lo, x_hi, y_lo, y_hi = bounds

    candidates = np.flatnonzero((y_lo < r1) & (y_hi > r0) & (x_lo < w) & (x_hi > 0))

    for index in candidates:
        y0 = max(int(y_lo[index]), r0)
        y1 = min(int(y_hi[index]), r1)
        x0 = max(int(x_lo[index]), 0)
        x1 = min(int(x_hi[index]), w)
        if y0 >= y1 or x0 >= x1:
            continue

        distance = combined_distance(
            centres[index], image[y0:y1, x0:x1], x0, y0, distance_factor
        )

        if reached is not None:
            reached[y0:y1, x0:x1] = True

        current = distances[y0:y1, x0:x1]
        closer = distance < current
        current[closer] = distance[closer]
        labels[y0:y1, x0:x1][closer] = index


def assign_pixels(
    image: np.ndarray,
    store: CentreStore,
    sampling_step: int,
    distance_factor: float,
    labels: np.ndarray,
    distances: np.ndarray,
    reached: Optional[np.ndarray] = None,
    parallel_workers: int = -1
) -> None:
    """
    Assign each pixel to its nearest centre, in place.

    The distance map is reset to +inf first. Pixels outside every search
    window keep their previous assignment.

    Args:
        image: LAB image (H, W, 3) as float64
        store: Current centres
        sampling_step: Grid spacing S
        distance_factor: spatial_weight^2 / S^2
        labels: Assignment map (H, W), updated in place
        distances: Distance map (H, W), updated in place
        reached: Optional boolean mask (H, W); pixels inside any window are set True
        parallel_workers: Number of row bands processed concurrently (-1 = auto)
    """
    h = image.shape[0]
    distances.fill(np.inf)
    if len(store) == 0:
        return

    x_lo, x_hi = window_bounds(store.centres[:, 3], sampling_step)
    y_lo, y_hi = window_bounds(store.centres[:, 4], sampling_step)
    bounds = (x_lo, x_hi, y_lo, y_hi)

    bands = row_bands(h, resolve_workers(parallel_workers, h))

    def work(band):
        _assign_band(image, store.centres, bounds, band, distance_factor, labels, distances, reached)

    if len(bands) == 1:
        work(bands[0])
        return

    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        # list() re-raises any worker exception here
        list(executor.map(work, bands))
