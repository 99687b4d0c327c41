"""Update step: recompute centres as member means and measure convergence."""
import logging
import math
from typing import Tuple

import numpy as np

from slicvid.types import CENTRE_FIELDS, CentreStore, UNASSIGNED

logger = logging.getLogger(__name__)


def accumulate_centres(
    image: np.ndarray,
    labels: np.ndarray,
    count: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Mean colour and position of the pixels assigned to each cluster.

    Sums are plain commutative accumulations per cluster. A cluster with no
    pixels keeps its all-zero accumulator and is never divided.

    Args:
        image: LAB image (H, W, 3)
        labels: Assignment map (H, W)
        count: Number of clusters

    Returns:
        Tuple of (centres (count, 5), sizes (count,))
    """
    valid = labels != UNASSIGNED
    members = labels[valid].astype(np.int64)
    ys, xs = np.nonzero(valid)

    sums = np.zeros((count, CENTRE_FIELDS), dtype=np.float64)
    sizes = np.bincount(members, minlength=count)[:count]
    if len(members) == 0:
        return sums, sizes

    pixels = image[valid]
    for channel in range(3):
        sums[:, channel] = np.bincount(members, weights=pixels[:, channel], minlength=count)[:count]
    sums[:, 3] = np.bincount(members, weights=xs, minlength=count)[:count]
    sums[:, 4] = np.bincount(members, weights=ys, minlength=count)[:count]

    nonempty = sizes > 0
    sums[nonempty] /= sizes[nonempty, None]
    return sums, sizes


def residual_error(centres: np.ndarray, previous: np.ndarray) -> np.ndarray:
    """Euclidean displacement of each centre's position since the snapshot."""
    delta = centres[:, 3:5] - previous[:, 3:5]
    return np.sqrt(delta[:, 0] ** 2 + delta[:, 1] ** 2)


def update_centres(
    image: np.ndarray,
    labels: np.ndarray,
    store: CentreStore,
    first_iteration: bool
) -> float:
    """
    Replace the centres with their members' means, in place.

    On a frame's first iteration the snapshot is overwritten without any
    error computation and the total residual error is unavailable (+inf).
    Otherwise per-centre residuals are measured against the snapshot, the
    snapshot is overwritten and the mean residual is returned.

    Returns:
        Total residual error
    """
    centres, sizes = accumulate_centres(image, labels, len(store))
    store.centres[:] = centres
    store.sizes[:] = sizes

    empty = int(np.count_nonzero(sizes == 0))
    if empty:
        logger.debug(f"{empty} of {len(store)} clusters have no pixels")

    if first_iteration:
        store.previous[:] = store.centres
        return math.inf

    store.residuals[:] = residual_error(store.centres, store.previous)
    store.previous[:] = store.centres

    if len(store) == 0:
        return 0.0
    return float(store.residuals.mean())
