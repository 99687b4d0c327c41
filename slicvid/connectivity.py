"""Connectivity enforcement: merge undersized fragments into a neighbour."""
import logging
from typing import Dict, Optional, Tuple

import numpy as np
from skimage import measure

from slicvid.types import CentreStore
from slicvid.update import accumulate_centres

logger = logging.getLogger(__name__)

# Row-major 8-neighbour scan order
NEIGHBOUR_OFFSETS = [(dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if (dy, dx) != (0, 0)]


def size_limit(pixel_count: int, cluster_count: int) -> int:
    """Largest component size that gets merged: a quarter of the average cluster."""
    average_size = int(pixel_count / cluster_count + 0.5)
    return average_size // 4


def label_components(labels: np.ndarray) -> np.ndarray:
    """8-connected components of equal assignment value, numbered from 1."""
    # A background value that never occurs keeps every pixel, unassigned included
    background = int(labels.min()) - 1
    return measure.label(labels, background=background, connectivity=2)


def _find_adjacent_cluster(
    pixels: np.ndarray,
    component: int,
    components: np.ndarray,
    rank: np.ndarray,
    cluster_of: np.ndarray,
    final: np.ndarray,
    pending: Dict[int, int]
) -> Tuple[Optional[int], Optional[int]]:
    """
    Pick where an undersized component goes.

    Returns (cluster, None) for the first already-visited neighbour whose
    final cluster is valid and differs from ours. Failing that, returns
    (None, neighbour) for the first later neighbour with a valid different
    cluster; the component then follows that neighbour's final label.
    Returns (None, None) when no valid different neighbour exists.
    """
    h, w = components.shape
    own_cluster = cluster_of[component]
    later = None
    for pixel in pixels:
        y, x = divmod(int(pixel), w)
        for dy, dx in NEIGHBOUR_OFFSETS:
            ny, nx = y + dy, x + dx
            if ny < 0 or nx < 0 or ny >= h or nx >= w:
                continue
            other = int(components[ny, nx])
            if other == component:
                continue
            if rank[other] < rank[component]:
                if other in pending:
                    continue
                target = final[other]
                if target >= 0 and target != own_cluster:
                    return int(target), None
            elif later is None and cluster_of[other] >= 0 and cluster_of[other] != own_cluster:
                later = other
    return None, later


def _merge_pass(labels: np.ndarray, limit: int) -> np.ndarray:
    """One raster-order pass merging components of at most `limit` pixels."""
    components = label_components(labels)
    flat = components.ravel()
    n_components = int(flat.max())

    sizes = np.bincount(flat, minlength=n_components + 1)
    ids, first_pixel = np.unique(flat, return_index=True)
    rank = np.zeros(n_components + 1, dtype=np.int64)
    rank[ids[np.argsort(first_pixel)]] = np.arange(len(ids))

    cluster_of = np.zeros(n_components + 1, dtype=np.int64)
    cluster_of[flat] = labels.ravel()
    final = cluster_of.copy()

    small = np.flatnonzero(sizes[1:] <= limit) + 1
    pending: Dict[int, int] = {}
    if len(small):
        # Pixels grouped per component, raster order preserved by the stable sort
        by_component = np.argsort(flat, kind='stable')
        starts = np.concatenate([[0], np.cumsum(sizes)])

        for component in small[np.argsort(rank[small])]:
            component = int(component)
            pixels = by_component[starts[component]:starts[component + 1]]
            target, follow = _find_adjacent_cluster(
                pixels, component, components, rank, cluster_of, final, pending
            )
            if target is not None:
                final[component] = target
            elif follow is not None:
                pending[component] = follow

        # Followed components always come later, so settle them first
        for component in sorted(pending, key=lambda c: rank[c], reverse=True):
            final[component] = final[pending[component]]

    logger.debug(
        f"Connectivity pass: {n_components} components, {len(small)} undersized "
        f"(<= {limit} px), {len(pending)} followed a later neighbour"
    )
    return final[components].astype(labels.dtype)


def enforce_connectivity(
    image: np.ndarray,
    labels: np.ndarray,
    store: CentreStore
) -> np.ndarray:
    """
    Relabel undersized disconnected fragments and recompute the centres.

    Components are visited in raster order of their first pixel. A
    component of at most a quarter of the average cluster size takes the
    final label of the first previously visited neighbour with a different
    valid cluster; pixels are scanned in raster order and their neighbours
    in row-major order. Without such a neighbour it follows the first later
    neighbour with a different valid cluster. Passes repeat until the map no
    longer changes, so the result is a fixed point. Every changing pass
    joins at least two components, which bounds the number of passes.
    Afterwards every centre is recomputed as in the update step.

    Args:
        image: LAB image (H, W, 3)
        labels: Assignment map (H, W)
        store: Centres, recomputed in place

    Returns:
        Corrected assignment map
    """
    h, w = labels.shape
    count = len(store)
    if count == 0 or labels.size == 0:
        return labels.copy()

    limit = size_limit(h * w, count)
    relabelled = labels.copy()
    passes = 0
    while True:
        merged = _merge_pass(relabelled, limit)
        passes += 1
        if np.array_equal(merged, relabelled):
            break
        relabelled = merged

    changed = int(np.count_nonzero(relabelled != labels))
    logger.debug(f"Connectivity: {changed} pixels relabelled in {passes} passes")

    centres, member_counts = accumulate_centres(image, relabelled, count)
    store.centres[:] = centres
    store.sizes[:] = member_counts
    return relabelled
