"""Orphan recovery: spawn centres over pixels no search window reached."""
import logging
from typing import List, Tuple

import numpy as np

from slicvid.contour import contour_moments, dilate_mask, find_contours, frame_mask
from slicvid.types import CENTRE_FIELDS, CentreStore

logger = logging.getLogger(__name__)


def orphan_mask(reached: np.ndarray) -> np.ndarray:
    """Foreground wherever no centre's window visited the pixel."""
    return ~reached.astype(bool)


def find_orphan_blobs(
    reached: np.ndarray,
    dilation_size: int = 10,
    frame_thickness: int = 2
) -> List[Tuple[float, float, float]]:
    """
    Locate blobs of orphan pixels.

    Orphans are dilated into solid blobs and framed so that blobs touching
    the border still close. Each blob's outer contour yields its centroid.

    Args:
        reached: Boolean mask (H, W), True where some window visited the pixel
        dilation_size: Edge length of the square structuring element
        frame_thickness: Thickness of the background frame stamped on the edge

    Returns:
        List of (x, y, area) per non-degenerate blob
    """
    orphans = orphan_mask(reached)
    if not orphans.any():
        return []

    work = dilate_mask(orphans, dilation_size)
    work = frame_mask(work, frame_thickness)

    blobs = []
    for contour in find_contours(work):
        m00, m10, m01 = contour_moments(contour)
        if m00 == 0:
            logger.warning(f"Skipping degenerate blob with {len(contour)} contour points")
            continue
        blobs.append((m10 / m00, m01 / m00, m00))

    return blobs


def recover_orphans(
    reached: np.ndarray,
    store: CentreStore,
    dilation_size: int = 10,
    frame_thickness: int = 2
) -> int:
    """
    Append one centre per orphan blob, in place.

    New centres sit at the blob centroid with zero colour; the next update
    step fills in their colour.

    Returns:
        Number of centres added
    """
    blobs = find_orphan_blobs(reached, dilation_size, frame_thickness)
    if not blobs:
        return 0

    spawned = np.zeros((len(blobs), CENTRE_FIELDS), dtype=np.float64)
    for row, (x, y, _) in enumerate(blobs):
        spawned[row, 3] = x
        spawned[row, 4] = y

    store.append(spawned)
    logger.info(f"Spawned {len(blobs)} centres over orphan pixels, {len(store)} clusters now")
    return len(blobs)
