"""Blob primitives on binary masks: dilation, framing, contours and moments."""

from typing import List, Tuple

import cv2
import numpy as np

from .types import ContourError

Contour = np.ndarray


def _as_uint8(mask: np.ndarray) -> np.ndarray:
    if mask.dtype != np.uint8:
        return mask.astype(np.uint8) * 255
    return mask


def find_contours(mask: np.ndarray) -> List[Contour]:
    """Find the outer contour of every blob in a binary mask.

    Args:
        mask: Binary mask (H, W) with True/255 for blob pixels

    Returns:
        List of contours, each an array of (x, y) points

    Raises:
        ContourError: If contour detection fails
    """
    try:
        mask = _as_uint8(mask)

        contours, _ = cv2.findContours(
            mask,
            cv2.RETR_EXTERNAL,  # One contour per blob
            cv2.CHAIN_APPROX_SIMPLE
        )

        return [contour.reshape(-1, 2) for contour in contours]

    except cv2.error as e:
        raise ContourError(f"Contour detection failed: {e}") from e


def contour_moments(contour: Contour) -> Tuple[float, float, float]:
    """Zeroth and first order moments (m00, m10, m01) of a contour.

    The centroid is (m10 / m00, m01 / m00) whenever m00 is non-zero.
    """
    points = np.asarray(contour, dtype=np.float32).reshape(-1, 1, 2)
    moments = cv2.moments(points)
    return moments["m00"], moments["m10"], moments["m01"]


def dilate_mask(mask: np.ndarray, size: int = 10) -> np.ndarray:
    """Dilate mask with a size x size rectangle to merge nearby specks.

    Args:
        mask: Binary mask
        size: Structuring element edge length

    Returns:
        Dilated mask
    """
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size, size))
    return cv2.dilate(_as_uint8(mask), kernel) > 0


def frame_mask(mask: np.ndarray, thickness: int = 2) -> np.ndarray:
    """Stamp a background frame along the mask edge.

    Blobs touching the image boundary become closed regions that contour
    tracing reports like any other.

    Returns:
        uint8 mask (0/255) with the frame drawn
    """
    framed = _as_uint8(mask).copy()
    h, w = framed.shape[:2]
    cv2.rectangle(framed, (0, 0), (w - 1, h - 1), 0, thickness)
    return framed
