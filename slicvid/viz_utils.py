"""Visualization of superpixel results: fills, contours, centres, statistics."""
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from slicvid.types import CentreStore, FrameResult, UNASSIGNED

Area = Tuple[int, int, int, int]  # x, y, width, height


def clamp_area(area: Optional[Area], width: int, height: int) -> Area:
    """Clamp a region of interest to the image.

    An origin outside the image resets to 0 and a negative or overflowing
    extent is replaced by the remaining width/height. None means the full
    image.
    """
    if area is None:
        return 0, 0, width, height

    x, y, w, h = (int(v) for v in area)
    if x < 0 or x > width:
        x = 0
    if y < 0 or y > height:
        y = 0
    if w < 0 or x + w > width:
        w = width - x
    if h < 0 or y + h > height:
        h = height - y
    return x, y, w, h


def fill_superpixels(
    image: np.ndarray,
    labels: np.ndarray,
    store: CentreStore,
    area: Optional[Area] = None
) -> np.ndarray:
    """Paint every assigned pixel with its cluster's mean colour.

    Args:
        image: Image (H, W, 3) in the colour space the centres live in
        labels: Assignment map (H, W)
        store: Cluster centres
        area: Optional (x, y, width, height) region to paint

    Returns:
        Painted copy of the image
    """
    out = image.copy()
    x, y, w, h = clamp_area(area, image.shape[1], image.shape[0])
    region = labels[y:y + h, x:x + w]
    valid = (region >= 0) & (region < len(store))

    colors = store.colors[region[valid]]
    if np.issubdtype(out.dtype, np.integer):
        info = np.iinfo(out.dtype)
        colors = np.clip(np.rint(colors), info.min, info.max)

    out[y:y + h, x:x + w][valid] = colors.astype(out.dtype)
    return out


def contour_pixels(labels: np.ndarray, area: Optional[Area] = None) -> np.ndarray:
    """Pixels with an 8-neighbour that belongs to a different valid cluster."""
    height, width = labels.shape
    x, y, w, h = clamp_area(area, width, height)

    padded = np.pad(labels, 1, mode='constant', constant_values=UNASSIGNED)
    centre = labels >= 0
    contour = np.zeros_like(centre)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dy == 0 and dx == 0:
                continue
            neighbour = padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]
            contour |= (neighbour > UNASSIGNED) & (neighbour != labels)
    contour &= centre

    inside = np.zeros_like(contour)
    inside[y:y + h, x:x + w] = True
    return contour & inside


def draw_cluster_contours(
    image: np.ndarray,
    labels: np.ndarray,
    color: Tuple[int, int, int] = (255, 0, 0),
    area: Optional[Area] = None
) -> np.ndarray:
    """Draw superpixel boundaries onto a copy of the image."""
    out = image.copy()
    out[contour_pixels(labels, area)] = color
    return out


def draw_cluster_centres(
    image: np.ndarray,
    store: CentreStore,
    color: Tuple[int, int, int] = (0, 0, 255),
    radius: int = 2,
    thickness: int = 2
) -> np.ndarray:
    """Draw a small circle at every centre position onto a copy of the image."""
    out = np.ascontiguousarray(image.copy())
    for cx, cy in store.positions:
        if not (math.isfinite(cx) and math.isfinite(cy)):
            continue
        cv2.circle(out, (int(cx), int(cy)), radius, color, thickness)
    return out


def _format_error(error: Optional[float]) -> str:
    if error is None or not math.isfinite(error):
        return "n/a"
    return f"{error:.4f}"


@dataclass
class FrameStatistics:
    """Running min/max/average of frame diagnostics across a video."""
    frames: int = 0
    error_frames: int = 0  # frames with a finite residual error
    total_error: float = 0.0
    min_error: Optional[float] = None
    max_error: Optional[float] = None
    total_iterations: int = 0
    min_iterations: int = 0
    max_iterations: int = 0
    total_time_ms: float = 0.0
    min_time_ms: float = math.inf
    max_time_ms: float = 0.0

    def record(self, result: FrameResult) -> None:
        """Fold one frame's diagnostics into the running statistics."""
        error = result.total_residual_error
        if self.frames == 0:
            self.min_iterations = result.iterations
        self.frames += 1

        if math.isfinite(error):
            if self.error_frames == 0:
                self.min_error = self.max_error = error
            self.error_frames += 1
            self.total_error += error
            self.min_error = min(self.min_error, error)
            self.max_error = max(self.max_error, error)

        self.total_iterations += result.iterations
        self.min_iterations = min(self.min_iterations, result.iterations)
        self.max_iterations = max(self.max_iterations, result.iterations)

        self.total_time_ms += result.execution_time_ms
        self.min_time_ms = min(self.min_time_ms, result.execution_time_ms)
        self.max_time_ms = max(self.max_time_ms, result.execution_time_ms)

    @property
    def average_error(self) -> Optional[float]:
        return self.total_error / self.error_frames if self.error_frames else None

    @property
    def average_iterations(self) -> float:
        return self.total_iterations / self.frames if self.frames else 0.0

    @property
    def average_time_ms(self) -> float:
        return self.total_time_ms / self.frames if self.frames else 0.0

    def lines(self, result: FrameResult, total_frames: int, spatial_weight: float):
        """Text lines of the statistics panel."""
        return [
            f"Frame: {self.frames} ({total_frames} total)",
            f"Superpixels: {result.cluster_count}",
            f"Distance weight: {spatial_weight:g}",
            f"Exe. time now: {result.execution_time_ms:.0f} ms",
            f"Exe. time max.: {self.max_time_ms:.0f}",
            f"Exe. time min.: {self.min_time_ms:.0f}",
            f"Exe. time avg.: {self.average_time_ms:.0f} ms",
            f"Iterations now: {result.iterations}",
            f"Iterations max.: {self.max_iterations}",
            f"Iterations min.: {self.min_iterations}",
            f"Iterations avg.: {self.average_iterations:.1f}",
            f"Error now: {_format_error(result.total_residual_error)}",
            f"Error max.: {_format_error(self.max_error)}",
            f"Error min.: {_format_error(self.min_error)}",
            f"Error avg.: {_format_error(self.average_error)}",
        ]


def draw_information(
    image: np.ndarray,
    stats: FrameStatistics,
    result: FrameResult,
    total_frames: int,
    spatial_weight: float
) -> np.ndarray:
    """Draw the statistics panel in the top-left corner of a copy of the image."""
    out = np.ascontiguousarray(image.copy())
    cv2.rectangle(out, (0, 0), (260, 320), (255, 255, 255), cv2.FILLED)
    for row, text in enumerate(stats.lines(result, total_frames, spatial_weight)):
        cv2.putText(
            out, text, (5, 20 * (row + 1)),
            cv2.FONT_HERSHEY_COMPLEX_SMALL, 0.8, (0, 0, 0), 1, cv2.LINE_AA
        )
    return out


def save_image(image: np.ndarray, path: Path):
    """Save an RGB uint8 array as an image file."""
    Image.fromarray(np.asarray(image, dtype=np.uint8)).save(path)
