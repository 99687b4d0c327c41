"""Superpixel engine: seeding, the assign/update loop and temporal state.

The engine owns the state carried between frames (centre store, assignment
map, distance map) and nothing else. Per-frame diagnostics are returned as
a FrameResult rather than accumulated on the engine.
"""
import logging
import math
import time
from typing import Optional, Tuple

import numpy as np

from slicvid.assignment import assign_pixels
from slicvid.connectivity import enforce_connectivity
from slicvid.orphans import recover_orphans
from slicvid.raster_ingest import as_lab_array
from slicvid.seeding import needs_reseed, perturb_positions, seed_grid
from slicvid.types import (
    CentreStore,
    FrameResult,
    LoopState,
    SlicConfig,
    SlicMode,
    UNASSIGNED,
)
from slicvid.update import update_centres

logger = logging.getLogger(__name__)


class SuperpixelEngine:
    """Iterative colour+position clustering of images and video frames."""

    def __init__(self, config: Optional[SlicConfig] = None):
        """Initialize engine with configuration.

        Args:
            config: Engine configuration. Uses defaults if None.
        """
        self.config = config or SlicConfig()
        self.store = CentreStore.empty()
        self.labels: Optional[np.ndarray] = None
        self.distances: Optional[np.ndarray] = None
        self.reached: Optional[np.ndarray] = None
        self.frame_index = 0
        self.state = LoopState.SEEDED
        self._shape: Optional[Tuple[int, int]] = None
        self._rng = np.random.default_rng(self.config.random_seed)

    @property
    def cluster_count(self) -> int:
        return len(self.store)

    @property
    def tracks_orphans(self) -> bool:
        return self.config.video_mode.adds_superpixels

    def reset(self) -> None:
        """Drop all carried state; the next frame reseeds."""
        self.store = CentreStore.empty()
        self.labels = None
        self.distances = None
        self.reached = None
        self.frame_index = 0
        self.state = LoopState.SEEDED
        self._shape = None
        self._rng = np.random.default_rng(self.config.random_seed)

    def process_frame(self, image: np.ndarray) -> FrameResult:
        """Cluster one frame, continuing from the previous frame if allowed.

        Args:
            image: LAB image (H, W, 3)

        Returns:
            FrameResult with the frame's diagnostics. The assignment map and
            centres are available on `labels` and `store`.

        Raises:
            ImageFormatError: If the image is not a non-empty (H, W, 3) array
            ConfigurationError: If the sampling step leaves no seed in the image
        """
        start = time.perf_counter()
        lab = as_lab_array(image)

        reseeded = self._initialize_frame(lab)
        self.state = LoopState.ITERATING

        total_error = math.inf
        iterations = 0
        orphan_centres = 0
        orphans_checked = False

        while True:
            total_error = self._iterate(lab, first_iteration=(iterations == 0))
            iterations += 1
            logger.debug(
                f"Frame {self.frame_index} iteration {iterations}: "
                f"error={total_error:.4f}, clusters={len(self.store)}"
            )

            if not self._is_final(iterations, total_error):
                continue

            # Orphan recovery runs once, on the pass judged final
            if self.tracks_orphans and not orphans_checked:
                orphans_checked = True
                orphan_centres = recover_orphans(
                    self.reached,
                    self.store,
                    self.config.dilation_size,
                    self.config.frame_thickness,
                )
                if orphan_centres:
                    continue
            break

        if total_error <= self.config.error_threshold:
            self.state = LoopState.CONVERGED
        else:
            self.state = LoopState.EXHAUSTED

        if self.config.enforce_connectivity:
            self.labels = enforce_connectivity(lab, self.labels, self.store)

        result = FrameResult(
            frame_index=self.frame_index,
            iterations=iterations,
            total_residual_error=total_error,
            cluster_count=len(self.store),
            state=self.state,
            reseeded=reseeded,
            orphan_centres=orphan_centres,
            empty_clusters=int(np.count_nonzero(self.store.sizes == 0)),
            execution_time_ms=(time.perf_counter() - start) * 1000.0,
        )
        self.frame_index += 1

        logger.info(
            f"Frame {result.frame_index}: {result.state.name.lower()} after "
            f"{result.iterations} iterations, error={result.total_residual_error:.4f}, "
            f"clusters={result.cluster_count}{' (reseeded)' if reseeded else ''}"
        )
        return result

    def enforce_connectivity(self, image: np.ndarray) -> np.ndarray:
        """Run the connectivity post-process on the current assignment map."""
        if self.labels is None:
            raise RuntimeError("No frame has been processed yet")
        self.labels = enforce_connectivity(as_lab_array(image), self.labels, self.store)
        return self.labels

    def _initialize_frame(self, image: np.ndarray) -> bool:
        """Reseed from a fresh grid or reuse (and optionally jitter) centres."""
        h, w = image.shape[:2]
        reseed = needs_reseed(self.store, self.config, self.frame_index, (h, w), self._shape)

        if reseed:
            self.store = seed_grid(image, self.config.sampling_step)
            self.labels = np.full((h, w), UNASSIGNED, dtype=np.int32)
            self.distances = np.full((h, w), np.inf, dtype=np.float64)
            self._shape = (h, w)
            self.state = LoopState.SEEDED
            logger.info(f"Frame {self.frame_index}: seeded {len(self.store)} centres")
        elif self.config.video_mode.adds_noise:
            perturb_positions(self.store, self.config.noise_std, self._rng)

        if self.tracks_orphans:
            self.reached = np.zeros((h, w), dtype=bool)
        else:
            self.reached = None

        return reseed

    def _iterate(self, image: np.ndarray, first_iteration: bool) -> float:
        """One assignment step followed by one update step."""
        assign_pixels(
            image,
            self.store,
            self.config.sampling_step,
            self.config.distance_factor,
            self.labels,
            self.distances,
            reached=self.reached,
            parallel_workers=self.config.parallel_workers,
        )
        return update_centres(image, self.labels, self.store, first_iteration)

    def _is_final(self, iterations: int, total_error: float) -> bool:
        """Termination test after `iterations` completed iterations."""
        if iterations >= self.config.iterations:
            return True
        if self.config.slic_mode is SlicMode.ERROR_THRESHOLD:
            return total_error <= self.config.error_threshold
        return False


def create_superpixels(
    image: np.ndarray,
    config: Optional[SlicConfig] = None
) -> Tuple[np.ndarray, CentreStore, FrameResult]:
    """
    Convenience function to compute superpixels of a single LAB image.

    Args:
        image: LAB image (H, W, 3)
        config: Optional engine configuration

    Returns:
        Tuple of (assignment map, centre store, frame diagnostics)
    """
    engine = SuperpixelEngine(config)
    result = engine.process_frame(image)
    return engine.labels, engine.store, result
