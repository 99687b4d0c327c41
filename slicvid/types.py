"""Core types for the superpixel clustering engine."""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

import numpy as np

# Assignment map value for pixels that no centre has claimed.
UNASSIGNED = -1

# Centre columns: L, A, B, x, y
CENTRE_FIELDS = 5


class SlicMode(Enum):
    """Termination policy of the assign/update loop."""
    ERROR_THRESHOLD = auto()
    FIXED_ITERATIONS = auto()


class VideoMode(Enum):
    """Temporal policy deciding whether a frame reseeds or reuses centres."""
    INDEPENDENT = auto()
    CONNECTED = auto()
    NOISE = auto()
    KEY_FRAMES = auto()
    KEY_FRAMES_NOISE = auto()
    ADD_SUPERPIXELS = auto()
    ADD_SUPERPIXELS_NOISE = auto()

    @property
    def adds_noise(self) -> bool:
        return self in (VideoMode.NOISE, VideoMode.KEY_FRAMES_NOISE, VideoMode.ADD_SUPERPIXELS_NOISE)

    @property
    def uses_key_frames(self) -> bool:
        return self in (VideoMode.KEY_FRAMES, VideoMode.KEY_FRAMES_NOISE)

    @property
    def adds_superpixels(self) -> bool:
        return self in (VideoMode.ADD_SUPERPIXELS, VideoMode.ADD_SUPERPIXELS_NOISE)


class LoopState(Enum):
    """Lifecycle of one frame's clustering loop."""
    SEEDED = auto()
    ITERATING = auto()
    CONVERGED = auto()
    EXHAUSTED = auto()


class SlicError(Exception):
    """Base exception for superpixel errors."""
    pass


class ConfigurationError(SlicError, ValueError):
    """Raised for option values the engine cannot work with."""
    pass


class ImageFormatError(SlicError):
    """Raised when an input image is not a non-empty (H, W, 3) array."""
    pass


class ContourError(SlicError):
    """Exception raised during contour detection."""
    pass


def _coerce_enum(value, enum_cls):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls[value.strip().upper().replace('-', '_')]
        except KeyError:
            pass
    choices = ', '.join(member.name for member in enum_cls)
    raise ConfigurationError(f"Unknown {enum_cls.__name__} {value!r}, expected one of: {choices}")


@dataclass
class SlicConfig:
    """Configuration for the superpixel engine."""
    # Grid spacing between seeds, controls the target superpixel size
    sampling_step: int = 20
    # Colour/space trade-off
    spatial_weight: float = 10.0

    # Termination
    error_threshold: float = 0.5
    slic_mode: Union[SlicMode, str] = SlicMode.ERROR_THRESHOLD
    iterations: int = 10  # fixed count, or cap under ERROR_THRESHOLD

    # Video
    video_mode: Union[VideoMode, str] = VideoMode.INDEPENDENT
    key_frames_ratio: int = 10
    noise_std: float = 1.0
    max_clusters: int = 1300

    # Orphan recovery
    dilation_size: int = 10
    frame_thickness: int = 2

    # Post-processing
    enforce_connectivity: bool = True

    # Performance
    parallel_workers: int = -1  # -1 = auto
    random_seed: Optional[int] = None

    def __post_init__(self):
        self.slic_mode = _coerce_enum(self.slic_mode, SlicMode)
        self.video_mode = _coerce_enum(self.video_mode, VideoMode)

        if self.sampling_step < 1:
            raise ConfigurationError(f"sampling_step must be >= 1, got {self.sampling_step}")
        if self.spatial_weight < 0:
            raise ConfigurationError(f"spatial_weight must be >= 0, got {self.spatial_weight}")
        if self.iterations < 1:
            raise ConfigurationError(f"iterations must be >= 1, got {self.iterations}")
        if self.key_frames_ratio < 1:
            raise ConfigurationError(f"key_frames_ratio must be >= 1, got {self.key_frames_ratio}")
        if self.noise_std < 0:
            raise ConfigurationError(f"noise_std must be >= 0, got {self.noise_std}")
        if self.max_clusters < 1:
            raise ConfigurationError(f"max_clusters must be >= 1, got {self.max_clusters}")
        if self.dilation_size < 1:
            raise ConfigurationError(f"dilation_size must be >= 1, got {self.dilation_size}")

    @property
    def distance_factor(self) -> float:
        """Weight applied to squared spatial distance (m^2 / S^2)."""
        return float(self.spatial_weight) ** 2 / float(self.sampling_step) ** 2


@dataclass
class Centre:
    """A single cluster centre: mean colour and mean position."""
    l: float
    a: float
    b: float
    x: float
    y: float


@dataclass
class CentreStore:
    """Cluster centres and their previous-iteration snapshot.

    Centres are rows of a (K, 5) float array laid out as [L, A, B, x, y];
    the row index is the cluster's identity within a frame.
    """
    centres: np.ndarray
    previous: np.ndarray
    sizes: np.ndarray
    residuals: np.ndarray

    @classmethod
    def empty(cls) -> "CentreStore":
        return cls.from_centres(np.zeros((0, CENTRE_FIELDS)))

    @classmethod
    def from_centres(cls, centres: np.ndarray) -> "CentreStore":
        """Build a store whose previous snapshot equals the given centres."""
        centres = np.asarray(centres, dtype=np.float64).reshape(-1, CENTRE_FIELDS).copy()
        count = len(centres)
        return cls(
            centres=centres,
            previous=centres.copy(),
            sizes=np.zeros(count, dtype=np.int64),
            residuals=np.zeros(count, dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.centres)

    @property
    def count(self) -> int:
        return len(self.centres)

    @property
    def colors(self) -> np.ndarray:
        return self.centres[:, :3]

    @property
    def positions(self) -> np.ndarray:
        return self.centres[:, 3:]

    def centre(self, index: int) -> Centre:
        return Centre(*(float(v) for v in self.centres[index]))

    def append(self, centres: np.ndarray) -> None:
        """Append new centres; their snapshot entries equal the new values."""
        centres = np.asarray(centres, dtype=np.float64).reshape(-1, CENTRE_FIELDS)
        self.centres = np.vstack([self.centres, centres])
        self.previous = np.vstack([self.previous, centres])
        self.sizes = np.concatenate([self.sizes, np.zeros(len(centres), dtype=np.int64)])
        self.residuals = np.concatenate([self.residuals, np.zeros(len(centres))])

    def copy(self) -> "CentreStore":
        return CentreStore(
            centres=self.centres.copy(),
            previous=self.previous.copy(),
            sizes=self.sizes.copy(),
            residuals=self.residuals.copy(),
        )


@dataclass
class FrameResult:
    """Diagnostics of one processed frame."""
    frame_index: int
    iterations: int
    total_residual_error: float
    cluster_count: int
    state: LoopState
    reseeded: bool = False
    orphan_centres: int = 0
    empty_clusters: int = 0
    execution_time_ms: float = 0.0

    @property
    def converged(self) -> bool:
        return self.state is LoopState.CONVERGED


@dataclass
class IngestResult:
    """Result from raster image ingestion."""
    image_lab: np.ndarray  # 8-bit CIELAB, OpenCV scaling
    image_rgb: np.ndarray  # uint8 RGB for output
    original_path: str
    width: int
    height: int
    has_alpha: bool = False
