"""slicvid: temporally coherent SLIC superpixels for images and video."""
from slicvid.types import (
    Centre,
    CentreStore,
    SlicConfig,
    FrameResult,
    SlicMode,
    VideoMode,
    LoopState,
    UNASSIGNED,
    SlicError,
    ConfigurationError,
    ImageFormatError,
)
from slicvid.engine import SuperpixelEngine, create_superpixels

__version__ = "0.1.0"

__all__ = [
    "Centre",
    "CentreStore",
    "SlicConfig",
    "FrameResult",
    "SlicMode",
    "VideoMode",
    "LoopState",
    "UNASSIGNED",
    "SlicError",
    "ConfigurationError",
    "ImageFormatError",
    "SuperpixelEngine",
    "create_superpixels",
]
