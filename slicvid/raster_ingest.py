"""Raster image and video ingestion with CIELAB conversion."""
from pathlib import Path
from typing import Iterator, Tuple, Union

import cv2
import numpy as np
from PIL import Image
from PIL import ImageOps

from slicvid.types import ImageFormatError, IngestResult


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert RGB to 8-bit CIELAB (OpenCV scaling, every channel in 0-255).

    Args:
        rgb: RGB values, uint8 or float in [0, 1]

    Returns:
        LAB image (H, W, 3) uint8
    """
    if rgb.dtype != np.uint8:
        rgb = np.clip(np.rint(np.asarray(rgb, dtype=np.float64) * 255.0), 0, 255).astype(np.uint8)
    return cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2LAB)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert 8-bit CIELAB back to uint8 RGB."""
    lab = np.clip(np.rint(lab), 0, 255).astype(np.uint8)
    return cv2.cvtColor(np.ascontiguousarray(lab), cv2.COLOR_LAB2RGB)


def bgr_frame_to_lab(frame: np.ndarray) -> np.ndarray:
    """Convert an OpenCV BGR frame to 8-bit CIELAB."""
    return cv2.cvtColor(frame, cv2.COLOR_BGR2LAB)


def lab_to_bgr(lab: np.ndarray) -> np.ndarray:
    """Convert 8-bit CIELAB to an OpenCV BGR frame."""
    lab = np.clip(np.rint(lab), 0, 255).astype(np.uint8)
    return cv2.cvtColor(np.ascontiguousarray(lab), cv2.COLOR_LAB2BGR)


def as_lab_array(image: np.ndarray) -> np.ndarray:
    """
    Validate a 3-channel colour image and return it as float64.

    Raises:
        ImageFormatError: If the array is empty or not (H, W, 3)
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ImageFormatError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ImageFormatError("Cannot process an empty image")
    return image.astype(np.float64)


def ingest(path: Union[str, Path]) -> IngestResult:
    """
    Ingest a raster image file.

    Loads the image, applies EXIF orientation, composites alpha on white
    and converts to CIELAB for clustering.

    Args:
        path: Path to image file

    Returns:
        IngestResult with LAB and RGB representations

    Raises:
        FileNotFoundError: If file doesn't exist
        ImageFormatError: If file cannot be loaded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise ImageFormatError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img)

            if img.mode == 'RGBA':
                has_alpha = True
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[3])
                img = background
            elif img.mode != 'RGB':
                has_alpha = img.mode in ('LA', 'P')
                img = img.convert('RGB')
            else:
                has_alpha = False

            width, height = img.size
            image_rgb = np.array(img, dtype=np.uint8)

    except (IOError, OSError) as e:
        raise ImageFormatError(f"Failed to load image {path}: {e}") from e

    return IngestResult(
        image_lab=rgb_to_lab(image_rgb),
        image_rgb=image_rgb,
        original_path=str(path),
        width=width,
        height=height,
        has_alpha=has_alpha
    )


def ingest_from_array(image: np.ndarray, path: str = "") -> IngestResult:
    """
    Create IngestResult from an RGB numpy array.

    Args:
        image: RGB image (H, W, 3), (H, W, 4) or grayscale (H, W);
            uint8 or float in [0, 1]
        path: Optional path for reference

    Returns:
        IngestResult
    """
    image = np.asarray(image)
    if image.ndim == 2:
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise ImageFormatError(f"Expected 3D array, got {image.ndim}D")

    if image.dtype != np.uint8:
        image = np.clip(np.rint(image.astype(np.float64) * 255.0), 0, 255).astype(np.uint8)

    if image.shape[2] == 4:
        has_alpha = True
        alpha = image[..., 3:4].astype(np.float64) / 255.0
        rgb = image[..., :3].astype(np.float64)
        image = np.rint(rgb * alpha + 255.0 * (1 - alpha)).astype(np.uint8)
    elif image.shape[2] == 3:
        has_alpha = False
    else:
        raise ImageFormatError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    height, width = image.shape[:2]

    return IngestResult(
        image_lab=rgb_to_lab(image),
        image_rgb=image,
        original_path=path,
        width=width,
        height=height,
        has_alpha=has_alpha
    )


def read_video_info(path: Union[str, Path]) -> Tuple[float, int, int, int]:
    """
    Read (fps, width, height, frame_count) of a video file.

    Raises:
        FileNotFoundError: If the video cannot be opened
    """
    capture = cv2.VideoCapture(str(path))
    try:
        if not capture.isOpened():
            raise FileNotFoundError(f"Cannot open video: {path}")
        fps = capture.get(cv2.CAP_PROP_FPS) or 25.0
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT))
        return fps, width, height, frame_count
    finally:
        capture.release()


def iter_video_frames(path: Union[str, Path]) -> Iterator[np.ndarray]:
    """
    Yield the BGR frames of a video file in order.

    Raises:
        FileNotFoundError: If the video cannot be opened
    """
    capture = cv2.VideoCapture(str(path))
    if not capture.isOpened():
        capture.release()
        raise FileNotFoundError(f"Cannot open video: {path}")

    try:
        while True:
            ok, frame = capture.read()
            if not ok:
                break
            yield frame
    finally:
        capture.release()
