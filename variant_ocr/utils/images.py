"""
Geometry normalization for the multi-variant OCR pipeline.

Provides:
- Grayscale conversion
- Upscaling of narrow images to a minimum recognition width
- Skew estimation (Canny + probabilistic Hough lines)
- Rotation about the center on a fixed canvas
- The combined normalization step
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple, List, Optional
import numpy as np

from ..config import NormalizeConfig

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class NormalizationResult:
    """Result of geometry normalization."""
    image: np.ndarray
    original_shape: Tuple[int, int]
    scale: float = 1.0
    skew_angle: float = 0.0
    deskewed: bool = False
    transformations: List[str] = field(default_factory=list)


# ============================================================================
# Core Functions
# ============================================================================

def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image[:, :, 0]

    raise ValueError(f"Unexpected image shape: {image.shape}")


def upscale_to_min_width(
    image: np.ndarray,
    min_width: int = 2200
) -> Tuple[np.ndarray, float]:
    """
    Upscale an image whose width is below ``min_width``.

    Aspect ratio is preserved; the new size is the original size times
    ``min_width / width``, rounded.

    Args:
        image: Input image
        min_width: Minimum width in pixels

    Returns:
        Tuple of (image, scale). Scale is 1.0 when nothing was done.
    """
    import cv2

    h, w = image.shape[:2]
    if w >= min_width:
        return image, 1.0

    scale = min_width / w
    new_size = (int(round(w * scale)), int(round(h * scale)))
    resized = cv2.resize(image, new_size, interpolation=cv2.INTER_CUBIC)

    logger.debug(f"Upscaled image: {(h, w)} -> {resized.shape[:2]} (scale={scale:.2f})")
    return resized, scale


def estimate_skew_angle(
    gray: np.ndarray,
    config: Optional[NormalizeConfig] = None
) -> float:
    """
    Estimate the skew of text lines in degrees.

    Edges are detected with Canny, line segments with the probabilistic
    Hough transform. Segments steeper than ``max_line_angle`` are dropped
    and the median of the remaining angles is returned.

    Detection is best-effort: any failure yields 0.0.

    Args:
        gray: Grayscale image
        config: Normalization parameters

    Returns:
        Skew angle in (-max_line_angle, max_line_angle), or 0.0
    """
    import cv2

    config = config or NormalizeConfig()

    try:
        edges = cv2.Canny(gray, config.canny_low, config.canny_high)
        lines = cv2.HoughLinesP(
            edges,
            rho=config.hough_rho,
            theta=np.deg2rad(config.hough_theta_degrees),
            threshold=config.hough_threshold,
            minLineLength=gray.shape[1] / config.min_line_length_divisor,
            maxLineGap=config.max_line_gap
        )

        if lines is None or len(lines) == 0:
            logger.debug("No lines detected for deskewing")
            return 0.0

        # OpenCV 4 returns (N, 1, 4), OpenCV 5 returns (N, 4)
        angles = []
        for x1, y1, x2, y2 in np.asarray(lines).reshape(-1, 4).astype(np.int64):
            angle = float(np.degrees(np.arctan2(y2 - y1, x2 - x1)))
            # Near-vertical segments are noise
            if abs(angle) < config.max_line_angle:
                angles.append(angle)
    except Exception as e:
        logger.warning(f"Skew detection failed: {e}")
        return 0.0

    if not angles:
        logger.debug("No valid angles found for deskewing")
        return 0.0

    # Upper median so the result is always an observed angle
    angles.sort()
    return angles[len(angles) // 2]


def rotate_image(
    image: np.ndarray,
    angle: float,
    border_value: int = 255
) -> np.ndarray:
    """
    Rotate an image about its center, keeping the canvas size.

    Args:
        image: Input image
        angle: Rotation in degrees (counter-clockwise, OpenCV convention)
        border_value: Fill for newly exposed pixels

    Returns:
        Rotated image with the same shape as the input
    """
    import cv2

    h, w = image.shape[:2]
    center = (w / 2, h / 2)
    rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)

    fill = border_value if len(image.shape) == 2 else (border_value,) * 4
    return cv2.warpAffine(
        image,
        rotation_matrix,
        (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=fill
    )


def deskew(
    gray: np.ndarray,
    config: Optional[NormalizeConfig] = None
) -> Tuple[np.ndarray, float, bool]:
    """
    Correct image skew so text lines are horizontal.

    Args:
        gray: Grayscale image
        config: Normalization parameters

    Returns:
        Tuple of (image, detected angle, whether a rotation was applied)
    """
    config = config or NormalizeConfig()

    angle = estimate_skew_angle(gray, config)

    if abs(angle) <= config.min_correction_angle:
        logger.info(f"Deskew angle negligible: {angle:.2f}°")
        return gray, angle, False

    # Angles are measured with y pointing down, so a positive skew is a
    # clockwise tilt; a positive getRotationMatrix2D angle turns it back
    rotated = rotate_image(gray, angle, config.border_value)
    logger.info(f"Deskewed by {-angle:.2f}°")
    return rotated, angle, True


# ============================================================================
# Normalization Pipeline
# ============================================================================

def normalize_geometry(
    image: np.ndarray,
    deskew_enabled: bool = True,
    config: Optional[NormalizeConfig] = None
) -> NormalizationResult:
    """
    Prepare a decoded image for variant generation.

    Steps: upscale narrow images, convert to grayscale, optionally deskew.

    Args:
        image: Input image (BGR, BGRA or grayscale)
        deskew_enabled: Whether to correct skew
        config: Normalization parameters

    Returns:
        NormalizationResult holding a single-channel image
    """
    config = config or NormalizeConfig()
    original_shape = image.shape[:2]
    transformations = []

    processed, scale = upscale_to_min_width(image, config.min_width)
    if scale != 1.0:
        transformations.append(f"upscale_{scale:.2f}x")

    gray = to_grayscale(processed)
    if gray is not processed:
        transformations.append("grayscale")

    skew_angle = 0.0
    deskewed = False
    if deskew_enabled:
        gray, skew_angle, deskewed = deskew(gray, config)
        if deskewed:
            transformations.append(f"deskew_{-skew_angle:.2f}deg")

    logger.debug(f"Normalization complete: {' -> '.join(transformations) or 'no changes'}")

    return NormalizationResult(
        image=gray,
        original_shape=original_shape,
        scale=scale,
        skew_angle=skew_angle,
        deskewed=deskewed,
        transformations=transformations
    )
