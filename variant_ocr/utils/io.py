"""
I/O utilities for the multi-variant OCR pipeline.

Handles:
- Image loading from paths, encoded bytes, or decoded arrays
- PNG encoding for handing images to the OCR engine
- Saving extracted text and variant images
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np

from ..config import DEFAULT_TEXT_FILENAME
from ..exceptions import ImageLoadError

logger = logging.getLogger(__name__)

ImageResource = Union[str, Path, bytes, bytearray, np.ndarray]


# ============================================================================
# Image Loading
# ============================================================================

def load_image(image: ImageResource) -> np.ndarray:
    """
    Decode an image resource into a raster buffer.

    Args:
        image: Path to an image file, encoded image bytes, or an
            already-decoded numpy array

    Returns:
        8-bit numpy array (grayscale, BGR or BGRA) owned by the caller.
        Files and encoded bytes are decoded at 8 bits per channel, so
        16-bit PNG and TIFF input is reduced to its high byte.

    Raises:
        ImageLoadError: If the file doesn't exist or cannot be decoded
    """
    import cv2

    if isinstance(image, np.ndarray):
        if image.size == 0 or image.ndim not in (2, 3):
            raise ImageLoadError(f"Unsupported image array shape: {image.shape}")
        if image.dtype == np.uint8:
            return image.copy()
        return to_uint8(image)

    if isinstance(image, (bytes, bytearray)):
        buffer = np.frombuffer(bytes(image), dtype=np.uint8)
        img = cv2.imdecode(buffer, cv2.IMREAD_ANYCOLOR) if buffer.size else None
        if img is None:
            raise ImageLoadError(f"Could not decode image bytes ({len(image)} bytes)")
        logger.debug(f"Decoded image bytes, shape: {img.shape}")
        return img

    image_path = Path(image)
    if not image_path.exists():
        raise ImageLoadError(f"Image file not found: {image_path}")

    img = cv2.imread(str(image_path), cv2.IMREAD_ANYCOLOR)
    if img is None:
        raise ImageLoadError(f"Could not decode image: {image_path}")

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def to_uint8(image: np.ndarray) -> np.ndarray:
    """
    Convert an array of any numeric dtype to uint8.

    16-bit data keeps its high byte. Other arrays already in 0-255 are
    cast as-is; anything wider is stretched to 0-255.

    Args:
        image: Input array

    Returns:
        New uint8 array with the same shape
    """
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)

    data = image.astype(np.float64)
    if not np.isfinite(data).all():
        raise ImageLoadError("Image array contains NaN or infinite values")

    low, high = data.min(), data.max()
    if low >= 0 and high <= 255:
        return np.round(data).astype(np.uint8)

    logger.debug(f"Stretching {image.dtype} range [{low}, {high}] to 8 bits")
    if high == low:
        return np.zeros(image.shape, dtype=np.uint8)
    return np.round((data - low) * (255.0 / (high - low))).astype(np.uint8)


def encode_png(image: np.ndarray) -> bytes:
    """
    Encode an image as PNG.

    Args:
        image: Image to encode

    Returns:
        PNG file contents

    Raises:
        ValueError: If OpenCV refuses to encode the image
    """
    import cv2

    ok, buffer = cv2.imencode('.png', image)
    if not ok:
        raise ValueError(f"Could not encode image of shape {image.shape} as PNG")
    return buffer.tobytes()


# ============================================================================
# Output
# ============================================================================

def save_text(
    text: str,
    output_path: Union[str, Path] = DEFAULT_TEXT_FILENAME
) -> Path:
    """
    Save extracted text as a UTF-8 plain-text file.

    Args:
        text: Text to write
        output_path: Path to save the file (default: extracted.txt)

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(text or "")

    logger.debug(f"Saved text: {output_path}")
    return output_path


def save_image(
    image: np.ndarray,
    output_path: Union[str, Path]
) -> Path:
    """
    Save an image to file.

    Args:
        image: Numpy array representing the image
        output_path: Path to save the image

    Returns:
        Path to the saved image
    """
    import cv2

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if not cv2.imwrite(str(output_path), image):
        raise ValueError(f"Could not write image: {output_path}")

    logger.debug(f"Saved image: {output_path}")
    return output_path

