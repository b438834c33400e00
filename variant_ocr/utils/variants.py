"""
Variant generation for the multi-variant OCR pipeline.

Each recipe binarizes the same normalized grayscale image in a different
way. Recipes run independently: a failing recipe is logged and skipped,
so a run may end up with fewer variants than recipes.
"""

import logging
from typing import Callable, List, Optional, Tuple
import numpy as np

from ..config import VariantConfig
from ..exceptions import RecipeError
from .io import encode_png

logger = logging.getLogger(__name__)

Recipe = Callable[[np.ndarray, VariantConfig], np.ndarray]


# ============================================================================
# Variant
# ============================================================================

class Variant:
    """
    A binarized candidate image handed to the OCR engine.

    Args:
        index: 1-based position in generation order, stable for one run
        name: Recipe that produced the image
        image: Binary uint8 image
        png: The same image, PNG-encoded
    """

    def __init__(self, index: int, name: str, image: np.ndarray, png: bytes):
        self.index = index
        self.name = name
        self.released = False
        self._image: Optional[np.ndarray] = image
        self._png: Optional[bytes] = png

    def __repr__(self):
        return f"Variant(index={self.index}, name={self.name!r}, released={self.released})"

    @property
    def image(self) -> np.ndarray:
        if self._image is None:
            raise RuntimeError(f"Variant {self.index} ({self.name}) was released")
        return self._image

    @property
    def png(self) -> bytes:
        if self._png is None:
            raise RuntimeError(f"Variant {self.index} ({self.name}) was released")
        return self._png

    def release(self):
        """Drop the image buffers. Later access raises RuntimeError."""
        if self.released:
            raise RuntimeError(f"Variant {self.index} ({self.name}) released twice")
        self._image = None
        self._png = None
        self.released = True

    def to_dict(self):
        return {
            "index": self.index,
            "name": self.name,
            "released": self.released,
            "shape": None if self.released else list(self._image.shape),
        }


# ============================================================================
# Recipes
# ============================================================================

def equalized_adaptive_gaussian(gray: np.ndarray, config: VariantConfig) -> np.ndarray:
    """Histogram equalization, Gaussian adaptive threshold, then opening."""
    import cv2

    equalized = cv2.equalizeHist(gray)
    binary = cv2.adaptiveThreshold(
        equalized,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        config.gaussian_block_size,
        config.gaussian_c
    )
    kernel = cv2.getStructuringElement(
        cv2.MORPH_RECT, (config.open_kernel_size, config.open_kernel_size)
    )
    return cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel)


def blurred_otsu(gray: np.ndarray, config: VariantConfig) -> np.ndarray:
    """Light Gaussian blur followed by Otsu's global threshold."""
    import cv2

    k = config.blur_kernel_size
    blurred = cv2.GaussianBlur(gray, (k, k), 0)
    _, binary = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def bilateral_adaptive_mean(gray: np.ndarray, config: VariantConfig) -> np.ndarray:
    """Edge-preserving denoise, median blur, then mean adaptive threshold."""
    import cv2

    filtered = cv2.bilateralFilter(
        gray,
        config.bilateral_diameter,
        config.bilateral_sigma_color,
        config.bilateral_sigma_space
    )
    smoothed = cv2.medianBlur(filtered, config.median_kernel_size)
    return cv2.adaptiveThreshold(
        smoothed,
        255,
        cv2.ADAPTIVE_THRESH_MEAN_C,
        cv2.THRESH_BINARY,
        config.mean_block_size,
        config.mean_c
    )


def clahe_otsu(gray: np.ndarray, config: VariantConfig) -> np.ndarray:
    """Histogram equalization, CLAHE, then Otsu's global threshold."""
    import cv2

    equalized = cv2.equalizeHist(gray)
    clahe = cv2.createCLAHE(
        clipLimit=config.clahe_clip_limit,
        tileGridSize=(config.clahe_grid_size, config.clahe_grid_size)
    )
    enhanced = clahe.apply(equalized)
    _, binary = cv2.threshold(enhanced, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


# Generation order defines variant indices
VARIANT_RECIPES: List[Tuple[str, Recipe]] = [
    ("equalized_adaptive_gaussian", equalized_adaptive_gaussian),
    ("blurred_otsu", blurred_otsu),
    ("bilateral_adaptive_mean", bilateral_adaptive_mean),
    ("clahe_otsu", clahe_otsu),
]


# ============================================================================
# Generation
# ============================================================================

def _check_output(name: str, source: np.ndarray, output: np.ndarray):
    if output is None or output.shape != source.shape:
        shape = None if output is None else output.shape
        raise RecipeError(f"{name} produced shape {shape}, expected {source.shape}")
    if output.dtype != np.uint8:
        raise RecipeError(f"{name} produced dtype {output.dtype}, expected uint8")


def generate_variants(
    gray: np.ndarray,
    config: Optional[VariantConfig] = None,
    recipes: Optional[List[Tuple[str, Recipe]]] = None
) -> List[Variant]:
    """
    Build binarized variants of a normalized grayscale image.

    Args:
        gray: Single-channel source image; never modified
        config: Recipe parameters
        recipes: (name, function) pairs to run, default VARIANT_RECIPES

    Returns:
        Surviving variants with consecutive 1-based indices
    """
    config = config or VariantConfig()
    recipes = VARIANT_RECIPES if recipes is None else recipes

    if gray.ndim != 2:
        raise ValueError(f"Variant generation needs a grayscale image, got shape {gray.shape}")

    variants = []
    for name, recipe in recipes:
        try:
            binary = recipe(gray, config)
            _check_output(name, gray, binary)
            png = encode_png(binary)
        except Exception as e:
            logger.warning(f"Variant {name} failed: {e}")
            continue

        variant = Variant(index=len(variants) + 1, name=name, image=binary, png=png)
        variants.append(variant)
        logger.debug(f"Created variant {variant.index} ({name})")

    logger.info(f"Created {len(variants)} variants")
    return variants
