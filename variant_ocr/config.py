"""
Configuration and constants for the multi-variant OCR pipeline.

This module provides:
- Global logging configuration
- Geometry normalization parameters (upscale, deskew)
- Variant recipe parameters (thresholds, filters, CLAHE)
- OCR dispatch parameters (page segmentation modes, whitelist, workers)
"""

import os
import string
from dataclasses import dataclass, field
from typing import Optional, Tuple
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("variant_ocr")


# ============================================================================
# Constants
# ============================================================================

# Tesseract page segmentation modes tried for every variant:
# 6 = single uniform block, 3 = fully automatic, 4 = single column of
# variable sizes, 11 = sparse text
DEFAULT_PAGE_SEGMENTATION_MODES: Tuple[str, ...] = ("6", "3", "4", "11")

DEFAULT_CHAR_WHITELIST = (
    string.ascii_uppercase + string.ascii_lowercase + string.digits + ".,:-()/%&$ "
)

DEFAULT_TEXT_FILENAME = "extracted.txt"


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class NormalizeConfig:
    """Geometry normalization configuration."""
    min_width: int = 2200  # Images narrower than this are upscaled
    # Edge detection
    canny_low: int = 50
    canny_high: int = 150
    # Probabilistic Hough line detection
    hough_rho: float = 1.0
    hough_theta_degrees: float = 1.0
    hough_threshold: int = 160
    min_line_length_divisor: int = 8  # minLineLength = width / divisor
    max_line_gap: int = 20
    # Segments at or beyond this angle are treated as near-vertical noise
    max_line_angle: float = 45.0
    # Skew at or below this is left alone
    min_correction_angle: float = 0.35
    border_value: int = 255


@dataclass
class VariantConfig:
    """Variant recipe configuration."""
    # Recipe 1: equalize -> adaptive gaussian -> open
    gaussian_block_size: int = 21
    gaussian_c: int = 10
    open_kernel_size: int = 1
    # Recipe 2: gaussian blur -> otsu
    blur_kernel_size: int = 3
    # Recipe 3: bilateral -> median -> adaptive mean
    bilateral_diameter: int = 9
    bilateral_sigma_color: float = 75.0
    bilateral_sigma_space: float = 75.0
    median_kernel_size: int = 3
    mean_block_size: int = 31
    mean_c: int = 12
    # Recipe 4: equalize -> CLAHE -> otsu
    clahe_clip_limit: float = 2.0
    clahe_grid_size: int = 8


@dataclass
class OCRConfig:
    """OCR dispatch configuration."""
    language: str = "eng"
    page_segmentation_modes: Tuple[str, ...] = DEFAULT_PAGE_SEGMENTATION_MODES
    char_whitelist: str = DEFAULT_CHAR_WHITELIST
    # 1 = LSTM only (accuracy over speed)
    engine_mode: int = 1
    preserve_interword_spaces: bool = True
    max_workers: int = 16
    # True = a single failed recognition aborts the run
    strict_join: bool = False
    tesseract_cmd: Optional[str] = None
    timeout: int = 0  # Seconds per recognition, 0 = no limit


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    normalize: NormalizeConfig = field(default_factory=NormalizeConfig)
    variants: VariantConfig = field(default_factory=VariantConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)

    debug_mode: bool = False


@dataclass
class ExtractOptions:
    """Per-call options supplied by the caller."""
    deskew: bool = True
    normalize_text: bool = True
    show_all_variants: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("VARIANT_OCR_DEBUG", "").lower() == "true":
        config.debug_mode = True
        logger.setLevel(logging.DEBUG)

    min_width = os.environ.get("VARIANT_OCR_MIN_WIDTH")
    if min_width:
        config.normalize.min_width = int(min_width)

    max_workers = os.environ.get("VARIANT_OCR_MAX_WORKERS")
    if max_workers:
        config.ocr.max_workers = int(max_workers)

    if os.environ.get("VARIANT_OCR_STRICT_JOIN", "").lower() == "true":
        config.ocr.strict_join = True

    config.ocr.tesseract_cmd = os.environ.get("TESSERACT_CMD")

    return config
