"""
Utility modules for the multi-variant OCR pipeline.
"""

from .io import load_image, to_uint8, encode_png, save_text, save_image
from .images import normalize_geometry, to_grayscale, upscale_to_min_width, estimate_skew_angle, rotate_image, deskew
from .variants import Variant, generate_variants, VARIANT_RECIPES
from .ocr_text import TesseractEngine, OCRResult
from .dispatch import OCRDispatcher, RecognitionAttempt, DispatchFailure
from .selection import ExtractionResult, select_best, normalize_text

__all__ = [
    # IO
    "load_image", "to_uint8", "encode_png", "save_text", "save_image",
    # Images
    "normalize_geometry", "to_grayscale", "upscale_to_min_width",
    "estimate_skew_angle", "rotate_image", "deskew",
    # Variants
    "Variant", "generate_variants", "VARIANT_RECIPES",
    # OCR
    "TesseractEngine", "OCRResult",
    "OCRDispatcher", "RecognitionAttempt", "DispatchFailure",
    # Selection
    "ExtractionResult", "select_best", "normalize_text",
]
