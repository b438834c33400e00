"""
Multi-Variant OCR Pipeline
==========================

Extracts text from a single image by recognizing several processed
versions of it and keeping the most confident result.

Main components:
- Geometry normalization (upscale, grayscale, deskew)
- Variant generation (four binarization recipes)
- Concurrent OCR over every (variant, page segmentation mode) pair
- Confidence-based selection and text cleanup
"""

from .config import ExtractOptions, PipelineConfig, get_config
from .exceptions import (
    VariantOCRError,
    NotReadyError,
    RecipeError,
    DispatchError,
    PipelineError,
    ImageLoadError,
)
from .pipeline import OCRPipeline, ExtractionRun, extract
from .utils.selection import ExtractionResult, normalize_text
from .utils.io import save_text

__version__ = "1.0.0"

__all__ = [
    "ExtractOptions", "PipelineConfig", "get_config",
    "VariantOCRError", "NotReadyError", "RecipeError", "DispatchError",
    "PipelineError", "ImageLoadError",
    "OCRPipeline", "ExtractionRun", "extract",
    "ExtractionResult", "normalize_text", "save_text",
]
