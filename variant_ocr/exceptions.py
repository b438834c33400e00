"""
Exception classes for the multi-variant OCR pipeline.

All pipeline exceptions inherit from VariantOCRError, so callers can
catch every library error with a single clause.

Example:
    >>> try:
    ...     run = variant_ocr.extract("scan.png")
    ... except variant_ocr.NotReadyError:
    ...     pass  # wait for the engines and retry
    ... except variant_ocr.VariantOCRError as e:
    ...     print(f"Extraction failed: {e}")
"""

from typing import List


class VariantOCRError(Exception):
    """
    Base exception for all pipeline errors.
    """

    pass


class NotReadyError(VariantOCRError):
    """
    Raised when extraction is requested before the image-processing
    or OCR engine finished initializing.
    """

    pass


class RecipeError(VariantOCRError):
    """
    Raised when a variant recipe produces unusable output.

    The variant generator catches this and omits the variant.
    """

    pass


class DispatchError(VariantOCRError):
    """
    Raised when recognition requests fail under the strict join policy.

    Attributes:
        failures: DispatchFailure records for every failed request
    """

    def __init__(self, message: str, failures: List = None):
        super().__init__(message)
        self.failures = failures or []


class PipelineError(VariantOCRError):
    """
    Raised when an unexpected failure aborts an extraction run.

    The original exception is available as ``__cause__``.
    """

    pass


class ImageLoadError(PipelineError):
    """
    Raised when the input image cannot be found or decoded.
    """

    pass
