"""
Result selection and text cleanup.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Dict, Any

from .dispatch import RecognitionAttempt

logger = logging.getLogger(__name__)

_ZERO_WIDTH_SPACE = re.compile('\u200b')
_HORIZONTAL_WHITESPACE = re.compile(r'[^\S\r\n]+')
_TRAILING_BEFORE_NEWLINE = re.compile(r'[ \t]+\n')
_EXCESS_NEWLINES = re.compile(r'\n{3,}')


@dataclass
class ExtractionResult:
    """Winning text of one extraction run."""
    text: str
    confidence: float
    variant_index: Optional[int] = None
    page_segmentation_mode: Optional[str] = None
    raw_text: Optional[str] = None  # Before normalization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "variant_index": self.variant_index,
            "page_segmentation_mode": self.page_segmentation_mode,
        }


def normalize_text(text: Optional[str]) -> Optional[str]:
    """
    Clean up recognized text.

    Removes zero-width spaces, collapses horizontal whitespace, drops
    trailing spaces before newlines, caps blank lines at one and trims
    every line and the whole text. Applying it twice changes nothing.

    Example: "a   b\\t\\n\\n\\n\\nc  " -> "a b\\n\\nc"
    """
    if not text:
        return text

    text = _ZERO_WIDTH_SPACE.sub('', text)
    text = _HORIZONTAL_WHITESPACE.sub(' ', text)
    text = _TRAILING_BEFORE_NEWLINE.sub('\n', text)
    # Lines are trimmed first so whitespace-only lines count as blank
    text = '\n'.join(line.strip() for line in text.split('\n'))
    text = _EXCESS_NEWLINES.sub('\n\n', text)
    return text.strip()


def select_best(
    attempts: Sequence[RecognitionAttempt],
    normalize: bool = False
) -> ExtractionResult:
    """
    Pick the attempt with the highest confidence.

    The sort is stable, so ties go to the attempt that comes first in
    generation order.

    Args:
        attempts: Attempts in generation order
        normalize: Apply normalize_text to the winning text

    Returns:
        ExtractionResult; empty with zero confidence if there are no attempts
    """
    if not attempts:
        return ExtractionResult(text="", confidence=0.0)

    ranked = sorted(attempts, key=lambda a: a.confidence, reverse=True)
    best = ranked[0]
    logger.debug(
        f"Selected variant {best.variant_index} psm {best.page_segmentation_mode} "
        f"from {len(attempts)} attempts"
    )

    text = best.text or ""
    if normalize:
        text = normalize_text(text)

    return ExtractionResult(
        text=text,
        confidence=best.confidence,
        variant_index=best.variant_index,
        page_segmentation_mode=best.page_segmentation_mode,
        raw_text=best.text
    )
