"""
Text OCR engine adapter for the multi-variant OCR pipeline.

Provides:
- Tesseract recognition of one encoded image with one page
  segmentation mode
- Configuration string assembly (language, whitelist, engine mode)
- Line reconstruction and average word confidence
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
import numpy as np

from ..config import OCRConfig
from ..exceptions import NotReadyError

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class LineResult:
    """OCR result for a line of text."""
    text: str
    confidence: float
    block: int = 0
    paragraph: int = 0


@dataclass
class OCRResult:
    """OCR result for one image and one page segmentation mode."""
    text: str
    confidence: float  # 0-100, engine-defined
    lines: List[LineResult] = field(default_factory=list)
    engine_used: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "engine": self.engine_used,
            "metadata": self.metadata
        }


# ============================================================================
# Tesseract Engine
# ============================================================================

def build_tesseract_config(page_segmentation_mode: str, config: OCRConfig) -> str:
    """
    Build the Tesseract command-line configuration for one request.

    Args:
        page_segmentation_mode: Tesseract --psm value
        config: OCR configuration

    Returns:
        Configuration string for pytesseract
    """
    parts = [f"--oem {config.engine_mode}", f"--psm {page_segmentation_mode}"]
    if config.preserve_interword_spaces:
        parts.append("-c preserve_interword_spaces=1")
    if config.char_whitelist:
        # Quoted so the space in the whitelist survives shlex splitting
        parts.append(f'-c "tessedit_char_whitelist={config.char_whitelist}"')
    return " ".join(parts)


class TesseractEngine:
    """OCR using Tesseract."""

    name = "tesseract"

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()

        try:
            import pytesseract
            self.pytesseract = pytesseract

            if self.config.tesseract_cmd:
                pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

            # Test that tesseract is installed
            self.version = str(pytesseract.get_tesseract_version())

        except Exception as e:
            raise NotReadyError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            ) from e

        logger.debug(f"Tesseract {self.version} ready")

    def recognize(self, png: bytes, page_segmentation_mode: str) -> OCRResult:
        """
        Recognize text in a PNG-encoded image.

        Args:
            png: Encoded image owned by this request
            page_segmentation_mode: Tesseract --psm value

        Returns:
            OCRResult with text and mean word confidence (0-100)

        Raises:
            Exception: Any decoding or Tesseract failure propagates
        """
        import cv2

        image = cv2.imdecode(np.frombuffer(png, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise ValueError("Could not decode PNG data for recognition")

        data = self.pytesseract.image_to_data(
            image,
            lang=self.config.language,
            config=build_tesseract_config(page_segmentation_mode, self.config),
            output_type=self.pytesseract.Output.DICT,
            timeout=self.config.timeout
        )

        return parse_tesseract_data(data, engine_used=self.name, metadata={
            "psm": page_segmentation_mode,
        })


def parse_tesseract_data(
    data: Dict[str, List],
    engine_used: str = "tesseract",
    metadata: Optional[Dict[str, Any]] = None
) -> OCRResult:
    """
    Turn pytesseract ``image_to_data`` output into an OCRResult.

    Words are grouped into lines by (block, paragraph, line). Lines of
    the same paragraph are joined with a newline, paragraphs with a
    blank line. Confidence is the mean over words with a valid score.
    """
    lines = []
    confidences = []
    current_key = None
    current_words = []
    current_confs = []

    def flush():
        if current_words:
            lines.append(LineResult(
                text=' '.join(current_words),
                confidence=float(np.mean(current_confs)),
                block=current_key[0],
                paragraph=current_key[1]
            ))

    for i in range(len(data['text'])):
        text = str(data['text'][i]).strip()
        conf = float(data['conf'][i])

        if conf < 0 or not text:  # -1 means no valid confidence
            continue

        key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
        if key != current_key:
            flush()
            current_key = key
            current_words = []
            current_confs = []

        current_words.append(text)
        current_confs.append(conf)
        confidences.append(conf)

    flush()

    chunks = []
    previous = None
    for line in lines:
        paragraph = (line.block, line.paragraph)
        if previous is not None:
            chunks.append('\n\n' if paragraph != previous else '\n')
        chunks.append(line.text)
        previous = paragraph

    return OCRResult(
        text=''.join(chunks),
        confidence=float(np.mean(confidences)) if confidences else 0.0,
        lines=lines,
        engine_used=engine_used,
        metadata=metadata or {}
    )
