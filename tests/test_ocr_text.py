"""
Tests for the Tesseract engine adapter.
"""

import pytest
import numpy as np
import shlex
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def make_data(rows):
    """Build an image_to_data style dict from (block, par, line, text, conf) rows."""
    data = {"block_num": [], "par_num": [], "line_num": [], "text": [], "conf": []}
    for block, par, line, text, conf in rows:
        data["block_num"].append(block)
        data["par_num"].append(par)
        data["line_num"].append(line)
        data["text"].append(text)
        data["conf"].append(conf)
    return data


class TestTesseractConfig:
    """Test configuration string assembly."""

    def test_modes_and_engine(self):
        """PSM and OEM are set per request."""
        from variant_ocr.config import OCRConfig
        from variant_ocr.utils.ocr_text import build_tesseract_config

        cfg = build_tesseract_config("11", OCRConfig())

        assert "--psm 11" in cfg
        assert "--oem 1" in cfg
        assert "preserve_interword_spaces=1" in cfg

    def test_whitelist_survives_splitting(self):
        """pytesseract splits with shlex; the whitelist keeps its space."""
        from variant_ocr.config import OCRConfig, DEFAULT_CHAR_WHITELIST
        from variant_ocr.utils.ocr_text import build_tesseract_config

        args = shlex.split(build_tesseract_config("6", OCRConfig()))

        assert f"tessedit_char_whitelist={DEFAULT_CHAR_WHITELIST}" in args
        assert DEFAULT_CHAR_WHITELIST.endswith(" ")

    def test_whitelist_contents(self):
        """Letters, digits and the fixed punctuation set."""
        from variant_ocr.config import DEFAULT_CHAR_WHITELIST

        for ch in "AZaz09.,:-()/%&$ ":
            assert ch in DEFAULT_CHAR_WHITELIST
        assert "@" not in DEFAULT_CHAR_WHITELIST

    def test_whitelist_disabled(self):
        """An empty whitelist omits the option."""
        from variant_ocr.config import OCRConfig
        from variant_ocr.utils.ocr_text import build_tesseract_config

        cfg = build_tesseract_config("3", OCRConfig(char_whitelist="", preserve_interword_spaces=False))

        assert cfg == "--oem 1 --psm 3"


class TestParseTesseractData:
    """Test conversion of image_to_data output."""

    def test_lines_and_paragraphs(self):
        """Lines join with newlines, paragraphs with a blank line."""
        from variant_ocr.utils.ocr_text import parse_tesseract_data

        data = make_data([
            (1, 1, 1, "", -1),
            (1, 1, 1, "Hello", 90),
            (1, 1, 1, "World", 80),
            (1, 1, 2, "again", 70),
            (2, 1, 1, "Total", 60),
        ])

        result = parse_tesseract_data(data)

        assert result.text == "Hello World\nagain\n\nTotal"
        assert result.confidence == pytest.approx(75.0)
        assert len(result.lines) == 3
        assert result.lines[0].confidence == pytest.approx(85.0)

    def test_empty_data(self):
        """No words means empty text with zero confidence."""
        from variant_ocr.utils.ocr_text import parse_tesseract_data

        result = parse_tesseract_data(make_data([(1, 1, 1, " ", -1)]))

        assert result.text == ""
        assert result.confidence == 0.0

    def test_blank_words_skipped(self):
        """Whitespace-only words do not count toward confidence."""
        from variant_ocr.utils.ocr_text import parse_tesseract_data

        result = parse_tesseract_data(make_data([
            (1, 1, 1, "A", 50),
            (1, 1, 1, "  ", 95),
        ]))

        assert result.text == "A"
        assert result.confidence == pytest.approx(50.0)

    def test_string_confidences(self):
        """Older pytesseract versions report confidence as strings."""
        from variant_ocr.utils.ocr_text import parse_tesseract_data

        result = parse_tesseract_data(make_data([(1, 1, 1, "x", "42.5")]))

        assert result.confidence == pytest.approx(42.5)

    def test_metadata_and_dict(self):
        """Metadata passes through to_dict."""
        from variant_ocr.utils.ocr_text import parse_tesseract_data

        result = parse_tesseract_data(make_data([(1, 1, 1, "x", 10)]), metadata={"psm": "4"})

        data = result.to_dict()
        assert data["engine"] == "tesseract"
        assert data["metadata"] == {"psm": "4"}


class TestTesseractEngine:
    """Tests that need the tesseract binary."""

    @pytest.fixture
    def engine(self):
        from variant_ocr.exceptions import NotReadyError
        from variant_ocr.utils.ocr_text import TesseractEngine

        try:
            return TesseractEngine()
        except NotReadyError:
            pytest.skip("Tesseract not available")

    @pytest.fixture
    def text_png(self):
        """A clean line of printed text, PNG-encoded."""
        import cv2

        img = np.ones((120, 700), dtype=np.uint8) * 255
        cv2.putText(img, "Hello World 2024", (20, 80),
                    cv2.FONT_HERSHEY_SIMPLEX, 1.5, 0, 3)
        ok, buffer = cv2.imencode(".png", img)
        assert ok
        return buffer.tobytes()

    def test_recognize(self, engine, text_png):
        """Recognition returns text and a 0-100 confidence."""
        result = engine.recognize(text_png, "6")

        assert result.engine_used == "tesseract"
        assert 0.0 <= result.confidence <= 100.0
        assert result.metadata["psm"] == "6"

    def test_bad_png_raises(self, engine):
        """Undecodable input propagates as an error."""
        with pytest.raises(ValueError):
            engine.recognize(b"not a png", "6")

    def test_missing_binary_not_ready(self, monkeypatch):
        """A failing version probe reports NotReadyError."""
        from variant_ocr.exceptions import NotReadyError
        from variant_ocr.utils.ocr_text import TesseractEngine

        pytesseract = pytest.importorskip("pytesseract")

        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)

        with pytest.raises(NotReadyError):
            TesseractEngine()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
