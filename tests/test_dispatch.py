"""
Tests for concurrent OCR dispatch.
"""

import pytest
import numpy as np
import sys
import threading
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeEngine:
    """Engine stub returning a fixed confidence per page segmentation mode."""

    def __init__(self, confidences=None, fail_modes=(), delay=None):
        self.confidences = confidences or {"6": 80.0, "3": 60.0, "4": 70.0, "11": 50.0}
        self.fail_modes = set(fail_modes)
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def recognize(self, png, page_segmentation_mode):
        from variant_ocr.utils.ocr_text import OCRResult

        with self._lock:
            self.calls.append((len(png), page_segmentation_mode))
        if self.delay:
            time.sleep(self.delay(page_segmentation_mode))
        if page_segmentation_mode in self.fail_modes:
            raise RuntimeError(f"psm {page_segmentation_mode} crashed")
        return OCRResult(
            text=f"text psm {page_segmentation_mode}",
            confidence=self.confidences[page_segmentation_mode]
        )


def make_variants(count=4):
    from variant_ocr.utils.variants import Variant

    return [
        Variant(i, f"v{i}", image=np.zeros((4, 4), np.uint8), png=b"x" * i)
        for i in range(1, count + 1)
    ]


class TestOCRDispatcher:
    """Test fan-out and fan-in."""

    def test_one_attempt_per_pair(self):
        """N variants and 4 modes give N x 4 attempts."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        engine = FakeEngine()
        attempts, failures = OCRDispatcher(engine).dispatch(make_variants(4))

        assert len(attempts) == 16
        assert failures == []
        assert len(engine.calls) == 16

    def test_generation_order_regardless_of_completion(self):
        """Attempts come back variant-major, then in mode order."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        # Earlier modes finish last
        delays = {"6": 0.09, "3": 0.06, "4": 0.03, "11": 0.0}
        engine = FakeEngine(delay=lambda psm: delays[psm])

        attempts, _ = OCRDispatcher(engine).dispatch(make_variants(2))

        assert [(a.variant_index, a.page_segmentation_mode) for a in attempts] == [
            (1, "6"), (1, "3"), (1, "4"), (1, "11"),
            (2, "6"), (2, "3"), (2, "4"), (2, "11"),
        ]

    def test_units_run_concurrently(self):
        """All 16 units are in flight at the same time."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        barrier = threading.Barrier(16, timeout=10)

        class BarrierEngine(FakeEngine):
            def recognize(self, png, page_segmentation_mode):
                barrier.wait()
                return super().recognize(png, page_segmentation_mode)

        attempts, failures = OCRDispatcher(BarrierEngine()).dispatch(make_variants(4))

        assert len(attempts) == 16
        assert failures == []

    def test_failed_units_excluded(self):
        """Best-effort collection drops failures and keeps the rest."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        attempts, failures = OCRDispatcher(FakeEngine(fail_modes={"4"})).dispatch(make_variants(3))

        assert len(attempts) == 9
        assert all(a.page_segmentation_mode != "4" for a in attempts)
        assert [(f.variant_index, f.page_segmentation_mode) for f in failures] == [
            (1, "4"), (2, "4"), (3, "4")
        ]
        assert "crashed" in failures[0].error

    def test_strict_join_raises(self):
        """Under the strict policy one failure aborts the batch."""
        from variant_ocr.exceptions import DispatchError
        from variant_ocr.utils.dispatch import OCRDispatcher

        engine = FakeEngine(fail_modes={"11"})

        with pytest.raises(DispatchError) as exc_info:
            OCRDispatcher(engine).dispatch(make_variants(2), strict=True)

        assert len(exc_info.value.failures) == 2
        # The barrier waits for every unit before raising
        assert len(engine.calls) == 8

    def test_strict_join_from_config(self):
        """The default policy comes from OCRConfig.strict_join."""
        from variant_ocr.config import OCRConfig
        from variant_ocr.exceptions import DispatchError
        from variant_ocr.utils.dispatch import OCRDispatcher

        dispatcher = OCRDispatcher(FakeEngine(fail_modes={"6"}), OCRConfig(strict_join=True))

        with pytest.raises(DispatchError):
            dispatcher.dispatch(make_variants(1))

    def test_no_variants(self):
        """Nothing to dispatch returns empty lists."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        engine = FakeEngine()
        assert OCRDispatcher(engine).dispatch([]) == ([], [])
        assert engine.calls == []

    def test_custom_modes(self):
        """The mode list is configurable."""
        from variant_ocr.config import OCRConfig
        from variant_ocr.utils.dispatch import OCRDispatcher

        dispatcher = OCRDispatcher(FakeEngine(), OCRConfig(page_segmentation_modes=("6", "11")))
        attempts, _ = dispatcher.dispatch(make_variants(3))

        assert len(attempts) == 6

    def test_each_unit_gets_its_variant_png(self):
        """Units receive the encoded image of their own variant."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        engine = FakeEngine()
        OCRDispatcher(engine).dispatch(make_variants(3))

        assert sorted(length for length, _ in engine.calls) == [1] * 4 + [2] * 4 + [3] * 4


class TestProgress:
    """Test progress reporting."""

    def test_progress_reaches_one(self):
        """The observer sees one update per unit, ending at 1.0."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        updates = []
        OCRDispatcher(FakeEngine()).dispatch(
            make_variants(2), progress=lambda status, p: updates.append((status, p))
        )

        assert len(updates) == 8
        assert updates[-1][1] == pytest.approx(1.0)
        assert [p for _, p in updates] == sorted(p for _, p in updates)

    def test_observer_errors_do_not_affect_dispatch(self):
        """A raising observer is logged and ignored."""
        from variant_ocr.utils.dispatch import OCRDispatcher

        def bad_observer(status, progress):
            raise RuntimeError("observer broke")

        attempts, failures = OCRDispatcher(FakeEngine()).dispatch(
            make_variants(2), progress=bad_observer
        )

        assert len(attempts) == 8
        assert failures == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
