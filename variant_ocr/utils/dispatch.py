"""
Concurrent OCR dispatch over (variant x page segmentation mode).

Every combination is an independent unit of work submitted to a thread
pool; the Tesseract calls run as separate processes, so the run takes
about as long as the slowest unit. Collection waits for every unit to
settle before returning.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import OCRConfig
from ..exceptions import DispatchError
from .variants import Variant

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class RecognitionAttempt:
    """One recognition of one variant with one page segmentation mode."""
    variant_index: int
    page_segmentation_mode: str
    text: str
    confidence: float


@dataclass(frozen=True)
class DispatchFailure:
    """A recognition request that raised instead of producing an attempt."""
    variant_index: int
    page_segmentation_mode: str
    error: str


# ============================================================================
# Dispatcher
# ============================================================================

class OCRDispatcher:
    """
    Fan recognition requests out over a thread pool and fan them back in.

    The engine is any object with ``recognize(png, page_segmentation_mode)``
    returning something with ``text`` and ``confidence`` attributes.
    """

    def __init__(self, engine, config: Optional[OCRConfig] = None):
        self.engine = engine
        self.config = config or OCRConfig()

    def plan(self, variants: Sequence[Variant]) -> List[Tuple[Variant, str]]:
        """List requests in generation order: variant-major, then mode."""
        return [
            (variant, psm)
            for variant in variants
            for psm in self.config.page_segmentation_modes
        ]

    def _run_unit(self, variant_index: int, png: bytes, psm: str) -> RecognitionAttempt:
        result = self.engine.recognize(png, psm)
        return RecognitionAttempt(
            variant_index=variant_index,
            page_segmentation_mode=psm,
            text=result.text or "",
            confidence=float(result.confidence or 0.0)
        )

    def dispatch(
        self,
        variants: Sequence[Variant],
        progress: Optional[ProgressCallback] = None,
        strict: Optional[bool] = None
    ) -> Tuple[List[RecognitionAttempt], List[DispatchFailure]]:
        """
        Run every (variant, mode) request concurrently.

        Args:
            variants: Variants to recognize
            progress: Observer called with (status, fraction complete)
            strict: Raise if any request failed; default config.strict_join

        Returns:
            Tuple of (attempts in generation order, failures)

        Raises:
            DispatchError: Under the strict policy, after all units settle
        """
        strict = self.config.strict_join if strict is None else strict
        requests = self.plan(variants)
        if not requests:
            return [], []

        total = len(requests)
        workers = max(1, min(total, self.config.max_workers))
        logger.info(f"Dispatching {total} recognition requests on {workers} workers")

        outcomes = [None] * total
        failures = []

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ocr") as executor:
            # Each unit gets its own copy of the encoded image
            futures = {
                executor.submit(self._run_unit, variant.index, bytes(variant.png), psm): position
                for position, (variant, psm) in enumerate(requests)
            }

            done = 0
            for future in as_completed(futures):
                position = futures[future]
                variant, psm = requests[position]
                try:
                    outcomes[position] = future.result()
                except Exception as e:
                    logger.warning(f"Recognition failed for variant {variant.index} psm {psm}: {e}")
                    failures.append(DispatchFailure(variant.index, psm, str(e)))

                done += 1
                self._notify(progress, "recognizing text", done / total)

        failures.sort(key=lambda f: (f.variant_index, self._mode_rank(f.page_segmentation_mode)))

        if strict and failures:
            raise DispatchError(
                f"{len(failures)} of {total} recognition requests failed", failures
            )

        attempts = [attempt for attempt in outcomes if attempt is not None]
        return attempts, failures

    def _mode_rank(self, psm: str) -> int:
        modes = list(self.config.page_segmentation_modes)
        return modes.index(psm) if psm in modes else len(modes)

    @staticmethod
    def _notify(progress: Optional[ProgressCallback], status: str, fraction: float):
        if progress is None:
            return
        try:
            progress(status, fraction)
        except Exception as e:
            logger.warning(f"Progress observer raised: {e}")
