"""
Extraction pipeline orchestration.

Provides:
- Engine readiness tracking (image processing, then OCR)
- The extraction run: load -> normalize -> variants -> dispatch -> select
- Variant buffer ownership across a run
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .config import PipelineConfig, ExtractOptions, get_config
from .exceptions import NotReadyError, PipelineError, VariantOCRError
from .utils.io import ImageResource, load_image
from .utils.images import normalize_geometry
from .utils.variants import Variant, generate_variants
from .utils.dispatch import OCRDispatcher, RecognitionAttempt, DispatchFailure, ProgressCallback
from .utils.selection import ExtractionResult, select_best

logger = logging.getLogger(__name__)


# ============================================================================
# Readiness
# ============================================================================

class ReadinessState(Enum):
    PENDING = "pending"
    IMAGING_READY = "imaging_ready"
    READY = "ready"
    FAILED = "failed"


class EngineReadiness:
    """
    Two-phase initialization of the engines the pipeline depends on.

    Phase 1 checks OpenCV, phase 2 creates the OCR engine. Extraction
    is allowed only once both phases succeeded.
    """

    def __init__(self, engine_factory: Callable[[], Any]):
        self._engine_factory = engine_factory
        self.state = ReadinessState.PENDING
        self.engine = None
        self.error: Optional[str] = None
        # Phase to resume from when initialize() is retried after FAILED
        self._resume_state = ReadinessState.PENDING

    @property
    def is_ready(self) -> bool:
        return self.state is ReadinessState.READY

    def initialize(self) -> bool:
        """
        Run the remaining phases. Returns the combined ready state.

        After a failure, calling again retries from the failed phase.
        """
        if self.state is ReadinessState.FAILED:
            logger.info(f"Retrying initialization after failure: {self.error}")
            self.state = self._resume_state
            self.error = None

        if self.state is ReadinessState.PENDING:
            try:
                import cv2
                cv2.cvtColor(np.zeros((2, 2, 3), dtype=np.uint8), cv2.COLOR_BGR2GRAY)
            except Exception as e:
                self._fail(f"OpenCV not available: {e}")
                return False
            self.state = self._resume_state = ReadinessState.IMAGING_READY
            logger.info("OpenCV loaded")

        if self.state is ReadinessState.IMAGING_READY:
            try:
                self.engine = self._engine_factory()
            except Exception as e:
                self._fail(f"OCR engine not available: {e}")
                return False
            self.state = ReadinessState.READY
            logger.info("OCR engine ready")

        return self.is_ready

    def require_ready(self):
        """Raise NotReadyError unless both phases completed."""
        if self.is_ready:
            return
        if self.state is ReadinessState.FAILED:
            raise NotReadyError(f"Engines failed to initialize: {self.error}")
        missing = "OpenCV" if self.state is ReadinessState.PENDING else "OCR engine"
        raise NotReadyError(f"{missing} not ready yet, wait a moment and try again")

    def _fail(self, message: str):
        self.state = ReadinessState.FAILED
        self.error = message
        logger.error(message)


# ============================================================================
# Run Result
# ============================================================================

@dataclass
class ExtractionRun:
    """Everything one extraction run hands back to the caller."""
    result: ExtractionResult
    variants: List[Variant] = field(default_factory=list)
    attempts: List[RecognitionAttempt] = field(default_factory=list)
    failures: List[DispatchFailure] = field(default_factory=list)
    skew_angle: float = 0.0
    scale: float = 1.0
    elapsed_seconds: float = 0.0

    @property
    def text(self) -> str:
        return self.result.text

    @property
    def confidence(self) -> float:
        return self.result.confidence

    @property
    def best_variant(self) -> Optional[Variant]:
        for variant in self.variants:
            if variant.index == self.result.variant_index:
                return variant
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "variants": [v.to_dict() for v in self.variants],
            "attempts": len(self.attempts),
            "failures": [f.__dict__ for f in self.failures],
            "skew_angle": self.skew_angle,
            "scale": self.scale,
            "elapsed_seconds": self.elapsed_seconds,
        }


# ============================================================================
# Pipeline
# ============================================================================

class OCRPipeline:
    """
    Multi-variant OCR extraction.

    Example:
        >>> pipeline = OCRPipeline()
        >>> pipeline.initialize()
        >>> run = pipeline.extract("receipt.jpg")
        >>> print(run.text, run.confidence)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        engine: Any = None
    ):
        self.config = config or get_config()

        def factory():
            if engine is not None:
                return engine
            from .utils.ocr_text import TesseractEngine
            return TesseractEngine(self.config.ocr)

        self.readiness = EngineReadiness(factory)

    @property
    def is_ready(self) -> bool:
        return self.readiness.is_ready

    def initialize(self) -> bool:
        return self.readiness.initialize()

    def extract(
        self,
        image: ImageResource,
        options: Optional[ExtractOptions] = None,
        progress: Optional[ProgressCallback] = None
    ) -> ExtractionRun:
        """
        Extract text from an image.

        Args:
            image: File path, encoded bytes or decoded array
            options: Deskew / text normalization / variant display options
            progress: Observer called with (status, fraction complete)

        Returns:
            ExtractionRun with the winning result and the variants kept
            for display (all of them if show_all_variants, else the winner)

        Raises:
            NotReadyError: Engines are not initialized
            DispatchError: A recognition failed under the strict join policy
            PipelineError: Any other failure; no partial result is returned
        """
        self.readiness.require_ready()
        options = options or ExtractOptions()
        start_time = time.time()

        variants: List[Variant] = []
        keep: List[Variant] = []
        try:
            img = load_image(image)
            normalized = normalize_geometry(
                img, deskew_enabled=options.deskew, config=self.config.normalize
            )
            del img

            variants = generate_variants(normalized.image, self.config.variants)

            dispatcher = OCRDispatcher(self.readiness.engine, self.config.ocr)
            logger.info(f"Running OCR on {len(variants)} variants")
            attempts, failures = dispatcher.dispatch(variants, progress=progress)

            result = select_best(attempts, normalize=options.normalize_text)

            if options.show_all_variants:
                keep = list(variants)
            else:
                keep = [v for v in variants if v.index == result.variant_index]

        except VariantOCRError:
            raise
        except Exception as e:
            logger.error(f"Error during processing: {e}")
            raise PipelineError(f"Error during processing: {e}") from e
        finally:
            kept = {v.index for v in keep}
            for variant in variants:
                if variant.index not in kept and not variant.released:
                    variant.release()

        if result.variant_index is None:
            logger.info("Best result: no text recognized")
        else:
            logger.info(
                f"Best result: variant={result.variant_index} "
                f"psm={result.page_segmentation_mode} conf={result.confidence:.2f}"
            )

        return ExtractionRun(
            result=result,
            variants=keep,
            attempts=attempts,
            failures=failures,
            skew_angle=normalized.skew_angle,
            scale=normalized.scale,
            elapsed_seconds=time.time() - start_time
        )


def extract(
    image: ImageResource,
    options: Optional[ExtractOptions] = None,
    config: Optional[PipelineConfig] = None,
    engine: Any = None,
    progress: Optional[ProgressCallback] = None
) -> ExtractionRun:
    """
    Run one extraction with a freshly initialized pipeline.

    Raises:
        NotReadyError: If OpenCV or the OCR engine cannot be initialized
    """
    pipeline = OCRPipeline(config=config, engine=engine)
    pipeline.initialize()
    return pipeline.extract(image, options=options, progress=progress)
