"""
Pipeline assembler for cadastral map OCR.

Provides:
- ExtractionResult: reconciled fragments plus a run summary
- CadastralPipeline: orchestration of preprocessing variants,
  concurrent recognition, fusion and dictionary correction
- Progress reporting and cancellation between stages
"""

import time
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..config import PipelineConfig, FragmentKind
from .correction import DictionaryCorrector
from .dictionary import CadastralDictionary, default_dictionary
from .fragments import DetectedFragment
from .io import ProcessingProgress, load_image, save_image
from .pixels import PixelBuffer
from .variants import ImageVariant, generate_variants

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ExtractionResult:
    """Result of processing one cadastral map image."""
    fragments: List[DetectedFragment] = field(default_factory=list)
    source_file: str = ""
    width: int = 0
    height: int = 0
    task_id: str = ""
    created_at: str = ""

    # Run summary
    variants_processed: int = 0
    engines: List[str] = field(default_factory=list)
    raw_fragments: int = 0
    recognition_calls: int = 0
    recognition_failures: int = 0
    recognition_timeouts: int = 0
    processing_time_seconds: float = 0.0

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def characters(self) -> List[DetectedFragment]:
        """Place-name fragments."""
        return [f for f in self.fragments if f.kind == FragmentKind.PLACE_NAME]

    @property
    def numbers(self) -> List[DetectedFragment]:
        """Survey-number fragments."""
        return [f for f in self.fragments if f.kind == FragmentKind.NUMBER]

    @property
    def mean_confidence(self) -> float:
        if not self.fragments:
            return 0.0
        return float(np.mean([f.confidence for f in self.fragments]))

    def summary(self) -> Dict[str, Any]:
        return {
            "place_names": len(self.characters),
            "numbers": len(self.numbers),
            "mean_confidence": round(self.mean_confidence, 2),
            "variants_processed": self.variants_processed,
            "engines": self.engines,
            "raw_fragments": self.raw_fragments,
            "recognition_calls": self.recognition_calls,
            "recognition_failures": self.recognition_failures,
            "recognition_timeouts": self.recognition_timeouts,
            "processing_time_seconds": round(self.processing_time_seconds, 2),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "image": {"width": self.width, "height": self.height},
            "fragments": [f.to_dict() for f in self.fragments],
            "summary": self.summary(),
        }


# ============================================================================
# Cadastral Pipeline
# ============================================================================

class CadastralPipeline:
    """
    Orchestrates cadastral map text extraction.

    Coordinates:
    - Variant generation (preprocessing profiles x tiles x rotations)
    - Concurrent recognition across every registered engine
    - Fusion of duplicate detections
    - Dictionary correction and final ranking
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        adapter=None,
        dictionary: Optional[CadastralDictionary] = None,
        output_dir: Optional[Union[str, Path]] = None
    ):
        self.config = config or PipelineConfig()
        self.dictionary = dictionary if dictionary is not None else default_dictionary()
        self.output_dir = Path(output_dir) if output_dir else None

        # Initialize components lazily
        self._adapter = adapter
        self._corrector = None

    @property
    def adapter(self):
        if self._adapter is None:
            from .ocr_text import RecognitionAdapter
            self._adapter = RecognitionAdapter.from_config(self.config.recognition)
        return self._adapter

    @property
    def corrector(self) -> DictionaryCorrector:
        if self._corrector is None:
            self._corrector = DictionaryCorrector(self.dictionary, self.config.reconcile)
        return self._corrector

    def process(
        self,
        image: Union[PixelBuffer, np.ndarray],
        source_file: str = "",
        progress: Optional[ProcessingProgress] = None
    ) -> ExtractionResult:
        """
        Extract place names and survey numbers from one image.

        Args:
            image: Decoded RGB/RGBA/grayscale image
            source_file: Optional source path recorded in the result
            progress: Optional observer; cancelling it aborts the run

        Returns:
            ExtractionResult with ranked fragments in original image coordinates

        Raises:
            InvalidImageError: If the image is zero-area or malformed
            ProcessingCancelled: If the progress observer was cancelled
        """
        start_time = time.time()
        buffer = image if isinstance(image, PixelBuffer) else PixelBuffer.from_array(image)
        progress = progress or ProcessingProgress()

        logger.info(f"Processing {source_file or 'image'} ({buffer.width}x{buffer.height})")

        # Step 1: Preprocess into variants
        progress.update("preprocessing")
        progress.check_cancelled()
        variants = generate_variants(buffer, self.config.profiles)
        progress.start(total_steps=len(variants) + 2, stage="preprocessing")
        progress.advance()
        progress.check_cancelled()

        # Step 2: Recognize every variant with every engine
        progress.update("recognition")
        adapter = self.adapter

        def on_variant_done(variant: ImageVariant):
            progress.advance()
            progress.check_cancelled()

        raw = adapter.recognize_all(variants, on_variant_done=on_variant_done)
        progress.check_cancelled()

        stats = adapter.stats
        for engine, count in stats.failed_engines.items():
            progress.add_error(f"Engine '{engine}' failed or timed out on {count} call(s)")

        # Step 3: Fuse, filter, correct and rank
        progress.update("reconciliation")
        fragments = self.corrector.reconcile(raw)
        progress.advance()

        result = ExtractionResult(
            fragments=fragments,
            source_file=source_file,
            width=buffer.width,
            height=buffer.height,
            variants_processed=len(variants),
            engines=list(getattr(adapter, "engine_names", [])),
            raw_fragments=len(raw),
            recognition_calls=stats.calls,
            recognition_failures=stats.failures,
            recognition_timeouts=stats.timeouts,
            processing_time_seconds=time.time() - start_time,
        )
        progress.update("done")

        if self.config.debug_mode:
            self._save_debug_image(buffer.data, result)

        logger.info(
            f"Extracted {len(result.characters)} place names and {len(result.numbers)} numbers "
            f"in {result.processing_time_seconds:.2f}s"
        )
        return result

    def process_file(
        self,
        image_path: Union[str, Path],
        progress: Optional[ProcessingProgress] = None
    ) -> ExtractionResult:
        """Load an image file and process it."""
        image = load_image(image_path)
        return self.process(image, source_file=str(image_path), progress=progress)

    def _save_debug_image(self, image: np.ndarray, result: ExtractionResult):
        """Save debug image with fragment bounding boxes."""
        if not self.output_dir:
            return

        from .images import draw_debug_image

        boxes = [f.bbox.to_tuple() for f in result.fragments]
        labels = [f"{f.text} ({f.confidence:.0f})" for f in result.fragments]
        colors = [(0, 0, 255) if f.is_number else (255, 0, 0) for f in result.fragments]
        debug_img = draw_debug_image(image, boxes, labels=labels, colors=colors)

        name = Path(result.source_file).stem if result.source_file else result.task_id
        debug_path = self.output_dir / "debug" / f"{name}_debug.png"
        save_image(debug_img, debug_path)
        logger.debug(f"Saved debug image: {debug_path}")
