"""
Text recognition adapter for cadastral maps.

Provides:
- Engine wrappers (Tesseract, PaddleOCR, EasyOCR) with a uniform
  recognize(image) -> [WordResult] interface, confidence on a 0-100 scale
- CallableEngine for plugging in any conforming function (sync or async)
- RecognitionAdapter: concurrent dispatch of every engine over every
  variant, with per-call timeouts and failure isolation
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from ..config import RecognitionConfig
from ..exceptions import RecognitionUnavailable
from .classifier import classify_word
from .fragments import DetectedFragment
from .pixels import PixelBuffer
from .variants import ImageVariant

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class WordResult:
    """Raw recognizer output for a single word or label."""
    text: str
    confidence: float  # 0-100
    bbox: Tuple[float, float, float, float]  # (x0, y0, x1, y1)


@dataclass
class RecognitionStats:
    """Counters for one adapter run."""
    calls: int = 0
    failures: int = 0
    timeouts: int = 0
    failed_engines: Dict[str, int] = field(default_factory=dict)

    def record_failure(self, engine: str, timed_out: bool = False):
        if timed_out:
            self.timeouts += 1
        else:
            self.failures += 1
        self.failed_engines[engine] = self.failed_engines.get(engine, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "timeouts": self.timeouts,
            "failed_engines": dict(self.failed_engines),
        }


def _polygon_to_bbox(points) -> Tuple[float, float, float, float]:
    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def _release_slot(call: "asyncio.Future", limiter: asyncio.Semaphore):
    limiter.release()
    if not call.cancelled():
        # Late failures of abandoned calls are discarded
        call.exception()


def _as_rgb(image: np.ndarray) -> np.ndarray:
    import cv2

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    return image


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine:
    """OCR using Tesseract (sparse-text mode suits scattered map labels)."""

    name = "tesseract"

    def __init__(
        self,
        language: str = "eng",
        psm: int = 11,
        whitelist: Optional[str] = None
    ):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise RecognitionUnavailable(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract",
                engine=self.name
            ) from e

        self.language = language
        self.config = f"--oem 3 --psm {psm}"
        if whitelist:
            # Spaces cannot be passed through the command line whitelist
            self.config += f" -c tessedit_char_whitelist={whitelist.replace(' ', '')}"

    def recognize(self, image: np.ndarray) -> List[WordResult]:
        """Recognize words using Tesseract."""
        data = self.pytesseract.image_to_data(
            image,
            lang=self.language,
            config=self.config,
            output_type=self.pytesseract.Output.DICT
        )

        words = []
        for i in range(len(data['text'])):
            text = str(data['text'][i]).strip()
            conf = float(data['conf'][i])

            if conf < 0 or not text:  # -1 means no valid confidence
                continue

            words.append(WordResult(
                text=text,
                confidence=conf,
                bbox=(
                    data['left'][i],
                    data['top'][i],
                    data['left'][i] + data['width'][i],
                    data['top'][i] + data['height'][i]
                )
            ))

        return words


# ============================================================================
# PaddleOCR Engine
# ============================================================================

class PaddleOCREngine:
    """OCR using PaddleOCR, with angle classification for rotated labels."""

    name = "paddleocr"

    def __init__(
        self,
        language: str = "en",
        use_gpu: bool = False,
        use_angle_cls: bool = True
    ):
        try:
            from paddleocr import PaddleOCR
            # Suppress PaddleOCR logging
            logging.getLogger('ppocr').setLevel(logging.WARNING)

            # Map common language codes
            lang_map = {"eng": "en", "chi_sim": "ch", "chi_tra": "chinese_cht"}
            paddle_lang = lang_map.get(language, language)

            try:
                self.ocr = PaddleOCR(
                    use_angle_cls=use_angle_cls,
                    lang=paddle_lang,
                    use_gpu=use_gpu
                )
            except (TypeError, ValueError):
                # Newer releases select the device themselves
                self.ocr = PaddleOCR(use_angle_cls=use_angle_cls, lang=paddle_lang)
        except ImportError as e:
            raise RecognitionUnavailable(
                "PaddleOCR not available. Install with: pip install paddleocr",
                engine=self.name
            ) from e
        except Exception as e:
            raise RecognitionUnavailable(f"Failed to initialize PaddleOCR: {e}", engine=self.name) from e

        self.language = language
        self.use_angle_cls = use_angle_cls

    def recognize(self, image: np.ndarray) -> List[WordResult]:
        """Recognize text lines using PaddleOCR."""
        result = self.ocr.ocr(_as_rgb(image), cls=self.use_angle_cls)

        if not result or not result[0]:
            return []

        words = []
        for line_data in result[0]:
            if len(line_data) >= 2:
                bbox_points = line_data[0]
                text, conf = line_data[1]
                words.append(WordResult(
                    text=text,
                    confidence=float(conf) * 100.0,
                    bbox=_polygon_to_bbox(bbox_points)
                ))

        return words


# ============================================================================
# EasyOCR Engine
# ============================================================================

class EasyOCREngine:
    """OCR using EasyOCR."""

    name = "easyocr"

    def __init__(
        self,
        language: str = "en",
        use_gpu: bool = False
    ):
        try:
            import easyocr

            # Map language codes
            lang_map = {"eng": "en", "chi_sim": "ch_sim", "chi_tra": "ch_tra"}
            easy_lang = lang_map.get(language, language)

            self.reader = easyocr.Reader(
                [easy_lang],
                gpu=use_gpu,
                verbose=False
            )
        except ImportError as e:
            raise RecognitionUnavailable(
                "EasyOCR not available. Install with: pip install easyocr",
                engine=self.name
            ) from e

        self.language = language

    def recognize(self, image: np.ndarray) -> List[WordResult]:
        """Recognize text using EasyOCR."""
        result = self.reader.readtext(image)

        return [
            WordResult(text=text, confidence=float(conf) * 100.0, bbox=_polygon_to_bbox(points))
            for points, text, conf in result
        ]


# ============================================================================
# Callable Engine
# ============================================================================

class CallableEngine:
    """
    Wrap any function `f(image) -> iterable of detections` as an engine.

    A detection may be a WordResult, a (text, confidence, bbox) tuple, or a
    dict with "text", "confidence" and "bbox" keys. Coroutine functions are
    awaited directly instead of being run in a worker thread.
    """

    def __init__(self, func: Callable, name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", "callable")
        self.is_async = inspect.iscoroutinefunction(func)

    @staticmethod
    def _normalize(detections: Iterable) -> List[WordResult]:
        words = []
        for item in detections or []:
            if isinstance(item, WordResult):
                words.append(item)
            elif isinstance(item, dict):
                words.append(WordResult(
                    text=str(item["text"]),
                    confidence=float(item["confidence"]),
                    bbox=tuple(item["bbox"])
                ))
            else:
                text, conf, bbox = item
                words.append(WordResult(text=str(text), confidence=float(conf), bbox=tuple(bbox)))
        return words

    def recognize(self, image: np.ndarray) -> List[WordResult]:
        return self._normalize(self.func(image))

    async def recognize_async(self, image: np.ndarray) -> List[WordResult]:
        return self._normalize(await self.func(image))


def create_engine(name: str, config: Optional[RecognitionConfig] = None):
    """
    Create a recognition engine by name.

    Raises:
        RecognitionUnavailable: If the backend is not installed
        ValueError: For unknown engine names
    """
    config = config or RecognitionConfig()
    if name == "tesseract":
        return TesseractEngine(
            language=config.tesseract_lang,
            psm=config.tesseract_psm,
            whitelist=config.tesseract_whitelist
        )
    elif name == "paddleocr":
        return PaddleOCREngine(
            language=config.tesseract_lang,
            use_gpu=config.use_gpu,
            use_angle_cls=config.paddle_use_angle_cls
        )
    elif name == "easyocr":
        return EasyOCREngine(language=config.tesseract_lang, use_gpu=config.use_gpu)
    else:
        raise ValueError(f"Unknown OCR engine: {name}")


# ============================================================================
# Recognition Adapter
# ============================================================================

class RecognitionAdapter:
    """
    Runs every registered engine over every variant concurrently.

    No engine is authoritative: each contributes its own fragments. A call
    that raises, or exceeds the timeout, is logged and contributes nothing;
    timed-out calls are retried at most once. A timed-out synchronous
    engine call cannot be interrupted and finishes in its worker thread,
    but its result is discarded. Such a call keeps its concurrency slot
    until the thread returns, so at most `max_concurrent_calls` backend
    calls are ever running, abandoned ones included.
    """

    def __init__(
        self,
        engines: Union[Dict[str, Any], List[Any]],
        timeout_seconds: float = 60.0,
        max_timeout_retries: int = 1,
        max_concurrent_calls: int = 4
    ):
        if isinstance(engines, dict):
            self.engines = dict(engines)
        else:
            self.engines = {}
            for engine in engines:
                if callable(engine) and not hasattr(engine, "recognize"):
                    engine = CallableEngine(engine)
                name = getattr(engine, "name", type(engine).__name__)
                if name in self.engines:
                    name = f"{name}_{len(self.engines)}"
                self.engines[name] = engine

        if not self.engines:
            raise RecognitionUnavailable("No recognition engine registered")

        self.timeout_seconds = timeout_seconds
        self.max_timeout_retries = max_timeout_retries
        self.max_concurrent_calls = max_concurrent_calls
        self.stats = RecognitionStats()

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> "RecognitionAdapter":
        """Create engines named in the configuration, skipping unavailable ones."""
        engines = {}
        for name in config.engines:
            try:
                engines[name] = create_engine(name, config)
                logger.info(f"Initialized OCR engine: {name}")
            except RecognitionUnavailable as e:
                logger.warning(f"Skipping engine {name}: {e}")

        if not engines:
            raise RecognitionUnavailable(
                f"None of the configured engines could be initialized: {config.engines}"
            )

        return cls(
            engines,
            timeout_seconds=config.timeout_seconds,
            max_timeout_retries=config.max_timeout_retries,
            max_concurrent_calls=config.max_concurrent_calls
        )

    @property
    def engine_names(self) -> List[str]:
        return list(self.engines)

    # ------------------------------------------------------------------
    # Single calls
    # ------------------------------------------------------------------

    async def _invoke(self, engine, image: np.ndarray) -> List[WordResult]:
        if getattr(engine, "is_async", False):
            return await engine.recognize_async(image)
        return await asyncio.to_thread(engine.recognize, image)

    async def _call_engine(
        self,
        name: str,
        engine,
        variant: ImageVariant,
        limiter: asyncio.Semaphore
    ) -> List[DetectedFragment]:
        attempts = 1 + self.max_timeout_retries

        for attempt in range(1, attempts + 1):
            self.stats.calls += 1
            await limiter.acquire()
            # The slot is freed when the call really ends, not when we stop waiting
            call = asyncio.ensure_future(self._invoke(engine, variant.buffer.data))
            call.add_done_callback(lambda done: _release_slot(done, limiter))
            try:
                words = await asyncio.wait_for(asyncio.shield(call), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                if getattr(engine, "is_async", False):
                    call.cancel()
                self.stats.record_failure(name, timed_out=True)
                logger.warning(
                    f"Engine '{name}' timed out after {self.timeout_seconds}s on "
                    f"{variant.label} (attempt {attempt}/{attempts})"
                )
                continue
            except Exception as e:
                self.stats.record_failure(name)
                logger.warning(f"Engine '{name}' failed on {variant.label}: {e}")
                return []

            return self._to_fragments(words, name, variant)

        return []

    def _to_fragments(
        self,
        words: List[WordResult],
        engine_name: str,
        variant: ImageVariant
    ) -> List[DetectedFragment]:
        fragments = []
        for word in words:
            fragment = classify_word(
                word.text,
                word.confidence,
                variant.map_bbox_tuple(word.bbox),
                source=f"{engine_name}:{variant.label}"
            )
            if fragment is not None:
                fragments.append(fragment)

        logger.debug(
            f"{engine_name} on {variant.label}: {len(words)} words, {len(fragments)} fragments"
        )
        return fragments

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def recognize_variant_async(
        self,
        variant: ImageVariant,
        limiter: Optional[asyncio.Semaphore] = None
    ) -> List[DetectedFragment]:
        """Run every engine on one variant; results in engine order."""
        limiter = limiter or asyncio.Semaphore(self.max_concurrent_calls)
        results = await asyncio.gather(*(
            self._call_engine(name, engine, variant, limiter)
            for name, engine in self.engines.items()
        ))
        return [fragment for engine_fragments in results for fragment in engine_fragments]

    async def recognize_all_async(
        self,
        variants: List[ImageVariant],
        on_variant_done: Optional[Callable[[ImageVariant], None]] = None
    ) -> List[DetectedFragment]:
        """
        Run every engine on every variant concurrently.

        Args:
            variants: Variants to recognize
            on_variant_done: Called after each variant's engines finish
                (in completion order); an exception raised from it aborts
                the batch

        Returns:
            All fragments, grouped in variant order
        """
        self.stats = RecognitionStats()
        limiter = asyncio.Semaphore(self.max_concurrent_calls)

        async def run(variant: ImageVariant) -> List[DetectedFragment]:
            fragments = await self.recognize_variant_async(variant, limiter)
            if on_variant_done is not None:
                on_variant_done(variant)
            return fragments

        results = await asyncio.gather(*(run(v) for v in variants))
        fragments = [fragment for variant_fragments in results for fragment in variant_fragments]

        logger.info(
            f"Recognition complete: {len(variants)} variants x {len(self.engines)} engines, "
            f"{len(fragments)} fragments, {self.stats.failures} failures, "
            f"{self.stats.timeouts} timeouts"
        )
        return fragments

    def recognize(self, image: Union[ImageVariant, PixelBuffer, np.ndarray]) -> List[DetectedFragment]:
        """Synchronous recognition of a single image or variant."""
        if isinstance(image, ImageVariant):
            variant = image
        else:
            buffer = image if isinstance(image, PixelBuffer) else PixelBuffer.from_array(image)
            variant = ImageVariant(buffer=buffer, tile_width=buffer.width, tile_height=buffer.height)
        return asyncio.run(self.recognize_all_async([variant]))

    def recognize_all(
        self,
        variants: List[ImageVariant],
        on_variant_done: Optional[Callable[[ImageVariant], None]] = None
    ) -> List[DetectedFragment]:
        """Synchronous wrapper around recognize_all_async."""
        return asyncio.run(self.recognize_all_async(variants, on_variant_done))
