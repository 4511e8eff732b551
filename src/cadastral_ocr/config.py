"""
Configuration and constants for the cadastral map OCR pipeline.

This module provides:
- Preprocessing configuration (immutable, validated on construction)
- Recognition backend configuration
- Result reconciliation (fusion + dictionary correction) settings
- Named preprocessing profiles for place-name text and survey numbers
- Environment overrides via get_config()
"""

import os
import logging
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger("cadastral_ocr")


# ============================================================================
# Enumerations
# ============================================================================

class FragmentKind:
    """Kinds of text fragment found on cadastral maps."""
    PLACE_NAME = "place_name"
    NUMBER = "number"

    ALL = (NUMBER, PLACE_NAME)


class ThresholdMode:
    """Binarization modes for the preprocessing pipeline."""
    NONE = "none"
    FIXED = "fixed"
    ADAPTIVE = "adaptive"
    OTSU = "otsu"

    ALL = (NONE, FIXED, ADAPTIVE, OTSU)


class MorphologyMode:
    """Morphological operations applied after thresholding."""
    NONE = "none"
    DILATE = "dilate"

    ALL = (NONE, DILATE)


ROTATION_ANGLES = (0, 90, 180, 270)


# ============================================================================
# Preprocessing Configuration
# ============================================================================

@dataclass(frozen=True)
class PreprocessingConfig:
    """
    Image preprocessing configuration.

    Stages run in this order: resize/upscale, black-text isolation,
    grayscale, contrast, CLAHE, denoise, blur, threshold, morphology,
    invert. Tiling and rotation then fan the result out into variants.
    """
    # Geometry
    resize_width: Optional[int] = None  # None = keep width
    upscale_factor: float = 1.0
    # Colour / intensity
    black_text_threshold: Optional[int] = None  # None = disabled
    grayscale: bool = True
    contrast_factor: float = 1.0  # 1.0 = unchanged
    clahe: bool = False
    clahe_tile_size: int = 32
    clahe_clip_limit: float = 3.0
    # Noise
    denoise: bool = False
    blur_radius: int = 0  # 0 = no blur
    # Binarization
    threshold_mode: str = ThresholdMode.NONE
    threshold_value: int = 127
    adaptive_block_size: int = 11
    adaptive_offset: int = 10
    # Morphology
    morphology: str = MorphologyMode.NONE
    morphology_kernel_size: int = 3
    invert: bool = False
    # Fan-out
    tile_size: Optional[int] = None  # None = no tiling
    tile_overlap: int = 100
    min_tile_size: int = 100
    rotation_angles: Tuple[int, ...] = (0,)

    def __post_init__(self):
        # Accept any iterable of angles but store an immutable tuple
        object.__setattr__(self, "rotation_angles", tuple(int(a) for a in self.rotation_angles))
        self._validate()

    def _validate(self):
        if self.resize_width is not None and self.resize_width <= 0:
            raise ConfigurationError(f"resize_width must be positive, got {self.resize_width}")
        if self.upscale_factor <= 0:
            raise ConfigurationError(f"upscale_factor must be positive, got {self.upscale_factor}")
        if self.black_text_threshold is not None and not 0 <= self.black_text_threshold <= 255:
            raise ConfigurationError(
                f"black_text_threshold must be in [0, 255], got {self.black_text_threshold}"
            )
        if self.contrast_factor < 0:
            raise ConfigurationError(f"contrast_factor must be >= 0, got {self.contrast_factor}")
        if self.clahe:
            if self.clahe_tile_size < 8:
                raise ConfigurationError(
                    f"clahe_tile_size must be at least 8 pixels, got {self.clahe_tile_size}"
                )
            if self.clahe_clip_limit <= 0:
                raise ConfigurationError(
                    f"clahe_clip_limit must be positive, got {self.clahe_clip_limit}"
                )
        if self.blur_radius < 0:
            raise ConfigurationError(f"blur_radius must be >= 0, got {self.blur_radius}")
        if self.threshold_mode not in ThresholdMode.ALL:
            raise ConfigurationError(
                f"threshold_mode must be one of {ThresholdMode.ALL}, got {self.threshold_mode!r}"
            )
        if not 0 <= self.threshold_value <= 255:
            raise ConfigurationError(f"threshold_value must be in [0, 255], got {self.threshold_value}")
        if self.adaptive_block_size < 3 or self.adaptive_block_size % 2 == 0:
            raise ConfigurationError(
                f"adaptive_block_size must be odd and >= 3, got {self.adaptive_block_size}"
            )
        if self.adaptive_offset < 0:
            raise ConfigurationError(f"adaptive_offset must be >= 0, got {self.adaptive_offset}")
        if self.morphology not in MorphologyMode.ALL:
            raise ConfigurationError(
                f"morphology must be one of {MorphologyMode.ALL}, got {self.morphology!r}"
            )
        if self.morphology_kernel_size < 3 or self.morphology_kernel_size % 2 == 0:
            raise ConfigurationError(
                f"morphology_kernel_size must be odd and >= 3, got {self.morphology_kernel_size}"
            )
        if self.tile_overlap < 0:
            raise ConfigurationError(f"tile_overlap must be >= 0, got {self.tile_overlap}")
        if self.min_tile_size < 1:
            raise ConfigurationError(f"min_tile_size must be >= 1, got {self.min_tile_size}")
        if self.tile_size is not None:
            if self.tile_size <= self.tile_overlap:
                raise ConfigurationError(
                    f"tile_size ({self.tile_size}) must be larger than "
                    f"tile_overlap ({self.tile_overlap})"
                )
            if self.tile_size < self.min_tile_size:
                raise ConfigurationError(
                    f"tile_size ({self.tile_size}) is below min_tile_size ({self.min_tile_size}); "
                    "every tile would be dropped"
                )
        if not self.rotation_angles:
            raise ConfigurationError("rotation_angles must contain at least one angle")
        for angle in self.rotation_angles:
            if angle not in ROTATION_ANGLES:
                raise ConfigurationError(
                    f"rotation angle must be one of {ROTATION_ANGLES}, got {angle}"
                )
        if len(set(self.rotation_angles)) != len(self.rotation_angles):
            raise ConfigurationError(f"duplicate rotation angles: {self.rotation_angles}")

    @classmethod
    def identity(cls) -> "PreprocessingConfig":
        """Configuration under which preprocessing is a no-op copy."""
        return cls(grayscale=False)

    @property
    def is_identity(self) -> bool:
        return self == PreprocessingConfig.identity()

    def with_options(self, **changes) -> "PreprocessingConfig":
        """Return a copy with the given fields changed (validated again)."""
        return replace(self, **changes)


# Place-name text: strong upscale, local contrast, adaptive binarization,
# thickened strokes.
TEXT_PROFILE = PreprocessingConfig(
    upscale_factor=2.8,
    grayscale=True,
    clahe=True,
    denoise=True,
    threshold_mode=ThresholdMode.ADAPTIVE,
    morphology=MorphologyMode.DILATE,
    tile_size=800,
    tile_overlap=100,
)

# Survey numbers: higher upscale and contrast, global Otsu, no blur or
# dilation so digit shapes stay sharp.
NUMBER_PROFILE = PreprocessingConfig(
    upscale_factor=3.0,
    grayscale=True,
    contrast_factor=2.0,
    clahe=True,
    threshold_mode=ThresholdMode.OTSU,
    tile_size=600,
    tile_overlap=100,
)


# ============================================================================
# Recognition Configuration
# ============================================================================

@dataclass
class RecognitionConfig:
    """Recognition backend configuration."""
    # Registered engines, invoked independently for every variant
    engines: List[str] = field(default_factory=lambda: ["tesseract"])
    # Tesseract configuration (PSM 11 = sparse text, suits map labels)
    tesseract_lang: str = "eng"
    tesseract_psm: int = 11
    tesseract_whitelist: str = (
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789,.-()/ "
    )
    # PaddleOCR angle classifier for rotated labels
    paddle_use_angle_cls: bool = True
    use_gpu: bool = False
    # Per-call deadline; a timed-out call contributes zero fragments
    timeout_seconds: float = 60.0
    # Timeouts are the only retried failure, at most once
    max_timeout_retries: int = 1
    # Engine calls allowed to run at the same time
    max_concurrent_calls: int = 4

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.max_concurrent_calls < 1:
            raise ConfigurationError(
                f"max_concurrent_calls must be >= 1, got {self.max_concurrent_calls}"
            )
        if self.max_timeout_retries not in (0, 1):
            raise ConfigurationError(
                f"max_timeout_retries must be 0 or 1, got {self.max_timeout_retries}"
            )


# ============================================================================
# Reconciliation Configuration
# ============================================================================

@dataclass
class ReconcileConfig:
    """Fusion and dictionary-correction settings."""
    # Fused fragments below this confidence are dropped before correction
    # (None = keep everything)
    min_confidence: Optional[float] = 85.0
    # Minimum normalized similarity for accepting a dictionary entry
    place_name_threshold: float = 0.65
    number_threshold: float = 0.8
    # Additive confidence boost on accepted corrections (capped at 100)
    place_name_boost: float = 25.0
    number_boost: float = 30.0

    def __post_init__(self):
        if self.min_confidence is not None and not 0 <= self.min_confidence <= 100:
            raise ConfigurationError(f"min_confidence must be in [0, 100], got {self.min_confidence}")
        for name in ("place_name_threshold", "number_threshold"):
            value = getattr(self, name)
            if not 0 <= value < 1:
                raise ConfigurationError(f"{name} must be in [0, 1), got {value}")
        for name in ("place_name_boost", "number_boost"):
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")

    def threshold_for(self, kind: str) -> float:
        return self.number_threshold if kind == FragmentKind.NUMBER else self.place_name_threshold

    def boost_for(self, kind: str) -> float:
        return self.number_boost if kind == FragmentKind.NUMBER else self.place_name_boost


# ============================================================================
# Pipeline Configuration
# ============================================================================

@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    profiles: Dict[str, PreprocessingConfig] = field(default_factory=lambda: {
        "text": TEXT_PROFILE,
        "number": NUMBER_PROFILE,
    })
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)

    # Global settings
    debug_mode: bool = False

    def __post_init__(self):
        if not self.profiles:
            raise ConfigurationError("at least one preprocessing profile is required")


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()
    overrides = []

    engines = os.environ.get("CADASTRAL_OCR_ENGINES", "")
    if engines.strip():
        config.recognition.engines = [e.strip() for e in engines.split(",") if e.strip()]
        overrides.append(f"engines={config.recognition.engines}")

    timeout = os.environ.get("CADASTRAL_OCR_TIMEOUT")
    if timeout:
        config.recognition = replace(config.recognition, timeout_seconds=float(timeout))
        overrides.append(f"timeout_seconds={timeout}")

    min_confidence = os.environ.get("CADASTRAL_OCR_MIN_CONFIDENCE")
    if min_confidence:
        config.reconcile = replace(config.reconcile, min_confidence=float(min_confidence))
        overrides.append(f"min_confidence={min_confidence}")

    if os.environ.get("CADASTRAL_OCR_USE_GPU", "").lower() == "true":
        config.recognition.use_gpu = True
        overrides.append("use_gpu=True")

    if os.environ.get("CADASTRAL_OCR_DEBUG", "").lower() == "true":
        config.debug_mode = True
        overrides.append("debug_mode=True")

    if overrides:
        logger.info(f"Configuration overrides from environment: {', '.join(overrides)}")

    return config
