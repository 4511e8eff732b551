"""
Image preprocessing utilities for cadastral map OCR.

Provides:
- Grayscale conversion and black-text isolation
- Linear contrast stretch and tile-based CLAHE
- Median denoise and Gaussian blur (border pixels left untouched)
- Fixed, adaptive and Otsu binarization
- Foreground dilation to thicken thin strokes
- Upscaling, resizing and quarter-turn rotation
- Full preprocessing pipeline driven by PreprocessingConfig

Images are uint8 numpy arrays in RGB/RGBA order (or single channel).
Every stage returns a new array and returns zero-area input unchanged.
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple, Optional, Union, List

import numpy as np
import cv2

from ..config import PreprocessingConfig, ThresholdMode, MorphologyMode
from ..exceptions import ConfigurationError
from .pixels import PixelBuffer

logger = logging.getLogger(__name__)

# CLAHE tiles smaller than this in either dimension are left unmodified
MIN_CLAHE_TILE = 8


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PreprocessingResult:
    """Result of image preprocessing."""
    image: np.ndarray
    original_shape: Tuple[int, int]
    scale_x: float = 1.0
    scale_y: float = 1.0
    transformations: List[str] = field(default_factory=list)

    @property
    def buffer(self) -> PixelBuffer:
        return PixelBuffer(data=self.image)


# ============================================================================
# Colour Conversion
# ============================================================================

def to_grayscale(image: np.ndarray, keep_channels: bool = False) -> np.ndarray:
    """
    Convert image to grayscale using 0.299R + 0.587G + 0.114B.

    Args:
        image: Input image (RGB, RGBA or grayscale)
        keep_channels: Replicate the gray value into every colour channel
            (alpha is preserved) instead of returning a single channel

    Returns:
        Grayscale image
    """
    if image.size == 0:
        return image

    if image.ndim == 2:
        return image.copy()
    elif image.ndim == 3:
        channels = image.shape[2]
        if channels == 1:
            gray = image[:, :, 0].copy()
        elif channels == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        elif channels == 4:
            gray = cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
        else:
            raise ValueError(f"Unexpected image shape: {image.shape}")

        if keep_channels and channels in (3, 4):
            out = image.copy()
            out[:, :, :3] = gray[:, :, np.newaxis]
            return out
        return gray

    raise ValueError(f"Unexpected image shape: {image.shape}")


def isolate_black_text(image: np.ndarray, threshold: int = 80) -> np.ndarray:
    """
    Keep only near-black pixels: a pixel whose colour channels are all
    below `threshold` becomes 0, everything else 255.

    Args:
        image: Input image (colour or grayscale)
        threshold: Channel value below which a pixel counts as black

    Returns:
        Single-channel binary image
    """
    if image.size == 0:
        return image

    if image.ndim == 2:
        is_black = image < threshold
    else:
        is_black = np.all(image[:, :, :3] < threshold, axis=2)

    out = np.full(is_black.shape, 255, dtype=np.uint8)
    out[is_black] = 0
    logger.debug(f"Isolated black text (threshold={threshold}, {int(is_black.sum())} px kept)")
    return out


def invert(image: np.ndarray) -> np.ndarray:
    """Invert intensities (alpha channel untouched)."""
    if image.size == 0:
        return image
    out = image.copy()
    if out.ndim == 2:
        out = 255 - out
    else:
        out[:, :, :3] = 255 - out[:, :, :3]
    return out


# ============================================================================
# Contrast Enhancement
# ============================================================================

def enhance_contrast(image: np.ndarray, factor: float = 1.5) -> np.ndarray:
    """
    Linear contrast stretch around mid-gray:
    v' = clamp(0, 255, v * factor + 128 * (1 - factor)).

    Args:
        image: Input image
        factor: Contrast factor (1.0 = unchanged)

    Returns:
        Contrast-adjusted image
    """
    if image.size == 0 or factor == 1.0:
        return image.copy()

    intercept = 128.0 * (1.0 - factor)
    out = image.copy()
    color = out if out.ndim == 2 else out[:, :, :3]
    stretched = np.clip(np.rint(color.astype(np.float32) * factor + intercept), 0, 255)
    if out.ndim == 2:
        out = stretched.astype(np.uint8)
    else:
        out[:, :, :3] = stretched.astype(np.uint8)

    logger.debug(f"Applied linear contrast (factor={factor})")
    return out


def apply_clahe(
    image: np.ndarray,
    tile_size: int = 32,
    clip_limit: float = 3.0
) -> np.ndarray:
    """
    Tile-based contrast limited adaptive histogram equalization.

    Each tile gets its own 256-bin histogram. Bins above
    clip_limit * pixel_count / 256 are clipped and the clipped mass is
    spread uniformly over all bins; the tile is then remapped through its
    normalized CDF. Tiles smaller than 8 px in either dimension are left
    as they are. Tiles are not blended across boundaries.

    Args:
        image: Input image (converted to grayscale first)
        tile_size: Tile edge length in pixels
        clip_limit: Contrast limit factor

    Returns:
        Equalized grayscale image
    """
    if image.size == 0:
        return image

    gray = to_grayscale(image)
    out = gray.copy()
    height, width = gray.shape

    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tile = gray[y:y + tile_size, x:x + tile_size]
            tile_h, tile_w = tile.shape
            if tile_h < MIN_CLAHE_TILE or tile_w < MIN_CLAHE_TILE:
                continue

            pixel_count = tile_h * tile_w
            hist = np.bincount(tile.ravel(), minlength=256).astype(np.float64)

            clip = clip_limit * pixel_count / 256.0
            excess = np.maximum(hist - clip, 0.0).sum()
            hist = np.minimum(hist, clip) + excess / 256.0

            cdf = np.cumsum(hist)
            lut = np.clip(np.floor(cdf * 255.0 / pixel_count + 0.5), 0, 255).astype(np.uint8)
            out[y:y + tile_h, x:x + tile_w] = lut[tile]

    logger.debug(f"Applied CLAHE (tile={tile_size}, clip={clip_limit})")
    return out


# ============================================================================
# Noise Removal
# ============================================================================

def denoise(image: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """
    Remove salt-and-pepper noise with a median filter.

    Args:
        image: Input image
        kernel_size: Median window size (odd)

    Returns:
        Denoised image
    """
    if image.size == 0:
        return image
    denoised = cv2.medianBlur(image, kernel_size)
    logger.debug(f"Applied median denoise (k={kernel_size})")
    return denoised


def gaussian_kernel(radius: int) -> np.ndarray:
    """
    Normalized 2D Gaussian kernel of size (2r+1) x (2r+1), sigma = r / 2.
    """
    size = 2 * radius + 1
    k1d = cv2.getGaussianKernel(size, radius / 2.0, cv2.CV_64F)
    return k1d @ k1d.T


def gaussian_blur(image: np.ndarray, radius: int = 1) -> np.ndarray:
    """
    Gaussian blur with sigma = radius / 2 and a (2r+1) separable kernel.

    Pixels within `radius` of any edge are copied through unprocessed
    (no wrap or reflection).

    Args:
        image: Input image
        radius: Kernel radius in pixels (0 = no blur)

    Returns:
        Blurred image
    """
    if image.size == 0 or radius <= 0:
        return image.copy()

    height, width = image.shape[:2]
    if height <= 2 * radius or width <= 2 * radius:
        return image.copy()

    size = 2 * radius + 1
    k1d = cv2.getGaussianKernel(size, radius / 2.0, cv2.CV_64F)
    blurred = cv2.sepFilter2D(image.astype(np.float64), -1, k1d, k1d)

    out = image.copy()
    inner = blurred[radius:height - radius, radius:width - radius]
    out[radius:height - radius, radius:width - radius] = np.clip(np.rint(inner), 0, 255).astype(np.uint8)

    logger.debug(f"Applied Gaussian blur (radius={radius})")
    return out


# ============================================================================
# Binarization
# ============================================================================

def otsu_threshold(image: np.ndarray) -> int:
    """
    Compute the Otsu threshold of an image.

    For every candidate t, pixels <= t form the dark class and the rest the
    light class; t maximizing w0 * w1 * (mean0 - mean1)^2 wins, skipping
    any t that leaves a class empty. When several t share the maximum
    (a flat valley between two modes) the middle of that run is returned.

    Args:
        image: Input image (converted to grayscale first)

    Returns:
        Threshold in [0, 255]; 0 if the image has a single intensity
    """
    gray = to_grayscale(image)
    if gray.size == 0:
        return 0

    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    levels = np.arange(256, dtype=np.float64)

    count0 = np.cumsum(hist)
    count1 = total - count0
    sum0 = np.cumsum(levels * hist)
    sum1 = sum0[-1] - sum0

    valid = (count0 > 0) & (count1 > 0)
    if not valid.any():
        return 0

    variance = np.zeros(256, dtype=np.float64)
    c0 = count0[valid]
    c1 = count1[valid]
    mean0 = sum0[valid] / c0
    mean1 = sum1[valid] / c1
    variance[valid] = (c0 / total) * (c1 / total) * (mean0 - mean1) ** 2

    best = variance[valid].max()
    candidates = np.flatnonzero(valid & np.isclose(variance, best, rtol=1e-12, atol=0.0))
    threshold = int((candidates[0] + candidates[-1]) // 2)

    logger.debug(f"Otsu threshold: {threshold}")
    return threshold


def binarize(
    image: np.ndarray,
    method: str = "otsu",
    threshold: int = 127,
    block_size: int = 11,
    c: int = 10
) -> np.ndarray:
    """
    Convert image to binary (foreground text 0, background 255).

    Args:
        image: Input image (grayscale or colour)
        method: Binarization method ('otsu', 'adaptive', 'fixed')
        threshold: Fixed threshold value (only for method='fixed');
            pixels below it become foreground
        block_size: Local averaging window for method='adaptive' (odd)
        c: Offset below the local average for method='adaptive'

    Returns:
        Binary single-channel image
    """
    if image.size == 0:
        return image

    gray = to_grayscale(image)

    if method == ThresholdMode.OTSU:
        t = otsu_threshold(gray)
        foreground = gray <= t
    elif method == ThresholdMode.ADAPTIVE:
        local_mean = cv2.blur(
            gray.astype(np.float32),
            (block_size, block_size),
            borderType=cv2.BORDER_REPLICATE
        )
        foreground = gray.astype(np.float32) < (local_mean - c)
    elif method == ThresholdMode.FIXED:
        foreground = gray < threshold
    else:
        raise ValueError(f"Unknown binarization method: {method}")

    binary = np.full(gray.shape, 255, dtype=np.uint8)
    binary[foreground] = 0

    logger.debug(f"Applied {method} binarization")
    return binary


# ============================================================================
# Morphology
# ============================================================================

def dilate_foreground(image: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """
    Thicken black strokes: every foreground (value 0) pixel turns its
    kernel_size x kernel_size neighbourhood black.

    Args:
        image: Input image, ideally binary
        kernel_size: Neighbourhood size (3 = the 8 direct neighbours)

    Returns:
        Image with grown foreground
    """
    if image.size == 0:
        return image

    if image.ndim == 2:
        mask = image == 0
    else:
        mask = np.all(image[:, :, :3] == 0, axis=2)

    kernel = np.ones((kernel_size, kernel_size), dtype=np.uint8)
    grown = cv2.dilate(mask.astype(np.uint8), kernel) > 0

    out = image.copy()
    if out.ndim == 2:
        out[grown] = 0
    else:
        out[grown, :3] = 0

    logger.debug(f"Dilated foreground (k={kernel_size})")
    return out


# ============================================================================
# Geometry
# ============================================================================

def upscale(image: np.ndarray, factor: float) -> np.ndarray:
    """
    Scale an image by `factor` with bicubic interpolation
    (area interpolation when shrinking).
    """
    if image.size == 0 or factor == 1.0:
        return image.copy()

    height, width = image.shape[:2]
    new_width = max(1, int(round(width * factor)))
    new_height = max(1, int(round(height * factor)))
    interpolation = cv2.INTER_CUBIC if factor > 1 else cv2.INTER_AREA
    resized = cv2.resize(image, (new_width, new_height), interpolation=interpolation)

    logger.debug(f"Scaled image: {image.shape[:2]} -> {resized.shape[:2]} (factor={factor:.2f})")
    return resized


def resize_to_width(
    image: np.ndarray,
    width: int,
    height: Optional[int] = None
) -> np.ndarray:
    """
    Resize to a target width, keeping the aspect ratio unless a height is
    also given.
    """
    if image.size == 0:
        return image

    cur_h, cur_w = image.shape[:2]
    new_height = height or max(1, int(round(width * cur_h / cur_w)))
    if (width, new_height) == (cur_w, cur_h):
        return image.copy()

    interpolation = cv2.INTER_CUBIC if width > cur_w else cv2.INTER_AREA
    resized = cv2.resize(image, (width, new_height), interpolation=interpolation)

    logger.debug(f"Resized image: {image.shape[:2]} -> {resized.shape[:2]}")
    return resized


_ROTATE_CODES = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def rotate(image: np.ndarray, angle: int) -> np.ndarray:
    """
    Rotate clockwise by a multiple of 90 degrees. Width and height swap
    for 90 and 270.
    """
    if angle % 360 == 0 or image.size == 0:
        return image.copy()
    code = _ROTATE_CODES.get(angle % 360)
    if code is None:
        raise ConfigurationError(f"Rotation must be a multiple of 90 degrees, got {angle}")
    return cv2.rotate(image, code)


# ============================================================================
# Main Preprocessing Pipeline
# ============================================================================

def preprocess_image(
    image: Union[PixelBuffer, np.ndarray],
    config: PreprocessingConfig
) -> PreprocessingResult:
    """
    Apply the full preprocessing chain described by `config`.

    Tiling and rotation are not applied here; see variants.generate_variants.

    Args:
        image: Input image (PixelBuffer or uint8 array, RGB/RGBA/gray)
        config: Preprocessing configuration

    Returns:
        PreprocessingResult with the processed image and metadata

    Raises:
        InvalidImageError: If the image is zero-area or malformed
    """
    buffer = image if isinstance(image, PixelBuffer) else PixelBuffer.from_array(image)
    if buffer.is_empty:
        return PreprocessingResult(image=buffer.data, original_shape=buffer.shape)

    original_shape = buffer.shape
    processed = buffer.data.copy()
    transformations = []

    # 1. Geometry
    if config.resize_width is not None:
        processed = resize_to_width(processed, config.resize_width)
        transformations.append(f"resize_to_{config.resize_width}px")

    if config.upscale_factor != 1.0:
        processed = upscale(processed, config.upscale_factor)
        transformations.append(f"upscale_{config.upscale_factor:g}x")

    # 2. Colour
    if config.black_text_threshold is not None:
        processed = isolate_black_text(processed, config.black_text_threshold)
        transformations.append("black_text")

    if config.grayscale:
        processed = to_grayscale(processed)
        transformations.append("grayscale")

    # 3. Contrast
    if config.contrast_factor != 1.0:
        processed = enhance_contrast(processed, config.contrast_factor)
        transformations.append(f"contrast_{config.contrast_factor:g}")

    if config.clahe:
        processed = apply_clahe(processed, config.clahe_tile_size, config.clahe_clip_limit)
        transformations.append("clahe")

    # 4. Noise
    if config.denoise:
        processed = denoise(processed)
        transformations.append("denoise")

    if config.blur_radius > 0:
        processed = gaussian_blur(processed, config.blur_radius)
        transformations.append(f"blur_r{config.blur_radius}")

    # 5. Binarization
    if config.threshold_mode != ThresholdMode.NONE:
        processed = binarize(
            processed,
            method=config.threshold_mode,
            threshold=config.threshold_value,
            block_size=config.adaptive_block_size,
            c=config.adaptive_offset
        )
        transformations.append(f"binarize_{config.threshold_mode}")

    # 6. Morphology
    if config.morphology == MorphologyMode.DILATE:
        processed = dilate_foreground(processed, config.morphology_kernel_size)
        transformations.append("dilate")

    if config.invert:
        processed = invert(processed)
        transformations.append("invert")

    new_h, new_w = processed.shape[:2]
    logger.info(f"Preprocessing complete: {' -> '.join(transformations) or 'no changes'}")

    return PreprocessingResult(
        image=processed,
        original_shape=original_shape,
        scale_x=new_w / original_shape[1],
        scale_y=new_h / original_shape[0],
        transformations=transformations
    )


def apply(image: Union[PixelBuffer, np.ndarray], config: PreprocessingConfig) -> PixelBuffer:
    """Preprocess an image and return the resulting buffer."""
    return preprocess_image(image, config).buffer


# ============================================================================
# Debug Visualization
# ============================================================================

def draw_debug_image(
    image: np.ndarray,
    boxes: List[Tuple[int, int, int, int]],
    labels: Optional[List[str]] = None,
    colors: Optional[List[Tuple[int, int, int]]] = None,
    line_width: int = 2
) -> np.ndarray:
    """
    Draw bounding boxes on image for debugging.

    Args:
        image: Input image (RGB or grayscale)
        boxes: List of (x0, y0, x1, y1) tuples
        labels: Optional labels for each box
        colors: Optional colors for each box (RGB)
        line_width: Line thickness

    Returns:
        RGB image with drawn boxes
    """
    if image.ndim == 2:
        debug_img = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        debug_img = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    else:
        debug_img = image.copy()

    default_colors = [
        (255, 0, 0),
        (0, 160, 0),
        (0, 0, 255),
        (255, 128, 0),
    ]

    for i, box in enumerate(boxes):
        x0, y0, x1, y1 = (int(round(v)) for v in box)
        color = colors[i] if colors and i < len(colors) else default_colors[i % len(default_colors)]

        cv2.rectangle(debug_img, (x0, y0), (x1, y1), color, line_width)

        if labels and i < len(labels):
            cv2.putText(
                debug_img,
                labels[i],
                (x0, max(0, y0 - 5)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                color,
                1
            )

    return debug_img
