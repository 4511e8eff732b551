"""
Variant generation: fan a preprocessed image out into tiles and rotations.

Provides:
- ImageVariant: one buffer sent to recognition, with its provenance
- tile_image: overlapping fixed-size windows over a large scan
- generate_variants: profiles x tiles x rotation angles
- Mapping of variant-local boxes back to original image coordinates
"""

import math
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple, Union

import numpy as np

from ..config import PreprocessingConfig
from .fragments import BoundingBox
from .images import preprocess_image, rotate
from .pixels import PixelBuffer

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class Tile:
    """A window cut from a larger image."""
    image: np.ndarray
    x: int
    y: int

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


@dataclass
class ImageVariant:
    """
    One preprocessed, tiled and rotated view of the input image.

    origin_x/origin_y locate the tile in the preprocessed image, and
    scale_x/scale_y relate the preprocessed image to the original.
    """
    buffer: PixelBuffer
    profile: str = "default"
    angle: int = 0
    origin_x: int = 0
    origin_y: int = 0
    tile_width: int = 0
    tile_height: int = 0
    scale_x: float = 1.0
    scale_y: float = 1.0

    @property
    def label(self) -> str:
        return f"{self.profile}@{self.origin_x},{self.origin_y}/{self.angle}"

    def map_bbox(self, bbox: BoundingBox) -> BoundingBox:
        """Map a box in this variant's pixel space to original image space."""
        return map_bbox_to_original(
            bbox,
            angle=self.angle,
            tile_size=(self.tile_width, self.tile_height),
            origin=(self.origin_x, self.origin_y),
            scale=(self.scale_x, self.scale_y),
        )

    def map_bbox_tuple(self, box: Tuple[float, float, float, float]) -> Tuple[float, float, float, float]:
        return self.map_bbox(BoundingBox.from_tuple(box)).to_tuple()


# ============================================================================
# Tiling
# ============================================================================

def tile_image(
    image: np.ndarray,
    tile_size: int = 800,
    overlap: int = 100,
    min_size: int = 100
) -> List[Tile]:
    """
    Split an image into overlapping windows.

    Windows start every (tile_size - overlap) pixels; there are
    ceil(W / step) x ceil(H / step) of them. Edge windows are cut short by
    the image border, and any window narrower or shorter than `min_size`
    is dropped.

    Args:
        image: Input image
        tile_size: Window edge length
        overlap: Overlap between neighbouring windows
        min_size: Minimum usable window edge

    Returns:
        Tiles in row-major order
    """
    height, width = image.shape[:2]
    if height == 0 or width == 0:
        return []

    step = tile_size - overlap
    cols = math.ceil(width / step)
    rows = math.ceil(height / step)

    tiles = []
    for row in range(rows):
        y = row * step
        tile_h = min(tile_size, height - y)
        for col in range(cols):
            x = col * step
            tile_w = min(tile_size, width - x)
            if tile_w < min_size or tile_h < min_size:
                logger.debug(f"Dropping {tile_w}x{tile_h} tile at ({x}, {y})")
                continue
            tiles.append(Tile(image=image[y:y + tile_h, x:x + tile_w].copy(), x=x, y=y))

    logger.debug(f"Tiled {width}x{height} image into {len(tiles)} tiles ({cols}x{rows} grid)")
    return tiles


# ============================================================================
# Coordinate Mapping
# ============================================================================

def _unrotate_point(x: float, y: float, angle: int, width: int, height: int) -> Tuple[float, float]:
    """Undo a clockwise rotation of a (width x height) image for one point."""
    if angle == 90:
        return y, height - x
    if angle == 180:
        return width - x, height - y
    if angle == 270:
        return width - y, x
    return x, y


def map_bbox_to_original(
    bbox: BoundingBox,
    angle: int = 0,
    tile_size: Tuple[int, int] = (0, 0),
    origin: Tuple[int, int] = (0, 0),
    scale: Tuple[float, float] = (1.0, 1.0)
) -> BoundingBox:
    """
    Map a box from a rotated tile back into original image coordinates.

    Args:
        bbox: Box in the rotated tile's pixel space
        angle: Clockwise rotation applied to the tile
        tile_size: (width, height) of the tile before rotation
        origin: (x, y) of the tile in the preprocessed image
        scale: (sx, sy) of the preprocessed image relative to the original

    Returns:
        Box in original image coordinates
    """
    width, height = tile_size
    ax, ay = _unrotate_point(bbox.x0, bbox.y0, angle, width, height)
    bx, by = _unrotate_point(bbox.x1, bbox.y1, angle, width, height)

    ox, oy = origin
    sx, sy = scale
    return BoundingBox.from_tuple((
        (ax + ox) / sx,
        (ay + oy) / sy,
        (bx + ox) / sx,
        (by + oy) / sy,
    ))


# ============================================================================
# Variant Generation
# ============================================================================

def iter_variants(
    image: Union[PixelBuffer, np.ndarray],
    config: PreprocessingConfig,
    profile: str = "default"
) -> Iterator[ImageVariant]:
    """
    Yield the variants of one profile: preprocess, tile, then rotate.
    """
    result = preprocess_image(image, config)
    processed = result.image

    tiles = []
    if config.tile_size is not None:
        tiles = tile_image(processed, config.tile_size, config.tile_overlap, config.min_tile_size)
        if not tiles:
            height, width = processed.shape[:2]
            logger.info(
                f"Profile '{profile}': {width}x{height} image is below the "
                f"{config.min_tile_size}px tile minimum, recognizing it whole"
            )
    if not tiles:
        tiles = [Tile(image=processed, x=0, y=0)]

    for tile in tiles:
        for angle in config.rotation_angles:
            yield ImageVariant(
                buffer=PixelBuffer(data=rotate(tile.image, angle)),
                profile=profile,
                angle=angle,
                origin_x=tile.x,
                origin_y=tile.y,
                tile_width=tile.width,
                tile_height=tile.height,
                scale_x=result.scale_x,
                scale_y=result.scale_y,
            )


def generate_variants(
    image: Union[PixelBuffer, np.ndarray],
    profiles: Dict[str, PreprocessingConfig]
) -> List[ImageVariant]:
    """
    Produce every variant for every preprocessing profile.

    Args:
        image: Input image
        profiles: Named preprocessing configurations

    Returns:
        Variants ordered by profile, then tile, then angle
    """
    buffer = image if isinstance(image, PixelBuffer) else PixelBuffer.from_array(image)

    variants = []
    for name, config in profiles.items():
        profile_variants = list(iter_variants(buffer, config, profile=name))
        logger.info(f"Profile '{name}': {len(profile_variants)} variants")
        variants.extend(profile_variants)
    return variants
