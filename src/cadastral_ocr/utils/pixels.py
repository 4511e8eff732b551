"""
Pixel buffer abstraction for the preprocessing pipeline.

A PixelBuffer owns one uint8 raster, either single-channel (H, W) or
multi-channel (H, W, C) in RGB/RGBA order. Pipeline stages never share a
buffer mutably: every transform returns a buffer with its own array.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..exceptions import InvalidImageError

logger = logging.getLogger(__name__)


@dataclass
class PixelBuffer:
    """An owned 8-bit raster."""
    data: np.ndarray

    def __post_init__(self):
        if not isinstance(self.data, np.ndarray):
            raise InvalidImageError(f"Pixel data must be a numpy array, got {type(self.data).__name__}")
        if self.data.ndim not in (2, 3):
            raise InvalidImageError(f"Unexpected image shape: {self.data.shape}")
        if self.data.ndim == 3 and self.data.shape[2] not in (1, 3, 4):
            raise InvalidImageError(f"Unsupported channel count: {self.data.shape[2]}")
        if self.data.dtype != np.uint8:
            raise InvalidImageError(f"Pixel data must be uint8, got {self.data.dtype}")

    @classmethod
    def from_array(cls, array: np.ndarray, copy: bool = True) -> "PixelBuffer":
        """
        Wrap a decoded image, rejecting zero-area input.

        Args:
            array: uint8 array of shape (H, W) or (H, W, C)
            copy: Take a private copy so the caller's array is never aliased

        Raises:
            InvalidImageError: If the array is empty or malformed
        """
        if not isinstance(array, np.ndarray):
            raise InvalidImageError(f"Expected a numpy array, got {type(array).__name__}")
        if array.size == 0 or array.ndim < 2 or array.shape[0] == 0 or array.shape[1] == 0:
            raise InvalidImageError(f"Image has zero area: shape {array.shape}")
        data = np.array(array, copy=True) if copy else array
        if data.ndim == 3 and data.shape[2] == 1:
            data = data[:, :, 0]
        return cls(data=data)

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.data.ndim == 2 else int(self.data.shape[2])

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def is_empty(self) -> bool:
        return self.data.size == 0

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(data=self.data.copy())

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))
