"""
I/O utilities for the cadastral OCR pipeline.

Handles:
- Image loading (decoded to RGB/RGBA) and validation
- Image saving
- JSON serialization
- Directory management and input type detection
- Progress tracking with cancellation
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union
from dataclasses import dataclass, field, asdict

import numpy as np

from ..exceptions import InvalidImageError, ProcessingCancelled

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp')


# ============================================================================
# Image Loading
# ============================================================================

def load_image(
    image_path: Union[str, Path],
    grayscale: bool = False
) -> np.ndarray:
    """
    Load an image from file.

    Args:
        image_path: Path to the image file
        grayscale: If True, load as grayscale

    Returns:
        uint8 array in RGB (or RGBA) order, or single channel if grayscale

    Raises:
        FileNotFoundError: If image file doesn't exist
        InvalidImageError: If image cannot be decoded or has zero area
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_UNCHANGED
    img = cv2.imread(str(image_path), flag)

    if img is None or img.size == 0:
        raise InvalidImageError(f"Could not decode image: {image_path}")

    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        raise InvalidImageError(f"Unsupported pixel type {img.dtype}: {image_path}")

    # OpenCV decodes to BGR(A)
    if img.ndim == 3:
        if img.shape[2] == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        elif img.shape[2] == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def list_image_files(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS,
    sort: bool = True
) -> List[Path]:
    """List image files directly inside a folder."""
    folder_path = Path(folder_path)
    if not folder_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder_path}")

    image_files = [
        f for f in folder_path.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    ]

    if sort:
        image_files = sorted(image_files)

    logger.info(f"Found {len(image_files)} images in {folder_path}")
    return image_files


def load_images_from_folder(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS,
    sort: bool = True
) -> List[Tuple[Path, np.ndarray]]:
    """
    Load all images from a folder.

    Files that cannot be decoded are logged and skipped.

    Args:
        folder_path: Path to the folder containing images
        extensions: Tuple of valid image extensions
        sort: If True, sort files alphabetically

    Returns:
        List of (path, image) pairs
    """
    images = []
    for img_path in list_image_files(folder_path, extensions, sort):
        try:
            images.append((img_path, load_image(img_path)))
        except InvalidImageError as e:
            logger.warning(f"Failed to load {img_path}: {e}")

    return images


def save_image(
    image: np.ndarray,
    output_path: Union[str, Path],
    quality: int = 95
) -> Path:
    """
    Save an RGB/RGBA or grayscale image to file.

    Args:
        image: Numpy array representing the image
        output_path: Path to save the image
        quality: JPEG quality (1-100)

    Returns:
        Path to the saved image
    """
    import cv2

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    elif image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

    if output_path.suffix.lower() in ('.jpg', '.jpeg'):
        ok = cv2.imwrite(str(output_path), image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    else:
        ok = cv2.imwrite(str(output_path), image)

    if not ok:
        raise IOError(f"Could not write image: {output_path}")

    logger.debug(f"Saved image: {output_path}")
    return output_path


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, dataclasses and paths."""

    def default(self, obj):
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file or directory.

    Returns:
        One of: 'image', 'image_folder', 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        has_images = any(
            f.suffix.lower() in IMAGE_EXTENSIONS
            for f in input_path.iterdir()
        )
        return 'image_folder' if has_images else 'unknown'

    if input_path.is_file() and input_path.suffix.lower() in IMAGE_EXTENSIONS:
        return 'image'

    return 'unknown'


# ============================================================================
# Progress Tracking
# ============================================================================

ProgressListener = Callable[["ProcessingProgress"], None]


@dataclass
class ProcessingProgress:
    """
    Progress of one pipeline run, observable and cancellable.

    Listeners are called with the progress object after every stage change
    and completed step. Calling cancel() (from a listener or elsewhere)
    makes the pipeline stop with ProcessingCancelled at its next check.
    """
    total_steps: int = 0
    completed_steps: int = 0
    current_stage: str = ""
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False
    listeners: List[ProgressListener] = field(default_factory=list, repr=False)

    @property
    def percent_complete(self) -> float:
        if self.total_steps == 0:
            return 0.0
        return min(100.0, (self.completed_steps / self.total_steps) * 100)

    def add_listener(self, listener: ProgressListener):
        self.listeners.append(listener)

    def _notify(self):
        for listener in self.listeners:
            listener(self)

    def start(self, total_steps: int, stage: str = "starting"):
        self.total_steps = total_steps
        self.completed_steps = 0
        self.update(stage)

    def update(self, stage: str):
        self.current_stage = stage
        logger.debug(f"Stage: {stage}")
        self._notify()

    def advance(self, steps: int = 1):
        self.completed_steps += steps
        self._notify()

    def add_error(self, error: str):
        """Record a recovered error; the run continues."""
        self.errors.append(error)
        logger.warning(error)

    def cancel(self):
        self.cancelled = True

    def check_cancelled(self):
        """Raise ProcessingCancelled if cancellation was requested."""
        if self.cancelled:
            raise ProcessingCancelled(f"Processing cancelled during '{self.current_stage}'")
