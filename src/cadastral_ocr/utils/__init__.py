"""
Utility modules for the cadastral OCR pipeline.
"""

from .io import load_image, save_json, ensure_dir, ProcessingProgress
from .pixels import PixelBuffer
from .images import preprocess_image, denoise, binarize, enhance_contrast, apply_clahe
from .variants import ImageVariant, generate_variants, tile_image
from .fragments import BoundingBox, DetectedFragment, FusionKey
from .classifier import classify, classify_word
from .ocr_text import RecognitionAdapter, CallableEngine, WordResult
from .fusion import fuse
from .dictionary import CadastralDictionary, default_dictionary
from .correction import levenshtein_distance, correct_fragment, DictionaryCorrector, reconcile
from .assembler import CadastralPipeline, ExtractionResult
from .export import CsvExporter, JsonExporter, ResultExporter

__all__ = [
    # IO
    "load_image", "save_json", "ensure_dir", "ProcessingProgress",
    # Images
    "PixelBuffer", "preprocess_image", "denoise", "binarize", "enhance_contrast", "apply_clahe",
    "ImageVariant", "generate_variants", "tile_image",
    # Fragments
    "BoundingBox", "DetectedFragment", "FusionKey", "classify", "classify_word",
    # OCR
    "RecognitionAdapter", "CallableEngine", "WordResult",
    # Reconciliation
    "fuse", "CadastralDictionary", "default_dictionary",
    "levenshtein_distance", "correct_fragment", "DictionaryCorrector", "reconcile",
    # Assembly
    "CadastralPipeline", "ExtractionResult",
    # Export
    "CsvExporter", "JsonExporter", "ResultExporter",
]
