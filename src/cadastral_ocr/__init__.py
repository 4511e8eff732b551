"""
Cadastral Map Text Extraction
=============================

Extracts place names and survey numbers from scanned cadastral (land
survey) maps. Low-quality rasters are enhanced into several variants,
read by one or more OCR engines, and the noisy readings are reconciled
against a reference dictionary into a ranked, deduplicated list.

Main components:
- Image preprocessing (contrast, CLAHE, denoise, binarize, dilate)
- Variant fan-out (profiles, tiles, rotations)
- Multi-engine text recognition with timeouts
- Classification into place names and numbers
- Fusion of duplicate detections
- Dictionary correction and confidence boosting
- CSV / JSON export
"""

__version__ = "1.0.0"
__author__ = "Cadastral OCR Team"
