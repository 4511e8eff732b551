"""
Exception classes for the cadastral OCR pipeline.

All pipeline exceptions inherit from CadastralOCRError, so callers can
catch every library error with a single except clause.

Example:
    >>> try:
    ...     result = pipeline.process(image)
    ... except InvalidImageError as e:
    ...     print(f"Bad input: {e}")
    ... except CadastralOCRError as e:
    ...     print(f"Pipeline error: {e}")
"""


class CadastralOCRError(Exception):
    """Base exception for all cadastral OCR errors."""

    pass


class InvalidImageError(CadastralOCRError):
    """
    Raised when an input image is zero-area, has an unsupported shape or
    dtype, or cannot be decoded.

    No partial pipeline run is attempted for such inputs.
    """

    pass


class ConfigurationError(CadastralOCRError):
    """
    Raised for contradictory or out-of-range configuration values.

    Only raised while a configuration object is being constructed.

    Example:
        >>> PreprocessingConfig(tile_size=50, tile_overlap=100)
        ConfigurationError: tile_size (50) must be larger than tile_overlap (100)
    """

    pass


class RecognitionUnavailable(CadastralOCRError):
    """
    Raised when a recognition backend cannot be used: the library or
    binary is missing, or a call failed or timed out.

    The recognition adapter recovers from this locally; a failed call
    contributes zero fragments.
    """

    def __init__(self, message: str, engine: str = "", timed_out: bool = False):
        super().__init__(message)
        self.engine = engine
        self.timed_out = timed_out


class ProcessingCancelled(CadastralOCRError):
    """Raised when a progress observer requests cancellation mid-run."""

    pass
