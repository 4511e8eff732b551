"""
Fragment classification: place name, survey number, or reject.

Provides:
- Text cleaning (punctuation stripping, whitespace collapse)
- Numeral cleaning with common OCR letter/digit confusions
- classify(): kind tagging for raw recognizer output
- classify_word(): build a DetectedFragment from a raw detection
"""

import re
import logging
from typing import Optional, Tuple

from ..config import FragmentKind
from .fragments import BoundingBox, DetectedFragment

logger = logging.getLogger(__name__)

PLACE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z\s,.-]*$")
NUMBER_PATTERN = re.compile(r"^[0-9]+$")

# Letters OCR engines commonly emit in place of digits
DIGIT_CONFUSIONS = str.maketrans({"O": "0", "o": "0", "I": "1", "l": "1", "|": "1"})
# A token of digits and confusables only, with at least one real digit
CONFUSABLE_NUMERAL_PATTERN = re.compile(r"^(?=.*[0-9])[0-9OoIl|]+$")

MIN_PLACE_NAME_LENGTH = 2


def clean_text(text: str) -> str:
    """
    Cosmetic cleaning: drop characters other than word characters,
    whitespace and `,.-`, collapse runs of whitespace and trim.
    """
    if not text:
        return ""
    text = re.sub(r"[^\w\s,.-]", "", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def clean_place_name(text: str) -> str:
    """Clean a place name and trim stray leading/trailing punctuation."""
    return clean_text(text).strip(" ,.-")


def clean_number(text: str) -> str:
    """
    Normalize a survey number to its digits.

    Confusable letters are mapped to digits only when the token (ignoring
    punctuation and spaces) is made of digits and confusables alone;
    otherwise non-digits are simply stripped, so letters in words such
    as "No." or "Plot" never turn into digits.

    >>> clean_number("O0")
    '00'
    >>> clean_number("3l2.")
    '312'
    >>> clean_number("Sy.No.387")
    '387'
    """
    if not text:
        return ""
    compact = re.sub(r"[^0-9A-Za-z|]", "", text)
    if CONFUSABLE_NUMERAL_PATTERN.match(compact):
        compact = compact.translate(DIGIT_CONFUSIONS)
    return re.sub(r"[^0-9]", "", compact)


def classify(text: str) -> Optional[str]:
    """
    Decide the kind of a recognized string.

    A string is a place name if it starts with a letter, contains only
    letters, whitespace and `,.-`, and is at least 2 characters long.
    Otherwise it is a number iff its cleaned numeral (see clean_number)
    is non-empty, so "Sy.No.387" is the number "387".

    Args:
        text: Raw or cleaned recognizer output

    Returns:
        FragmentKind.PLACE_NAME, FragmentKind.NUMBER, or None to reject
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None

    if len(cleaned) >= MIN_PLACE_NAME_LENGTH and PLACE_NAME_PATTERN.match(cleaned):
        return FragmentKind.PLACE_NAME

    digits = clean_number(cleaned)
    if digits and NUMBER_PATTERN.match(digits):
        return FragmentKind.NUMBER

    return None


def classify_word(
    text: str,
    confidence: float,
    bbox: Tuple[float, float, float, float],
    source: str = ""
) -> Optional[DetectedFragment]:
    """
    Turn one raw detection into a typed fragment.

    Number fragments carry their digits-only text; place names carry the
    cleaned text. Rejected strings return None and are dropped.
    """
    kind = classify(text)
    if kind is None:
        logger.debug(f"Rejected fragment: {text!r}")
        return None

    cleaned = clean_number(text) if kind == FragmentKind.NUMBER else clean_place_name(text)
    if not cleaned:
        return None

    return DetectedFragment(
        text=cleaned,
        confidence=min(100.0, max(0.0, float(confidence))),
        bbox=BoundingBox.from_tuple(bbox),
        kind=kind,
        source=source,
    )
