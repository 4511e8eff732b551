"""
Dictionary-based correction of recognized fragments.

Provides:
- Levenshtein edit distance and normalized similarity
- correct_fragment(): snap a fragment to its closest dictionary entry
- DictionaryCorrector: correction bound to one dictionary and config
- reconcile(): fuse -> filter -> correct -> fuse, the full result stage

Correction is a pure function of (fragment, dictionary, config) and never
lowers confidence.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import FragmentKind, ReconcileConfig
from .classifier import MIN_PLACE_NAME_LENGTH, clean_number, clean_place_name
from .dictionary import CadastralDictionary, default_dictionary
from .fragments import DetectedFragment
from .fusion import fuse

logger = logging.getLogger(__name__)


# ============================================================================
# String Distance
# ============================================================================

def levenshtein_distance(a: Sequence, b: Sequence) -> int:
    """
    Minimum number of single-element insertions, deletions and
    substitutions turning `a` into `b`.

    Uses two rows of the DP table, O(len(a) * len(b)) time.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,              # deletion
                current[j - 1] + 1,           # insertion
                previous[j - 1] + (ca != cb)  # substitution
            ))
        previous = current

    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]: 1 - distance / max(len(a), len(b))."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def best_match(
    text: str,
    entries: Iterable[Tuple[str, str]]
) -> Tuple[Optional[str], float]:
    """
    Find the closest entry to `text` (case-insensitive).

    Args:
        text: Candidate text
        entries: (match_text, canonical) pairs

    Returns:
        (canonical, score) of the best entry, first one wins on ties;
        (None, 0.0) if there are no entries
    """
    lowered = text.lower()
    best_entry, best_score = None, 0.0

    for match_text, canonical in entries:
        score = similarity(lowered, match_text.lower())
        if best_entry is None or score > best_score:
            best_entry, best_score = canonical, score

    return best_entry, best_score


# ============================================================================
# Correction
# ============================================================================

def correct_fragment(
    fragment: DetectedFragment,
    dictionary: Optional[CadastralDictionary] = None,
    config: Optional[ReconcileConfig] = None
) -> DetectedFragment:
    """
    Snap a fragment to its closest dictionary entry of the same kind.

    The best entry is accepted when its similarity exceeds the kind's
    threshold; the text is then replaced with the canonical entry and
    confidence raised by the kind's boost, capped at 100. Otherwise only
    cosmetic cleaning is applied and confidence is unchanged.

    Args:
        fragment: Fragment to correct
        dictionary: Reference dictionary (built-in table by default)
        config: Thresholds and boosts

    Returns:
        Corrected (or cleaned) fragment
    """
    dictionary = dictionary if dictionary is not None else default_dictionary()
    config = config or ReconcileConfig()

    if fragment.kind == FragmentKind.NUMBER:
        cleaned = clean_number(fragment.text)
    else:
        cleaned = clean_place_name(fragment.text)

    if not cleaned:
        return fragment
    if fragment.kind == FragmentKind.PLACE_NAME and len(cleaned) < MIN_PLACE_NAME_LENGTH:
        return fragment.with_text(cleaned)

    entry, score = best_match(cleaned, dictionary.entries(fragment.kind))
    threshold = config.threshold_for(fragment.kind)

    if entry is None or score <= threshold:
        logger.debug(f"No dictionary match for {cleaned!r} (best {entry!r} at {score:.2f})")
        return fragment.with_text(cleaned)

    boosted = min(100.0, fragment.confidence + config.boost_for(fragment.kind))
    if entry != fragment.text:
        logger.debug(f"Corrected {fragment.text!r} -> {entry!r} (similarity {score:.2f})")

    return fragment.with_text(entry).with_confidence(boosted)


class DictionaryCorrector:
    """Corrects fragments against one dictionary with fixed settings."""

    def __init__(
        self,
        dictionary: Optional[CadastralDictionary] = None,
        config: Optional[ReconcileConfig] = None
    ):
        self.dictionary = dictionary if dictionary is not None else default_dictionary()
        self.config = config or ReconcileConfig()

    def correct(self, fragment: DetectedFragment) -> DetectedFragment:
        return correct_fragment(fragment, self.dictionary, self.config)

    def correct_all(self, fragments: Iterable[DetectedFragment]) -> List[DetectedFragment]:
        return [self.correct(f) for f in fragments]

    def reconcile(self, fragments: Iterable[DetectedFragment]) -> List[DetectedFragment]:
        """
        Full result stage: fuse duplicates, drop low-confidence fragments,
        correct the survivors, then fuse again so misreads corrected to the
        same entry collapse into one fragment.
        """
        fused = fuse(fragments, min_confidence=self.config.min_confidence)
        corrected = self.correct_all(fused)
        result = fuse(corrected)
        logger.info(f"Reconciled {len(fused)} fused fragments into {len(result)} results")
        return result


def reconcile(
    fragments: Iterable[DetectedFragment],
    dictionary: Optional[CadastralDictionary] = None,
    config: Optional[ReconcileConfig] = None
) -> List[DetectedFragment]:
    """Fuse, filter, correct and re-fuse a batch of fragments."""
    return DictionaryCorrector(dictionary, config).reconcile(fragments)
