"""
Result fusion: merge detections from all variants, tiles and engines.

The same label is typically read many times (once per tile overlap,
rotation, profile and engine). Fusion keeps one fragment per
(lowercased text, kind), the most confident one, and orders the result
deterministically: numbers first, then descending confidence.
"""

import logging
from typing import Dict, Iterable, List, Optional

from .fragments import DetectedFragment, FusionKey

logger = logging.getLogger(__name__)


def sort_fragments(fragments: Iterable[DetectedFragment]) -> List[DetectedFragment]:
    """Stable sort: numbers before place names, then by confidence descending."""
    return sorted(fragments, key=lambda f: (0 if f.is_number else 1, -f.confidence))


def filter_by_confidence(
    fragments: Iterable[DetectedFragment],
    min_confidence: Optional[float]
) -> List[DetectedFragment]:
    """Drop fragments below `min_confidence` (None keeps everything)."""
    fragments = list(fragments)
    if min_confidence is None:
        return fragments
    kept = [f for f in fragments if f.confidence >= min_confidence]
    if len(kept) < len(fragments):
        logger.debug(f"Dropped {len(fragments) - len(kept)} fragments below {min_confidence}")
    return kept


def fuse(
    fragments: Iterable[DetectedFragment],
    min_confidence: Optional[float] = None
) -> List[DetectedFragment]:
    """
    Deduplicate fragments by FusionKey.

    Within a group the highest-confidence fragment wins; on equal
    confidence the first one seen is kept.

    Args:
        fragments: Fragments in arrival order
        min_confidence: Optional threshold applied after merging

    Returns:
        Fused fragments, at most one per FusionKey, in stable order
    """
    best: Dict[FusionKey, DetectedFragment] = {}
    total = 0

    for fragment in fragments:
        total += 1
        key = fragment.fusion_key
        current = best.get(key)
        if current is None or fragment.confidence > current.confidence:
            best[key] = fragment

    fused = filter_by_confidence(best.values(), min_confidence)
    logger.debug(f"Fused {total} fragments into {len(fused)}")
    return sort_fragments(fused)
