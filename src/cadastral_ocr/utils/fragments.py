"""
Data model for recognized text fragments.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, NamedTuple, Tuple

from ..config import FragmentKind


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in image pixel coordinates."""
    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_tuple(cls, box: Tuple[float, float, float, float]) -> "BoundingBox":
        x0, y0, x1, y1 = box
        return cls(
            x0=float(min(x0, x1)),
            y0=float(min(y0, y1)),
            x1=float(max(x0, x1)),
            y1=float(max(y0, y1)),
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return self.x0, self.y0, self.x1, self.y1

    def to_dict(self) -> Dict[str, float]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}


class FusionKey(NamedTuple):
    """Identity of a logical detection: lowercased text plus kind."""
    text: str
    kind: str


@dataclass(frozen=True)
class DetectedFragment:
    """A single recognized text span with position and confidence (0-100)."""
    text: str
    confidence: float
    bbox: BoundingBox
    kind: str
    source: str = ""

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be in [0, 100], got {self.confidence}")
        if self.kind not in FragmentKind.ALL:
            raise ValueError(f"kind must be one of {FragmentKind.ALL}, got {self.kind!r}")

    @property
    def fusion_key(self) -> FusionKey:
        return FusionKey(self.text.lower(), self.kind)

    @property
    def is_number(self) -> bool:
        return self.kind == FragmentKind.NUMBER

    def with_text(self, text: str) -> "DetectedFragment":
        return replace(self, text=text)

    def with_confidence(self, confidence: float) -> "DetectedFragment":
        return replace(self, confidence=confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "kind": self.kind,
            "confidence": round(self.confidence, 2),
            "bbox": self.bbox.to_dict(),
            "source": self.source,
        }
