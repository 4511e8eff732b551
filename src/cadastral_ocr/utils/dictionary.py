"""
Reference dictionary of known cadastral place names and survey numbers.

Provides:
- CadastralDictionary: immutable table of canonical entries plus known
  OCR misspellings (aliases) that resolve to them
- Loading from JSON or from a `Type,Value` CSV
- default_dictionary(): the built-in table, constructed once

The dictionary is read-only after construction and safe to share between
concurrent workers. Pass a custom instance to the pipeline to substitute it.
"""

import csv
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from ..config import FragmentKind
from .io import load_json

logger = logging.getLogger(__name__)


# ============================================================================
# Built-in Reference Data
# ============================================================================

DEFAULT_PLACE_NAMES = (
    "Benakanahalli", "Devapur", "Nalla", "Devatakala", "Mangihal", "Gonal",
    "Aladahal", "Covered", "tank", "Antaral", "Rajapur", "Stony", "waste",
    "Nagarahal", "kagaral", "kawadimutt", "Konal", "Kaganti",
    "Covered tank", "Stony waste",
    "Village", "Boundary", "Survey", "Plot", "Road", "River", "Canal", "Field",
)

# Misspelling -> canonical entry
DEFAULT_ALIASES = {
    "Benakanahali": "Benakanahalli",
    "Devpur": "Devapur",
    "Devatakal": "Devatakala",
    "Manghal": "Mangihal",
    "Gonel": "Gonal",
    "Aladhall": "Aladahal",
    "Coverd": "Covered",
    "tonk": "tank",
    "Antral": "Antaral",
    "Raja pur": "Rajapur",
    "Stoney": "Stony",
    "weste": "waste",
    "Nagarhal": "Nagarahal",
    "kagarl": "kagaral",
    "kawadimut": "kawadimutt",
    "Konel": "Konal",
    "Kagant": "Kaganti",
    "Kagent": "Kaganti",
    "Kaganthi": "Kaganti",
}

DEFAULT_NUMBERS = tuple(str(n) for n in (
    74, 24, 387, 13, 12, 11, 10, 76, 22, 396, 424, 404, 379, 372, 362, 364,
    20, 426, 18, 391, 386, 377, 361, 402, 400, 84, 521, 519, 518, 517, 516,
    357, 371, 522, 360,
    *range(25, 55),
    *range(100, 106),
    *range(200, 204),
    *range(300, 303),
))


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    out = []
    for value in values:
        value = str(value).strip()
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return tuple(out)


# ============================================================================
# Dictionary
# ============================================================================

@dataclass(frozen=True)
class CadastralDictionary:
    """Immutable reference table used for fuzzy correction."""
    place_names: Tuple[str, ...] = ()
    numbers: Tuple[str, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        place_names = _unique(self.place_names)
        numbers = _unique(self.numbers)
        canonical = set(place_names) | set(numbers)

        aliases = {}
        for variant, target in dict(self.aliases).items():
            if target not in canonical:
                raise ValueError(f"Alias {variant!r} points to unknown entry {target!r}")
            aliases[str(variant).strip()] = target

        object.__setattr__(self, "place_names", place_names)
        object.__setattr__(self, "numbers", numbers)
        object.__setattr__(self, "aliases", MappingProxyType(aliases))

    def __len__(self) -> int:
        return len(self.place_names) + len(self.numbers)

    def canonical_entries(self, kind: str) -> Tuple[str, ...]:
        return self.numbers if kind == FragmentKind.NUMBER else self.place_names

    def entries(self, kind: str) -> List[Tuple[str, str]]:
        """
        Matchable strings for a kind, as (match_text, canonical) pairs.

        Canonical entries come first, in table order, followed by aliases.
        """
        canonical = self.canonical_entries(kind)
        pairs = [(entry, entry) for entry in canonical]
        members = set(canonical)
        pairs.extend((variant, target) for variant, target in self.aliases.items() if target in members)
        return pairs

    def __contains__(self, text: str) -> bool:
        lowered = text.lower()
        return any(lowered == e.lower() for e in self.place_names + self.numbers)

    def to_dict(self) -> Dict[str, object]:
        return {
            "place_names": list(self.place_names),
            "numbers": list(self.numbers),
            "aliases": dict(self.aliases),
        }

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping) -> "CadastralDictionary":
        return cls(
            place_names=tuple(data.get("place_names", ())),
            numbers=tuple(str(n) for n in data.get("numbers", ())),
            aliases=dict(data.get("aliases", {})),
        )

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "CadastralDictionary":
        """
        Load a dictionary from JSON:
        {"place_names": [...], "numbers": [...], "aliases": {"misspelling": "canonical"}}
        """
        dictionary = cls.from_dict(load_json(path))
        logger.info(f"Loaded dictionary from {path}: {len(dictionary)} entries")
        return dictionary

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "CadastralDictionary":
        """
        Load a dictionary from a `Type,Value` CSV, where Type is
        "Character" (place name) or "Number".
        """
        place_names, numbers = [], []
        with open(path, 'r', encoding='utf-8', newline='') as f:
            for row in csv.DictReader(f):
                kind = (row.get("Type") or "").strip().lower()
                value = (row.get("Value") or "").strip()
                if kind == "number":
                    numbers.append(value)
                elif kind in ("character", "place_name"):
                    place_names.append(value)
        dictionary = cls(place_names=tuple(place_names), numbers=tuple(numbers))
        logger.info(f"Loaded dictionary from {path}: {len(dictionary)} entries")
        return dictionary


@lru_cache(maxsize=1)
def default_dictionary() -> CadastralDictionary:
    """The built-in cadastral dictionary (constructed once)."""
    return CadastralDictionary(
        place_names=DEFAULT_PLACE_NAMES,
        numbers=DEFAULT_NUMBERS,
        aliases=DEFAULT_ALIASES,
    )


def load_dictionary(path: Union[str, Path]) -> CadastralDictionary:
    """Load a dictionary file, choosing the reader from its extension."""
    path = Path(path)
    if path.suffix.lower() == ".csv":
        return CadastralDictionary.from_csv(path)
    return CadastralDictionary.from_json(path)
