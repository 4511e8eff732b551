"""
Tests for the reference dictionary.
"""

import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestDefaultDictionary:
    """Test the built-in table."""

    def test_contains_known_entries(self):
        from cadastral_ocr.utils.dictionary import default_dictionary

        dictionary = default_dictionary()

        assert "Gonal" in dictionary.place_names
        assert "Covered tank" in dictionary.place_names
        assert "387" in dictionary.numbers
        assert "gonal" in dictionary

    def test_numbers_unique_and_ordered(self):
        from cadastral_ocr.utils.dictionary import default_dictionary

        numbers = default_dictionary().numbers

        assert len(numbers) == len(set(numbers))
        assert numbers[:3] == ("74", "24", "387")
        assert "25" in numbers and "54" in numbers
        assert "55" not in numbers
        assert "105" in numbers and "302" in numbers

    def test_built_once(self):
        from cadastral_ocr.utils.dictionary import default_dictionary

        assert default_dictionary() is default_dictionary()

    def test_aliases_resolve_to_canonical(self):
        from cadastral_ocr.config import FragmentKind
        from cadastral_ocr.utils.dictionary import default_dictionary

        entries = dict(default_dictionary().entries(FragmentKind.PLACE_NAME))

        assert entries["Gonel"] == "Gonal"
        assert entries["Kaganthi"] == "Kaganti"
        assert entries["Gonal"] == "Gonal"

    def test_number_entries_exclude_place_aliases(self):
        from cadastral_ocr.config import FragmentKind
        from cadastral_ocr.utils.dictionary import default_dictionary

        entries = default_dictionary().entries(FragmentKind.NUMBER)

        assert all(match.isdigit() for match, _ in entries)


class TestCustomDictionary:
    """Test construction, immutability and loading."""

    def test_immutable(self):
        import dataclasses
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        dictionary = CadastralDictionary(place_names=("Gonal",), aliases={"Gonel": "Gonal"})

        with pytest.raises(dataclasses.FrozenInstanceError):
            dictionary.place_names = ()
        with pytest.raises(TypeError):
            dictionary.aliases["Gonl"] = "Gonal"

    def test_duplicates_removed(self):
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        dictionary = CadastralDictionary(numbers=("12", "13", "12"))

        assert dictionary.numbers == ("12", "13")

    def test_alias_to_unknown_entry_rejected(self):
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        with pytest.raises(ValueError):
            CadastralDictionary(place_names=("Gonal",), aliases={"Devpur": "Devapur"})

    def test_from_json(self, tmp_path):
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({
            "place_names": ["Rajapur", "Konal"],
            "numbers": [12, "13"],
            "aliases": {"Raja pur": "Rajapur"},
        }), encoding="utf-8")

        dictionary = CadastralDictionary.from_json(path)

        assert dictionary.place_names == ("Rajapur", "Konal")
        assert dictionary.numbers == ("12", "13")
        assert dictionary.aliases["Raja pur"] == "Rajapur"

    def test_to_dict_round_trip(self):
        from cadastral_ocr.utils.dictionary import CadastralDictionary, default_dictionary

        original = default_dictionary()

        assert CadastralDictionary.from_dict(original.to_dict()).to_dict() == original.to_dict()

    def test_from_csv(self, tmp_path):
        from cadastral_ocr.utils.dictionary import load_dictionary

        path = tmp_path / "dictionary.csv"
        path.write_text('Type,Value\nCharacter,"Gonal"\nNumber,387\nCharacter,"Covered tank"\n',
                        encoding="utf-8")

        dictionary = load_dictionary(path)

        assert dictionary.place_names == ("Gonal", "Covered tank")
        assert dictionary.numbers == ("387",)
