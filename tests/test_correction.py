"""
Tests for Levenshtein distance and dictionary correction.
"""

import itertools
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

WORDS = ["", "a", "gonal", "gona1", "konal", "kitten", "sitting", "387", "378", "Nalla"]


def make_fragment(text, confidence, kind="place_name"):
    from cadastral_ocr.utils.fragments import BoundingBox, DetectedFragment
    return DetectedFragment(text, confidence, BoundingBox(0, 0, 10, 10), kind)


class TestLevenshtein:
    """Test edit distance properties."""

    def test_known_distances(self):
        from cadastral_ocr.utils.correction import levenshtein_distance

        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("gona1", "gonal") == 1
        assert levenshtein_distance("flaw", "lawn") == 2

    def test_identity(self):
        from cadastral_ocr.utils.correction import levenshtein_distance

        for word in WORDS:
            assert levenshtein_distance(word, word) == 0

    def test_symmetry(self):
        from cadastral_ocr.utils.correction import levenshtein_distance

        for a, b in itertools.product(WORDS, repeat=2):
            assert levenshtein_distance(a, b) == levenshtein_distance(b, a)

    def test_triangle_inequality(self):
        from cadastral_ocr.utils.correction import levenshtein_distance as d

        for a, b, c in itertools.product(WORDS, repeat=3):
            assert d(a, c) <= d(a, b) + d(b, c)

    def test_similarity(self):
        from cadastral_ocr.utils.correction import similarity

        assert similarity("gona1", "gonal") == pytest.approx(0.8)
        assert similarity("abc", "abc") == 1.0
        assert similarity("", "") == 1.0
        assert similarity("abc", "xyz") == 0.0


class TestCorrectFragment:
    """Test snapping fragments to dictionary entries."""

    def test_misread_place_name_corrected_and_boosted(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("Gona1", 60))

        assert corrected.text == "Gonal"
        assert corrected.confidence == 85

    def test_alias_resolves_to_canonical(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("Devpur", 50))

        assert corrected.text == "Devapur"

    def test_case_insensitive_match(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("KONAL", 70))

        assert corrected.text == "Konal"
        assert corrected.confidence == 95

    def test_confidence_capped_at_100(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("Gonal", 90))

        assert corrected.confidence == 100

    def test_unmatched_place_name_only_cleaned(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("Zzyzx,", 72))

        assert corrected.text == "Zzyzx"
        assert corrected.confidence == 72

    def test_unmatched_number_cleaned_not_corrected(self):
        """'O0' is cleaned to '00', which is too far from every known number."""
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("O0", 70, kind="number"))

        assert corrected.text == "00"
        assert corrected.confidence == 70

    def test_numbers_need_close_match(self):
        """A one-digit change in a three-digit number is not accepted."""
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("388", 80, kind="number"))

        assert corrected.text == "388"
        assert corrected.confidence == 80

    def test_exact_number_boosted(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("387", 60, kind="number"))

        assert corrected.text == "387"
        assert corrected.confidence == 90

    def test_short_place_name_skipped(self):
        from cadastral_ocr.utils.correction import correct_fragment

        corrected = correct_fragment(make_fragment("R.", 40))

        assert corrected.text == "R"
        assert corrected.confidence == 40

    def test_ties_go_to_first_entry(self):
        from cadastral_ocr.utils.correction import correct_fragment
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        dictionary = CadastralDictionary(place_names=("abcd", "abce"))

        corrected = correct_fragment(make_fragment("abcf", 50), dictionary)

        assert corrected.text == "abcd"

    def test_injected_dictionary(self):
        from cadastral_ocr.utils.correction import correct_fragment
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        dictionary = CadastralDictionary(place_names=("Rajapur",))

        assert correct_fragment(make_fragment("Rajapnr", 50), dictionary).text == "Rajapur"
        assert correct_fragment(make_fragment("Gona1", 50), dictionary).text == "Gona1"

    def test_empty_dictionary(self):
        from cadastral_ocr.utils.correction import correct_fragment
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        corrected = correct_fragment(make_fragment("Gona1", 50), CadastralDictionary())

        assert corrected.text == "Gona1"
        assert corrected.confidence == 50

    def test_thresholds_configurable(self):
        from cadastral_ocr.config import ReconcileConfig
        from cadastral_ocr.utils.correction import correct_fragment

        strict = ReconcileConfig(place_name_threshold=0.9)

        assert correct_fragment(make_fragment("Gona1", 60), config=strict).text == "Gona1"

    def test_confidence_monotonic(self):
        from cadastral_ocr.utils.correction import correct_fragment

        samples = [
            ("Gona1", 60, "place_name"), ("Zzyzx", 10, "place_name"), ("Nala", 99, "place_name"),
            ("Kagent", 0, "place_name"), ("387", 100, "number"), ("O0", 70, "number"),
            ("3B7", 45, "number"), ("12", 30, "number"),
        ]

        for text, confidence, kind in samples:
            original = make_fragment(text, confidence, kind)
            corrected = correct_fragment(original)
            assert corrected.confidence >= original.confidence
            assert corrected.confidence <= 100


class TestReconcile:
    """Test the full fuse -> correct -> fuse stage."""

    def test_misreads_merge_into_single_entry(self):
        from cadastral_ocr.config import ReconcileConfig
        from cadastral_ocr.utils.correction import reconcile

        result = reconcile(
            [make_fragment("Gona1", 60), make_fragment("gonal", 55)],
            config=ReconcileConfig(min_confidence=None)
        )

        assert len(result) == 1
        assert result[0].text == "Gonal"
        assert result[0].confidence >= 75

    def test_unmatched_number_survives_uncorrected(self):
        from cadastral_ocr.config import ReconcileConfig
        from cadastral_ocr.utils.correction import reconcile

        result = reconcile(
            [make_fragment("O0", 70, kind="number")],
            config=ReconcileConfig(min_confidence=None)
        )

        assert len(result) == 1
        assert result[0].text == "00"
        assert result[0].confidence == 70

    def test_low_confidence_dropped_before_correction(self):
        from cadastral_ocr.utils.correction import reconcile

        result = reconcile([
            make_fragment("Gona1", 60),
            make_fragment("Nalla", 88),
            make_fragment("387", 95, kind="number"),
        ])

        assert [f.text for f in result] == ["387", "Nalla"]
        assert all(f.confidence == 100 for f in result)

    def test_corrector_reuses_dictionary(self):
        from cadastral_ocr.utils.correction import DictionaryCorrector
        from cadastral_ocr.utils.dictionary import CadastralDictionary

        corrector = DictionaryCorrector(CadastralDictionary(place_names=("Konal",)))

        corrected = corrector.correct_all([make_fragment("Konel", 50), make_fragment("Kona", 50)])

        assert [f.text for f in corrected] == ["Konal", "Konal"]
