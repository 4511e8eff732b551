"""
Tests for CSV and JSON export.
"""

import csv
import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def fragments():
    from cadastral_ocr.utils.fragments import BoundingBox, DetectedFragment

    return [
        DetectedFragment("387", 100.0, BoundingBox(60.4, 10, 90.6, 30), "number"),
        DetectedFragment("Gonal", 85.0, BoundingBox(10, 20, 30, 40), "place_name"),
    ]


class TestCsvExporter:
    """Test the detailed and summary CSV layouts."""

    def test_detailed_layout(self, fragments, tmp_path):
        from cadastral_ocr.utils.export import CsvExporter

        path = CsvExporter(detailed=True).export(fragments, tmp_path / "out.csv")
        lines = path.read_text(encoding="utf-8").splitlines()

        assert lines[0] == "Text,Type,Confidence,X0,Y0,X1,Y1"
        assert lines[1] == '"387","Number",100.0,60,10,91,30'
        assert lines[2] == '"Gonal","Character",85.0,10,20,30,40'

    def test_summary_layout(self, fragments, tmp_path):
        from cadastral_ocr.utils.export import CsvExporter

        path = CsvExporter(detailed=False).export(fragments, tmp_path / "summary.csv")
        lines = path.read_text(encoding="utf-8").splitlines()

        assert lines[0] == "Type,Value,Confidence"
        assert lines[2] == '"Character","Gonal",85.0'

    def test_embedded_quotes_and_commas_survive(self, tmp_path):
        from cadastral_ocr.utils.export import CsvExporter
        from cadastral_ocr.utils.fragments import BoundingBox, DetectedFragment

        tricky = DetectedFragment('Raja, "pur"', 70.0, BoundingBox(0, 0, 1, 1), "place_name")

        path = CsvExporter().export([tricky], tmp_path / "tricky.csv")
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        assert rows[1][0] == 'Raja, "pur"'
        assert len(rows[1]) == 7

    def test_empty_result_writes_header(self, tmp_path):
        from cadastral_ocr.utils.export import CsvExporter

        path = CsvExporter().export([], tmp_path / "empty.csv")

        assert path.read_text(encoding="utf-8").splitlines() == ["Text,Type,Confidence,X0,Y0,X1,Y1"]


class TestResultExporter:
    """Test multi-format export."""

    def test_all_formats(self, fragments, tmp_path):
        from cadastral_ocr.utils.assembler import ExtractionResult
        from cadastral_ocr.utils.export import ResultExporter

        result = ExtractionResult(fragments=fragments, source_file="map.png", width=100, height=50)

        paths = ResultExporter(tmp_path, base_name="map").export(result, ["all"])

        assert set(paths) == {"csv", "summary", "json"}
        assert paths["csv"].name == "map.csv"
        assert paths["summary"].name == "map_summary.csv"
        assert all(p.exists() for p in paths.values())

        data = json.loads(paths["json"].read_text(encoding="utf-8"))
        assert data["image"] == {"width": 100, "height": 50}
        assert [f["text"] for f in data["fragments"]] == ["387", "Gonal"]
        assert data["summary"]["numbers"] == 1

    def test_unknown_format_rejected(self, fragments, tmp_path):
        from cadastral_ocr.utils.export import ResultExporter

        with pytest.raises(ValueError):
            ResultExporter(tmp_path).export(fragments, ["xlsx"])

    def test_fragment_list_to_json(self, fragments, tmp_path):
        from cadastral_ocr.utils.export import JsonExporter

        path = JsonExporter().export(fragments, tmp_path / "fragments.json")
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["fragments"][1]["kind"] == "place_name"
