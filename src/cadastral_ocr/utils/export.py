"""
Export module for cadastral OCR results.

Provides:
- Detailed CSV export, one row per fragment:
  Text,Type,Confidence,X0,Y0,X1,Y1 (text and type double-quoted)
- Summary CSV export: Type,Value,Confidence
- JSON export (fragments plus run summary)
"""

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..config import FragmentKind
from .fragments import DetectedFragment
from .io import save_json

logger = logging.getLogger(__name__)

# Type column labels; "Character" marks place names
TYPE_LABELS = {
    FragmentKind.PLACE_NAME: "Character",
    FragmentKind.NUMBER: "Number",
}

DETAILED_HEADER = ["Text", "Type", "Confidence", "X0", "Y0", "X1", "Y1"]
SUMMARY_HEADER = ["Type", "Value", "Confidence"]


def _fragments_of(result) -> List[DetectedFragment]:
    return list(getattr(result, "fragments", result))


# ============================================================================
# CSV Exporter
# ============================================================================

class CsvExporter:
    """Export fragments to CSV."""

    def __init__(self, detailed: bool = True):
        self.detailed = detailed

    def export(
        self,
        result,
        output_path: Union[str, Path]
    ) -> Path:
        """
        Export fragments to a CSV file.

        Args:
            result: ExtractionResult or an iterable of DetectedFragment
            output_path: Output file path

        Returns:
            Path to the generated CSV file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fragments = _fragments_of(result)

        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            if self.detailed:
                self._write_detailed(f, fragments)
            else:
                self._write_summary(f, fragments)

        logger.info(f"Exported {len(fragments)} fragments to CSV: {output_path}")
        return output_path

    def _write_detailed(self, f, fragments: Iterable[DetectedFragment]):
        csv.writer(f).writerow(DETAILED_HEADER)
        writer = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC)
        for fragment in fragments:
            x0, y0, x1, y1 = fragment.bbox.to_tuple()
            writer.writerow([
                fragment.text,
                TYPE_LABELS[fragment.kind],
                round(fragment.confidence, 2),
                int(round(x0)), int(round(y0)), int(round(x1)), int(round(y1)),
            ])

    def _write_summary(self, f, fragments: Iterable[DetectedFragment]):
        csv.writer(f).writerow(SUMMARY_HEADER)
        writer = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC)
        for fragment in fragments:
            writer.writerow([
                TYPE_LABELS[fragment.kind],
                fragment.text,
                round(fragment.confidence, 2),
            ])


# ============================================================================
# JSON Exporter
# ============================================================================

class JsonExporter:
    """Export a full extraction result to JSON."""

    def export(
        self,
        result,
        output_path: Union[str, Path]
    ) -> Path:
        if hasattr(result, "to_dict"):
            data = result.to_dict()
        else:
            data = {"fragments": [f.to_dict() for f in result]}

        path = save_json(data, output_path)
        logger.info(f"Exported JSON to: {path}")
        return path


# ============================================================================
# Multi-Format Exporter
# ============================================================================

class ResultExporter:
    """Convenience class for exporting to multiple formats."""

    FORMATS = ("csv", "summary", "json")

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "cadastral_text"
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name

        self.csv_exporter = CsvExporter(detailed=True)
        self.summary_exporter = CsvExporter(detailed=False)
        self.json_exporter = JsonExporter()

    def export(
        self,
        result,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Export a result to multiple formats.

        Args:
            result: ExtractionResult (or fragment list for the CSV formats)
            formats: Any of 'csv', 'summary', 'json', or 'all'

        Returns:
            Dictionary mapping format to output path
        """
        if formats is None:
            formats = ["csv", "json"]

        if "all" in formats:
            formats = list(self.FORMATS)

        unknown = [f for f in formats if f not in self.FORMATS]
        if unknown:
            raise ValueError(f"Unknown export format(s): {unknown}")

        self.output_dir.mkdir(parents=True, exist_ok=True)

        results = {}

        if "csv" in formats:
            path = self.output_dir / f"{self.base_name}.csv"
            results["csv"] = self.csv_exporter.export(result, path)

        if "summary" in formats:
            path = self.output_dir / f"{self.base_name}_summary.csv"
            results["summary"] = self.summary_exporter.export(result, path)

        if "json" in formats:
            path = self.output_dir / f"{self.base_name}.json"
            results["json"] = self.json_exporter.export(result, path)

        return results
