"""
tabular_io.py

CSV / JSON / GeoJSON export of feature collections, CSV / JSON import merged
back onto the dataset by geocode, and the run-directory exporter used by the CLI.
"""

import csv
import io
import json
import logging
import re
from dataclasses import asdict, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from config import GeoConfig
from data_models import GeoCollection, GeoDataset, GeoFeature
from errors import ImportParseError

log = logging.getLogger(__name__)

DELIMITER = ","
GEOMETRY_COLUMN = "geometry"
# spreadsheet tools prepend a byte-order mark to UTF-8 exports
BOM = "\ufeff"

LAYER_EXPORT_NAMES = {
    "districts": "bengaluru_districts.csv",
    "taluks": "bengaluru_taluks.csv",
    "villages": "bengaluru_villages.csv",
    "pincodes": "bengaluru_pincodes.csv",
    "stores": "bengaluru_stores.csv",
}
FULL_EXPORT_NAME = "bengaluru_gis_full_data.csv"

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?([eE][-+]?\d+)?$")


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def format_cell(value: Any) -> str:
    """
    One CSV cell:
      - None -> empty
      - bool -> true / false
      - list / dict -> JSON, always quoted
      - strings with a delimiter, quote or newline -> quoted, quotes doubled
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        return _quote(json.dumps(value))
    text = str(value)
    if DELIMITER in text or '"' in text or "\n" in text or "\r" in text:
        return _quote(text)
    return text


def csv_header(features: Iterable[GeoFeature]) -> List[str]:
    """Distinct property keys in first-seen order, then the geometry column."""
    header: List[str] = []
    seen = set()
    for f in features:
        for key in f.properties:
            if key not in seen and key != GEOMETRY_COLUMN:
                seen.add(key)
                header.append(key)
    header.append(GEOMETRY_COLUMN)
    return header


def features_to_csv(features: Sequence[GeoFeature]) -> str:
    features = list(features)
    header = csv_header(features)
    lines = [DELIMITER.join(format_cell(h) for h in header)]
    for f in features:
        cells = [format_cell(f.properties.get(key)) for key in header[:-1]]
        cells.append(_quote(json.dumps(f.geometry)))
        lines.append(DELIMITER.join(cells))
    return "\n".join(lines) + "\n"


def features_to_json(features: Sequence[GeoFeature]) -> str:
    """JSON array of property objects, each carrying its geometry."""
    records = [{**f.properties, GEOMETRY_COLUMN: f.geometry} for f in features]
    return json.dumps(records, indent=2)


def features_to_geojson(features: Sequence[GeoFeature]) -> str:
    return json.dumps(GeoCollection("", list(features)).to_geojson(), indent=2)


def features_to_dataframe(features: Sequence[GeoFeature]) -> pd.DataFrame:
    """Flat attribute table (no geometry) for display and summaries."""
    return pd.DataFrame([dict(f.properties) for f in features])


def export_filename(layer: str) -> str:
    if layer == "full":
        return FULL_EXPORT_NAME
    if layer not in LAYER_EXPORT_NAMES:
        raise ValueError(f"unknown layer: {layer!r}")
    return LAYER_EXPORT_NAMES[layer]


def feature_export_filename(feature: GeoFeature, extension: str = "csv") -> str:
    name = re.sub(r"\s+", "_", str(feature.properties.get("name", feature.id)))
    return f"{feature.geocode}_{name}.{extension}"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def parse_cell(cell: str) -> Any:
    """Inverse of format_cell for a single unquoted cell. Empty cells come back as None."""
    if cell == "":
        return None
    if _NUMERIC.match(cell):
        return float(cell) if any(c in cell for c in ".eE") else int(cell)
    if cell == "true":
        return True
    if cell == "false":
        return False
    if cell[0] in "[{":
        try:
            return json.loads(cell)
        except ValueError:
            return cell
    return cell


def parse_csv_records(text: str) -> List[Dict[str, Any]]:
    text = text.lstrip(BOM)
    try:
        rows = list(csv.reader(io.StringIO(text), delimiter=DELIMITER))
    except csv.Error as exc:
        raise ImportParseError(f"malformed CSV: {exc}") from exc

    rows = [r for r in rows if any(cell.strip() for cell in r)]
    if not rows:
        raise ImportParseError("CSV document is empty")

    header = [h.strip() for h in rows[0]]
    if "geocode" not in header:
        raise ImportParseError("CSV header has no 'geocode' column")

    records = []
    for row in rows[1:]:
        record: Dict[str, Any] = {}
        for key, cell in zip(header, row):
            value = parse_cell(cell)
            if value is not None:
                record[key] = value
        records.append(record)
    return records


def parse_json_records(text: str) -> List[Dict[str, Any]]:
    text = text.lstrip(BOM)
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ImportParseError(f"malformed JSON: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ImportParseError("JSON import must be an array of objects")
    return data


def parse_import(text: str, filename: str = "") -> List[Dict[str, Any]]:
    """Dispatch on the file extension; without one, a leading '[' means JSON."""
    name = filename.lower()
    if name.endswith(".json"):
        return parse_json_records(text)
    if name.endswith(".csv"):
        return parse_csv_records(text)
    if text.lstrip(BOM).lstrip().startswith("["):
        return parse_json_records(text)
    return parse_csv_records(text)


def merge_records(collection: GeoCollection, records_by_geocode: Dict[str, Dict[str, Any]]) -> Tuple[GeoCollection, int]:
    updated = 0
    features = []
    for f in collection:
        record = records_by_geocode.get(f.geocode)
        if record is None:
            features.append(f)
            continue
        attrs = {k: v for k, v in record.items() if k != GEOMETRY_COLUMN}
        features.append(f.merged(attrs))
        updated += 1
    return GeoCollection(collection.feature_type, features), updated


def apply_import(dataset: GeoDataset, records: Sequence[Dict[str, Any]]) -> Tuple[GeoDataset, int]:
    """
    Merge imported records into every collection, matched on exact geocode.
    The first record for a geocode wins; unmatched records are ignored.
    Returns the new dataset and the number of features updated.
    """
    by_geocode: Dict[str, Dict[str, Any]] = {}
    for record in records:
        geocode = record.get("geocode")
        if geocode is None:
            continue
        by_geocode.setdefault(str(geocode), record)

    merged: Dict[str, GeoCollection] = {}
    total = 0
    for layer, collection in dataset.collections().items():
        merged[layer], n = merge_records(collection, by_geocode)
        total += n

    log.info("import matched %d features from %d records", total, len(records))
    return replace(dataset, **merged), total


def import_document(dataset: GeoDataset, text: str, filename: str = "") -> Tuple[GeoDataset, int]:
    """Parse then merge; a parse error leaves the dataset untouched."""
    return apply_import(dataset, parse_import(text, filename))


# ---------------------------------------------------------------------------
# Run directory
# ---------------------------------------------------------------------------

class OutputManager:
    """Writes one generation run to outputs/run_<timestamp>/"""

    def __init__(self, base_dir: str = "outputs"):
        self.base_dir = Path(base_dir)
        self.run_id = None
        self.run_dir = None

    def create_run_directory(self, run_id: Optional[str] = None) -> Path:
        if run_id is None:
            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            run_id = f"run_{timestamp}"

        self.run_id = run_id
        self.run_dir = self.base_dir / run_id

        (self.run_dir / "metadata").mkdir(parents=True, exist_ok=True)
        (self.run_dir / "layers").mkdir(exist_ok=True)
        (self.run_dir / "geojson").mkdir(exist_ok=True)
        (self.run_dir / "analysis").mkdir(exist_ok=True)

        return self.run_dir

    def export_all(
        self,
        dataset: GeoDataset,
        config: GeoConfig,
        stores: Optional[Sequence[GeoFeature]] = None,
        problems: Optional[List[str]] = None,
        execution_time_sec: float = 0.0,
    ) -> Path:
        if self.run_dir is None:
            self.create_run_directory()

        print(f"\n📊 Exporting results to: {self.run_dir}")

        layers: Dict[str, List[GeoFeature]] = {k: list(c) for k, c in dataset.collections().items()}
        if stores:
            layers["stores"] = list(stores)

        self._export_config(dataset, config, execution_time_sec)
        for layer, features in layers.items():
            self._write(self.run_dir / "layers" / export_filename(layer), features_to_csv(features))
            self._write(self.run_dir / "geojson" / f"{layer}.geojson", features_to_geojson(features))
        self._write(self.run_dir / "layers" / FULL_EXPORT_NAME, features_to_csv(dataset.all_features()))
        self._export_report(dataset, layers, problems or [])
        self._generate_summary(dataset, layers, problems or [], execution_time_sec)

        print("✅ Export complete! View SUMMARY.txt for overview.")
        return self.run_dir

    @staticmethod
    def _write(path: Path, text: str):
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    def _export_config(self, dataset: GeoDataset, config: GeoConfig, execution_time_sec: float):
        config_data = {
            "run_id": self.run_id,
            "timestamp": datetime.now().isoformat(),
            "seed": dataset.seed,
            "execution_time_sec": execution_time_sec,
            "config": asdict(config),
        }
        with open(self.run_dir / "metadata" / "config.json", "w") as f:
            json.dump(config_data, f, indent=2)

    def _export_report(self, dataset: GeoDataset, layers: Dict[str, List[GeoFeature]], problems: List[str]):
        report = {
            "run_id": self.run_id,
            "counts": {layer: len(features) for layer, features in layers.items()},
            "generation_report": dataset.report,
            "validation_problems": problems,
        }
        with open(self.run_dir / "analysis" / "generation_report.json", "w") as f:
            json.dump(report, f, indent=2, default=str)

    def _generate_summary(
        self,
        dataset: GeoDataset,
        layers: Dict[str, List[GeoFeature]],
        problems: List[str],
        execution_time_sec: float,
    ):
        shortfall = dataset.report.get("placement_shortfall", {})
        outside = dataset.report.get("curated_outside_taluk", {})
        outside_text = "; ".join(f"{k}: {', '.join(v)}" for k, v in outside.items()) or "none"
        summary = f"""{'='*80}
BENGALURU GEO DATASET
{'='*80}
Run ID: {self.run_id}
Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
Seed: {dataset.seed}
Runtime: {execution_time_sec:.2f} seconds

LAYERS
{'-'*80}
"""
        for layer, features in layers.items():
            summary += f"{layer:<12} {len(features):>6} features   -> layers/{export_filename(layer)}\n"

        summary += f"""
GENERATION NOTES
{'-'*80}
Village shortfall: {', '.join(f'{k} (-{v})' for k, v in shortfall.items()) or 'none'}
Curated villages outside their taluk: {outside_text}
Skipped pincode cells: {', '.join(dataset.report.get('skipped_cells', [])) or 'none'}
Validation: {'OK' if not problems else f'{len(problems)} problem(s), see analysis/generation_report.json'}

DETAILED DATA
{'-'*80}
Metadata: metadata/config.json
Layers: layers/*.csv, layers/{FULL_EXPORT_NAME}
GeoJSON: geojson/*.geojson
Analysis: analysis/generation_report.json

{'='*80}
"""
        with open(self.run_dir / "SUMMARY.txt", "w", encoding="utf-8") as f:
            f.write(summary)
