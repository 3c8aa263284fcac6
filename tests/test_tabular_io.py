import csv
import io
import json
import tempfile
import unittest
from pathlib import Path

import synthetic_geo as sg
import tabular_io as tio
from config import GeoConfig
from data_models import GeoCollection, GeoFeature
from errors import ImportParseError


def _plain(value):
    # tuples become lists once they pass through JSON
    return json.loads(json.dumps(value))


def _feature(fid, geocode, name, **props):
    return GeoFeature(
        id=fid,
        properties={"geocode": geocode, "name": name, "type": "Village", **props},
        geometry={"type": "Point", "coordinates": [77.6, 13.0]},
    )


class FormatCellTests(unittest.TestCase):
    def test_cells(self):
        self.assertEqual(tio.format_cell(None), "")
        self.assertEqual(tio.format_cell(True), "true")
        self.assertEqual(tio.format_cell(False), "false")
        self.assertEqual(tio.format_cell(42), "42")
        self.assertEqual(tio.format_cell(3.5), "3.5")
        self.assertEqual(tio.format_cell("Hoskote"), "Hoskote")
        self.assertEqual(tio.format_cell("a, b"), '"a, b"')
        self.assertEqual(tio.format_cell('say "hi"'), '"say ""hi"""')
        self.assertEqual(tio.format_cell("two\nlines"), '"two\nlines"')
        self.assertEqual(tio.format_cell(["Ragi", "Maize"]), '"[""Ragi"", ""Maize""]"')

    def test_header_is_first_seen_order_plus_geometry(self):
        a = _feature("a", "G1", "A", population=10)
        b = _feature("b", "G2", "B", literacyRate=70.5, population=20)
        self.assertEqual(
            tio.csv_header([a, b]),
            ["geocode", "name", "type", "population", "literacyRate", "geometry"],
        )

    def test_missing_property_is_empty_cell(self):
        a = _feature("a", "G1", "A", population=10)
        b = _feature("b", "G2", "B")
        rows = list(csv.reader(io.StringIO(tio.features_to_csv([a, b]))))
        self.assertEqual(rows[2][3], "")

    def test_csv_is_readable_by_csv_module(self):
        f = _feature("a", "G1", "Name, with comma", notes='quote "x"', tags=["p", "q"])
        rows = list(csv.reader(io.StringIO(tio.features_to_csv([f]))))
        header, row = rows
        record = dict(zip(header, row))
        self.assertEqual(record["name"], "Name, with comma")
        self.assertEqual(record["notes"], 'quote "x"')
        self.assertEqual(json.loads(record["tags"]), ["p", "q"])
        self.assertEqual(json.loads(record["geometry"]), f.geometry)


class RoundTripTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.ds = sg.build_geo_dataset(seed=7)

    def test_layer_csv_round_trip_preserves_properties(self):
        for layer in ("taluks", "villages", "pincodes"):
            collection = getattr(self.ds, layer)
            records = tio.parse_csv_records(tio.features_to_csv(list(collection)))
            self.assertEqual(len(records), len(collection))

            for feature, record in zip(collection, records):
                self.assertEqual(record["geometry"], _plain(feature.geometry), msg=feature.id)

            merged, updated = tio.apply_import(self.ds, records)
            self.assertEqual(updated, len(collection), msg=layer)
            for before, after in zip(collection, getattr(merged, layer)):
                self.assertEqual(_plain(after.properties), _plain(before.properties), msg=before.id)
                self.assertEqual(after.geometry, before.geometry)

    def test_json_round_trip(self):
        records = tio.parse_json_records(tio.features_to_json(list(self.ds.taluks)))
        self.assertEqual(records[0]["geocode"], "KAT01")
        self.assertEqual(records[0]["geometry"], _plain(self.ds.taluks.features[0].geometry))

    def test_geojson_export(self):
        doc = json.loads(tio.features_to_geojson(list(self.ds.districts)))
        self.assertEqual(doc["type"], "FeatureCollection")
        self.assertEqual([f["id"] for f in doc["features"]], ["dist-rural", "dist-urban"])

    def test_dataframe_has_one_row_per_feature(self):
        df = tio.features_to_dataframe(list(self.ds.taluks))
        self.assertEqual(len(df), 8)
        self.assertIn("population", df.columns)
        self.assertNotIn("geometry", df.columns)


class ImportParseTests(unittest.TestCase):
    def test_cell_parsing(self):
        self.assertIsNone(tio.parse_cell(""))
        self.assertEqual(tio.parse_cell("12"), 12)
        self.assertEqual(tio.parse_cell("-3.25"), -3.25)
        self.assertEqual(tio.parse_cell("true"), True)
        self.assertEqual(tio.parse_cell('["a", 1]'), ["a", 1])
        self.assertEqual(tio.parse_cell("[not json"), "[not json")
        self.assertEqual(tio.parse_cell("Anekal"), "Anekal")

    def test_missing_geocode_column(self):
        with self.assertRaises(ImportParseError):
            tio.parse_csv_records("name,population\nA,10\n")

    def test_empty_csv(self):
        with self.assertRaises(ImportParseError):
            tio.parse_csv_records("\n\n")

    def test_malformed_json(self):
        with self.assertRaises(ImportParseError):
            tio.parse_json_records('[{"geocode": "KAT01"')

    def test_json_must_be_array_of_objects(self):
        with self.assertRaises(ImportParseError):
            tio.parse_json_records('{"geocode": "KAT01"}')
        with self.assertRaises(ImportParseError):
            tio.parse_json_records('[1, 2]')

    def test_empty_cells_are_absent(self):
        records = tio.parse_csv_records("geocode,name,population\nKAT01,,5\n")
        self.assertEqual(records, [{"geocode": "KAT01", "population": 5}])

    def test_byte_order_mark_is_ignored(self):
        records = tio.parse_csv_records("\ufeffgeocode,population\nKAT01,5\n")
        self.assertEqual(records, [{"geocode": "KAT01", "population": 5}])
        self.assertEqual(tio.parse_json_records('\ufeff[{"geocode": "X"}]'), [{"geocode": "X"}])
        self.assertEqual(tio.parse_import('\ufeff[{"geocode": "X"}]'), [{"geocode": "X"}])

    def test_dispatch_on_extension(self):
        self.assertEqual(tio.parse_import('[{"geocode": "X"}]', "data.json"), [{"geocode": "X"}])
        self.assertEqual(tio.parse_import("geocode\nX\n", "data.CSV"), [{"geocode": "X"}])
        self.assertEqual(tio.parse_import('[{"geocode": "X"}]'), [{"geocode": "X"}])


class MergeTests(unittest.TestCase):
    def setUp(self):
        self.ds = sg.build_geo_dataset(seed=7)

    def test_first_record_for_a_geocode_wins(self):
        records = [
            {"geocode": "KAT01", "population": 1},
            {"geocode": "KAT01", "population": 2},
        ]
        merged, updated = tio.apply_import(self.ds, records)
        self.assertEqual(updated, 1)
        self.assertEqual(merged.taluks.by_geocode("KAT01").properties["population"], 1)

    def test_unmatched_records_are_ignored(self):
        merged, updated = tio.apply_import(self.ds, [{"geocode": "NOPE", "population": 1}, {"name": "no code"}])
        self.assertEqual(updated, 0)
        self.assertEqual(
            [f.properties for f in merged.all_features()],
            [f.properties for f in self.ds.all_features()],
        )

    def test_geometry_is_never_merged(self):
        village = self.ds.villages.features[0]
        fake = {"type": "Point", "coordinates": [0, 0]}
        merged, _ = tio.apply_import(self.ds, [{"geocode": village.geocode, "geometry": fake, "population": 7}])
        after = merged.villages.by_geocode(village.geocode)
        self.assertEqual(after.geometry, village.geometry)
        self.assertNotIn("geometry", after.properties)
        self.assertEqual(after.properties["population"], 7)

    def test_original_dataset_is_not_modified(self):
        before = self.ds.taluks.by_geocode("KAT02").properties["population"]
        tio.apply_import(self.ds, [{"geocode": "KAT02", "population": 0}])
        self.assertEqual(self.ds.taluks.by_geocode("KAT02").properties["population"], before)

    def test_parse_error_leaves_dataset_untouched(self):
        before = [f.properties for f in self.ds.all_features()]
        with self.assertRaises(ImportParseError):
            tio.import_document(self.ds, "name\nA\n", "bad.csv")
        self.assertEqual([f.properties for f in self.ds.all_features()], before)

    def test_import_document_updates_matching_feature(self):
        text = "geocode,marketPotential\nKAP560001,High\n"
        merged, updated = tio.import_document(self.ds, text, "update.csv")
        self.assertEqual(updated, 1)
        self.assertEqual(merged.pincodes.by_geocode("KAP560001").properties["marketPotential"], "High")


class FilenameTests(unittest.TestCase):
    def test_layer_names(self):
        self.assertEqual(tio.export_filename("villages"), "bengaluru_villages.csv")
        self.assertEqual(tio.export_filename("full"), "bengaluru_gis_full_data.csv")
        with self.assertRaises(ValueError):
            tio.export_filename("roads")

    def test_feature_filename(self):
        f = GeoFeature(
            id="taluk-4",
            properties={"geocode": "KAT05", "name": "Bengaluru North", "type": "Taluk"},
            geometry={"type": "Point", "coordinates": [0, 0]},
        )
        self.assertEqual(tio.feature_export_filename(f), "KAT05_Bengaluru_North.csv")
        self.assertEqual(tio.feature_export_filename(f, "json"), "KAT05_Bengaluru_North.json")


class OutputManagerTests(unittest.TestCase):
    def test_export_all_writes_run_directory(self):
        ds = sg.build_geo_dataset(seed=7)
        store = GeoFeature(
            id="osm-1",
            properties={"geocode": "OSM-1", "name": "Shop", "type": "Store"},
            geometry={"type": "Point", "coordinates": [77.6, 12.9]},
        )
        with tempfile.TemporaryDirectory() as tmp:
            om = tio.OutputManager(base_dir=tmp)
            om.create_run_directory("run_test")
            run_dir = om.export_all(ds, GeoConfig(), stores=[store], execution_time_sec=1.5)

            self.assertEqual(run_dir, Path(tmp) / "run_test")
            for name in ("bengaluru_taluks.csv", "bengaluru_stores.csv", "bengaluru_gis_full_data.csv"):
                self.assertTrue((run_dir / "layers" / name).exists(), msg=name)
            self.assertTrue((run_dir / "geojson" / "villages.geojson").exists())
            self.assertTrue((run_dir / "SUMMARY.txt").exists())

            meta = json.loads((run_dir / "metadata" / "config.json").read_text())
            self.assertEqual(meta["seed"], 7)
            self.assertEqual(meta["config"]["distance_model"], "planar")

            report = json.loads((run_dir / "analysis" / "generation_report.json").read_text())
            self.assertEqual(report["counts"]["taluks"], 8)
            self.assertEqual(report["counts"]["stores"], 1)

            full = tio.parse_csv_records((run_dir / "layers" / "bengaluru_gis_full_data.csv").read_text())
            self.assertEqual(len(full), len(ds.all_features()))


if __name__ == "__main__":
    unittest.main()
