import unittest

import pincode_tessellator as pt
from config import GeoConfig
from data_models import GenerationContext
from geo_primitives import is_valid_ring, point_in_polygon

BOUNDS = (0.0, 0.0, 10.0, 10.0)


class VoronoiCellTests(unittest.TestCase):
    def test_one_clipped_cell_per_point(self):
        points = [(2.0, 2.0), (8.0, 2.0), (2.0, 8.0), (8.0, 8.0)]
        cells = pt.voronoi_cells(points, BOUNDS)
        self.assertEqual(len(cells), 4)
        for point, ring in zip(points, cells):
            self.assertIsNotNone(ring)
            self.assertTrue(is_valid_ring(ring))
            self.assertTrue(point_in_polygon(point, ring))
            for x, y in ring:
                self.assertTrue(0.0 - 1e-9 <= x <= 10.0 + 1e-9)
                self.assertTrue(0.0 - 1e-9 <= y <= 10.0 + 1e-9)

    def test_symmetric_points_split_the_box_in_quarters(self):
        from shapely.geometry import Polygon

        points = [(2.5, 2.5), (7.5, 2.5), (2.5, 7.5), (7.5, 7.5)]
        cells = pt.voronoi_cells(points, BOUNDS)
        for ring in cells:
            self.assertAlmostEqual(Polygon(ring).area, 25.0, places=6)

    def test_hull_points_still_get_cells(self):
        # a collinear-free triangle: every seed is on the convex hull
        cells = pt.voronoi_cells([(1.0, 1.0), (9.0, 1.0), (5.0, 9.0)], BOUNDS)
        self.assertTrue(all(c is not None for c in cells))

    def test_nan_seed_raises_tessellation_error(self):
        with self.assertRaises(pt.TessellationError):
            pt.voronoi_cells([(1.0, 1.0), (float("nan"), 2.0), (5.0, 5.0)], BOUNDS)

    def test_too_few_points_raises(self):
        with self.assertRaises(pt.TessellationError):
            pt.voronoi_cells([(1.0, 1.0)], BOUNDS)


class BuildPincodesTests(unittest.TestCase):
    def test_default_seeds(self):
        ctx = GenerationContext(GeoConfig(), seed=7)
        pins = pt.build_pincodes(ctx)
        # 560069 shares its centre with 560041 and gets no cell
        self.assertEqual(len(pins), len(pt.REAL_PINCODES) - 1)
        self.assertIsNotNone(pins.by_id("pin-560041"))
        self.assertIsNone(pins.by_id("pin-560069"))

        mg_road = pins.by_geocode("KAP560001")
        self.assertEqual(mg_road.id, "pin-560001")
        self.assertEqual(mg_road.properties["name"], "560001 - M.G. Road")
        self.assertEqual(mg_road.properties["keyMarkets"], ["High St Retail", "Corporate HQs"])

    def test_each_seed_lies_in_its_own_cell(self):
        ctx = GenerationContext(GeoConfig(), seed=7)
        for f in pt.build_pincodes(ctx):
            ring = f.geometry["coordinates"][0]
            self.assertTrue(is_valid_ring(ring), msg=f.id)
            self.assertTrue(point_in_polygon([f.properties["longitude"], f.properties["latitude"]], ring), msg=f.id)

    def test_post_office_name_matches_status(self):
        ctx = GenerationContext(GeoConfig(), seed=7)
        suffix = {"Head Post Office": "H.O", "Sub Post Office": "S.O", "Branch Post Office": "B.O"}
        for f in pt.build_pincodes(ctx):
            p = f.properties
            self.assertTrue(p["postOfficeName"].endswith(suffix[p["postOfficeStatus"]]))
            self.assertEqual(p["householdCount"], p["population"] // 4)

    def test_nan_seed_degrades_to_empty_layer(self):
        seeds = [
            pt.PincodeSeed("000001", 12.9, 77.5, "A", "X"),
            pt.PincodeSeed("000002", float("nan"), 77.6, "B", "X"),
            pt.PincodeSeed("000003", 13.0, 77.7, "C", "X"),
        ]
        ctx = GenerationContext(GeoConfig(), seed=7)
        with self.assertLogs("pincode_tessellator", level="WARNING"):
            pins = pt.build_pincodes(ctx, seeds)
        self.assertEqual(len(pins), 0)
        self.assertIn("tessellation_error", ctx.report)

    def test_duplicate_seed_keeps_first(self):
        seeds = [
            pt.PincodeSeed("000001", 12.9, 77.5, "A", "X"),
            pt.PincodeSeed("000002", 13.0, 77.7, "B", "X"),
            pt.PincodeSeed("000003", 12.9, 77.5, "C", "X"),
        ]
        pins = pt.build_pincodes(GenerationContext(GeoConfig(), seed=7), seeds)
        self.assertEqual([f.id for f in pins], ["pin-000001", "pin-000002"])


if __name__ == "__main__":
    unittest.main()
