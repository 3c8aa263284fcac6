import math
import random
import unittest

import geo_primitives as gp
from errors import GeometryValidationError

SQUARE = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]


class PointInPolygonTests(unittest.TestCase):
    def test_inside_and_outside_square(self):
        self.assertTrue(gp.point_in_polygon([0.5, 0.5], SQUARE))
        self.assertFalse(gp.point_in_polygon([1.5, 0.5], SQUARE))
        self.assertFalse(gp.point_in_polygon([0.5, -0.1], SQUARE))

    def test_concave_notch_is_outside(self):
        # U shape: the notch between the arms is outside
        u_shape = [[0, 0], [3, 0], [3, 3], [2, 3], [2, 1], [1, 1], [1, 3], [0, 3], [0, 0]]
        self.assertTrue(gp.point_in_polygon([0.5, 2.5], u_shape))
        self.assertFalse(gp.point_in_polygon([1.5, 2.5], u_shape))


class RingValidityTests(unittest.TestCase):
    def test_closed_square_is_valid(self):
        self.assertTrue(gp.is_valid_ring(SQUARE))

    def test_closed_triangle_is_smallest_valid_ring(self):
        self.assertTrue(gp.is_valid_ring([[0, 0], [1, 0], [0, 1], [0, 0]]))
        self.assertFalse(gp.is_valid_ring([[0, 0], [1, 0], [0, 0]]))

    def test_open_ring_is_invalid(self):
        self.assertFalse(gp.is_valid_ring(SQUARE[:-1]))

    def test_nan_vertex_is_invalid(self):
        ring = [list(v) for v in SQUARE]
        ring[2][1] = float("nan")
        self.assertFalse(gp.is_valid_ring(ring))

    def test_non_numeric_vertex_is_invalid(self):
        self.assertFalse(gp.is_valid_ring([[0, 0], ["a", 0], [0, 1], [0, 0]]))
        self.assertFalse(gp.is_valid_ring(None))

    def test_ensure_valid_ring_raises(self):
        with self.assertRaises(GeometryValidationError):
            gp.ensure_valid_ring([[0, 0], [1, 1]])
        self.assertIs(gp.ensure_valid_ring(SQUARE), SQUARE)


class OrganicPolygonTests(unittest.TestCase):
    def test_ring_is_closed_with_six_to_nine_sides(self):
        rng = random.Random(1)
        for _ in range(50):
            ring = gp.generate_organic_polygon(13.0, 77.5, 0.005, rng)
            self.assertTrue(gp.is_valid_ring(ring))
            self.assertEqual(ring[0], ring[-1])
            self.assertGreaterEqual(len(ring) - 1, 6)
            self.assertLessEqual(len(ring) - 1, 9)

    def test_vertices_stay_within_jittered_radius(self):
        rng = random.Random(3)
        ring = gp.generate_organic_polygon(13.0, 77.5, 0.005, rng)
        for lng, lat in ring:
            self.assertLessEqual(abs(lng - 77.5), 0.005 * 1.2 + 1e-12)
            # latitude offsets are flattened
            self.assertLessEqual(abs(lat - 13.0), 0.005 * 1.2 * 0.85 + 1e-12)

    def test_same_rng_state_gives_same_polygon(self):
        a = gp.generate_organic_polygon(13.0, 77.5, 0.005, random.Random(42))
        b = gp.generate_organic_polygon(13.0, 77.5, 0.005, random.Random(42))
        self.assertEqual(a, b)

    def test_centre_stays_inside_polygon(self):
        rng = random.Random(9)
        ring = gp.generate_organic_polygon(13.0, 77.5, 0.005, rng)
        self.assertTrue(gp.point_in_polygon([77.5, 13.0], ring))


class DistanceTests(unittest.TestCase):
    def test_planar_distance_is_degrees_times_111(self):
        self.assertAlmostEqual(gp.planar_distance_km(0, 0, 1, 0), 111.0)
        self.assertAlmostEqual(gp.planar_distance_km(0, 0, 3, 4), 555.0)
        self.assertEqual(gp.planar_distance_km(12.9, 77.5, 12.9, 77.5), 0.0)

    def test_planar_distance_custom_scale(self):
        self.assertAlmostEqual(gp.planar_distance_km(0, 0, 0, 2, km_per_degree=100.0), 200.0)

    def test_haversine_one_degree_latitude(self):
        d = gp.haversine_km((12.0, 77.0), (13.0, 77.0))
        self.assertAlmostEqual(d, 6371.0 * math.radians(1.0), places=6)

    def test_haversine_shorter_than_planar_along_longitude(self):
        # longitude degrees shrink away from the equator
        planar = gp.planar_distance_km(13.0, 77.0, 13.0, 78.0)
        self.assertLess(gp.haversine_km((13.0, 77.0), (13.0, 78.0)), planar)


class BoundsTests(unittest.TestCase):
    def test_ring_bounds(self):
        self.assertEqual(gp.ring_bounds(SQUARE), (0.0, 0.0, 1.0, 1.0))

    def test_point_bounds(self):
        self.assertEqual(gp.geometry_bounds({"type": "Point", "coordinates": [77.5, 13.0]}), (77.5, 13.0, 77.5, 13.0))

    def test_multipolygon_bounds_cover_all_parts(self):
        other = [[2.0, 2.0], [3.0, 2.0], [3.0, 3.0], [2.0, 2.0]]
        geom = {"type": "MultiPolygon", "coordinates": [[SQUARE], [other]]}
        self.assertEqual(gp.geometry_bounds(geom), (0.0, 0.0, 3.0, 3.0))
        self.assertEqual(len(gp.geometry_rings(geom)), 2)

    def test_empty_geometry_raises(self):
        with self.assertRaises(GeometryValidationError):
            gp.geometry_bounds({"type": "Polygon", "coordinates": []})


if __name__ == "__main__":
    unittest.main()
