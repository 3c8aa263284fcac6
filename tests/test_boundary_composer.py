import unittest

import boundary_composer as bc
from config import GeoConfig
from data_models import GenerationContext
from errors import BoundaryMismatchError
from geo_primitives import is_valid_ring


def _vertex_set(feature):
    return {tuple(v) for v in feature.geometry["coordinates"][0]}


class SharedBorderTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.taluks = bc.build_taluks(GenerationContext(GeoConfig(), seed=7))
        cls.by_name = {t.properties["name"]: t for t in cls.taluks}

    def test_declared_neighbours_share_exact_vertices(self):
        for (a, b), shared in bc.SHARED_BORDERS.items():
            common = _vertex_set(self.by_name[a]) & _vertex_set(self.by_name[b])
            self.assertTrue(common, msg=f"{a} / {b} share no vertex")
            for vertex in shared:
                self.assertIn(vertex, common, msg=f"{a} / {b} missing {vertex}")

    def test_every_taluk_has_a_declared_neighbour(self):
        named = {name for pair in bc.SHARED_BORDERS for name in pair}
        self.assertEqual(named, set(self.by_name))

    def test_diverging_vertex_is_detected(self):
        rings = {t.name: list(t.coords) for t in bc.TALUKS}
        hoskote = rings["Hoskote"]
        i = hoskote.index(bc.B_DEVANAHALLI_HOSKOTE)
        hoskote[i] = (77.781, 13.15)
        with self.assertRaises(BoundaryMismatchError):
            bc.assert_shared_borders(rings)

    def test_missing_taluk_is_detected(self):
        rings = {t.name: t.coords for t in bc.TALUKS if t.name != "Anekal"}
        with self.assertRaises(BoundaryMismatchError):
            bc.assert_shared_borders(rings)


class TalukTests(unittest.TestCase):
    def setUp(self):
        self.ctx = GenerationContext(GeoConfig(), seed=7)
        self.taluks = bc.build_taluks(self.ctx)

    def test_ids_and_geocodes(self):
        self.assertEqual(len(self.taluks), 8)
        self.assertEqual([t.id for t in self.taluks], [f"taluk-{i}" for i in range(8)])
        self.assertEqual([t.geocode for t in self.taluks], [f"KAT{i:02d}" for i in range(1, 9)])

    def test_rings_are_valid_and_closed(self):
        for t in self.taluks:
            ring = t.geometry["coordinates"][0]
            self.assertEqual(t.geometry["type"], "Polygon")
            self.assertTrue(is_valid_ring(ring), msg=t.properties["name"])

    def test_attributes(self):
        dodda = self.taluks.by_geocode("KAT01")
        p = dodda.properties
        self.assertEqual(p["name"], "Doddaballapur")
        self.assertEqual(p["type"], "Taluk")
        self.assertEqual(p["population"], 297587)
        self.assertEqual(p["schoolCount"], 297587 // 2500)
        self.assertEqual(p["hospitalCount"], 297587 // 15000)
        self.assertEqual(p["mainCrops"], ["Ragi", "Maize", "Silk"])
        self.assertTrue(200 <= p["areaSqKm"] < 300)
        self.assertTrue(930 <= p["sexRatio"] < 970)
        self.assertIn("distanceToCityKm", p)
        self.assertIn("nearestRailway", p)

    def test_urban_taluk_without_crops_has_no_crop_field(self):
        north = self.taluks.by_geocode("KAT05")
        self.assertEqual(north.properties["name"], "Bengaluru North")
        self.assertNotIn("mainCrops", north.properties)


class DistrictTests(unittest.TestCase):
    def setUp(self):
        self.ctx = GenerationContext(GeoConfig(), seed=7)
        self.taluks = bc.build_taluks(self.ctx)
        self.districts = bc.build_districts(self.taluks, self.ctx)

    def test_two_districts(self):
        self.assertEqual([d.id for d in self.districts], ["dist-rural", "dist-urban"])
        self.assertEqual([d.geocode for d in self.districts], ["KAD01", "KAD02"])

    def test_geometry_is_union_of_member_taluks(self):
        for d in self.districts:
            members = [t for t in self.taluks if t.properties["district"] == d.properties["name"]]
            self.assertEqual(d.geometry["type"], "MultiPolygon")
            self.assertEqual(d.geometry["coordinates"], [t.geometry["coordinates"] for t in members])
            self.assertEqual(d.properties["numTaluks"], len(members))

    def test_representative_point_is_mean_of_taluk_centres(self):
        rural = self.districts.by_id("dist-rural")
        members = [t for t in self.taluks if t.properties["district"] == "Bengaluru Rural"]
        expected = sum(t.properties["latitude"] for t in members) / len(members)
        self.assertAlmostEqual(rural.properties["latitude"], expected)
        self.assertEqual(rural.properties["population"], 990923)


if __name__ == "__main__":
    unittest.main()
