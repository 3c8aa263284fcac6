import unittest
from unittest.mock import MagicMock, patch

import dashboard
from data_models import GeoFeature
from errors import NetworkFatal


def _region():
    ring = [[77.5, 12.9], [77.6, 12.9], [77.6, 13.0], [77.5, 13.0], [77.5, 12.9]]
    return GeoFeature(
        id="taluk-0",
        properties={"geocode": "KAT01", "name": "Doddaballapur", "type": "Taluk"},
        geometry={"type": "Polygon", "coordinates": [ring]},
    )


def _store(i):
    return GeoFeature(
        id=f"osm-{i}",
        properties={"geocode": f"OSM-{i}", "name": "Shop", "type": "Store"},
        geometry={"type": "Point", "coordinates": [77.55, 12.95]},
    )


class ScanStatusTests(unittest.TestCase):
    def setUp(self):
        self.st = MagicMock()
        self.st.session_state = {}
        patcher = patch.object(dashboard, "st", self.st)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_fatal_scan_keeps_message_for_next_run(self):
        scanner = MagicMock()
        scanner.scan_regions.side_effect = NetworkFatal("b: Server is too busy", status=429, partial=[_store(1)])

        stores = dashboard.run_scan(scanner, [_region()], scan_all=True)

        self.assertEqual([s.id for s in stores], ["osm-1"])
        self.assertEqual(self.st.session_state["scan_error"], {"message": "b: Server is too busy", "kept": 1})

        # the page reruns; the error is drawn from session_state
        dashboard.display_scan_status()
        self.st.error.assert_called_once()
        self.assertIn("Server is too busy", self.st.error.call_args[0][0])
        self.st.warning.assert_called_once()
        self.assertIn("retry", self.st.info.call_args[0][0])

    def test_successful_scan_clears_previous_error(self):
        self.st.session_state["scan_error"] = {"message": "old failure", "kept": 0}
        scanner = MagicMock()
        scanner.scan_bounding_box.return_value = [_store(1), _store(2)]

        stores = dashboard.run_scan(scanner, [_region()], scan_all=False)

        self.assertEqual(len(stores), 2)
        self.assertNotIn("scan_error", self.st.session_state)
        scanner.scan_bounding_box.assert_called_once()
        self.assertEqual(scanner.scan_bounding_box.call_args[0][:4], (12.9, 77.5, 13.0, 77.6))

        dashboard.display_scan_status()
        self.st.error.assert_not_called()
        self.st.success.assert_called_once_with("✅ Found 2 stores")


if __name__ == "__main__":
    unittest.main()
