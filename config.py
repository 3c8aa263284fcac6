# config.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple, List


@dataclass(frozen=True)
class GeoConfig:
    # --- Village synthesis ---
    village_target_per_taluk: int = 35     # villages wanted per taluk (curated + sampled)
    village_attempt_cap: int = 400         # max rejection-sampling draws per taluk
    village_base_radius_deg: float = 0.005
    village_min_sides: int = 6
    village_max_sides: int = 9             # inclusive
    radius_jitter: Tuple[float, float] = (0.8, 1.2)
    lat_flatten: float = 0.85              # squashes polygons vertically (latitude compression)
    village_geocode_start: int = 1001

    # --- Pincode tessellation ---
    # (west, south, east, north) clipping rectangle for the Voronoi cells
    voronoi_bounds: Tuple[float, float, float, float] = (77.10, 12.50, 78.10, 13.65)

    # --- Distance model ---
    # planar: sqrt(dlat^2 + dlng^2) * km_per_degree. Known approximation, kept for demo consistency.
    distance_model: str = "planar"         # "planar" or "haversine"
    km_per_degree: float = 111.0

    # --- Retail scanner (Overpass) ---
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_server_timeout_s: int = 90    # [timeout:..] inside the query
    request_timeout_s: float = 120.0       # client-side abort per HTTP request
    user_agent: str = "geo-retail-dashboard/1.0"
    rate_limit_retries: int = 5            # HTTP 429
    rate_limit_base_delay_s: float = 3.0   # 3s, 6s, 12s, 24s, 48s
    rate_limit_jitter_s: float = 1.0
    gateway_retries: int = 2               # HTTP 502/504 and client timeouts
    gateway_retry_delay_s: float = 2.0
    max_split_depth: int = 2               # quadrant recursion limit
    quadrant_pacing_s: float = 0.2
    default_radius_m: int = 5000

    # --- Synthetic attribute vocabularies ---
    water_sources: List[str] = None
    road_conditions: List[str] = None
    bus_frequencies: List[str] = None
    excluded_shop_values: List[str] = None

    # --- Per-type numeric ranges for demonstration attributes ---
    attribute_ranges: Dict[str, Dict[str, Tuple[float, float]]] = None

    def __post_init__(self):
        # dataclass(frozen=True) blocks normal assignment, so we use object.__setattr__
        if self.water_sources is None:
            object.__setattr__(
                self, "water_sources",
                ["Borewell", "Kaveri Connection", "Local Lake/Tank", "Panchayat Supply"],
            )
        if self.road_conditions is None:
            object.__setattr__(
                self, "road_conditions",
                ["Asphalted", "Concrete", "Gravel/Mud", "All-weather"],
            )
        if self.bus_frequencies is None:
            object.__setattr__(
                self, "bus_frequencies",
                ["Hourly", "Every 30 mins", "Twice a day", "Irregular"],
            )
        if self.excluded_shop_values is None:
            object.__setattr__(
                self, "excluded_shop_values",
                ["vacant", "empty", "disused", "no", "closed", "abandoned"],
            )

        if self.attribute_ranges is None:
            object.__setattr__(
                self,
                "attribute_ranges",
                {
                    # (low, high): uniform draws, upper bound exclusive
                    "Taluk": {
                        "areaSqKm": (200.0, 300.0),
                        "sexRatio": (930, 970),
                        "numVillages": (150, 250),
                    },
                    "Village": {
                        "population": (500, 4500),
                        "areaSqKm": (1.0, 3.0),
                        "literacyRate": (60.0, 90.0),
                        "schoolCount": (0, 3),
                    },
                    "Pincode": {
                        "population": (20000, 100000),
                        "areaSqKm": (10.0, 30.0),
                        "literacyRate": (75.0, 95.0),
                    },
                },
            )
