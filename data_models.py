# data_models.py
from __future__ import annotations
import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Literal


FeatureType = Literal["District", "Taluk", "Village", "Pincode", "Store"]
GeometryType = Literal["Polygon", "Point", "MultiPolygon"]
ScanState = Literal["IDLE", "QUERYING", "SUCCESS", "RATE_LIMITED", "GATEWAY_ERROR", "TIMEOUT", "FATAL"]


@dataclass(frozen=True)
class GeoFeature:
    id: str                        # unique across every collection
    properties: Dict[str, Any]     # geocode, name, type + type-specific attributes
    geometry: Dict[str, Any]       # GeoJSON geometry dict ([lng, lat] order)
    type: str = "Feature"

    @property
    def geocode(self) -> str:
        return self.properties["geocode"]

    @property
    def feature_type(self) -> str:
        return self.properties["type"]

    def merged(self, attributes: Dict[str, Any]) -> "GeoFeature":
        """New feature with `attributes` overriding the current properties."""
        return replace(self, properties={**self.properties, **attributes})

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "properties": dict(self.properties),
            "geometry": self.geometry,
        }


@dataclass
class GeoCollection:
    feature_type: str
    features: List[GeoFeature] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def by_geocode(self, geocode: str) -> Optional[GeoFeature]:
        return next((f for f in self.features if f.geocode == geocode), None)

    def by_id(self, feature_id: str) -> Optional[GeoFeature]:
        return next((f for f in self.features if f.id == feature_id), None)

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "FeatureCollection", "features": [f.to_geojson() for f in self.features]}


@dataclass
class GeoDataset:
    districts: GeoCollection
    taluks: GeoCollection
    villages: GeoCollection
    pincodes: GeoCollection
    seed: Optional[int] = None
    # per-layer notes: placement shortfall per taluk, dropped rings, skipped cells
    report: Dict[str, Any] = field(default_factory=dict)

    def collections(self) -> Dict[str, GeoCollection]:
        return {
            "districts": self.districts,
            "taluks": self.taluks,
            "villages": self.villages,
            "pincodes": self.pincodes,
        }

    def all_features(self) -> List[GeoFeature]:
        features: List[GeoFeature] = []
        for collection in self.collections().values():
            features.extend(collection.features)
        return features


@dataclass(frozen=True)
class BoundingBox:
    south: float
    west: float
    north: float
    east: float

    def midpoint(self) -> Tuple[float, float]:
        return (self.south + self.north) / 2, (self.west + self.east) / 2

    def quadrants(self) -> List["BoundingBox"]:
        """SW, SE, NW, NE halves of the box along both axes."""
        mid_lat, mid_lng = self.midpoint()
        return [
            BoundingBox(self.south, self.west, mid_lat, mid_lng),
            BoundingBox(self.south, mid_lng, mid_lat, self.east),
            BoundingBox(mid_lat, self.west, self.north, mid_lng),
            BoundingBox(mid_lat, mid_lng, self.north, self.east),
        ]

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_overpass(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


@dataclass
class ScanOutcome:
    features: List[GeoFeature] = field(default_factory=list)
    state: ScanState = "IDLE"
    depth: int = 0                  # deepest recursion level that issued a query
    queries: int = 0                # HTTP requests sent, retries included
    failed_boxes: List[BoundingBox] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.state in ("RATE_LIMITED", "GATEWAY_ERROR", "TIMEOUT", "FATAL")


class GenerationContext:
    """
    Owns the mutable state of one generation run: the seeded RNG and the
    village id / geocode counters. A fresh context gives a reproducible dataset.
    """

    def __init__(self, cfg, seed: Optional[int] = 7):
        self.cfg = cfg
        self.seed = seed
        self.rng = random.Random(seed)
        self.village_geocode = cfg.village_geocode_start
        self.village_seq = 0
        self.report: Dict[str, Any] = {}

    def next_village_codes(self) -> Tuple[str, str]:
        """(id, geocode) for the next village; only call once the village is kept."""
        feature_id = f"village-{self.village_seq}"
        geocode = f"KAV{self.village_geocode}"
        self.village_seq += 1
        self.village_geocode += 1
        return feature_id, geocode
