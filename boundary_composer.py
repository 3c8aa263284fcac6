# boundary_composer.py
"""
Taluk and district boundaries.

Adjacent taluks share literal vertex tuples: every border point used by two
taluks is defined once below and referenced by both vertex lists, so the
polygons meet without gaps or overlaps. assert_shared_borders() re-checks the
declared borders at build time.

Districts have no geometry of their own: a district is the MultiPolygon of its
taluks' polygons.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from data_models import GeoCollection, GeoFeature, GenerationContext
from errors import BoundaryMismatchError
from metrics_enricher import enrich_feature, taluk_attributes

Vertex = Tuple[float, float]  # (lng, lat)

# --- Junctions where three taluks meet ---
J_NELAMANGALA_DODDABALLAPUR_NORTH: Vertex = (77.42, 13.18)
J_DODDABALLAPUR_DEVANAHALLI_NORTH: Vertex = (77.61, 13.21)
J_DEVANAHALLI_HOSKOTE_EAST: Vertex = (77.74, 13.08)
J_NORTH_EAST_SOUTH: Vertex = (77.61, 12.97)   # near the city centre
J_SOUTH_EAST_ANEKAL: Vertex = (77.66, 12.87)
J_SOUTH_ANEKAL_WEST: Vertex = (77.53, 12.82)

# --- Border vertices shared by exactly two taluks ---
B_NELAMANGALA_NORTH_1: Vertex = (77.45, 13.10)
B_NELAMANGALA_NORTH_2: Vertex = (77.48, 13.02)
B_DODDABALLAPUR_NORTH: Vertex = (77.52, 13.20)
B_DODDABALLAPUR_DEVANAHALLI: Vertex = (77.62, 13.35)
B_DEVANAHALLI_NORTH: Vertex = (77.68, 13.15)
B_DEVANAHALLI_HOSKOTE: Vertex = (77.78, 13.15)
B_NORTH_EAST_1: Vertex = (77.70, 13.05)
B_NORTH_EAST_2: Vertex = (77.65, 13.00)
B_NORTH_SOUTH: Vertex = (77.55, 12.98)        # Malleshwaram side
B_HOSKOTE_EAST_1: Vertex = (77.75, 12.95)
B_HOSKOTE_EAST_2: Vertex = (77.80, 12.92)
B_EAST_ANEKAL: Vertex = (77.75, 12.88)        # Sarjapur side
B_EAST_SOUTH: Vertex = (77.65, 12.92)
B_SOUTH_ANEKAL: Vertex = (77.60, 12.85)


COORDS_NELAMANGALA: List[Vertex] = [
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
    B_NELAMANGALA_NORTH_1,
    B_NELAMANGALA_NORTH_2,
    (77.42, 12.96),  # SW tip
    (77.35, 12.98),
    (77.25, 13.05),
    (77.22, 13.15),  # NW tip
    (77.28, 13.25),
    (77.35, 13.22),
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
]

COORDS_DODDABALLAPUR: List[Vertex] = [
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
    (77.38, 13.25),
    (77.35, 13.35),
    (77.40, 13.45),
    (77.45, 13.55),  # north tip
    (77.55, 13.52),
    (77.65, 13.48),
    B_DODDABALLAPUR_DEVANAHALLI,
    J_DODDABALLAPUR_DEVANAHALLI_NORTH,
    B_DODDABALLAPUR_NORTH,
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
]

COORDS_DEVANAHALLI: List[Vertex] = [
    J_DODDABALLAPUR_DEVANAHALLI_NORTH,
    B_DODDABALLAPUR_DEVANAHALLI,
    (77.68, 13.42),
    (77.78, 13.40),  # NE tip
    (77.85, 13.30),
    (77.82, 13.20),
    B_DEVANAHALLI_HOSKOTE,
    J_DEVANAHALLI_HOSKOTE_EAST,
    B_DEVANAHALLI_NORTH,
    J_DODDABALLAPUR_DEVANAHALLI_NORTH,
]

COORDS_HOSKOTE: List[Vertex] = [
    J_DEVANAHALLI_HOSKOTE_EAST,
    B_DEVANAHALLI_HOSKOTE,
    (77.88, 13.12),  # NE tip
    (77.92, 13.00),
    (77.88, 12.90),
    B_HOSKOTE_EAST_2,
    B_HOSKOTE_EAST_1,
    J_DEVANAHALLI_HOSKOTE_EAST,
]

COORDS_BLR_NORTH: List[Vertex] = [
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
    B_DODDABALLAPUR_NORTH,
    J_DODDABALLAPUR_DEVANAHALLI_NORTH,
    B_DEVANAHALLI_NORTH,
    J_DEVANAHALLI_HOSKOTE_EAST,
    B_NORTH_EAST_1,
    B_NORTH_EAST_2,
    J_NORTH_EAST_SOUTH,
    B_NORTH_SOUTH,
    (77.50, 13.00),
    B_NELAMANGALA_NORTH_2,
    B_NELAMANGALA_NORTH_1,
    J_NELAMANGALA_DODDABALLAPUR_NORTH,
]

COORDS_BLR_EAST: List[Vertex] = [
    J_NORTH_EAST_SOUTH,
    B_NORTH_EAST_2,
    B_NORTH_EAST_1,
    J_DEVANAHALLI_HOSKOTE_EAST,
    B_HOSKOTE_EAST_1,
    B_HOSKOTE_EAST_2,
    B_EAST_ANEKAL,
    J_SOUTH_EAST_ANEKAL,
    B_EAST_SOUTH,
    J_NORTH_EAST_SOUTH,
]

COORDS_BLR_SOUTH: List[Vertex] = [
    J_NORTH_EAST_SOUTH,
    B_EAST_SOUTH,
    J_SOUTH_EAST_ANEKAL,
    B_SOUTH_ANEKAL,
    J_SOUTH_ANEKAL_WEST,
    (77.48, 12.88),  # Kengeri side
    (77.48, 12.95),
    B_NORTH_SOUTH,
    J_NORTH_EAST_SOUTH,
]

COORDS_ANEKAL: List[Vertex] = [
    J_SOUTH_ANEKAL_WEST,
    B_SOUTH_ANEKAL,
    J_SOUTH_EAST_ANEKAL,
    B_EAST_ANEKAL,
    (77.82, 12.80),  # Attibele
    (77.78, 12.70),
    (77.70, 12.65),  # south tip
    (77.60, 12.68),
    (77.52, 12.75),
    J_SOUTH_ANEKAL_WEST,
]


# Declared borders: taluk pair -> vertices both rings must contain
SHARED_BORDERS: Dict[Tuple[str, str], Tuple[Vertex, ...]] = {
    ("Nelamangala", "Doddaballapur"): (J_NELAMANGALA_DODDABALLAPUR_NORTH,),
    ("Nelamangala", "Bengaluru North"): (
        J_NELAMANGALA_DODDABALLAPUR_NORTH, B_NELAMANGALA_NORTH_1, B_NELAMANGALA_NORTH_2,
    ),
    ("Doddaballapur", "Devanahalli"): (J_DODDABALLAPUR_DEVANAHALLI_NORTH, B_DODDABALLAPUR_DEVANAHALLI),
    ("Doddaballapur", "Bengaluru North"): (
        J_NELAMANGALA_DODDABALLAPUR_NORTH, B_DODDABALLAPUR_NORTH, J_DODDABALLAPUR_DEVANAHALLI_NORTH,
    ),
    ("Devanahalli", "Hoskote"): (J_DEVANAHALLI_HOSKOTE_EAST, B_DEVANAHALLI_HOSKOTE),
    ("Devanahalli", "Bengaluru North"): (
        J_DODDABALLAPUR_DEVANAHALLI_NORTH, B_DEVANAHALLI_NORTH, J_DEVANAHALLI_HOSKOTE_EAST,
    ),
    ("Hoskote", "Bengaluru East"): (J_DEVANAHALLI_HOSKOTE_EAST, B_HOSKOTE_EAST_1, B_HOSKOTE_EAST_2),
    ("Bengaluru North", "Bengaluru East"): (
        J_DEVANAHALLI_HOSKOTE_EAST, B_NORTH_EAST_1, B_NORTH_EAST_2, J_NORTH_EAST_SOUTH,
    ),
    ("Bengaluru North", "Bengaluru South"): (J_NORTH_EAST_SOUTH, B_NORTH_SOUTH),
    ("Bengaluru East", "Bengaluru South"): (J_NORTH_EAST_SOUTH, B_EAST_SOUTH, J_SOUTH_EAST_ANEKAL),
    ("Bengaluru East", "Anekal"): (J_SOUTH_EAST_ANEKAL, B_EAST_ANEKAL),
    ("Bengaluru South", "Anekal"): (J_SOUTH_EAST_ANEKAL, B_SOUTH_ANEKAL, J_SOUTH_ANEKAL_WEST),
}


@dataclass(frozen=True)
class TalukSpec:
    name: str
    district: str
    coords: Sequence[Vertex]
    population: int
    literacy_rate: float
    center: Tuple[float, float]        # (lat, lng)
    crops: Optional[Tuple[str, ...]] = None
    key_markets: Optional[Tuple[str, ...]] = None


TALUKS: List[TalukSpec] = [
    TalukSpec("Doddaballapur", "Bengaluru Rural", COORDS_DODDABALLAPUR, 297587, 78.2, (13.40, 77.55),
              ("Ragi", "Maize", "Silk"), ("Apparel Park", "Weaving")),
    TalukSpec("Devanahalli", "Bengaluru Rural", COORDS_DEVANAHALLI, 209622, 84.5, (13.25, 77.75),
              ("Grapes", "Vegetables", "Flowers"), ("Aerospace", "Logistics")),
    TalukSpec("Nelamangala", "Bengaluru Rural", COORDS_NELAMANGALA, 232145, 76.8, (13.10, 77.30),
              ("Ragi", "Arecanut", "Coconut"), ("Industrial", "Warehousing")),
    TalukSpec("Hoskote", "Bengaluru Rural", COORDS_HOSKOTE, 270818, 81.3, (13.05, 77.85),
              ("Vegetables", "Flowers", "Tomato"), ("Auto Components", "Logistics")),
    TalukSpec("Bengaluru North", "Bengaluru Urban", COORDS_BLR_NORTH, 1200000, 88.5, (13.08, 77.55),
              None, ("Peenya Industrial", "Research Inst.", "Aerospace")),
    TalukSpec("Bengaluru East", "Bengaluru Urban", COORDS_BLR_EAST, 1100000, 89.2, (13.00, 77.75),
              None, ("IT/BT", "Whitefield Cluster", "Tech Parks")),
    TalukSpec("Bengaluru South", "Bengaluru Urban", COORDS_BLR_SOUTH, 1500000, 90.1, (12.92, 77.58),
              None, ("Software", "Education Hub", "Heavy Engg")),
    TalukSpec("Anekal", "Bengaluru Urban", COORDS_ANEKAL, 600000, 82.4, (12.75, 77.65),
              ("Ragi", "Floriculture"), ("Electronic City", "Textiles")),
]

# Static census figures; geometry and numTaluks come from the member taluks
DISTRICTS: List[dict] = [
    {
        "id": "dist-rural",
        "geocode": "KAD01",
        "name": "Bengaluru Rural",
        "description": "District surrounding Bengaluru Urban.",
        "population": 990923,
        "literacyRate": 77.93,
        "areaSqKm": 2298,
        "sexRatio": 946,
        "economicFocus": "Agriculture, Textiles, Industrial Parks",
    },
    {
        "id": "dist-urban",
        "geocode": "KAD02",
        "name": "Bengaluru Urban",
        "description": "The capital district of Karnataka.",
        "population": 9621551,
        "literacyRate": 87.67,
        "areaSqKm": 2196,
        "sexRatio": 916,
        "economicFocus": "IT/BT, Services, Manufacturing, Aerospace",
    },
]


def assert_shared_borders(rings: Dict[str, Sequence[Sequence[float]]]) -> None:
    """Raise BoundaryMismatchError if a declared border vertex is missing from either neighbour."""
    for (a, b), shared in SHARED_BORDERS.items():
        if a not in rings or b not in rings:
            raise BoundaryMismatchError(f"border {a} / {b} references an unknown taluk")
        vertices_a = {tuple(v) for v in rings[a]}
        vertices_b = {tuple(v) for v in rings[b]}
        for vertex in shared:
            if vertex not in vertices_a or vertex not in vertices_b:
                raise BoundaryMismatchError(
                    f"taluks {a} and {b} disagree on shared vertex {vertex}"
                )


def build_taluks(ctx: GenerationContext, specs: Optional[List[TalukSpec]] = None) -> GeoCollection:
    if specs is None:
        specs = TALUKS

    assert_shared_borders({t.name: t.coords for t in specs})

    features: List[GeoFeature] = []
    for i, t in enumerate(specs):
        feature_id = f"taluk-{i}"
        lat, lng = t.center
        props = {
            "id": feature_id,
            "geocode": f"KAT{i + 1:02d}",
            "name": t.name,
            "district": t.district,
            "type": "Taluk",
            "population": t.population,
            "literacyRate": t.literacy_rate,
            "latitude": lat,
            "longitude": lng,
            "description": f"Administrative Taluk in {t.district}",
        }
        if t.crops:
            props["mainCrops"] = list(t.crops)
        if t.key_markets:
            props["keyMarkets"] = list(t.key_markets)
        props.update(taluk_attributes(t.population, ctx.rng, ctx.cfg))

        feature = GeoFeature(
            id=feature_id,
            properties=props,
            geometry={"type": "Polygon", "coordinates": [[list(v) for v in t.coords]]},
        )
        features.append(enrich_feature(feature, ctx.cfg))

    return GeoCollection("Taluk", features)


def build_districts(taluks: GeoCollection, ctx: GenerationContext) -> GeoCollection:
    features: List[GeoFeature] = []
    for spec in DISTRICTS:
        members = [t for t in taluks if t.properties["district"] == spec["name"]]
        if not members:
            continue

        lat = sum(t.properties["latitude"] for t in members) / len(members)
        lng = sum(t.properties["longitude"] for t in members) / len(members)
        props = dict(spec)
        props.update({
            "type": "District",
            "numTaluks": len(members),
            "latitude": lat,
            "longitude": lng,
        })

        feature = GeoFeature(
            id=spec["id"],
            properties=props,
            geometry={
                "type": "MultiPolygon",
                "coordinates": [t.geometry["coordinates"] for t in members],
            },
        )
        features.append(enrich_feature(feature, ctx.cfg))

    return GeoCollection("District", features)
