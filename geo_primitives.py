# geo_primitives.py
from __future__ import annotations
import math
import random
from typing import List, Sequence, Tuple

from errors import GeometryValidationError

# Coordinates follow GeoJSON order: [lng, lat]
Ring = List[List[float]]


def point_in_polygon(point: Sequence[float], ring: Sequence[Sequence[float]]) -> bool:
    """Ray-casting (even-odd) test of a [lng, lat] point against one ring."""
    x, y = point[0], point[1]
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def is_valid_ring(ring) -> bool:
    """At least three finite vertices plus a closing vertex equal to the first."""
    if not isinstance(ring, (list, tuple)) or len(ring) < 4:
        return False
    for vertex in ring:
        if not isinstance(vertex, (list, tuple)) or len(vertex) < 2:
            return False
        try:
            if not (math.isfinite(vertex[0]) and math.isfinite(vertex[1])):
                return False
        except TypeError:
            return False
    return list(ring[0][:2]) == list(ring[-1][:2])


def ensure_valid_ring(ring) -> Ring:
    if not is_valid_ring(ring):
        raise GeometryValidationError(f"invalid ring with {len(ring) if ring else 0} vertices")
    return ring


def generate_organic_polygon(
    center_lat: float,
    center_lng: float,
    base_radius: float,
    rng: random.Random,
    min_sides: int = 6,
    max_sides: int = 9,
    jitter: Tuple[float, float] = (0.8, 1.2),
    lat_flatten: float = 0.85,
) -> Ring:
    """
    Irregular polygon around a centre point (used for villages).
      - 6..9 evenly spaced angles
      - each radius scaled by a factor in [jitter[0], jitter[1])
      - latitude offsets multiplied by lat_flatten
    The ring is closed by repeating the first vertex.
    """
    sides = rng.randint(min_sides, max_sides)
    low, high = jitter
    ring: Ring = []
    for i in range(sides):
        angle = (i * 2 * math.pi) / sides
        r = base_radius * (low + rng.random() * (high - low))
        ring.append([
            center_lng + r * math.cos(angle),
            center_lat + r * math.sin(angle) * lat_flatten,
        ])
    ring.append(list(ring[0]))
    return ring


def planar_distance_km(lat1: float, lng1: float, lat2: float, lng2: float, km_per_degree: float = 111.0) -> float:
    """
    Euclidean distance in degrees scaled to km.
    Not geodesic: ignores longitude convergence. Good enough at city scale.
    """
    return math.sqrt((lat2 - lat1) ** 2 + (lng2 - lng1) ** 2) * km_per_degree


def haversine_km(coord1: Tuple[float, float], coord2: Tuple[float, float]) -> float:
    """
    Great-circle distance between two (latitude, longitude) pairs in kilometers.
    """
    lat1, lon1 = math.radians(coord1[0]), math.radians(coord1[1])
    lat2, lon2 = math.radians(coord2[0]), math.radians(coord2[1])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(math.sqrt(a))

    earth_radius_km = 6371.0
    return earth_radius_km * c


def ring_bounds(ring: Sequence[Sequence[float]]) -> Tuple[float, float, float, float]:
    """(min_lng, min_lat, max_lng, max_lat)"""
    lngs = [v[0] for v in ring]
    lats = [v[1] for v in ring]
    return min(lngs), min(lats), max(lngs), max(lats)


def geometry_rings(geometry: dict) -> List[Ring]:
    """Outer rings of a Polygon / MultiPolygon geometry."""
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if gtype == "Polygon":
        return [coords[0]] if coords else []
    if gtype == "MultiPolygon":
        return [poly[0] for poly in coords if poly]
    return []


def geometry_bounds(geometry: dict) -> Tuple[float, float, float, float]:
    """(min_lng, min_lat, max_lng, max_lat) of a Point / Polygon / MultiPolygon."""
    if geometry.get("type") == "Point":
        lng, lat = geometry["coordinates"][:2]
        return lng, lat, lng, lat
    rings = geometry_rings(geometry)
    if not rings:
        raise GeometryValidationError("geometry has no rings")
    boxes = [ring_bounds(r) for r in rings]
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )
