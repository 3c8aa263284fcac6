# metrics_enricher.py
"""
Derived attributes for generated features.

Landmark distances use the planar approximation (degrees * 111 km) unless the
config asks for haversine. Demographic / infrastructure fields are synthetic:
uniform draws inside the ranges declared in GeoConfig.attribute_ranges.
"""
from __future__ import annotations
import random
from typing import Any, Callable, Dict, List, Optional

from config import GeoConfig
from data_models import GeoFeature
from geo_primitives import planar_distance_km, haversine_km
from reference_gazetteer import landmark, nearest_station

DistanceFn = Callable[[float, float, float, float], float]


def distance_function(cfg: GeoConfig) -> DistanceFn:
    if cfg.distance_model == "haversine":
        return lambda lat1, lng1, lat2, lng2: haversine_km((lat1, lng1), (lat2, lng2))
    if cfg.distance_model == "planar":
        return lambda lat1, lng1, lat2, lng2: planar_distance_km(lat1, lng1, lat2, lng2, cfg.km_per_degree)
    raise ValueError(f"unknown distance model: {cfg.distance_model!r}")


def landmark_metrics(lat: float, lng: float, cfg: Optional[GeoConfig] = None) -> Dict[str, Any]:
    if cfg is None:
        cfg = GeoConfig()
    dist = distance_function(cfg)
    city = landmark("city")
    airport = landmark("airport")
    station, station_km = nearest_station(lat, lng, dist)
    return {
        "nearestCity": city["name"],
        "distanceToCityKm": dist(lat, lng, city["latitude"], city["longitude"]),
        "nearestAirport": airport["name"],
        "distanceToAirportKm": dist(lat, lng, airport["latitude"], airport["longitude"]),
        "nearestRailway": station["name"],
        "distanceToRailwayKm": station_km,
    }


def enrich_feature(feature: GeoFeature, cfg: Optional[GeoConfig] = None) -> GeoFeature:
    """Attach landmark metrics computed at the feature's representative coordinate."""
    props = feature.properties
    return feature.merged(landmark_metrics(props["latitude"], props["longitude"], cfg))


def _uniform(rng: random.Random, bounds) -> float:
    low, high = bounds
    return low + rng.random() * (high - low)


def _randint(rng: random.Random, bounds) -> int:
    low, high = bounds
    return int(low) + int(rng.random() * (high - low))


def taluk_attributes(population: int, rng: random.Random, cfg: GeoConfig) -> Dict[str, Any]:
    ranges = cfg.attribute_ranges["Taluk"]
    return {
        "areaSqKm": _uniform(rng, ranges["areaSqKm"]),
        "sexRatio": _randint(rng, ranges["sexRatio"]),
        "numVillages": _randint(rng, ranges["numVillages"]),
        "schoolCount": population // 2500,
        "hospitalCount": population // 15000,
    }


def village_attributes(rng: random.Random, cfg: GeoConfig) -> Dict[str, Any]:
    ranges = cfg.attribute_ranges["Village"]
    population = _randint(rng, ranges["population"])
    return {
        "population": population,
        "areaSqKm": _uniform(rng, ranges["areaSqKm"]),
        "literacyRate": _uniform(rng, ranges["literacyRate"]),
        "waterSource": rng.choice(cfg.water_sources),
        "roadCondition": rng.choice(cfg.road_conditions),
        "busFrequency": rng.choice(cfg.bus_frequencies),
        "householdCount": int(population / 4.5),
        "schoolCount": _randint(rng, ranges["schoolCount"]),
    }


def pincode_attributes(area_name: str, markets: List[str], rng: random.Random, cfg: GeoConfig) -> Dict[str, Any]:
    ranges = cfg.attribute_ranges["Pincode"]
    population = _randint(rng, ranges["population"])

    if rng.random() > 0.8:
        status, suffix = "Head Post Office", "H.O"
    elif rng.random() > 0.4:
        status, suffix = "Sub Post Office", "S.O"
    else:
        status, suffix = "Branch Post Office", "B.O"

    return {
        "population": population,
        "areaSqKm": _uniform(rng, ranges["areaSqKm"]),
        "literacyRate": _uniform(rng, ranges["literacyRate"]),
        "postOfficeStatus": status,
        "postOfficeName": f"{area_name} {suffix}",
        "deliveryStatus": "Delivery Available" if rng.random() > 0.05 else "Non-Delivery",
        "householdCount": population // 4,
        "keyMarkets": list(markets),
    }
