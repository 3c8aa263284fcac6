# Reference landmarks: Bengaluru Urban & Rural, Karnataka, India
# City centre | International airport | 10 railway stations

from __future__ import annotations
from typing import Dict, Tuple

REFERENCE_GAZETTEER = {
    "region": "Bengaluru Urban & Rural, Karnataka, India",
    "city": {
        "name": "Bengaluru City",
        "latitude": 12.9716,
        "longitude": 77.5946,
    },
    "airport": {
        "name": "Kempegowda Int. (KIA)",
        "latitude": 13.1986,
        "longitude": 77.7066,
    },
    "stations": [
        {"name": "KSR Bengaluru City Junction (SBC)", "latitude": 12.9781, "longitude": 77.5697},
        {"name": "Yesvantpur Junction (YPR)", "latitude": 13.0238, "longitude": 77.5529},
        {"name": "Sir M. Visvesvaraya Terminal, Bengaluru (SMVT)", "latitude": 12.9904, "longitude": 77.6526},
        {"name": "Krishnarajapuram Railway Station (KJM)", "latitude": 13.0005, "longitude": 77.6753},
        {"name": "Bengaluru Cantonment Railway Station (BNC)", "latitude": 12.9936, "longitude": 77.5980},
        {"name": "Yelahanka Junction (YNK)", "latitude": 13.1017, "longitude": 77.5962},
        {"name": "Whitefield Railway Station (WFD)", "latitude": 12.9908, "longitude": 77.7286},
        {"name": "Banaswadi Railway Station (BAND)", "latitude": 13.0163, "longitude": 77.6433},
        {"name": "Kengeri Railway Station (KGI)", "latitude": 12.9060, "longitude": 77.4880},
        {"name": "Carmelaram Railway Station (CRLM)", "latitude": 12.9079, "longitude": 77.6970},
    ],
}


def landmark(key: str) -> Dict:
    """'city' or 'airport' entry."""
    return REFERENCE_GAZETTEER[key]


def nearest_station(lat: float, lng: float, distance_fn) -> Tuple[Dict, float]:
    """
    Linear scan over the station table.
    distance_fn(lat1, lng1, lat2, lng2) -> km. Ties keep the first station in table order.
    """
    stations = REFERENCE_GAZETTEER["stations"]
    nearest = stations[0]
    min_distance = float("inf")
    for station in stations:
        d = distance_fn(lat, lng, station["latitude"], station["longitude"])
        if d < min_distance:
            min_distance = d
            nearest = station
    return nearest, min_distance
