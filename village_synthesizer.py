# village_synthesizer.py
from __future__ import annotations
import logging
import math
from typing import Dict, List, Optional, Set, Tuple

from data_models import GeoCollection, GeoFeature, GenerationContext
from geo_primitives import generate_organic_polygon, is_valid_ring, point_in_polygon, ring_bounds
from metrics_enricher import enrich_feature, village_attributes

log = logging.getLogger(__name__)


# Curated villages per taluk; placed first, at their known coordinates
REAL_VILLAGE_NAMES: Dict[str, List[str]] = {
    "Devanahalli": ["Avati", "Bidalur", "Kundana", "Vijayapura", "Channarayapatna", "Kannamangala",
                    "Koira", "Sathanur", "Yeliyur", "Venkatagirikote", "Sadahalli", "Devanahalli Town"],
    "Doddaballapur": ["Tubagere", "Sasalu", "Madhure", "Doddabelavangala", "Melekote", "Raghunathapura",
                      "Konaghatta", "Heggadihalli", "Aroodi", "Kadur", "Doddaballapur Ind. Area"],
    "Hoskote": ["Anugondanahalli", "Jadigenahalli", "Nandagudi", "Sulibele", "Mugabal", "Kalkunte",
                "Doddagattiganabbe", "Vagata", "Muthasandra", "Hoskote Town", "Thavarekere"],
    "Nelamangala": ["Sompura", "T. Begur", "Kulumepalya", "Dabaspet", "Thyamagondlu", "Baraguru",
                    "Manne", "Nidavanda", "Mahadevapura", "Nelamangala Town", "Arishinakunte"],
    "Anekal": ["Sarjapura", "Attibele", "Jigani", "Marsur", "Mugalur", "Dommasandra", "Neriga",
               "Chandapura", "Mayasandra", "Indlavadi", "Anekal Town", "Hebbagodi"],
    "Bengaluru North": ["Hesaraghatta", "Gopalapura", "Singanayakanahalli", "Bagalur", "Kadalagere",
                        "Chikkabanavara", "Srigandhada Kaval", "Yelahanka New Town", "Jakkur", "Thanisandra"],
    "Bengaluru East": ["Varthur", "Gunjur", "Sorahunase", "Immadihalli", "Mullur", "Panathur",
                       "Balagere", "Hoodi", "Kadugodi", "Bellandur"],
    "Bengaluru South": ["Kengeri", "Begur", "Hulimavu", "Gottigere", "Tataguni", "Agara",
                        "Uttarahalli", "Konanakunte", "Anjanapura", "Vasanthapura"],
}

# (lat, lng)
REAL_VILLAGE_LOCATIONS: Dict[str, Tuple[float, float]] = {
    # Devanahalli
    "Avati": (13.303, 77.726),
    "Bidalur": (13.218, 77.693),
    "Kundana": (13.208, 77.636),
    "Vijayapura": (13.293, 77.801),
    "Channarayapatna": (13.220, 77.750),
    "Kannamangala": (13.180, 77.730),
    "Koira": (13.220, 77.660),
    "Sathanur": (13.140, 77.650),
    "Yeliyur": (13.190, 77.720),
    "Venkatagirikote": (13.240, 77.710),
    "Sadahalli": (13.190, 77.680),
    "Devanahalli Town": (13.248, 77.713),
    # Doddaballapur
    "Tubagere": (13.350, 77.450),
    "Sasalu": (13.260, 77.450),
    "Madhure": (13.220, 77.440),
    "Doddabelavangala": (13.380, 77.380),
    "Melekote": (13.320, 77.510),
    "Raghunathapura": (13.280, 77.520),
    "Konaghatta": (13.310, 77.540),
    "Heggadihalli": (13.380, 77.480),
    "Aroodi": (13.400, 77.420),
    "Kadur": (13.300, 77.400),
    "Doddaballapur Ind. Area": (13.280, 77.530),
    # Hoskote
    "Anugondanahalli": (13.010, 77.820),
    "Jadigenahalli": (13.060, 77.850),
    "Nandagudi": (13.150, 77.880),
    "Sulibele": (13.120, 77.810),
    "Mugabal": (13.040, 77.860),
    "Kalkunte": (13.080, 77.750),
    "Doddagattiganabbe": (13.060, 77.800),
    "Vagata": (13.110, 77.860),
    "Muthasandra": (13.020, 77.790),
    "Hoskote Town": (13.070, 77.795),
    "Thavarekere": (13.000, 77.820),
    # Nelamangala
    "Sompura": (13.240, 77.230),
    "T. Begur": (13.150, 77.300),
    "Kulumepalya": (13.120, 77.350),
    "Dabaspet": (13.240, 77.240),
    "Thyamagondlu": (13.200, 77.280),
    "Baraguru": (13.180, 77.250),
    "Manne": (13.220, 77.320),
    "Nidavanda": (13.260, 77.220),
    "Mahadevapura": (13.120, 77.380),
    "Nelamangala Town": (13.095, 77.390),
    "Arishinakunte": (13.130, 77.420),
    # Anekal
    "Sarjapura": (12.860, 77.780),
    "Attibele": (12.780, 77.770),
    "Jigani": (12.780, 77.640),
    "Marsur": (12.800, 77.700),
    "Mugalur": (12.880, 77.750),
    "Dommasandra": (12.890, 77.750),
    "Neriga": (12.920, 77.760),
    "Chandapura": (12.800, 77.700),
    "Mayasandra": (12.750, 77.720),
    "Indlavadi": (12.740, 77.680),
    "Anekal Town": (12.710, 77.690),
    "Hebbagodi": (12.840, 77.670),
    # Bengaluru North
    "Hesaraghatta": (13.140, 77.480),
    "Gopalapura": (13.160, 77.460),
    "Singanayakanahalli": (13.120, 77.560),
    "Bagalur": (13.140, 77.640),
    "Kadalagere": (13.170, 77.600),
    "Chikkabanavara": (13.070, 77.510),
    "Srigandhada Kaval": (12.990, 77.500),
    "Yelahanka New Town": (13.100, 77.580),
    "Jakkur": (13.070, 77.600),
    "Thanisandra": (13.050, 77.630),
    # Bengaluru East
    "Varthur": (12.940, 77.740),
    "Gunjur": (12.920, 77.740),
    "Sorahunase": (12.950, 77.750),
    "Immadihalli": (12.960, 77.760),
    "Mullur": (12.910, 77.730),
    "Panathur": (12.930, 77.700),
    "Balagere": (12.940, 77.720),
    "Hoodi": (12.990, 77.710),
    "Kadugodi": (12.995, 77.760),
    "Bellandur": (12.930, 77.670),
    # Bengaluru South
    "Kengeri": (12.910, 77.480),
    "Begur": (12.880, 77.630),
    "Hulimavu": (12.870, 77.600),
    "Gottigere": (12.860, 77.580),
    "Tataguni": (12.850, 77.520),
    "Agara": (12.920, 77.640),
    "Uttarahalli": (12.900, 77.540),
    "Konanakunte": (12.890, 77.570),
    "Anjanapura": (12.860, 77.560),
    "Vasanthapura": (12.890, 77.540),
}

VILLAGE_PREFIXES = ["Doda", "Chikka", "Malla", "Golla", "Hosa", "Byra", "Kumba", "Sidda", "Rama", "Shiva", "Nara"]
VILLAGE_SUFFIXES = ["pura", "halli", "kere", "gudda", "palya", "sandra", "kote", "ur", "pete", "gere"]


def procedural_name(rng, used: Set[str]) -> str:
    """Prefix + suffix; a numeric suffix keeps names unique within one taluk."""
    base = rng.choice(VILLAGE_PREFIXES) + rng.choice(VILLAGE_SUFFIXES)
    name = base
    n = 2
    while name in used:
        name = f"{base} {n}"
        n += 1
    return name


def _make_village(
    ctx: GenerationContext,
    name: str,
    lat: float,
    lng: float,
    taluk: GeoFeature,
    placement: str,
) -> Optional[GeoFeature]:
    cfg = ctx.cfg
    ring = generate_organic_polygon(
        lat, lng, cfg.village_base_radius_deg, ctx.rng,
        min_sides=cfg.village_min_sides,
        max_sides=cfg.village_max_sides,
        jitter=cfg.radius_jitter,
        lat_flatten=cfg.lat_flatten,
    )
    if not is_valid_ring(ring):
        log.debug("dropping village %s: invalid ring", name)
        ctx.report["dropped_rings"] = ctx.report.get("dropped_rings", 0) + 1
        return None

    feature_id, geocode = ctx.next_village_codes()
    taluk_props = taluk.properties
    props = {
        "id": feature_id,
        "geocode": geocode,
        "name": name,
        "type": "Village",
        "district": taluk_props["district"],
        "taluk": taluk_props["name"],
        "latitude": lat,
        "longitude": lng,
        "placement": placement,
        "description": f"A village in {taluk_props['name']} taluk.",
    }
    props.update(village_attributes(ctx.rng, cfg))
    if taluk_props.get("mainCrops"):
        props["mainCrops"] = list(taluk_props["mainCrops"])
    if taluk_props.get("keyMarkets"):
        props["keyMarkets"] = list(taluk_props["keyMarkets"])

    feature = GeoFeature(
        id=feature_id,
        properties=props,
        geometry={"type": "Polygon", "coordinates": [ring]},
    )
    return enrich_feature(feature, cfg)


def synthesize_taluk_villages(ctx: GenerationContext, taluk: GeoFeature) -> List[GeoFeature]:
    """
    Villages for one taluk:
      1) curated names at their known coordinates; any outside the taluk ring
         are kept and listed in ctx.report["curated_outside_taluk"]
      2) rejection sampling inside the taluk's bbox until the target count
         or the attempt cap is reached
    Falling short of the target is recorded in ctx.report, not raised.
    """
    cfg = ctx.cfg
    taluk_name = taluk.properties["name"]
    ring = taluk.geometry["coordinates"][0]
    villages: List[GeoFeature] = []
    used: Set[str] = set()

    for name in REAL_VILLAGE_NAMES.get(taluk_name, []):
        if name not in REAL_VILLAGE_LOCATIONS:
            continue
        lat, lng = REAL_VILLAGE_LOCATIONS[name]
        if not point_in_polygon([lng, lat], ring):
            log.warning("curated village %s lies outside taluk %s", name, taluk_name)
            ctx.report.setdefault("curated_outside_taluk", {}).setdefault(taluk_name, []).append(name)
        feature = _make_village(ctx, name, lat, lng, taluk, "curated")
        if feature is not None:
            villages.append(feature)
            used.add(name)

    min_lng, min_lat, max_lng, max_lat = ring_bounds(ring)
    attempts = 0
    while len(villages) < cfg.village_target_per_taluk and attempts < cfg.village_attempt_cap:
        attempts += 1
        lat = min_lat + ctx.rng.random() * (max_lat - min_lat)
        lng = min_lng + ctx.rng.random() * (max_lng - min_lng)
        if math.isnan(lat) or math.isnan(lng):
            continue
        if not point_in_polygon([lng, lat], ring):
            continue

        name = procedural_name(ctx.rng, used)
        feature = _make_village(ctx, name, lat, lng, taluk, "sampled")
        if feature is not None:
            villages.append(feature)
            used.add(name)

    shortfall = cfg.village_target_per_taluk - len(villages)
    if shortfall > 0:
        log.warning(
            "taluk %s: placed %d/%d villages after %d attempts",
            taluk_name, len(villages), cfg.village_target_per_taluk, attempts,
        )
        ctx.report.setdefault("placement_shortfall", {})[taluk_name] = shortfall

    return villages


def build_villages(taluks: GeoCollection, ctx: GenerationContext) -> GeoCollection:
    features: List[GeoFeature] = []
    for taluk in taluks:
        features.extend(synthesize_taluk_villages(ctx, taluk))
    return GeoCollection("Village", features)
