# pincode_tessellator.py
"""
Postal-zone layer: one Voronoi cell per pincode centre, clipped to a fixed
rectangle around the two districts.

scipy gives unbounded cells on the convex hull; four far-away sentinel seeds
are added so every real seed owns a finite cell, which shapely then clips.
A failure of the whole step (NaN seeds, degenerate input) yields an empty
layer and a warning.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import QhullError, Voronoi
from shapely.geometry import Polygon, box

from data_models import GeoCollection, GeoFeature, GenerationContext
from errors import TessellationError
from geo_primitives import is_valid_ring
from metrics_enricher import enrich_feature, pincode_attributes

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PincodeSeed:
    code: str
    lat: float
    lng: float
    area_name: str
    district: str
    markets: Tuple[str, ...] = ()


_URBAN = "Bengaluru Urban"
_RURAL = "Bengaluru Rural"

REAL_PINCODES: List[PincodeSeed] = [
    # Central
    PincodeSeed("560001", 12.975, 77.605, "M.G. Road", _URBAN, ("High St Retail", "Corporate HQs")),
    PincodeSeed("560002", 12.965, 77.580, "City Market", _URBAN, ("Wholesale Flowers", "Vegetable Market", "Hardware")),
    PincodeSeed("560003", 13.000, 77.570, "Malleswaram", _URBAN, ("Silk Sarees", "Flower Market", "Street Food")),
    PincodeSeed("560004", 12.940, 77.575, "Basavanagudi", _URBAN, ("Spices", "Traditional Textiles", "Religious Goods")),
    PincodeSeed("560005", 13.005, 77.610, "Fraser Town", _URBAN, ("Food", "Bakery")),
    PincodeSeed("560009", 12.980, 77.575, "Gandhinagar", _URBAN, ("Cinema", "Wholesale")),
    PincodeSeed("560020", 12.990, 77.575, "Seshadripuram", _URBAN, ("Book Stores", "Coaching Centers")),
    PincodeSeed("560025", 12.965, 77.600, "Richmond Town", _URBAN, ("Furniture", "Lifestyle Boutiques")),
    PincodeSeed("560027", 12.960, 77.590, "Wilson Garden", _URBAN, ("Offices",)),
    PincodeSeed("560046", 13.000, 77.600, "Benson Town", _URBAN, ("Residential",)),
    PincodeSeed("560053", 12.970, 77.580, "Cottonpet", _URBAN, ("Wholesale Textiles",)),
    # North
    PincodeSeed("560006", 13.015, 77.590, "J.C. Nagar", _URBAN, ("Automobile Spares", "Furniture")),
    PincodeSeed("560012", 13.030, 77.550, "IISC", _URBAN, ("Education",)),
    PincodeSeed("560013", 13.050, 77.540, "Jalahalli", _URBAN, ("BEL", "Industry")),
    PincodeSeed("560015", 13.070, 77.530, "Gangamma Circle", _URBAN, ("Residential",)),
    PincodeSeed("560022", 13.020, 77.540, "Yeshwanthpur", _URBAN, ("APMC Yard", "Wholesale Grains", "Transport")),
    PincodeSeed("560024", 13.045, 77.590, "Hebbal", _URBAN, ("Tech Parks", "Real Estate")),
    PincodeSeed("560032", 13.030, 77.595, "R.T. Nagar", _URBAN, ("Retail", "Residential")),
    PincodeSeed("560054", 13.040, 77.550, "Mathikere", _URBAN, ("Student Services", "Retail")),
    PincodeSeed("560057", 13.040, 77.510, "Dasarahalli", _URBAN, ("Peenya Ind. Estate", "Manufacturing")),
    PincodeSeed("560058", 13.030, 77.500, "Peenya", _URBAN, ("Heavy Industries",)),
    PincodeSeed("560064", 13.100, 77.590, "Yelahanka", _URBAN, ("Aerospace", "Ceramics", "Defence")),
    PincodeSeed("560092", 13.065, 77.595, "Sahakara Nagar", _URBAN, ("Residential", "Retail")),
    PincodeSeed("560094", 13.030, 77.570, "Sanjay Nagar", _URBAN, ("Residential", "Institutes")),
    PincodeSeed("560097", 13.080, 77.560, "Vidyaranyapura", _URBAN, ("Residential", "Schools")),
    PincodeSeed("560063", 13.060, 77.540, "Jalahalli West", _URBAN, ("Air Force", "Electronics")),
    PincodeSeed("560090", 13.060, 77.520, "Chikkabanavara", _URBAN, ("Railway Hub",)),
    # East
    PincodeSeed("560008", 12.975, 77.625, "Ulsoor", _URBAN, ("Jewellery", "Boutiques")),
    PincodeSeed("560016", 13.000, 77.660, "Ramamurthy Nagar", _URBAN, ("Residential",)),
    PincodeSeed("560017", 12.955, 77.655, "Old Airport Rd", _URBAN, ("Aerospace", "Hotels")),
    PincodeSeed("560033", 13.000, 77.630, "Maruthi Sevanagar", _URBAN, ("Residential",)),
    PincodeSeed("560036", 13.010, 77.690, "Krishnarajapuram", _URBAN, ("Railway", "Market")),
    PincodeSeed("560037", 12.955, 77.700, "Marathahalli", _URBAN, ("Electronics", "Factory Outlets")),
    PincodeSeed("560038", 12.975, 77.640, "Indiranagar", _URBAN, ("F&B", "Fashion", "Startups")),
    PincodeSeed("560043", 13.020, 77.650, "Kalyan Nagar", _URBAN, ("Retail", "Dining")),
    PincodeSeed("560045", 13.030, 77.610, "Nagawara", _URBAN, ("Tech Park",)),
    PincodeSeed("560048", 12.990, 77.690, "Mahadevapura", _URBAN, ("Tech Parks", "Corporate")),
    PincodeSeed("560049", 13.020, 77.720, "Virgonagar", _URBAN, ("Industrial",)),
    PincodeSeed("560066", 12.970, 77.750, "Whitefield", _URBAN, ("IT Services", "Malls", "Intl Schools")),
    PincodeSeed("560067", 13.000, 77.760, "Kadugodi", _URBAN, ("Logistics", "Warehousing")),
    PincodeSeed("560071", 12.950, 77.630, "Domlur", _URBAN, ("IT", "Offices")),
    PincodeSeed("560077", 13.050, 77.630, "Kothanur", _URBAN, ("Residential",)),
    PincodeSeed("560093", 12.980, 77.660, "C.V. Raman Nagar", _URBAN, ("DRDO", "Tech")),
    PincodeSeed("560105", 13.000, 77.780, "Seegehalli", _URBAN, ("Residential",)),
    # South
    PincodeSeed("560011", 12.930, 77.585, "Jayanagar", _URBAN, ("Shopping Complex", "Retail", "Jewellery")),
    PincodeSeed("560019", 12.940, 77.560, "Hanumanthnagar", _URBAN, ("Residential",)),
    PincodeSeed("560028", 12.910, 77.570, "Thyagarajanagar", _URBAN, ("Residential",)),
    PincodeSeed("560029", 12.920, 77.600, "BTM 1st Stage", _URBAN, ("Residential",)),
    PincodeSeed("560030", 12.930, 77.610, "Adugodi", _URBAN, ("Tech", "Police")),
    PincodeSeed("560034", 12.930, 77.625, "Koramangala", _URBAN, ("Startups", "F&B", "Lifestyle")),
    PincodeSeed("560035", 12.905, 77.700, "Sarjapur Road", _URBAN, ("IT/BT", "Schools")),
    PincodeSeed("560041", 12.920, 77.590, "Jayanagar 9th Block", _URBAN, ("Residential",)),
    PincodeSeed("560047", 12.945, 77.615, "Vivek Nagar", _URBAN, ("Residential",)),
    PincodeSeed("560050", 12.940, 77.555, "Hanumanthnagar", _URBAN, ("Residential", "Small Retail")),
    PincodeSeed("560061", 12.890, 77.540, "Subramanyapura", _URBAN, ("Residential", "Real Estate")),
    PincodeSeed("560062", 12.870, 77.550, "Doddakallasandra", _URBAN, ("Residential",)),
    PincodeSeed("560068", 12.900, 77.625, "Bommanahalli", _URBAN, ("Garment Mfg", "Textiles")),
    PincodeSeed("560069", 12.920, 77.590, "Jayanagar 4th T Block", _URBAN, ("Residential",)),
    PincodeSeed("560070", 12.920, 77.570, "Banashankari II Stage", _URBAN, ("Commercial",)),
    PincodeSeed("560076", 12.910, 77.605, "BTM Layout", _URBAN, ("Paying Guest Acc", "Coaching", "IT")),
    PincodeSeed("560078", 12.905, 77.585, "JP Nagar", _URBAN, ("Arts", "Culture", "Retail")),
    PincodeSeed("560083", 12.820, 77.590, "Bannerghatta", _URBAN, ("National Park", "Tourism")),
    PincodeSeed("560085", 12.925, 77.545, "Banashankari", _URBAN, ("Retail", "Transport Hub")),
    PincodeSeed("560099", 12.820, 77.680, "Bommasandra", _URBAN, ("Industrial Area", "Pharma")),
    PincodeSeed("560100", 12.845, 77.665, "Electronic City", _URBAN, ("IT Campus", "Hardware Mfg", "Biotech")),
    PincodeSeed("560102", 12.910, 77.650, "HSR Layout", _URBAN, ("Startups", "Co-working", "Fashion")),
    PincodeSeed("560103", 12.930, 77.680, "Bellandur", _URBAN, ("Tech SEZ", "Real Estate")),
    # West
    PincodeSeed("560010", 12.985, 77.555, "Rajajinagar", _URBAN, ("Industrial Estate", "Malls")),
    PincodeSeed("560018", 12.960, 77.550, "Chamrajpet", _URBAN, ("Wholesale",)),
    PincodeSeed("560021", 12.995, 77.560, "Srirampura", _URBAN, ("Textiles",)),
    PincodeSeed("560023", 12.970, 77.540, "Magadi Road", _URBAN, ("Transport",)),
    PincodeSeed("560026", 12.950, 77.530, "Mysore Road", _URBAN, ("Timber", "Transport")),
    PincodeSeed("560039", 12.950, 77.520, "Nayandahalli", _URBAN, ("Transit",)),
    PincodeSeed("560040", 12.960, 77.535, "Vijayanagar", _URBAN, ("Books", "Clothing")),
    PincodeSeed("560056", 12.950, 77.510, "Bangalore University", _URBAN, ("Education",)),
    PincodeSeed("560059", 12.920, 77.490, "Kengeri Satellite Town", _URBAN, ("Residential",)),
    PincodeSeed("560060", 12.900, 77.480, "Kengeri", _URBAN, ("Education", "Transport")),
    PincodeSeed("560072", 12.965, 77.510, "Nagarbhavi", _URBAN, ("Education (University)", "Residential")),
    PincodeSeed("560073", 13.050, 77.500, "Nagasandra", _URBAN, ("Industry",)),
    PincodeSeed("560074", 12.890, 77.450, "Kumbalgodu", _URBAN, ("Industry", "Education")),
    PincodeSeed("560079", 12.970, 77.520, "Magadi Road (West)", _URBAN, ("Wholesale",)),
    PincodeSeed("560091", 12.980, 77.490, "Viswaneedam", _URBAN, ("Small Industries",)),
    PincodeSeed("560096", 13.010, 77.520, "Nandini Layout", _URBAN, ("Residential",)),
    PincodeSeed("560098", 12.920, 77.510, "Rajarajeshwari Nagar", _URBAN, ("Residential", "Temples")),
    # Rural & outskirts
    PincodeSeed("562110", 13.200, 77.700, "Bial (Airport)", _RURAL, ("Airport Services",)),
    PincodeSeed("562114", 13.250, 77.230, "Dobbaspet", _RURAL, ("Industrial Area", "Logistics")),
    PincodeSeed("562123", 13.095, 77.395, "Nelamangala", _RURAL, ("Warehousing", "Silk Weaving")),
    PincodeSeed("562125", 13.110, 77.460, "Shivakote", _URBAN, ("Agriculture",)),
    PincodeSeed("562129", 13.070, 77.795, "Hoskote", _RURAL, ("Auto Components", "Industrial")),
    PincodeSeed("562135", 12.950, 77.850, "Tavarekere", _RURAL, ("Brick Kilns", "Agro")),
    PincodeSeed("562149", 13.170, 77.560, "Rajanukunte", _URBAN, ("Residential", "Resorts")),
    PincodeSeed("562157", 13.245, 77.710, "Devanahalli", _RURAL, ("Logistics", "Agro Processing", "Tourism")),
    PincodeSeed("562162", 13.150, 77.450, "Arishinakunte", _RURAL, ("Agro",)),
    PincodeSeed("562163", 13.200, 77.420, "Thyamagondlu", _RURAL, ("Agro",)),
    PincodeSeed("562164", 13.180, 77.520, "Heggunda", _RURAL, ("Agriculture",)),
    PincodeSeed("561203", 13.290, 77.540, "Doddaballapur", _RURAL, ("Apparel Park", "Powerloom")),
    PincodeSeed("561204", 13.380, 77.380, "Doddabelavangala", _RURAL, ("Rural Market",)),
    PincodeSeed("561205", 13.350, 77.450, "Tubagere", _RURAL, ("Sericulture", "Vegetables")),
    PincodeSeed("560089", 13.140, 77.490, "Hesaraghatta", _URBAN, ("Farms", "Research Inst")),
    PincodeSeed("562106", 12.780, 77.700, "Anekal", _URBAN, ("Textiles", "Small Scale Ind")),
    PincodeSeed("562107", 12.750, 77.600, "Jigani", _URBAN, ("Granite", "Manufacturing")),
]


def _unique_seeds(seeds: Sequence[PincodeSeed]) -> List[PincodeSeed]:
    """Drop seeds sharing a coordinate with an earlier seed; they cannot own a cell."""
    seen = set()
    unique: List[PincodeSeed] = []
    for seed in seeds:
        key = (seed.lng, seed.lat)
        if key in seen:
            log.info("pincode %s shares its centre with an earlier seed, no cell generated", seed.code)
            continue
        seen.add(key)
        unique.append(seed)
    return unique


def voronoi_cells(
    points: Sequence[Tuple[float, float]],
    bounds: Tuple[float, float, float, float],
) -> List[Optional[List[List[float]]]]:
    """
    Clipped Voronoi cell ring for every (lng, lat) point, in input order.
    None where the clipped cell is empty or not a single polygon.
    Raises TessellationError on non-finite or too few points.
    """
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or len(pts) < 2:
        raise TessellationError(f"need at least two seed points, got {len(pts)}")
    if not np.isfinite(pts).all():
        raise TessellationError("seed points contain NaN or infinite coordinates")

    west, south, east, north = bounds
    span = max(east - west, north - south, float(np.ptp(pts[:, 0])), float(np.ptp(pts[:, 1])))
    cx, cy = (west + east) / 2, (south + north) / 2
    far = span * 10
    sentinels = np.array([
        [cx - far, cy - far],
        [cx + far, cy - far],
        [cx - far, cy + far],
        [cx + far, cy + far],
    ])

    vor = Voronoi(np.vstack([pts, sentinels]))
    clip = box(west, south, east, north)

    cells: List[Optional[List[List[float]]]] = []
    for i in range(len(pts)):
        region = vor.regions[vor.point_region[i]]
        if not region or -1 in region:
            cells.append(None)
            continue

        cell = Polygon([vor.vertices[v] for v in region]).convex_hull.intersection(clip)
        if cell.is_empty or cell.geom_type != "Polygon":
            cells.append(None)
            continue
        cells.append([[float(x), float(y)] for x, y in cell.exterior.coords])
    return cells


def build_pincodes(
    ctx: GenerationContext,
    seeds: Optional[Sequence[PincodeSeed]] = None,
) -> GeoCollection:
    if seeds is None:
        seeds = REAL_PINCODES
    cfg = ctx.cfg

    seeds = _unique_seeds(seeds)
    try:
        cells = voronoi_cells([(s.lng, s.lat) for s in seeds], cfg.voronoi_bounds)
    except (TessellationError, QhullError, ValueError) as exc:
        log.warning("Voronoi generation failed, pincode layer left empty: %s", exc)
        ctx.report["tessellation_error"] = str(exc)
        return GeoCollection("Pincode", [])

    features: List[GeoFeature] = []
    skipped: List[str] = []
    for seed, ring in zip(seeds, cells):
        if ring is None or not is_valid_ring(ring):
            skipped.append(seed.code)
            continue

        feature_id = f"pin-{seed.code}"
        props = {
            "id": feature_id,
            "geocode": f"KAP{seed.code}",
            "name": f"{seed.code} - {seed.area_name}",
            "type": "Pincode",
            "district": seed.district,
            "latitude": seed.lat,
            "longitude": seed.lng,
        }
        props.update(pincode_attributes(seed.area_name, list(seed.markets), ctx.rng, cfg))
        feature = GeoFeature(
            id=feature_id,
            properties=props,
            geometry={"type": "Polygon", "coordinates": [ring]},
        )
        features.append(enrich_feature(feature, cfg))

    if skipped:
        log.debug("skipped %d degenerate pincode cells: %s", len(skipped), ", ".join(skipped))
        ctx.report["skipped_cells"] = skipped

    return GeoCollection("Pincode", features)
