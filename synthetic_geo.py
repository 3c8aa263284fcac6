# synthetic_geo.py
"""
Builds the full in-memory dataset: districts, taluks, villages, pincodes.

Order: taluks -> districts (union of taluks) -> villages (inside taluks)
-> pincodes (independent Voronoi layer). A failure inside one layer leaves
that layer empty and is recorded in dataset.report; only a shared-border
mismatch is raised, since it means the boundary tables themselves are wrong.
"""
from __future__ import annotations
import logging
from collections import Counter
from typing import Callable, List, Optional

from boundary_composer import build_districts, build_taluks
from config import GeoConfig
from data_models import GeoCollection, GeoDataset, GenerationContext
from errors import BoundaryMismatchError, GeoDashboardError
from geo_primitives import geometry_rings, is_valid_ring, point_in_polygon
from pincode_tessellator import build_pincodes
from village_synthesizer import build_villages

log = logging.getLogger(__name__)

__all__ = ["GenerationContext", "build_geo_dataset", "validate_dataset"]


def _build_layer(name: str, feature_type: str, ctx: GenerationContext, fn: Callable[[], GeoCollection]) -> GeoCollection:
    try:
        return fn()
    except BoundaryMismatchError:
        raise
    except GeoDashboardError as exc:
        log.exception("%s layer failed, continuing with an empty layer", name)
        ctx.report.setdefault("layer_errors", {})[name] = str(exc)
        return GeoCollection(feature_type, [])


def build_geo_dataset(seed: Optional[int] = 7, cfg: Optional[GeoConfig] = None) -> GeoDataset:
    """
    Same seed + same config -> identical dataset (ids, geocodes, attributes, geometry).
    """
    if cfg is None:
        cfg = GeoConfig()
    ctx = GenerationContext(cfg, seed=seed)

    taluks = _build_layer("taluks", "Taluk", ctx, lambda: build_taluks(ctx))
    districts = _build_layer("districts", "District", ctx, lambda: build_districts(taluks, ctx))
    villages = _build_layer("villages", "Village", ctx, lambda: build_villages(taluks, ctx))
    pincodes = _build_layer("pincodes", "Pincode", ctx, lambda: build_pincodes(ctx))

    log.info(
        "generated %d districts, %d taluks, %d villages, %d pincodes (seed=%s)",
        len(districts), len(taluks), len(villages), len(pincodes), seed,
    )
    return GeoDataset(
        districts=districts,
        taluks=taluks,
        villages=villages,
        pincodes=pincodes,
        seed=seed,
        report=ctx.report,
    )


def validate_dataset(dataset: GeoDataset) -> List[str]:
    """
    Returns a list of human-readable problems; empty means the dataset holds:
      - every polygon ring is valid (>=3 vertices, closed, finite)
      - geocodes unique within each collection
      - ids unique across all collections
      - every sampled village's placement point lies inside its taluk
    """
    problems: List[str] = []

    for layer, collection in dataset.collections().items():
        for f in collection:
            for ring in geometry_rings(f.geometry):
                if not is_valid_ring(ring):
                    problems.append(f"{layer}: {f.id} has an invalid ring")

        dupes = [g for g, n in Counter(f.geocode for f in collection).items() if n > 1]
        for g in dupes:
            problems.append(f"{layer}: duplicate geocode {g}")

    id_counts = Counter(f.id for f in dataset.all_features())
    for feature_id, n in id_counts.items():
        if n > 1:
            problems.append(f"duplicate id {feature_id} ({n} features)")

    taluk_rings = {t.properties["name"]: t.geometry["coordinates"][0] for t in dataset.taluks}
    for v in dataset.villages:
        props = v.properties
        if props.get("placement") != "sampled":
            continue
        ring = taluk_rings.get(props.get("taluk"))
        if ring is None:
            problems.append(f"villages: {v.id} references unknown taluk {props.get('taluk')}")
        elif not point_in_polygon([props["longitude"], props["latitude"]], ring):
            problems.append(f"villages: {v.id} lies outside taluk {props['taluk']}")

    return problems
