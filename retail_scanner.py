# retail_scanner.py
"""
Retail store scan against the Overpass API (OpenStreetMap).

Retry / split policy for one bounding box:
  - HTTP 429: back off 3s, 6s, 12s, 24s, 48s (+ up to 1s jitter), then give up.
    A rate-limited box is never split: more queries would only make it worse.
  - HTTP 502/504 or a client-side timeout: retry twice, 2s apart. If it still
    fails and depth < max_split_depth, split the box into SW/SE/NW/NE
    quadrants and scan them one after another.
  - A refused or unresolvable connection is fatal at once, like any other error.
  - A failed quadrant contributes nothing; its siblings still count.
  - Only the top-level call (depth 0) raises, as NetworkFatal.

Each recursion level returns a ScanOutcome; the caller concatenates child
results, nothing is appended to a shared accumulator.
"""
from __future__ import annotations
import logging
import math
import random
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from config import GeoConfig
from data_models import BoundingBox, GeoFeature, ScanOutcome
from errors import (
    NetworkFatal,
    NetworkGatewayError,
    NetworkRateLimited,
    NetworkTimeout,
    ScanError,
)
from geo_primitives import geometry_bounds

log = logging.getLogger(__name__)

ProgressFn = Callable[[int, str], None]

RATE_LIMIT_MESSAGE = "Server is too busy (Rate Limit). Please wait a few minutes and try again."

# Ordered: first matching category wins
RETAIL_CATEGORIES: List[Tuple[str, frozenset]] = [
    ("Groceries", frozenset({"supermarket", "convenience", "grocery", "greengrocer", "organic",
                             "frozen_food", "spices"})),
    ("Food & Beverages", frozenset({"food", "bakery", "butcher", "seafood", "ice_cream", "beverages",
                                    "coffee", "tea", "confectionery", "chocolate"})),
    ("Fashion", frozenset({"clothes", "fashion", "boutique", "textiles", "fabric", "tailor", "baby"})),
    ("Accessories", frozenset({"shoes", "jewelry", "bag", "watches", "optician", "leather"})),
    ("Electronics", frozenset({"electronics", "mobile_phone", "computer", "robot", "hifi",
                               "telecommunication", "video_games"})),
    ("Home & Living", frozenset({"furniture", "interior_decoration", "carpet", "lighting", "bed",
                                 "kitchen", "curtain"})),
    ("Hardware & DIY", frozenset({"hardware", "doityourself", "paint", "trade", "building_materials",
                                  "glaziery", "flooring"})),
    ("Health", frozenset({"chemist", "pharmacy", "medical_supply", "nutrition_supplements", "hearing_aids"})),
    ("Beauty", frozenset({"cosmetics", "hairdresser", "beauty", "salon", "tattoo", "perfumery"})),
    ("Automotive", frozenset({"car", "motorcycle", "tyres", "bicycle", "car_repair", "car_parts"})),
    ("Books & Stationery", frozenset({"books", "stationery", "newsagent", "copy", "bookmaker"})),
    ("Gifts & Hobbies", frozenset({"gift", "toys", "musical_instrument", "art", "craft", "photo",
                                   "camera", "music"})),
    ("Liquor & Tobacco", frozenset({"alcohol", "wine", "tobacco", "e-cigarette"})),
    ("Department Stores", frozenset({"department_store", "general", "mall", "shopping_centre"})),
]
FALLBACK_CATEGORY = "General Retail"
CATEGORY_NAMES: List[str] = [name for name, _ in RETAIL_CATEGORIES] + [FALLBACK_CATEGORY]

_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+))")


def classify_shop_tag(shop: Optional[str]) -> str:
    s = (shop or "").strip().lower()
    for category, tags in RETAIL_CATEGORIES:
        if s in tags:
            return category
    return FALLBACK_CATEGORY


def _numeric_id(element_id: Any) -> int:
    digits = re.sub(r"\D", "", str(element_id))
    return int(digits) if digits else 0


def stable_rating_from_id(element_id: Any) -> float:
    """
    Deterministic pseudo-rating in [3.5, 5.0] with one decimal.
    Same id -> same rating, on every scan.
    """
    seed = math.sin(_numeric_id(element_id)) * 10000
    frac = seed - math.floor(seed)
    return math.floor((3.5 + frac * 1.5) * 10 + 0.5) / 10


def stable_user_ratings_total(element_id: Any) -> int:
    return math.floor(abs(math.sin(_numeric_id(element_id))) * 500) + 5


def _parse_rating(tags: Dict[str, str]) -> Optional[float]:
    # the first rating-like tag present decides, even if it does not parse
    for key in ("stars", "rating", "addr:rate"):
        if key in tags:
            m = _LEADING_NUMBER.match(str(tags[key]))
            if not m:
                return None
            value = float(m.group(1))
            return value / 2 if value > 5 else value
    return None


def element_coordinates(element: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """(lat, lng) of a node, or of a way's centre; None if missing."""
    if element.get("type") == "way":
        center = element.get("center") or {}
        lat, lng = center.get("lat"), center.get("lon")
    else:
        lat, lng = element.get("lat"), element.get("lon")
    if lat is None or lng is None:
        return None
    return float(lat), float(lng)


def normalize_element(element: Dict[str, Any]) -> Optional[GeoFeature]:
    """Overpass element -> Store feature. None when the element has no coordinates."""
    coords = element_coordinates(element)
    if coords is None:
        return None
    lat, lng = coords

    tags = element.get("tags") or {}
    raw_id = str(element.get("id"))
    shop = tags.get("shop") or "store"
    category = classify_shop_tag(shop)

    address = [tags.get("addr:street"), tags.get("addr:city"), tags.get("addr:postcode")]
    vicinity = ", ".join(a for a in address if a) or "Bengaluru"

    rating = _parse_rating(tags)
    if rating is None:
        rating = stable_rating_from_id(raw_id)

    feature_id = f"osm-{raw_id}"
    props: Dict[str, Any] = {
        "id": feature_id,
        "osmId": raw_id,
        "geocode": f"OSM-{raw_id}",
        "name": tags.get("name") or tags.get("brand") or tags.get("shop") or "Retail Store",
        "type": "Store",
        "description": f"Retail Store ({shop}).",
        "category": category,
        "subCategory": shop,
        "vicinity": vicinity,
        "rating": rating,
        "userRatingsTotal": stable_user_ratings_total(raw_id),
        "keyMarkets": [shop, category],
        "latitude": lat,
        "longitude": lng,
    }
    phone = tags.get("phone") or tags.get("contact:phone") or tags.get("contact:mobile")
    website = tags.get("website") or tags.get("contact:website") or tags.get("url")
    if phone:
        props["phone"] = phone
    if website:
        props["website"] = website
    if tags.get("opening_hours"):
        props["openingHours"] = tags["opening_hours"]

    return GeoFeature(id=feature_id, properties=props, geometry={"type": "Point", "coordinates": [lng, lat]})


def dedupe_features(features: Iterable[GeoFeature]) -> List[GeoFeature]:
    """First occurrence of each id wins; order preserved."""
    seen = set()
    unique: List[GeoFeature] = []
    for f in features:
        if f.id in seen:
            continue
        seen.add(f.id)
        unique.append(f)
    return unique


def _build_query(area: str, cfg: GeoConfig) -> str:
    excluded = "|".join(cfg.excluded_shop_values)
    filters = f'["shop"]({area})["shop"!~"{excluded}"]["disused"!="yes"]["abandoned"!="yes"]'
    return (
        f"[out:json][timeout:{cfg.overpass_server_timeout_s}];\n"
        "(\n"
        f"  node{filters};\n"
        f"  way{filters};\n"
        ");\n"
        "out center;"
    )


def build_bbox_query(bbox: BoundingBox, cfg: Optional[GeoConfig] = None) -> str:
    return _build_query(bbox.as_overpass(), cfg or GeoConfig())


def build_radius_query(lat: float, lng: float, radius_m: int, cfg: Optional[GeoConfig] = None) -> str:
    return _build_query(f"around:{radius_m},{lat},{lng}", cfg or GeoConfig())


class OverpassClient:
    """Thin HTTP layer: one POST per call, status codes mapped to typed errors."""

    def __init__(self, session: Optional[requests.Session] = None, cfg: Optional[GeoConfig] = None):
        self.cfg = cfg or GeoConfig()
        self.session = session if session is not None else requests.Session()

    def post(self, query: str) -> Dict[str, Any]:
        try:
            resp = self.session.post(
                self.cfg.overpass_url,
                data={"data": query},
                headers={"User-Agent": self.cfg.user_agent},
                timeout=self.cfg.request_timeout_s,
            )
        except requests.Timeout as exc:
            raise NetworkTimeout(f"request timed out after {self.cfg.request_timeout_s:.0f}s") from exc
        except requests.ConnectionError as exc:
            # unreachable host: fatal, retrying or splitting cannot help
            raise ScanError(f"connection failed: {exc}") from exc

        status = resp.status_code
        if status == 429:
            raise NetworkRateLimited("OSM_ERROR_429", status=status)
        if status in (502, 504):
            raise NetworkGatewayError(f"OSM_ERROR_{status}", status=status)
        if status >= 400:
            raise ScanError(f"OSM_ERROR_{status}", status=status)

        try:
            return resp.json()
        except ValueError as exc:
            raise ScanError(f"invalid JSON from Overpass: {exc}", status=status) from exc


class RetailScanner:
    def __init__(
        self,
        client: Optional[OverpassClient] = None,
        cfg: Optional[GeoConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.cfg = cfg or (client.cfg if client is not None else GeoConfig())
        self.client = client or OverpassClient(cfg=self.cfg)
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.requests_sent = 0

    # --- single query with transport-level retries ---

    def _execute(self, query: str, on_progress: Optional[ProgressFn] = None) -> List[GeoFeature]:
        cfg = self.cfg
        if on_progress:
            on_progress(10, "Connecting to OpenStreetMap...")

        rate_limited = 0
        gateway = 0
        while True:
            self.requests_sent += 1
            try:
                data = self.client.post(query)
                break
            except NetworkRateLimited:
                rate_limited += 1
                if rate_limited > cfg.rate_limit_retries:
                    raise
                delay = cfg.rate_limit_base_delay_s * 2 ** (rate_limited - 1) + self.rng.random() * cfg.rate_limit_jitter_s
                log.warning("Overpass 429 rate limit, retrying in %.1fs (attempt %d)", delay, rate_limited)
                if on_progress:
                    on_progress(20, f"Server busy (429). Waiting {round(delay)}s...")
                self.sleep(delay)
            except (NetworkGatewayError, NetworkTimeout) as exc:
                gateway += 1
                if gateway > cfg.gateway_retries:
                    raise
                log.warning("Overpass %s, retrying (attempt %d)", exc, gateway)
                if on_progress:
                    on_progress(25, "Connection unstable. Retrying...")
                self.sleep(cfg.gateway_retry_delay_s)

        if on_progress:
            on_progress(60, "Processing results...")
        elements = data.get("elements") or []
        if on_progress:
            on_progress(90, f"Analyzing {len(elements)} stores...")

        features = []
        for el in elements:
            f = normalize_element(el)
            if f is not None:
                features.append(f)
        return features

    # --- recursive bounding-box scan ---

    def _split(self, bbox: BoundingBox, depth: int, on_progress: Optional[ProgressFn]) -> ScanOutcome:
        log.warning("[depth %d] region too large (504/timeout), splitting into quadrants", depth)
        if on_progress:
            on_progress(50, f"High density detected. Splitting scan grid (depth {depth + 1})...")

        children: List[ScanOutcome] = []
        for i, quadrant in enumerate(bbox.quadrants()):
            if i > 0:
                self.sleep(self.cfg.quadrant_pacing_s)
            children.append(self._scan(quadrant, depth + 1, None))

        ok = [c for c in children if not c.failed]
        outcome = ScanOutcome(
            features=[f for c in ok for f in c.features],
            depth=max(c.depth for c in children),
            queries=sum(c.queries for c in children),
            failed_boxes=[b for c in children for b in c.failed_boxes],
        )
        if ok:
            outcome.state = "SUCCESS"
        else:
            # every quadrant failed: this box failed as a whole
            last = children[-1]
            outcome.state, outcome.error = last.state, last.error
        return outcome

    def _scan(self, bbox: BoundingBox, depth: int, on_progress: Optional[ProgressFn]) -> ScanOutcome:
        before = self.requests_sent
        try:
            features = self._execute(build_bbox_query(bbox, self.cfg), on_progress)
            return ScanOutcome(features, "SUCCESS", depth, self.requests_sent - before)
        except NetworkRateLimited as exc:
            log.error("[depth %d] rate limit persisted for %s", depth, bbox.as_overpass())
            return ScanOutcome([], "FATAL", depth, self.requests_sent - before, [bbox], exc)
        except (NetworkGatewayError, NetworkTimeout) as exc:
            queries = self.requests_sent - before
            state = "GATEWAY_ERROR" if isinstance(exc, NetworkGatewayError) else "TIMEOUT"
            if depth < self.cfg.max_split_depth:
                outcome = self._split(bbox, depth, on_progress)
                outcome.queries += queries
                return outcome
            log.error("[depth %d] unrecoverable scan error for %s: %s", depth, bbox.as_overpass(), exc)
            return ScanOutcome([], state, depth, queries, [bbox], exc)
        except ScanError as exc:
            log.error("[depth %d] unrecoverable scan error for %s: %s", depth, bbox.as_overpass(), exc)
            return ScanOutcome([], "FATAL", depth, self.requests_sent - before, [bbox], exc)

    def scan(self, bbox: BoundingBox, depth: int = 0, on_progress: Optional[ProgressFn] = None) -> ScanOutcome:
        """Scan one box; never raises for network failures, inspect outcome.state instead."""
        outcome = self._scan(bbox, depth, on_progress if depth == 0 else None)
        outcome.features = dedupe_features(outcome.features)
        if outcome.failed_boxes and not outcome.failed:
            log.warning("scan finished with %d failed sub-regions", len(outcome.failed_boxes))
        if on_progress and depth == 0 and not outcome.failed:
            on_progress(100, f"Found {len(outcome.features)} stores")
        return outcome

    def scan_bounding_box(
        self,
        south: float,
        west: float,
        north: float,
        east: float,
        depth: int = 0,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[GeoFeature]:
        """
        Stores inside (south, west, north, east).
        depth > 0: a failure yields []. depth 0: a failure raises NetworkFatal.
        """
        outcome = self.scan(BoundingBox(south, west, north, east), depth, on_progress)
        if not outcome.failed:
            return outcome.features
        if depth > 0:
            return []

        status = getattr(outcome.error, "status", None)
        if isinstance(outcome.error, NetworkRateLimited):
            raise NetworkFatal(RATE_LIMIT_MESSAGE, status=status) from outcome.error
        raise NetworkFatal(f"Retail scan failed: {outcome.error}", status=status) from outcome.error

    def fetch_retail_stores(
        self,
        lat: float,
        lng: float,
        radius_m: Optional[int] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[GeoFeature]:
        """Stores within radius_m of a point. Any failure is logged and yields []."""
        if radius_m is None:
            radius_m = self.cfg.default_radius_m
        try:
            features = self._execute(build_radius_query(lat, lng, radius_m, self.cfg), on_progress)
        except ScanError as exc:
            log.error("radius scan around (%s, %s) failed: %s", lat, lng, exc)
            return []
        return dedupe_features(features)

    def scan_regions(
        self,
        regions: Sequence[GeoFeature],
        confirm: Optional[Callable[[int], bool]] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[GeoFeature]:
        """
        Scan the bbox of every region in turn. `confirm(n_regions)` returning
        False cancels before any request. On a fatal failure the stores
        gathered so far travel on NetworkFatal.partial.
        """
        regions = list(regions)
        if confirm is not None and not confirm(len(regions)):
            log.info("multi-region scan of %d regions cancelled", len(regions))
            return []

        collected: List[GeoFeature] = []
        for i, region in enumerate(regions):
            if i > 0:
                self.sleep(self.cfg.quadrant_pacing_s)
            name = region.properties.get("name", region.id)
            if on_progress:
                on_progress(int(100 * i / len(regions)), f"Scanning {name} ({i + 1}/{len(regions)})...")

            min_lng, min_lat, max_lng, max_lat = geometry_bounds(region.geometry)
            try:
                found = self.scan_bounding_box(min_lat, min_lng, max_lat, max_lng)
            except NetworkFatal as exc:
                raise NetworkFatal(
                    f"{name}: {exc}", status=exc.status, partial=dedupe_features(collected)
                ) from exc
            collected.extend(found)

        stores = dedupe_features(collected)
        if on_progress:
            on_progress(100, f"Found {len(stores)} stores in {len(regions)} regions")
        return stores


def filter_stores(
    stores: Iterable[GeoFeature],
    categories: Optional[Iterable[str]] = None,
    min_rating: float = 0.0,
    text: str = "",
) -> List[GeoFeature]:
    """Category membership, minimum rating and case-insensitive text match on name / vicinity / category."""
    wanted = set(categories) if categories else None
    needle = text.strip().lower()
    result = []
    for s in stores:
        p = s.properties
        if wanted is not None and p.get("category") not in wanted:
            continue
        if (p.get("rating") or 0.0) < min_rating:
            continue
        if needle:
            haystack = " ".join(str(p.get(k, "")) for k in ("name", "vicinity", "category", "subCategory")).lower()
            if needle not in haystack:
                continue
        result.append(s)
    return result
