"""
Weighted-bucket primitives used by the feed composer.

A bucket is one sub-query contributing a fixed share of a page. Every mode
follows the same shape: compute per-bucket targets from the page size,
over-fetch each bucket, trim it with `select_bucket`, then combine.
"""
import math
import random
from typing import Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

EARTH_RADIUS_M = 6_371_000

# ── Bucket weights (share of page size) ────────────────────────────────────
EXPLORER_WEIGHTS = {"world": 0.5, "home": 0.3, "nearby": 0.2}
PERSONALIZED_WEIGHTS = {"district": 0.6, "city": 0.2, "home": 0.1, "world": 0.1}

# ── Over-fetch ratios (candidates fetched per target slot) ─────────────────
OVERFETCH = 2
PERSONALIZED_HOME_OVERFETCH = 3   # home bucket loses rows to district/city dedup

SHUFFLE = "shuffle"
ORDER = "order"


def bucket_targets(page_size: int, weights: dict[str, float]) -> dict[str, int]:
    """ceil(page_size × weight) for each bucket; targets may sum past page_size."""
    # round() first so 10 × 0.3 doesn't ceil to 4 on float noise
    return {name: math.ceil(round(page_size * w, 9)) for name, w in weights.items()}


def shuffled(items: Iterable[T], rng: Optional[random.Random] = None) -> list[T]:
    """Uniform Fisher–Yates shuffle into a new list."""
    out = list(items)
    rand = rng or random
    for i in range(len(out) - 1, 0, -1):
        j = rand.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def select_bucket(
    candidates: Sequence[T],
    target: int,
    strategy: str = ORDER,
    rng: Optional[random.Random] = None,
) -> list[T]:
    if target <= 0:
        return []
    if strategy == SHUFFLE:
        return shuffled(candidates, rng)[:target]
    if strategy == ORDER:
        return list(candidates[:target])
    raise ValueError(f"Unknown bucket strategy: {strategy!r}")


def dedupe_by_id(posts: Iterable[T], key: str = "post_id") -> list[T]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set = set()
    out: list[T] = []
    for p in posts:
        pid = getattr(p, key)
        if pid in seen:
            continue
        seen.add(pid)
        out.append(p)
    return out


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_band(
    posts: Iterable[T],
    lat: float,
    lng: float,
    min_m: float,
    max_m: float,
) -> list[T]:
    """Posts with coordinates whose distance to (lat, lng) is in [min_m, max_m]."""
    out = []
    for p in posts:
        if p.latitude is None or p.longitude is None:
            continue
        if min_m <= haversine_m(lat, lng, p.latitude, p.longitude) <= max_m:
            out.append(p)
    return out


def within_radius(posts: Iterable[T], lat: float, lng: float, radius_m: float) -> list[T]:
    """Drop posts farther than radius_m; posts without coordinates are kept."""
    out = []
    for p in posts:
        if p.latitude is None or p.longitude is None:
            out.append(p)
        elif haversine_m(lat, lng, p.latitude, p.longitude) <= radius_m:
            out.append(p)
    return out
