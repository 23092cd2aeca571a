import math
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pygeohash as pgh
from pyproj import Geod

from memories.cluster.schema import Centroid, TimeRange
from memories.common.models import MediaItem

EARTH_RADIUS_KM = 6371.0088

_geod = Geod(ellps="WGS84")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_km(lat1, lon1, lat2, lon2) * 1000.0


def item_distance_km(a: MediaItem, b: MediaItem) -> float:
    return haversine_km(a.lat, a.lon, b.lat, b.lon)


def geodesic_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    # inv(lon1, lat1, lon2, lat2) -> az12, az21, dist
    _, _, dist = _geod.inv(lon1, lat1, lon2, lat2)
    return dist


def path_length_km(items: Sequence[MediaItem]) -> float:
    """Geodesic length of the track through `items` in the given order."""
    if len(items) < 2:
        return 0.0
    lons = [item.lon for item in items]
    lats = [item.lat for item in items]
    return _geod.line_length(lons, lats) / 1000.0


def gps_items(items: Iterable[MediaItem]) -> List[MediaItem]:
    return [item for item in items if item.has_gps]


def timestamped(items: Iterable[MediaItem]) -> List[MediaItem]:
    """Items carrying a capture time, sorted chronologically (stable)."""
    dated = [item for item in items if item.taken_at is not None]
    dated.sort(key=lambda item: item.timestamp)
    return dated


def centroid(items: Iterable[MediaItem]) -> Centroid:
    """Arithmetic mean of GPS-tagged items; (0, 0) when none carry GPS."""
    located = gps_items(items)
    if not located:
        return Centroid(0.0, 0.0)
    lat = sum(item.lat for item in located) / len(located)
    lon = sum(item.lon for item in located) / len(located)
    return Centroid(lat, lon)


def time_range(items: Iterable[MediaItem]) -> Optional[TimeRange]:
    stamps = [item.timestamp for item in items if item.taken_at is not None]
    if not stamps:
        return None
    return {"from": int(min(stamps)), "to": int(max(stamps))}


def geocell(lat: float, lon: float, precision: int = 5) -> str:
    return pgh.encode(lat, lon, precision=precision)


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return float(np.median(values))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))
