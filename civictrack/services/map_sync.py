# File: civictrack/services/map_sync.py
"""Marker layer reconciliation for the map view.

``MarkerSynchronizer`` is the only writer of a ``MarkerLayer``: every sync
clears the layer, draws the radius circle around the center and re-adds one
marker per plottable issue inside the radius.
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from civictrack.services.issue_store import IssueRecord

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
RESOLVED_ZOOM = 12
FALLBACK_ZOOM = 5


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True)
class Marker:
    issue_id: str
    title: str
    category: str
    status: str
    lat: float
    lng: float
    distance_km: float


@dataclass(frozen=True)
class RadiusCircle:
    lat: float
    lng: float
    radius_km: float


@dataclass
class MarkerLayer:
    markers: list[Marker] = field(default_factory=list)
    circle: Optional[RadiusCircle] = None
    center: Optional[LatLng] = None
    zoom: int = FALLBACK_ZOOM
    fallback: bool = True
    skipped: list[str] = field(default_factory=list)

    def clear(self) -> None:
        self.markers = []
        self.circle = None
        self.skipped = []

    def to_dict(self) -> dict:
        return {
            "center": asdict(self.center) if self.center else None,
            "zoom": self.zoom,
            "fallback": self.fallback,
            "circle": asdict(self.circle) if self.circle else None,
            "markers": [asdict(m) for m in self.markers],
            "skipped": list(self.skipped),
        }


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    lat1, lng1, lat2, lng2 = map(math.radians, [lat1, lng1, lat2, lng2])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_coordinates(latitude: Any, longitude: Any) -> Optional[LatLng]:
    """Return the point, or None when either component is missing or not finite."""
    lat = _to_float(latitude)
    lng = _to_float(longitude)
    if lat is None or lng is None:
        return None
    return LatLng(lat, lng)


class MarkerSynchronizer:
    def __init__(self, layer: MarkerLayer, default_center: LatLng):
        self.layer = layer
        self.default_center = default_center

    def sync(
        self,
        filtered_issues: Iterable["IssueRecord"],
        center: Optional[LatLng],
        radius_km: float,
        category: Optional[str] = None,
    ) -> MarkerLayer:
        layer = self.layer
        layer.clear()

        if center is None:
            logger.warning(
                "Map center unresolved, falling back to default (%s, %s)",
                self.default_center.lat, self.default_center.lng,
            )
            center = self.default_center
            layer.fallback = True
            layer.zoom = FALLBACK_ZOOM
        else:
            layer.fallback = False
            layer.zoom = RESOLVED_ZOOM
        layer.center = center
        layer.circle = RadiusCircle(lat=center.lat, lng=center.lng, radius_km=radius_km)

        for issue in filtered_issues:
            if category and issue.category != category:
                continue
            point = parse_coordinates(issue.latitude, issue.longitude)
            if point is None:
                logger.warning(
                    "Issue %s missing valid coordinates (lat=%r, lng=%r)",
                    issue.id, issue.latitude, issue.longitude,
                )
                layer.skipped.append(issue.id)
                continue
            distance = haversine_km(center.lat, center.lng, point.lat, point.lng)
            if distance > radius_km:
                continue
            layer.markers.append(
                Marker(
                    issue_id=issue.id,
                    title=issue.title,
                    category=issue.category,
                    status=issue.status,
                    lat=point.lat,
                    lng=point.lng,
                    distance_km=round(distance, 3),
                )
            )
        return layer
