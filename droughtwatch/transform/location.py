# -*- coding: utf-8 -*-
"""
Normalise the four ways a user can pick a place into one ``Location``.

Polygon checks and centroids run on shapely geometries built in planar degree
space (x = lng, y = lat), which is accurate enough for field- and
district-sized uploads.  Rings crossing the antimeridian are not supported.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import shapely.geometry as sgeom

from droughtwatch.errors import InvalidCoordinate, InvalidGeometry, LookupFailed
from droughtwatch.fetch.base import Geocoder
from droughtwatch.models import LatLng, Location, is_finite_number

logger = logging.getLogger(__name__)

EPS = 1e-12


# ---------- inputs ----------
@dataclass(frozen=True)
class NameQuery:
    name: str
    country: Optional[str] = None


@dataclass(frozen=True)
class CoordinatePair:
    lat: float
    lng: float
    name: Optional[str] = None


@dataclass(frozen=True)
class MapClick:
    lat: float
    lng: float


@dataclass(frozen=True)
class UploadedGeometry:
    ring: Sequence[LatLng]
    name: Optional[str] = None


LocationInput = Union[NameQuery, CoordinatePair, MapClick, UploadedGeometry]


# ---------- geometry helpers ----------
def _in_range(lat: float, lng: float) -> bool:
    return (
        is_finite_number(lat)
        and is_finite_number(lng)
        and -90.0 <= float(lat) <= 90.0
        and -180.0 <= float(lng) <= 180.0
    )


def open_ring(ring: Sequence[LatLng]) -> List[LatLng]:
    """Drop consecutive duplicates and the repeated closing vertex."""
    pts: List[LatLng] = []
    for lat, lng in ring:
        p = (float(lat), float(lng))
        if not pts or pts[-1] != p:
            pts.append(p)
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts.pop()
    return pts


def to_polygon(pts: Sequence[LatLng]) -> sgeom.Polygon:
    return sgeom.Polygon([(lng, lat) for lat, lng in pts])


def is_self_intersecting(pts: Sequence[LatLng]) -> bool:
    """True when the closed ring crosses or touches itself anywhere but at neighbouring edges."""
    return not sgeom.LinearRing([(lng, lat) for lat, lng in pts]).is_simple


def polygon_centroid(pts: Sequence[LatLng]) -> Tuple[LatLng, float]:
    """Area-weighted centroid in (lat, lng) and the unsigned area in square degrees."""
    poly = to_polygon(pts)
    if poly.area < EPS:
        raise InvalidGeometry("polygon has zero area; centroid is undefined", context={"vertices": len(pts)})
    c = poly.centroid
    return (c.y, c.x), poly.area


# ---------- resolver ----------
class LocationResolver:
    def __init__(self, geocoder: Optional[Geocoder] = None, confidence_threshold: float = 0.8) -> None:
        self.geocoder = geocoder
        self.confidence_threshold = confidence_threshold

    def resolve(self, query: LocationInput) -> Location:
        if isinstance(query, Location):
            return query
        if isinstance(query, NameQuery):
            return self._resolve_name(query)
        if isinstance(query, CoordinatePair):
            return self._resolve_point(query.lat, query.lng, query.name)
        if isinstance(query, MapClick):
            return self._resolve_point(query.lat, query.lng, None)
        if isinstance(query, UploadedGeometry):
            return self._resolve_polygon(query)
        raise TypeError(f"unsupported location input: {type(query).__name__}")

    def _resolve_point(self, lat: float, lng: float, name: Optional[str]) -> Location:
        if not _in_range(lat, lng):
            raise InvalidCoordinate(
                f"coordinate out of range: lat={lat!r}, lng={lng!r}",
                context={"lat": lat, "lng": lng},
            )
        return Location(lat=float(lat), lng=float(lng), name=name)

    def _resolve_polygon(self, geom: UploadedGeometry) -> Location:
        try:
            pts = open_ring(geom.ring)
        except (TypeError, ValueError) as e:
            raise InvalidGeometry(f"ring is not a sequence of (lat, lng) pairs: {e}") from e
        if len(set(pts)) < 3:
            raise InvalidGeometry(
                f"polygon needs at least 3 distinct vertices, got {len(set(pts))}",
                context={"vertices": len(set(pts))},
            )
        bad = [p for p in pts if not _in_range(*p)]
        if bad:
            raise InvalidGeometry(f"polygon vertices out of range: {bad[:3]}", context={"bad": len(bad)})
        if is_self_intersecting(pts):
            raise InvalidGeometry("polygon ring is self-intersecting", context={"vertices": len(pts)})
        (lat, lng), area = polygon_centroid(pts)
        logger.debug("Polygon %d vertices, area=%.6f deg², centroid=(%.5f, %.5f)", len(pts), area, lat, lng)
        return Location(lat=lat, lng=lng, name=geom.name, polygon=tuple(pts))

    def _resolve_name(self, query: NameQuery) -> Location:
        name = (query.name or "").strip()
        if not name:
            raise LookupFailed("empty place name")
        if self.geocoder is None:
            raise LookupFailed("no geocoder configured for name lookups", context={"name": name})
        candidates = list(self.geocoder.search(name))
        if query.country:
            wanted = query.country.strip().casefold()
            candidates = [(loc, c) for loc, c in candidates if wanted in (loc.name or "").casefold()]
        confident = [(loc, c) for loc, c in candidates if c >= self.confidence_threshold]
        if not confident:
            raise LookupFailed(
                f"no confident match for {name!r}",
                context={"name": name, "candidates": len(candidates)},
            )
        if len(confident) > 1:
            raise LookupFailed(
                f"ambiguous place name {name!r}: {len(confident)} matches",
                context={"name": name, "matches": [loc.label() for loc, _ in confident]},
            )
        loc, confidence = confident[0]
        logger.info("Resolved %r → %s (confidence %.2f)", name, loc.label(), confidence)
        return loc


__all__ = [
    "NameQuery",
    "CoordinatePair",
    "MapClick",
    "UploadedGeometry",
    "LocationInput",
    "LocationResolver",
    "open_ring",
    "polygon_centroid",
    "is_self_intersecting",
    "to_polygon",
]
