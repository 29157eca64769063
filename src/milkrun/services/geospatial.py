"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from shapely.geometry import MultiPoint, Point

from ..models.domain import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_vector_km(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Distances from one coordinate to many, same formula as ``haversine_km``."""

    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    d_phi = np.radians(lats - lat)
    d_lambda = np.radians(lons - lon)

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def point_distance_km(a: GeoPoint | tuple[float, float], b: GeoPoint | tuple[float, float]) -> float:
    lat1, lon1 = (a.lat, a.lng) if isinstance(a, GeoPoint) else a
    lat2, lon2 = (b.lat, b.lng) if isinstance(b, GeoPoint) else b
    return haversine_km(lat1, lon1, lat2, lon2)


def centroid(points: Sequence[GeoPoint]) -> tuple[float, float]:
    """Arithmetic mean coordinate of the points."""

    if not points:
        return (0.0, 0.0)
    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return (lat, lng)


def is_valid_coordinate(lat: float | None, lng: float | None) -> bool:
    """True for finite, non-zero coordinates; zero is the missing-value sentinel."""

    if lat is None or lng is None:
        return False
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return lat_f != 0 and lng_f != 0


def hull_overlay(points: Sequence[GeoPoint], *, buffer_degrees: float = 0.002) -> dict | None:
    """Buffered convex hull around the points as a (lat, lon) ring for map overlays."""

    if not points:
        return None
    hull = MultiPoint([(p.lng, p.lat) for p in points]).convex_hull
    shape = hull.buffer(buffer_degrees)
    if shape.is_empty or shape.geom_type != "Polygon":
        return None
    center: Point = shape.centroid
    return {
        "coordinates": [[lat, lon] for lon, lat in shape.exterior.coords],
        "centroid": [center.y, center.x],
    }
