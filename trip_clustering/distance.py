"""
Distance measures used by trip enrichment and clustering.

``great_circle_distance_km`` is the haversine surface distance on a sphere.
``feature_distance`` is the clustering similarity: plain Euclidean distance
over (latitude, longitude, duration / 1000). Mixing degrees with scaled
seconds is not geometrically meaningful; the divisor only brings a typical
trip duration to the same magnitude as a few hundredths of a degree.
"""

from __future__ import annotations

import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

EARTH_RADIUS_KM = 6371.0
DURATION_SCALE = 1000.0

# Keys accepted when a feature point is given as a row mapping
_LAT_KEYS = ("lat", "latitude", "pickup_latitude")
_LON_KEYS = ("lon", "lng", "longitude", "pickup_longitude")
_DURATION_KEYS = ("duration", "trip_duration")


class InvalidInputError(ValueError):
    """A coordinate handed to a distance computation is not a finite real number."""


def _require_finite(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInputError(f"{name} must be a finite real number, got {value!r}")
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be a finite real number, got {value!r}")
    return number


def great_circle_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    radius_km: float = EARTH_RADIUS_KM,
) -> float:
    """
    Haversine distance between two points given in degrees.

    Raises
    ------
    InvalidInputError
        If any coordinate is NaN, infinite or not a real number.
    """
    lat1 = _require_finite("lat1", lat1)
    lon1 = _require_finite("lon1", lon1)
    lat2 = _require_finite("lat2", lat2)
    lon2 = _require_finite("lon2", lon2)

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return radius_km * c


class FeaturePoint(NamedTuple):
    """Clustering input: pickup latitude, pickup longitude, duration in seconds."""

    lat: float
    lon: float
    duration: float


def _lookup(row: Mapping, keys: tuple[str, ...]):
    for key in keys:
        if key in row:
            return row[key]
    return None


def as_feature_point(point) -> FeaturePoint | None:
    """
    Coerce a point-like value into a ``FeaturePoint``.

    Accepts a ``FeaturePoint``, any 3-element sequence, or a row mapping with
    ``lat``/``lon``/``duration`` (or the raw trip column names). Returns None
    when the value is absent, a field is missing, or a field is not a finite
    number.
    """
    if point is None:
        return None

    if isinstance(point, Mapping):
        values = (_lookup(point, _LAT_KEYS), _lookup(point, _LON_KEYS), _lookup(point, _DURATION_KEYS))
    elif isinstance(point, (str, bytes)):
        return None
    else:
        try:
            values = tuple(point)
        except TypeError:
            return None
        if len(values) != 3:
            return None

    try:
        lat, lon, duration = (float(v) for v in values)
    except (TypeError, ValueError, OverflowError):
        return None
    if not all(math.isfinite(v) for v in (lat, lon, duration)):
        return None
    return FeaturePoint(lat, lon, duration)


@dataclass(frozen=True)
class FeatureDistance:
    """
    Outcome of comparing two feature points.

    ``value`` is None when either side was malformed. Such a distance sorts
    after every real distance, so it never wins a nearest-centroid search.
    """

    value: float | None

    @property
    def comparable(self) -> bool:
        return self.value is not None

    @property
    def sort_key(self) -> float:
        return self.value if self.value is not None else math.inf


INCOMPARABLE = FeatureDistance(None)


def measure_feature_distance(point_a, point_b, duration_scale: float = DURATION_SCALE) -> FeatureDistance:
    a = as_feature_point(point_a)
    b = as_feature_point(point_b)
    if a is None or b is None:
        return INCOMPARABLE

    lat_diff = a.lat - b.lat
    lon_diff = a.lon - b.lon
    duration_diff = (a.duration - b.duration) / duration_scale
    return FeatureDistance(math.sqrt(lat_diff * lat_diff + lon_diff * lon_diff + duration_diff * duration_diff))


def feature_distance(point_a, point_b, duration_scale: float = DURATION_SCALE) -> float:
    """Feature-space distance, or ``math.inf`` when either point is malformed."""
    return measure_feature_distance(point_a, point_b, duration_scale).sort_key


def feature_distance_matrix(
    points: np.ndarray,
    centroids: np.ndarray,
    duration_scale: float = DURATION_SCALE,
) -> np.ndarray:
    """
    Pairwise ``feature_distance`` between ``points`` (n, 3) and ``centroids`` (k, 3).

    Rows containing NaN stand for malformed points and get ``inf`` in every
    column, matching the scalar function.
    """
    scale = np.array([1.0, 1.0, 1.0 / duration_scale])
    scaled_points = np.asarray(points, dtype=float) * scale
    scaled_centroids = np.asarray(centroids, dtype=float) * scale

    diff = scaled_points[:, np.newaxis, :] - scaled_centroids[np.newaxis, :, :]
    distances = np.sqrt((diff**2).sum(axis=2))
    return np.where(np.isfinite(distances), distances, np.inf)
