"""
Process-wide settings for trip validation, enrichment and clustering.

A ``TripConfig`` is built once at startup and passed by reference; every
field is read-only. ``DEFAULT_CONFIG`` reproduces the NYC taxi defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from trip_clustering.distance import DURATION_SCALE, EARTH_RADIUS_KM
from trip_clustering.geo_classify import DEFAULT_GEO_CONFIG, GeoConfig


@dataclass(frozen=True)
class ValidationThresholds:
    """Inclusive bounds a raw trip must satisfy to be kept."""

    min_duration_s: float = 30
    max_duration_s: float = 10800
    min_passengers: int = 1
    max_passengers: int = 6
    min_distance_km: float = 0.1
    max_distance_km: float = 100.0

    def __post_init__(self):
        for low, high in (
            ("min_duration_s", "max_duration_s"),
            ("min_passengers", "max_passengers"),
            ("min_distance_km", "max_distance_km"),
        ):
            if getattr(self, low) < 0 or getattr(self, low) > getattr(self, high):
                raise ValueError(f"Invalid threshold range {low}={getattr(self, low)}, {high}={getattr(self, high)}")


@dataclass(frozen=True)
class TripConfig:
    geo: GeoConfig = DEFAULT_GEO_CONFIG
    thresholds: ValidationThresholds = field(default_factory=ValidationThresholds)
    earth_radius_km: float = EARTH_RADIUS_KM
    duration_scale: float = DURATION_SCALE
    convergence_threshold: float = 0.001
    max_iterations: int = 100
    default_k: int = 5
    k_bounds: tuple[int, int] = (1, 20)
    default_sample_size: int = 10000
    sample_size_bounds: tuple[int, int] = (10, 50000)

    def __post_init__(self):
        if self.duration_scale <= 0:
            raise ValueError("duration_scale must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


DEFAULT_CONFIG = TripConfig()


def _parse_int(value) -> int:
    """Parse like an HTTP query parameter: leading integer part, 0 when unparsable."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _clamp(value, default: int, bounds: tuple[int, int]) -> int:
    parsed = _parse_int(value) or default
    low, high = bounds
    return max(low, min(parsed, high))


def clamp_k(value, config: TripConfig = DEFAULT_CONFIG) -> int:
    """Requested cluster count, defaulted and clamped to ``config.k_bounds``."""
    return _clamp(value, config.default_k, config.k_bounds)


def clamp_sample_size(value, config: TripConfig = DEFAULT_CONFIG) -> int:
    """Requested number of candidate points, defaulted and clamped to ``config.sample_size_bounds``."""
    return _clamp(value, config.default_sample_size, config.sample_size_bounds)
