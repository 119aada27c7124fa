"""
Geographic classification for taxi trip coordinates.

Two questions are answered here:
- Is a coordinate usable at all (inside the service area, not a 0/0 GPS glitch)?
- Which borough does it fall into?

Boroughs are approximated with rectangles. The rectangles overlap, so the
order of ``GeoConfig.regions`` is part of the configuration: the first
rectangle containing a point wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

logger = logging.getLogger(__name__)

UNKNOWN_REGION = "Unknown"

# ============================================================================
# Bounding boxes
# Format: (min_lat, max_lat, min_lng, max_lng)
# ============================================================================

NYC_BOUNDS = (40.4774, 40.9176, -74.2591, -73.7004)

# Priority order matters: Manhattan overlaps Brooklyn and Queens, Bronx
# overlaps Manhattan and Queens.
BOROUGH_REGIONS = (
    ("Manhattan", (40.70, 40.80, -74.05, -73.90)),
    ("Brooklyn", (40.57, 40.74, -74.05, -73.80)),
    ("Queens", (40.54, 40.80, -74.00, -73.70)),
    ("Bronx", (40.78, 40.92, -73.95, -73.75)),
    ("Staten Island", (40.50, 40.65, -74.30, -74.00)),
)


def _check_bounds(name: str, bounds: tuple) -> tuple[float, float, float, float]:
    if len(bounds) != 4:
        raise ValueError(f"{name}: expected (min_lat, max_lat, min_lng, max_lng), got {bounds!r}")
    min_lat, max_lat, min_lng, max_lng = (float(v) for v in bounds)
    if min_lat > max_lat or min_lng > max_lng:
        raise ValueError(f"{name}: minimum exceeds maximum in {bounds!r}")
    return min_lat, max_lat, min_lng, max_lng


@dataclass(frozen=True)
class GeoConfig:
    """
    Service area and ordered borough rectangles.

    Built once and shared; nothing mutates it afterwards.
    """

    bounds: tuple[float, float, float, float] = NYC_BOUNDS
    regions: tuple[tuple[str, tuple[float, float, float, float]], ...] = field(
        default=BOROUGH_REGIONS
    )

    def __post_init__(self):
        object.__setattr__(self, "bounds", _check_bounds("bounds", self.bounds))
        checked = []
        seen = set()
        for name, bounds in self.regions:
            if name == UNKNOWN_REGION:
                raise ValueError(f"'{UNKNOWN_REGION}' is reserved and cannot name a region")
            if name in seen:
                raise ValueError(f"Duplicate region name: {name}")
            seen.add(name)
            checked.append((name, _check_bounds(name, bounds)))
        object.__setattr__(self, "regions", tuple(checked))

    @property
    def region_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.regions)

    @classmethod
    def from_mapping(cls, regions, bounds=NYC_BOUNDS) -> GeoConfig:
        """Build from an ordered ``{name: bounds}`` mapping; insertion order is the priority."""
        return cls(bounds=tuple(bounds), regions=tuple((name, tuple(b)) for name, b in regions.items()))


DEFAULT_GEO_CONFIG = GeoConfig()


def _point_in_bounds(lat: float, lng: float, bounds: tuple) -> bool:
    """
    Check if point is within bounding box, all four edges inclusive.

    Parameters
    ----------
    bounds : tuple
        (min_lat, max_lat, min_lng, max_lng)
    """
    min_lat, max_lat, min_lng, max_lng = bounds
    return min_lat <= lat <= max_lat and min_lng <= lng <= max_lng


def _as_coordinate(lat, lng) -> tuple[float, float] | None:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(lat) or pd.isna(lng):
        return None
    return lat, lng


def is_valid_coordinate(lat, lng, config: GeoConfig = DEFAULT_GEO_CONFIG) -> bool:
    """
    Return True when the coordinate is usable for a trip endpoint.

    A zero on either axis is the GPS "no fix" value and is rejected even if
    the service area would contain it. Missing, NaN and unparsable values
    are rejected as well; this function never raises.
    """
    coord = _as_coordinate(lat, lng)
    if coord is None:
        return False
    lat, lng = coord
    if lat == 0 or lng == 0:
        return False
    return _point_in_bounds(lat, lng, config.bounds)


def classify_region(lat, lng, config: GeoConfig = DEFAULT_GEO_CONFIG) -> str:
    """
    Name of the first configured region containing the point, else ``"Unknown"``.
    """
    coord = _as_coordinate(lat, lng)
    if coord is None:
        return UNKNOWN_REGION

    lat, lng = coord
    for name, bounds in config.regions:
        if _point_in_bounds(lat, lng, bounds):
            return name
    return UNKNOWN_REGION


def classify_dataframe(
    df: pd.DataFrame,
    lat_col: str = "pickup_latitude",
    lng_col: str = "pickup_longitude",
    output_col: str = "pickup_borough",
    config: GeoConfig = DEFAULT_GEO_CONFIG,
) -> pd.DataFrame:
    """
    Add a region label column to a DataFrame.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame with latitude and longitude columns
    lat_col : str
        Name of latitude column
    lng_col : str
        Name of longitude column
    output_col : str
        Name of the column receiving the labels

    Returns
    -------
    pd.DataFrame
        Copy of the input with the label column added
    """
    logger.info("Classifying %d coordinates...", len(df))

    df = df.copy()
    lats = pd.to_numeric(df[lat_col], errors="coerce")
    lngs = pd.to_numeric(df[lng_col], errors="coerce")
    df[output_col] = [classify_region(lat, lng, config) for lat, lng in zip(lats, lngs)]

    if len(df):
        region_counts = df[output_col].value_counts()
        logger.info("  Top regions: %s", dict(region_counts.head(5)))
    return df
