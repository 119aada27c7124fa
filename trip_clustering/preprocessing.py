"""
Validation and enrichment of raw taxi trip records.

A raw record is a mapping of column name to value as it comes out of the
trip CSV export (numbers usually still strings). Records that fail
``is_valid_trip`` are counted and dropped; survivors gain distance, speed,
calendar buckets, borough labels and a trip type.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

import pandas as pd

from trip_clustering.config import DEFAULT_CONFIG, TripConfig
from trip_clustering.distance import FeaturePoint, great_circle_distance_km
from trip_clustering.geo_classify import UNKNOWN_REGION, classify_region, is_valid_coordinate

logger = logging.getLogger(__name__)

COORDINATE_COLUMNS = (
    "pickup_latitude",
    "pickup_longitude",
    "dropoff_latitude",
    "dropoff_longitude",
)

ENRICHED_COLUMNS = (
    "distance_km",
    "speed_kmh",
    "seconds_per_km",
    "hour_of_day",
    "day_of_week",
    "month",
    "pickup_borough",
    "dropoff_borough",
    "trip_type",
)


class TripType(str, Enum):
    WITHIN_REGION = "Within Borough"
    CROSS_REGION = "Cross Borough"


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def _is_missing(value) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def _to_int(value) -> float:
    """Integer part of ``value`` (as a float so NaN can signal failure)."""
    number = _to_float(value)
    if not math.isfinite(number):
        return math.nan
    return float(math.trunc(number))


def _parse_timestamp(value) -> pd.Timestamp | None:
    if value is None:
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts


def _trip_duration(record: Mapping) -> float:
    """Duration in whole seconds; derived from the timestamps when the column is absent."""
    duration = _to_int(record.get("trip_duration"))
    if not math.isnan(duration):
        return duration

    pickup = _parse_timestamp(record.get("pickup_datetime"))
    dropoff = _parse_timestamp(record.get("dropoff_datetime"))
    if pickup is None or dropoff is None:
        return math.nan
    try:
        return float(math.trunc((dropoff - pickup).total_seconds()))
    except TypeError:
        # tz-aware minus tz-naive
        return math.nan


def _endpoints(record: Mapping) -> tuple[float, float, float, float]:
    return tuple(_to_float(record.get(column)) for column in COORDINATE_COLUMNS)


def is_valid_trip(record: Mapping, config: TripConfig = DEFAULT_CONFIG) -> bool:
    """
    Composite sanity check on a raw record. Never raises.

    Checks, in order, stopping at the first failure: pickup coordinate,
    dropoff coordinate, duration, passenger count, great-circle distance.
    All bounds are inclusive.
    """
    thresholds = config.thresholds
    pickup_lat, pickup_lon, dropoff_lat, dropoff_lon = _endpoints(record)

    if not is_valid_coordinate(pickup_lat, pickup_lon, config.geo):
        return False
    if not is_valid_coordinate(dropoff_lat, dropoff_lon, config.geo):
        return False

    duration = _trip_duration(record)
    if not thresholds.min_duration_s <= duration <= thresholds.max_duration_s:
        return False

    passengers = _to_int(record.get("passenger_count"))
    if not thresholds.min_passengers <= passengers <= thresholds.max_passengers:
        return False

    distance = great_circle_distance_km(pickup_lat, pickup_lon, dropoff_lat, dropoff_lon, config.earth_radius_km)
    return thresholds.min_distance_km <= distance <= thresholds.max_distance_km


@dataclass(frozen=True)
class EnrichedTripRecord:
    """A raw record plus derived attributes. Built once, never modified."""

    raw: Mapping = field(hash=False)
    duration_s: float
    distance_km: float
    speed_kmh: float
    seconds_per_km: float
    hour_of_day: int | None
    day_of_week: int | None
    month: int | None
    pickup_borough: str
    dropoff_borough: str
    trip_type: TripType

    @property
    def feature_point(self) -> FeaturePoint:
        return FeaturePoint(
            _to_float(self.raw.get("pickup_latitude")),
            _to_float(self.raw.get("pickup_longitude")),
            self.duration_s,
        )

    def to_row(self) -> dict:
        """Flat row for storage: raw columns plus rounded derived columns."""
        row = dict(self.raw)
        row.update(
            {
                "trip_duration": int(self.duration_s) if math.isfinite(self.duration_s) else self.duration_s,
                "distance_km": round(self.distance_km, 3),
                "speed_kmh": round(self.speed_kmh, 2),
                "seconds_per_km": round(self.seconds_per_km, 2),
                "hour_of_day": self.hour_of_day,
                "day_of_week": self.day_of_week,
                "month": self.month,
                "pickup_borough": self.pickup_borough,
                "dropoff_borough": self.dropoff_borough,
                "trip_type": self.trip_type.value,
            }
        )
        # Blank CSV cells arrive as NaN; storage and JSON want None
        return {key: None if _is_missing(value) else value for key, value in row.items()}


def classify_trip_type(pickup_region: str, dropoff_region: str) -> TripType:
    """Cross-region only when both ends are known and differ."""
    if pickup_region != dropoff_region and UNKNOWN_REGION not in (pickup_region, dropoff_region):
        return TripType.CROSS_REGION
    return TripType.WITHIN_REGION


def enrich_trip(record: Mapping, config: TripConfig = DEFAULT_CONFIG) -> EnrichedTripRecord:
    """
    Derive the enriched attributes of a record that passed ``is_valid_trip``.

    The input is not validated again. A zero duration gives an infinite speed
    and a zero distance gives infinite seconds per km; non-finite coordinates
    raise ``InvalidInputError`` from the distance computation.

    Calendar fields are read from the pickup timestamp's own wall clock, with
    no timezone conversion. ``day_of_week`` counts from Sunday = 0.
    """
    pickup_lat, pickup_lon, dropoff_lat, dropoff_lon = _endpoints(record)
    duration = _trip_duration(record)

    distance = great_circle_distance_km(pickup_lat, pickup_lon, dropoff_lat, dropoff_lon, config.earth_radius_km)
    speed = distance / (duration / 3600) if duration else math.inf
    seconds_per_km = duration / distance if distance else math.inf

    pickup_ts = _parse_timestamp(record.get("pickup_datetime"))
    if pickup_ts is not None:
        hour_of_day = pickup_ts.hour
        day_of_week = (pickup_ts.dayofweek + 1) % 7
        month = pickup_ts.month
    else:
        hour_of_day = day_of_week = month = None

    pickup_borough = classify_region(pickup_lat, pickup_lon, config.geo)
    dropoff_borough = classify_region(dropoff_lat, dropoff_lon, config.geo)

    return EnrichedTripRecord(
        raw=MappingProxyType(dict(record)),
        duration_s=duration,
        distance_km=distance,
        speed_kmh=speed,
        seconds_per_km=seconds_per_km,
        hour_of_day=hour_of_day,
        day_of_week=day_of_week,
        month=month,
        pickup_borough=pickup_borough,
        dropoff_borough=dropoff_borough,
        trip_type=classify_trip_type(pickup_borough, dropoff_borough),
    )


@dataclass
class EnrichmentReport:
    records: list[EnrichedTripRecord] = field(default_factory=list)
    processed: int = 0
    valid: int = 0
    invalid: int = 0

    @property
    def retention_rate(self) -> float:
        return self.valid / self.processed if self.processed else 0.0


def enrich_trips(
    records: Iterable[Mapping],
    config: TripConfig = DEFAULT_CONFIG,
    progress_every: int = 5000,
) -> EnrichmentReport:
    """
    Validate and enrich a batch of raw records.

    Invalid records are counted, not raised; the report carries the
    processed/valid/invalid totals alongside the enriched records.
    """
    report = EnrichmentReport()
    for record in records:
        report.processed += 1
        if progress_every and report.processed % progress_every == 0:
            logger.info("Processed %d records...", report.processed)

        if is_valid_trip(record, config):
            report.records.append(enrich_trip(record, config))
            report.valid += 1
        else:
            report.invalid += 1

    logger.info(
        "Enrichment finished: processed=%d valid=%d invalid=%d",
        report.processed,
        report.valid,
        report.invalid,
    )
    return report


def enrich_dataframe(
    df: pd.DataFrame,
    config: TripConfig = DEFAULT_CONFIG,
) -> tuple[pd.DataFrame, EnrichmentReport]:
    """
    DataFrame front-end for ``enrich_trips``.

    Returns the enriched rows of the valid records (index reset) and the
    report with counts.
    """
    required_columns = [*COORDINATE_COLUMNS, "passenger_count"]
    if "trip_duration" not in df.columns:
        required_columns += ["pickup_datetime", "dropoff_datetime"]
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(f"Input dataframe is missing required columns: {missing}")

    report = enrich_trips(df.to_dict(orient="records"), config)
    if not report.records:
        columns = list(dict.fromkeys([*df.columns, "trip_duration", *ENRICHED_COLUMNS]))
        return pd.DataFrame(columns=columns), report

    enriched = pd.DataFrame([record.to_row() for record in report.records])
    return enriched.reset_index(drop=True), report
