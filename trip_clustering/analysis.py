"""
Summary statistics and heatmap cells over enriched trips.

Both functions take the enriched DataFrame produced by
``preprocessing.enrich_dataframe`` (or read back from the trips table).
"""

from __future__ import annotations

import pandas as pd

from trip_clustering.geo_classify import UNKNOWN_REGION


def _numeric(df: pd.DataFrame, columns) -> pd.DataFrame:
    df = df.copy()
    for column in columns:
        df[column] = pd.to_numeric(df[column], errors="coerce")
    return df


def trip_statistics(df: pd.DataFrame) -> dict:
    """
    Overall, per-borough and per-hour aggregates.

    Returns
    -------
    dict
        ``overall``: total_trips, avg_duration, avg_distance, avg_speed,
        earliest_trip, latest_trip.
        ``boroughs``: one entry per known pickup borough, busiest first.
        ``hourly``: one entry per hour of day, ascending.
    """
    df = _numeric(df, ["trip_duration", "distance_km", "speed_kmh", "hour_of_day"])
    pickups = pd.to_datetime(df["pickup_datetime"], errors="coerce")

    overall = {
        "total_trips": int(len(df)),
        "avg_duration": float(df["trip_duration"].mean()),
        "avg_distance": float(df["distance_km"].mean()),
        "avg_speed": float(df["speed_kmh"].mean()),
        "earliest_trip": pickups.min(),
        "latest_trip": pickups.max(),
    }

    known = df[df["pickup_borough"] != UNKNOWN_REGION]
    boroughs = (
        known.groupby("pickup_borough")
        .agg(
            trip_count=("pickup_borough", "size"),
            avg_duration=("trip_duration", "mean"),
            avg_distance=("distance_km", "mean"),
        )
        .reset_index()
        .sort_values(["trip_count", "pickup_borough"], ascending=[False, True])
    )

    hourly = (
        df.dropna(subset=["hour_of_day"])
        .astype({"hour_of_day": int})
        .groupby("hour_of_day")
        .agg(
            trip_count=("hour_of_day", "size"),
            avg_duration=("trip_duration", "mean"),
            avg_speed=("speed_kmh", "mean"),
        )
        .reset_index()
        .sort_values("hour_of_day")
    )

    return {
        "overall": overall,
        "boroughs": boroughs.to_dict(orient="records"),
        "hourly": hourly.to_dict(orient="records"),
    }


def heatmap_cells(
    df: pd.DataFrame,
    hour: int | None = None,
    borough: str | None = None,
    precision: int = 3,
    min_count: int = 5,
    limit: int = 1000,
) -> pd.DataFrame:
    """
    Pickup density on a grid of rounded coordinates.

    Cells with ``min_count`` trips or fewer are dropped; the ``limit`` most
    intense cells are returned, most intense first.

    Returns
    -------
    pd.DataFrame
        Columns: lat, lon, intensity, avg_duration, avg_speed
    """
    df = _numeric(df, ["pickup_latitude", "pickup_longitude", "trip_duration", "speed_kmh", "hour_of_day"])
    if hour is not None:
        df = df[df["hour_of_day"] == int(hour)]
    if borough:
        df = df[df["pickup_borough"] == borough]

    df = df.assign(
        lat=df["pickup_latitude"].round(precision),
        lon=df["pickup_longitude"].round(precision),
    )
    cells = (
        df.dropna(subset=["lat", "lon"])
        .groupby(["lat", "lon"])
        .agg(
            intensity=("lat", "size"),
            avg_duration=("trip_duration", "mean"),
            avg_speed=("speed_kmh", "mean"),
        )
        .reset_index()
    )
    cells = cells[cells["intensity"] > min_count]
    return cells.sort_values("intensity", ascending=False, kind="stable").head(limit).reset_index(drop=True)
