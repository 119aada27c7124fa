"""
Read/write helpers for the ``trips`` table.

The database is a plain row store for enriched trips; everything computed
about a trip happens in Python before it is written here. Queries use
pymysql ``%s`` placeholders for every caller-supplied value.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import pandas as pd
import pymysql

from trip_clustering.geo_classify import UNKNOWN_REGION

TRIP_COLUMNS: Sequence[str] = (
    "id",
    "vendor_id",
    "pickup_datetime",
    "dropoff_datetime",
    "passenger_count",
    "pickup_longitude",
    "pickup_latitude",
    "dropoff_longitude",
    "dropoff_latitude",
    "store_and_fwd_flag",
    "trip_duration",
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


@dataclass
class DatabaseConfig:
    """
    Lightweight container describing how to connect to the trip database.

    The defaults target a local development server, so creating an instance
    without arguments is enough to run against it.
    """

    host: str = "localhost"
    user: str = "taxi"
    password: str = "taxi"
    database: str = "nyc_taxi_db"
    port: int = 3306
    charset: str = "utf8mb4"
    table: str = "trips"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> DatabaseConfig:
        """Build from ``DB_HOST``/``DB_PORT``/``DB_NAME``/``DB_USER``/``DB_PASSWORD``."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("DB_HOST", defaults.host),
            user=env.get("DB_USER", defaults.user),
            password=env.get("DB_PASSWORD", defaults.password),
            database=env.get("DB_NAME", defaults.database),
            port=int(env.get("DB_PORT", defaults.port)),
        )

    def connect(self) -> pymysql.connections.Connection:
        """Open a new connection using the stored credentials."""
        return pymysql.connect(
            host=self.host,
            user=self.user,
            password=self.password,
            database=self.database,
            port=self.port,
            charset=self.charset,
            cursorclass=pymysql.cursors.DictCursor,
        )


@contextmanager
def db_connection(config: DatabaseConfig) -> Iterator[pymysql.connections.Connection]:
    """Context manager that ensures connections are closed."""
    connection = config.connect()
    try:
        yield connection
    finally:
        connection.close()


def fetch_trips(
    config: DatabaseConfig,
    *,
    borough: Optional[str] = None,
    hour: Optional[int] = None,
    min_duration: Optional[int] = None,
    max_duration: Optional[int] = None,
    trip_type: Optional[str] = None,
    limit: int = 1000,
    offset: int = 0,
) -> pd.DataFrame:
    """
    Fetch enriched trips matching the optional filters, newest pickup first.

    Parameters
    ----------
    borough:
        Exact pickup borough label.
    hour:
        Pickup hour of day (0-23).
    min_duration, max_duration:
        Inclusive trip duration bounds in seconds.
    trip_type:
        ``"Within Borough"`` or ``"Cross Borough"``.
    """

    clauses = []
    params: list = []
    if borough:
        clauses.append("pickup_borough = %s")
        params.append(borough)
    if hour is not None:
        clauses.append("hour_of_day = %s")
        params.append(int(hour))
    if min_duration:
        clauses.append("trip_duration >= %s")
        params.append(int(min_duration))
    if max_duration:
        clauses.append("trip_duration <= %s")
        params.append(int(max_duration))
    if trip_type:
        clauses.append("trip_type = %s")
        params.append(trip_type)

    query = f"SELECT * FROM {config.table}"  # noqa: S608
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY pickup_datetime DESC LIMIT %s OFFSET %s"
    params.extend([int(limit), int(offset)])

    with db_connection(config) as conn:
        return pd.read_sql_query(query, conn, params=params)


def fetch_cluster_points(config: DatabaseConfig, limit: int) -> pd.DataFrame:
    """
    Candidate rows for clustering: pickups in a known borough with a duration.

    Columns: lat, lon, duration, distance_km, speed_kmh, pickup_borough, hour_of_day.
    """
    query = f"""
        SELECT
            pickup_latitude AS lat,
            pickup_longitude AS lon,
            trip_duration AS duration,
            distance_km,
            speed_kmh,
            pickup_borough,
            hour_of_day
        FROM {config.table}
        WHERE pickup_borough != %s
          AND pickup_latitude IS NOT NULL
          AND pickup_longitude IS NOT NULL
          AND trip_duration IS NOT NULL
        LIMIT %s
    """  # noqa: S608
    with db_connection(config) as conn:
        return pd.read_sql_query(query, conn, params=[UNKNOWN_REGION, int(limit)])


def insert_trips(
    config: DatabaseConfig,
    rows: Iterable[Mapping],
    batch_size: int = 500,
    logger: logging.Logger | None = None,
) -> int:
    """
    Insert enriched rows in batches; rows whose ``id`` already exists are skipped.

    Returns the number of rows sent to the database.
    """
    columns = ", ".join(TRIP_COLUMNS)
    placeholders = ", ".join(["%s"] * len(TRIP_COLUMNS))
    query = f"INSERT IGNORE INTO {config.table} ({columns}) VALUES ({placeholders})"  # noqa: S608

    sent = 0
    batch: list[tuple] = []
    with db_connection(config) as conn:
        with conn.cursor() as cursor:
            for row in rows:
                batch.append(tuple(row.get(column) for column in TRIP_COLUMNS))
                if len(batch) >= batch_size:
                    cursor.executemany(query, batch)
                    conn.commit()
                    sent += len(batch)
                    batch = []
                    if logger:
                        logger.debug("Inserted %s rows so far", sent)
            if batch:
                cursor.executemany(query, batch)
                conn.commit()
                sent += len(batch)

    if logger:
        logger.info("Inserted %s rows into %s", sent, config.table)
    return sent
