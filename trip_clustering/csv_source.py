"""
CSV data source for raw taxi trips.

The public NYC taxi trip-duration export (``train.csv``) is the expected
format. Values are kept as strings so that validation sees exactly what the
file contains; parsing happens in ``preprocessing``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pandas as pd

RAW_TRIP_COLUMNS = (
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
)

REQUIRED_COLUMNS = (
    "pickup_datetime",
    "passenger_count",
    "pickup_longitude",
    "pickup_latitude",
    "dropoff_longitude",
    "dropoff_latitude",
)


def _check_columns(columns, csv_path: Path) -> None:
    missing = [col for col in REQUIRED_COLUMNS if col not in columns]
    if missing:
        raise ValueError(f"{csv_path} is missing required columns: {missing}")


def load_trip_csv(
    csv_path: Path | str,
    limit: int | None = None,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Load raw trips from a CSV file.

    Parameters
    ----------
    csv_path:
        Path to the trip CSV.
    limit:
        Optional limit on number of rows to load.
    logger:
        Optional logger for status messages.

    Returns
    -------
    pd.DataFrame
        All columns as strings; empty cells become NaN.
    """
    csv_path = Path(csv_path)

    if logger:
        logger.info("Loading CSV data from %s...", csv_path)

    nrows = limit if limit else None
    df = pd.read_csv(csv_path, nrows=nrows, dtype=str, keep_default_na=True)
    _check_columns(df.columns, csv_path)

    if logger:
        logger.info("Loaded %d rows from CSV", len(df))

    return df


def iter_trip_records(
    csv_path: Path | str,
    chunk_size: int = 5000,
    limit: int | None = None,
) -> Iterator[list[dict]]:
    """
    Stream the CSV as lists of row dicts, ``chunk_size`` rows at a time.

    Keeps memory flat for full-size exports.
    """
    csv_path = Path(csv_path)
    reader = pd.read_csv(csv_path, dtype=str, chunksize=chunk_size, nrows=limit or None)
    with reader:
        for chunk in reader:
            _check_columns(chunk.columns, csv_path)
            yield chunk.to_dict(orient="records")
