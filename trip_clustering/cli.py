#!/usr/bin/env python3
"""
Command-line tool to enrich raw taxi trips and cluster them.

Features:
- Streaming validation/enrichment of a raw trip CSV, to CSV and/or database
- K-means clustering of enriched trips on (pickup location, duration)

Usage:
    trip-cluster enrich train.csv --output data/enriched_trips.csv
    trip-cluster enrich train.csv --to-database
    trip-cluster cluster data/enriched_trips.csv --k 8 --output clusters.json
    trip-cluster cluster --from-database --k 5 --sample 20000
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd
import pymysql

from trip_clustering.clustering import cluster_trips
from trip_clustering.config import DEFAULT_CONFIG, clamp_k, clamp_sample_size
from trip_clustering.csv_source import iter_trip_records
from trip_clustering.data import DatabaseConfig, fetch_cluster_points, insert_trips
from trip_clustering.distance import InvalidInputError
from trip_clustering.geo_classify import UNKNOWN_REGION
from trip_clustering.preprocessing import enrich_trips

CLUSTER_COLUMNS = {
    "pickup_latitude": "lat",
    "pickup_longitude": "lon",
    "trip_duration": "duration",
}


def add_database_arguments(parser):
    env = DatabaseConfig.from_env()
    parser.add_argument("--host", default=env.host, help=f"MySQL host (default: {env.host})")
    parser.add_argument("--port", type=int, default=env.port, help=f"MySQL port (default: {env.port})")
    parser.add_argument("--user", default=env.user, help=f"MySQL user (default: {env.user})")
    parser.add_argument("--password", default=env.password, help="MySQL password")
    parser.add_argument("--database", default=env.database, help=f"Database name (default: {env.database})")


def database_config(args) -> DatabaseConfig:
    return DatabaseConfig(
        host=args.host,
        port=args.port,
        user=args.user,
        password=args.password,
        database=args.database,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate, enrich and cluster NYC taxi trips")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    enrich = subparsers.add_parser("enrich", help="Validate and enrich a raw trip CSV")
    enrich.add_argument("input", type=Path, help="Raw trip CSV (train.csv format)")
    enrich.add_argument("--output", type=Path, default=None, help="Write enriched rows to this CSV")
    enrich.add_argument("--to-database", action="store_true", help="Insert enriched rows into the trips table")
    enrich.add_argument("--limit", type=int, default=None, help="Limit number of raw rows to read")
    enrich.add_argument("--chunk-size", type=int, default=5000, help="Rows per processing chunk (default: 5000)")
    enrich.add_argument("--batch-size", type=int, default=500, help="Rows per database insert (default: 500)")
    add_database_arguments(enrich)

    cluster = subparsers.add_parser("cluster", help="Cluster enriched trips with K-means")
    cluster.add_argument("input", type=Path, nargs="?", help="Enriched trip CSV")
    cluster.add_argument("--from-database", action="store_true", help="Read candidate points from the trips table")
    cluster.add_argument("--k", default=DEFAULT_CONFIG.default_k, help="Number of clusters, clamped to [1, 20] (default: 5)")
    cluster.add_argument(
        "--sample",
        default=DEFAULT_CONFIG.default_sample_size,
        help="Maximum number of trips to cluster, clamped to [10, 50000] (default: 10000)",
    )
    cluster.add_argument(
        "--max-iterations",
        type=int,
        default=DEFAULT_CONFIG.max_iterations,
        help="Iteration cap (default: 100)",
    )
    cluster.add_argument("--seed", type=int, default=None, help="Random seed for centroid selection")
    cluster.add_argument("--output", type=Path, default=None, help="Write the JSON result here (default: stdout)")
    add_database_arguments(cluster)

    return parser


def run_enrich(args, logger) -> None:
    if not args.output and not args.to_database:
        raise ValueError("Nothing to do: pass --output and/or --to-database")

    output_path = None
    if args.output:
        output_path = args.output.expanduser().resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()

    db_config = database_config(args) if args.to_database else None
    processed = valid = invalid = 0

    for chunk in iter_trip_records(args.input, chunk_size=args.chunk_size, limit=args.limit):
        report = enrich_trips(chunk, progress_every=0)
        processed += report.processed
        valid += report.valid
        invalid += report.invalid
        logger.info("Processed %d records...", processed)

        rows = [record.to_row() for record in report.records]
        if not rows:
            continue
        if output_path:
            pd.DataFrame(rows).to_csv(output_path, mode="a", header=not output_path.exists(), index=False)
        if db_config:
            insert_trips(db_config, rows, batch_size=args.batch_size, logger=logger)

    logger.info("=" * 60)
    logger.info("Import completed!")
    logger.info("  Total processed: %d", processed)
    logger.info("  Valid records: %d", valid)
    logger.info("  Invalid records: %d", invalid)
    logger.info("=" * 60)
    if output_path:
        logger.info("Results saved to: %s", output_path)


def load_cluster_points(args, sample_size, logger) -> pd.DataFrame:
    if args.from_database:
        logger.info("Loading up to %d trips from database...", sample_size)
        return fetch_cluster_points(database_config(args), sample_size)

    if args.input is None:
        raise ValueError("Pass an enriched CSV or --from-database")
    df = pd.read_csv(args.input).rename(columns=CLUSTER_COLUMNS)
    df = df[
        (df["pickup_borough"] != UNKNOWN_REGION)
        & df["lat"].notna()
        & df["lon"].notna()
        & df["duration"].notna()
    ]
    return df.head(sample_size)


def run_cluster(args, logger) -> None:
    k = clamp_k(args.k)
    sample_size = clamp_sample_size(args.sample)
    points_df = load_cluster_points(args, sample_size, logger)
    points = points_df.astype(object).where(points_df.notna(), None).to_dict(orient="records")

    logger.info("Clustering %d trips into k=%d clusters...", len(points), k)
    result = cluster_trips(points, k, args.max_iterations, random_state=args.seed)

    logger.info("Clustering Results:")
    logger.info("  Total trips: %d", result.total_points)
    logger.info("  Clusters: %d", result.cluster_count)
    logger.info("  Termination: %s after %d iterations", result.termination.value, result.iterations)

    payload = json.dumps(result.to_dict(), default=str)
    if args.output:
        output_path = args.output.expanduser().resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(payload)
        logger.info("Results saved to: %s", output_path)
    else:
        sys.stdout.write(payload + "\n")


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(__name__)

    try:
        if args.command == "enrich":
            run_enrich(args, logger)
        else:
            run_cluster(args, logger)

    except pymysql.Error:
        logger.exception("Database error. Make sure the database server is running and the trips table exists")
        sys.exit(1)

    except InvalidInputError:
        logger.exception("Malformed coordinates reached the distance model")
        sys.exit(1)

    except Exception:
        logger.exception("Error during %s run", args.command)
        sys.exit(1)


if __name__ == "__main__":
    main()
