#!/usr/bin/env python3
"""
Run the trip preprocessing + K-means pipeline over a raw trip CSV.

1. Load the raw trip export (train.csv format).
2. Optionally sample rows.
3. Validate/enrich and cluster with ``create_pipeline`` and write the labelled rows.
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Optional

import pandas as pd

from trip_clustering import clamp_k, create_pipeline, load_trip_csv


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the trip clustering pipeline.")
    parser.add_argument("input", type=Path, help="Raw trip CSV")
    parser.add_argument("--k", type=int, default=5, help="Number of clusters, clamped to [1, 20] (default: 5)")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=100,
        help="K-means iteration cap (default: 100)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Limit the number of raw rows read from the CSV.",
    )
    parser.add_argument(
        "--sample",
        type=int,
        default=None,
        help="Optional number of rows to randomly sample before preprocessing.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/clustered_trips.csv"),
        help="Where to write the clustered dataframe (default: data/clustered_trips.csv)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for sampling and centroid selection.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, etc.).",
    )
    return parser.parse_args()


def maybe_sample(df: pd.DataFrame, sample_size: Optional[int], seed: int) -> pd.DataFrame:
    if sample_size is None or sample_size >= len(df):
        return df
    return df.sample(n=sample_size, random_state=seed).reset_index(drop=True)


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("trip_clustering.runner")
    run_start = time.perf_counter()

    raw_df = load_trip_csv(args.input, limit=args.limit, logger=logger)
    raw_df = maybe_sample(raw_df, args.sample, args.seed)
    logger.info("Rows passed to the pipeline: %s", len(raw_df))

    k = clamp_k(args.k)
    logger.info("Creating pipeline (k=%s, max_iter=%s)...", k, args.max_iterations)
    pipeline = create_pipeline(k=k, max_iter=args.max_iterations, random_state=args.seed)
    clustered = pipeline.fit_transform(raw_df)

    report = pipeline.named_steps["preprocessor"].report_
    logger.info("Valid trips: %s of %s", report.valid, report.processed)

    output_path = args.output.expanduser().resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    clustered.to_csv(output_path, index=False)
    logger.info("Clustered dataframe written to %s", output_path)
    logger.info("Pipeline completed in %.2fs", time.perf_counter() - run_start)


if __name__ == "__main__":
    main()
