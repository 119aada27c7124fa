"""
Trip Clustering - Validate, enrich and cluster NYC taxi trips.

Main functionality:
    enrich_trips: Validate raw trip records and derive distance, speed, boroughs
    cluster_trips: K-means over (pickup latitude, pickup longitude, duration)

Building blocks:
    Geography: GeoConfig, is_valid_coordinate, classify_region, classify_dataframe
    Distances: great_circle_distance_km, feature_distance, measure_feature_distance
    Configuration: TripConfig, ValidationThresholds, clamp_k, clamp_sample_size
    Pipeline components: TripPreprocessor, TripKMeansClustering, create_pipeline

I/O and reporting:
    Database utilities: DatabaseConfig, fetch_trips, fetch_cluster_points, insert_trips
    CSV source: load_trip_csv, iter_trip_records
    Analytics: trip_statistics, heatmap_cells

Basic usage:
    >>> from trip_clustering import enrich_trips, cluster_trips
    >>> report = enrich_trips(raw_records)
    >>> result = cluster_trips([r.feature_point for r in report.records], k=5, random_state=0)
    >>> result.to_dict()["clusterCount"]
"""

# Core functionality (most users only need this)
from .clustering import ClusterResult, KMeansTripClusterer, Termination, cluster_trips
from .preprocessing import (
    EnrichedTripRecord,
    EnrichmentReport,
    TripType,
    enrich_dataframe,
    enrich_trip,
    enrich_trips,
    is_valid_trip,
)

# Geography and distances
from .distance import (
    FeatureDistance,
    FeaturePoint,
    InvalidInputError,
    as_feature_point,
    feature_distance,
    great_circle_distance_km,
    measure_feature_distance,
)
from .geo_classify import (
    BOROUGH_REGIONS,
    NYC_BOUNDS,
    UNKNOWN_REGION,
    GeoConfig,
    classify_dataframe,
    classify_region,
    is_valid_coordinate,
)

# Configuration
from .config import DEFAULT_CONFIG, TripConfig, ValidationThresholds, clamp_k, clamp_sample_size

# Pipeline components (for scikit-learn workflows)
from .pipeline import TripKMeansClustering, TripPreprocessor, create_pipeline

# Database and file sources
from .csv_source import iter_trip_records, load_trip_csv
from .data import DatabaseConfig, fetch_cluster_points, fetch_trips, insert_trips

# Reporting
from .analysis import heatmap_cells, trip_statistics

__all__ = [
    # Core API
    "ClusterResult",
    "KMeansTripClusterer",
    "Termination",
    "cluster_trips",
    "EnrichedTripRecord",
    "EnrichmentReport",
    "TripType",
    "enrich_dataframe",
    "enrich_trip",
    "enrich_trips",
    "is_valid_trip",
    # Geography and distances
    "FeatureDistance",
    "FeaturePoint",
    "InvalidInputError",
    "as_feature_point",
    "feature_distance",
    "great_circle_distance_km",
    "measure_feature_distance",
    "BOROUGH_REGIONS",
    "NYC_BOUNDS",
    "UNKNOWN_REGION",
    "GeoConfig",
    "classify_dataframe",
    "classify_region",
    "is_valid_coordinate",
    # Configuration
    "DEFAULT_CONFIG",
    "TripConfig",
    "ValidationThresholds",
    "clamp_k",
    "clamp_sample_size",
    # Pipeline components
    "TripKMeansClustering",
    "TripPreprocessor",
    "create_pipeline",
    # I/O
    "iter_trip_records",
    "load_trip_csv",
    "DatabaseConfig",
    "fetch_cluster_points",
    "fetch_trips",
    "insert_trips",
    # Reporting
    "heatmap_cells",
    "trip_statistics",
]

__version__ = "0.1.0"
