import logging

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.pipeline import Pipeline

from trip_clustering.clustering import KMeansTripClusterer
from trip_clustering.config import DEFAULT_CONFIG
from trip_clustering.distance import DURATION_SCALE
from trip_clustering.preprocessing import enrich_dataframe

logger = logging.getLogger(__name__)


# Step 1: Validate raw trips and add derived columns
class TripPreprocessor(BaseEstimator, TransformerMixin):
    def __init__(self, config=None):
        self.config = config

    def fit(self, X, y=None):
        return self

    def transform(self, X):
        config = self.config or DEFAULT_CONFIG
        enriched, report = enrich_dataframe(X, config)
        self.report_ = report
        return enriched


# Step 2: K-means over (pickup lat, pickup lon, duration)
class TripKMeansClustering(BaseEstimator, TransformerMixin):
    """
    Add a ``cluster_id`` column numbering the non-empty clusters from 0.

    The full ``ClusterResult`` of the last call is kept on ``result_``.
    """

    def __init__(
        self,
        k=5,
        max_iter=100,
        tol=0.001,
        duration_scale=DURATION_SCALE,
        random_state=None,
        lat_col="pickup_latitude",
        lon_col="pickup_longitude",
        duration_col="trip_duration",
    ):
        self.k = k
        self.max_iter = max_iter
        self.tol = tol
        self.duration_scale = duration_scale
        self.random_state = random_state
        self.lat_col = lat_col
        self.lon_col = lon_col
        self.duration_col = duration_col

    def fit(self, X, y=None):
        return self

    def transform(self, X):
        required_columns = [self.lat_col, self.lon_col, self.duration_col]
        missing = [col for col in required_columns if col not in X.columns]
        if missing:
            raise ValueError(f"Input dataframe is missing required columns: {missing}. Did the preprocessing step drop all rows?")

        X = X.copy()
        points = list(
            zip(
                pd.to_numeric(X[self.lat_col], errors="coerce"),
                pd.to_numeric(X[self.lon_col], errors="coerce"),
                pd.to_numeric(X[self.duration_col], errors="coerce"),
            )
        )
        clusterer = KMeansTripClusterer(
            max_iterations=self.max_iter,
            tol=self.tol,
            duration_scale=self.duration_scale,
            random_state=self.random_state,
        )
        self.result_ = clusterer.cluster(points, self.k)
        X["cluster_id"] = self.result_.labels
        logger.info("Assigned %s trips to %s clusters", len(X), self.result_.cluster_count)
        return X


# Create the pipeline
def create_pipeline(k=5, max_iter=100, random_state=None, config=None):
    config = config or DEFAULT_CONFIG
    return Pipeline(
        [
            ("preprocessor", TripPreprocessor(config=config)),
            (
                "kmeans",
                TripKMeansClustering(
                    k=k,
                    max_iter=max_iter,
                    tol=config.convergence_threshold,
                    duration_scale=config.duration_scale,
                    random_state=random_state,
                ),
            ),
        ]
    )
