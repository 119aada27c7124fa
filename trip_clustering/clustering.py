"""
K-means over trip feature points (pickup latitude, pickup longitude, duration).

Points may be ``FeaturePoint`` tuples, 3-element sequences or row mappings
(``lat``/``lon``/``duration``). The result groups the caller's own objects,
so every input point appears in exactly one returned cluster.

Malformed points (missing or non-numeric fields) are not rejected: their
distance to every centroid is infinite, which sends them to the first
cluster. They are excluded from centroid means. Filter them beforehand with
``distance.as_feature_point`` if that placement is unwanted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from sklearn.utils import check_random_state

from trip_clustering.config import DEFAULT_CONFIG, TripConfig
from trip_clustering.distance import (
    DURATION_SCALE,
    FeaturePoint,
    as_feature_point,
    feature_distance,
    feature_distance_matrix,
)

logger = logging.getLogger(__name__)


class Termination(str, Enum):
    EMPTY_INPUT = "empty_input"
    DEGENERATE = "degenerate"
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class ClusterResult:
    clusters: list[list]
    labels: list[int]
    centroids: list[FeaturePoint] = field(default_factory=list)
    iterations: int = 0
    termination: Termination = Termination.EMPTY_INPUT

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    @property
    def total_points(self) -> int:
        return len(self.labels)

    @property
    def converged(self) -> bool:
        return self.termination is Termination.CONVERGED

    def to_dict(self) -> dict:
        return {
            "clusters": self.clusters,
            "clusterCount": self.cluster_count,
            "totalPoints": self.total_points,
        }


def _as_matrix(features: Sequence[FeaturePoint | None]) -> np.ndarray:
    matrix = np.full((len(features), 3), np.nan)
    for i, point in enumerate(features):
        if point is not None:
            matrix[i] = point
    return matrix


class KMeansTripClusterer:
    """
    Lloyd iterations with random seeding and random re-seeding of empty clusters.

    Parameters
    ----------
    max_iterations : int
        Upper bound on assign/update rounds.
    tol : float
        Stop once every centroid moved less than this (feature distance).
    duration_scale : float
        Divisor applied to durations inside the feature distance.
    random_state : None, int or numpy.random.RandomState
        Source for initial centroid selection and re-seeding.
    """

    def __init__(
        self,
        max_iterations: int = 100,
        tol: float = 0.001,
        duration_scale: float = DURATION_SCALE,
        random_state=None,
    ):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self.max_iterations = max_iterations
        self.tol = tol
        self.duration_scale = duration_scale
        self.random_state = check_random_state(random_state)

    @classmethod
    def from_config(cls, config: TripConfig = DEFAULT_CONFIG, random_state=None) -> KMeansTripClusterer:
        return cls(
            max_iterations=config.max_iterations,
            tol=config.convergence_threshold,
            duration_scale=config.duration_scale,
            random_state=random_state,
        )

    def cluster(self, points: Sequence, k: int) -> ClusterResult:
        points = list(points)
        n_points = len(points)
        if n_points == 0:
            return ClusterResult(clusters=[], labels=[], termination=Termination.EMPTY_INPUT)

        features = [as_feature_point(p) for p in points]
        comparable = np.flatnonzero([f is not None for f in features])
        if k <= 0 or k > n_points or len(comparable) < k:
            logger.info(
                "Degenerate request (k=%s, points=%s, well-formed=%s); returning a single cluster",
                k,
                n_points,
                len(comparable),
            )
            return ClusterResult(clusters=[points], labels=[0] * n_points, termination=Termination.DEGENERATE)

        matrix = _as_matrix(features)
        well_formed = ~np.isnan(matrix).any(axis=1)
        rng = self.random_state
        centroids = matrix[rng.choice(comparable, size=k, replace=False)].copy()

        termination = Termination.MAX_ITERATIONS
        iteration = 0
        for iteration in range(1, self.max_iterations + 1):
            # argmin keeps the first index on ties, and puts all-inf rows in cluster 0
            labels = feature_distance_matrix(matrix, centroids, self.duration_scale).argmin(axis=1)

            new_centroids = np.empty_like(centroids)
            for index in range(k):
                members = matrix[(labels == index) & well_formed]
                if len(members):
                    new_centroids[index] = members.mean(axis=0)
                else:
                    new_centroids[index] = matrix[rng.choice(comparable)]

            shifts = [
                feature_distance(FeaturePoint(*old), FeaturePoint(*new), self.duration_scale)
                for old, new in zip(centroids, new_centroids)
            ]
            logger.debug("Iteration %s/%s: max centroid shift %.6f", iteration, self.max_iterations, max(shifts))

            if all(shift < self.tol for shift in shifts):
                termination = Termination.CONVERGED
                break
            centroids = new_centroids

        groups: list[list] = [[] for _ in range(k)]
        for point, label in zip(points, labels):
            groups[label].append(point)

        # Drop empty groups and renumber labels to match the returned order
        kept = [index for index in range(k) if groups[index]]
        renumber = {old: new for new, old in enumerate(kept)}
        result = ClusterResult(
            clusters=[groups[index] for index in kept],
            labels=[renumber[label] for label in labels.tolist()],
            centroids=[FeaturePoint(*centroids[index].tolist()) for index in kept],
            iterations=iteration,
            termination=termination,
        )
        logger.info(
            "K-means finished: %s after %s iterations, %s non-empty clusters of %s requested, %s points",
            termination.value,
            iteration,
            result.cluster_count,
            k,
            n_points,
        )
        return result


def cluster_trips(
    points: Sequence,
    k: int,
    max_iterations: int = 100,
    *,
    random_state=None,
    config: TripConfig = DEFAULT_CONFIG,
) -> ClusterResult:
    """
    Cluster feature points into at most ``k`` non-empty groups.

    ``k`` outside ``[1, len(points)]`` returns the whole input as one cluster;
    an empty input returns an empty result.
    """
    clusterer = KMeansTripClusterer(
        max_iterations=max_iterations,
        tol=config.convergence_threshold,
        duration_scale=config.duration_scale,
        random_state=random_state,
    )
    return clusterer.cluster(points, k)
