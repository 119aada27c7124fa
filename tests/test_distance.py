import math

import numpy as np
import pytest

from trip_clustering.distance import (
    EARTH_RADIUS_KM,
    FeaturePoint,
    InvalidInputError,
    as_feature_point,
    feature_distance,
    feature_distance_matrix,
    great_circle_distance_km,
    measure_feature_distance,
)


def test_great_circle_distance_is_zero_for_identical_points():
    assert great_circle_distance_km(40.75, -73.98, 40.75, -73.98) == 0.0


def test_great_circle_distance_is_symmetric():
    a = (40.7580, -73.9855)
    b = (40.6413, -73.7781)
    assert great_circle_distance_km(*a, *b) == pytest.approx(great_circle_distance_km(*b, *a))


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_KM * math.pi / 180  # ~111.195 km
    assert great_circle_distance_km(40.0, -74.0, 41.0, -74.0) == pytest.approx(expected)


def test_times_square_to_jfk():
    distance = great_circle_distance_km(40.7580, -73.9855, 40.6413, -73.7781)
    assert distance == pytest.approx(21.8, abs=0.3)


def test_distance_grows_with_separation():
    near = great_circle_distance_km(40.75, -73.98, 40.76, -73.98)
    far = great_circle_distance_km(40.75, -73.98, 40.85, -73.98)
    assert 0 < near < far


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf, None, "40.7"])
def test_great_circle_distance_rejects_non_finite_input(bad):
    with pytest.raises(InvalidInputError):
        great_circle_distance_km(bad, -73.98, 40.75, -73.98)
    with pytest.raises(InvalidInputError):
        great_circle_distance_km(40.75, -73.98, 40.75, bad)


def test_invalid_input_error_is_a_value_error():
    assert issubclass(InvalidInputError, ValueError)


def test_feature_distance_identical_points_is_zero():
    assert feature_distance((40.70, -73.95, 300), (40.70, -73.95, 300)) == 0.0


def test_feature_distance_scales_duration():
    # 3-4-5 triangle in degrees, then a pure 1000 s duration gap
    assert feature_distance((40.0, -74.0, 0), (40.003, -73.996, 0)) == pytest.approx(0.005)
    assert feature_distance((40.0, -74.0, 300), (40.0, -74.0, 1300)) == pytest.approx(1.0)


def test_feature_distance_custom_scale():
    assert feature_distance((40.0, -74.0, 0), (40.0, -74.0, 100), duration_scale=100) == pytest.approx(1.0)


def test_feature_distance_accepts_row_mappings():
    row = {"lat": "40.70", "lon": "-73.95", "duration": 300, "pickup_borough": "Brooklyn"}
    assert feature_distance(row, FeaturePoint(40.70, -73.95, 300.0)) == 0.0


@pytest.mark.parametrize(
    "malformed",
    [None, {"lat": 40.7, "lon": -73.9}, (40.7, -73.9), ("x", -73.9, 300), (math.nan, -73.9, 300)],
)
def test_malformed_points_are_incomparable(malformed):
    result = measure_feature_distance(malformed, (40.7, -73.9, 300))
    assert result.comparable is False
    assert result.value is None
    assert feature_distance(malformed, (40.7, -73.9, 300)) == math.inf
    assert feature_distance((40.7, -73.9, 300), malformed) == math.inf


def test_comparable_distance_exposes_value():
    result = measure_feature_distance((40.0, -74.0, 0), (40.0, -74.0, 1000))
    assert result.comparable is True
    assert result.sort_key == result.value == pytest.approx(1.0)


def test_as_feature_point_reads_raw_trip_columns():
    row = {"pickup_latitude": "40.75", "pickup_longitude": "-73.98", "trip_duration": "455"}
    assert as_feature_point(row) == FeaturePoint(40.75, -73.98, 455.0)


def test_as_feature_point_rejects_strings():
    assert as_feature_point("abc") is None


def test_feature_distance_matrix_matches_scalar_function():
    points = np.array([[40.70, -73.95, 300.0], [40.80, -73.85, 900.0], [np.nan, np.nan, np.nan]])
    centroids = np.array([[40.70, -73.95, 300.0], [40.75, -73.90, 600.0]])

    matrix = feature_distance_matrix(points, centroids)

    assert matrix.shape == (3, 2)
    for i in range(2):
        for j in range(2):
            assert matrix[i, j] == pytest.approx(feature_distance(tuple(points[i]), tuple(centroids[j])))
    assert np.isinf(matrix[2]).all()


def test_overflowing_integers_are_rejected():
    with pytest.raises(InvalidInputError):
        great_circle_distance_km(10**400, -73.98, 40.75, -73.98)
    assert as_feature_point((10**400, -73.98, 300)) is None
