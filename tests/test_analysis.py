import pandas as pd
import pytest

from trip_clustering.analysis import heatmap_cells, trip_statistics


def enriched_row(borough, hour, duration, distance, lat=40.7512, lon=-73.9876, day="2016-03-14"):
    return {
        "pickup_datetime": f"{day} {hour:02d}:10:00",
        "pickup_latitude": lat,
        "pickup_longitude": lon,
        "trip_duration": duration,
        "distance_km": distance,
        "speed_kmh": round(distance / (duration / 3600), 2),
        "hour_of_day": hour,
        "pickup_borough": borough,
    }


@pytest.fixture
def enriched_df():
    return pd.DataFrame(
        [
            enriched_row("Manhattan", 8, 600, 2.0, day="2016-01-02"),
            enriched_row("Manhattan", 8, 1200, 4.0),
            enriched_row("Manhattan", 9, 900, 3.0),
            enriched_row("Queens", 9, 1800, 15.0, lat=40.6413, lon=-73.7781, day="2016-06-30"),
            enriched_row("Unknown", 23, 300, 1.0, lat=40.90, lon=-74.20),
        ]
    )


def test_trip_statistics_overall(enriched_df):
    stats = trip_statistics(enriched_df)

    overall = stats["overall"]
    assert overall["total_trips"] == 5
    assert overall["avg_duration"] == pytest.approx(960.0)
    assert overall["avg_distance"] == pytest.approx(5.0)
    assert overall["earliest_trip"] == pd.Timestamp("2016-01-02 08:10:00")
    assert overall["latest_trip"] == pd.Timestamp("2016-06-30 09:10:00")


def test_trip_statistics_boroughs_skip_unknown_and_sort_by_count(enriched_df):
    boroughs = trip_statistics(enriched_df)["boroughs"]

    assert [entry["pickup_borough"] for entry in boroughs] == ["Manhattan", "Queens"]
    assert boroughs[0]["trip_count"] == 3
    assert boroughs[0]["avg_duration"] == pytest.approx(900.0)
    assert boroughs[1]["avg_distance"] == pytest.approx(15.0)


def test_trip_statistics_hourly(enriched_df):
    hourly = trip_statistics(enriched_df)["hourly"]

    assert [entry["hour_of_day"] for entry in hourly] == [8, 9, 23]
    assert [entry["trip_count"] for entry in hourly] == [2, 2, 1]
    assert hourly[0]["avg_duration"] == pytest.approx(900.0)


@pytest.fixture
def busy_df():
    rows = [enriched_row("Manhattan", 8, 600, 2.0, lat=40.7512 + i * 0.00005, lon=-73.9876) for i in range(4)]
    rows += [enriched_row("Manhattan", 9, 1200, 2.0, lat=40.7514, lon=-73.9876) for _ in range(3)]
    rows += [enriched_row("Queens", 8, 1800, 15.0, lat=40.6413, lon=-73.7781) for _ in range(5)]
    return pd.DataFrame(rows)


def test_heatmap_groups_by_rounded_coordinates(busy_df):
    cells = heatmap_cells(busy_df)

    # The seven Manhattan pickups round to the same cell; Queens has only five.
    assert len(cells) == 1
    cell = cells.iloc[0]
    assert (cell["lat"], cell["lon"]) == (pytest.approx(40.751), pytest.approx(-73.988))
    assert cell["intensity"] == 7
    assert cell["avg_duration"] == pytest.approx((4 * 600 + 3 * 1200) / 7)
    assert list(cells.columns) == ["lat", "lon", "intensity", "avg_duration", "avg_speed"]


def test_heatmap_filters_by_hour_and_borough(busy_df):
    assert heatmap_cells(busy_df, hour=8).empty
    assert len(heatmap_cells(busy_df, hour=8, min_count=3)) == 2
    assert heatmap_cells(busy_df, borough="Queens", min_count=4)["intensity"].tolist() == [5]


def test_heatmap_limit_keeps_most_intense(busy_df):
    cells = heatmap_cells(busy_df, min_count=0, limit=1)

    assert cells["intensity"].tolist() == [7]
