import pandas as pd
from pymysql.converters import escape_item

from trip_clustering.csv_source import RAW_TRIP_COLUMNS, iter_trip_records
from trip_clustering.data import (
    TRIP_COLUMNS,
    DatabaseConfig,
    fetch_cluster_points,
    fetch_trips,
    insert_trips,
)
from trip_clustering.preprocessing import enrich_trips


class FakeCursor:
    def __init__(self):
        self.batches = []

    def executemany(self, query, rows):
        self.batches.append((query, list(rows)))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeConnection:
    def __init__(self):
        self.cursor_obj = FakeCursor()
        self.commits = 0
        self.closed = False

    def cursor(self):
        return self.cursor_obj

    def commit(self):
        self.commits += 1

    def close(self):
        self.closed = True


def test_database_config_connect_uses_pymysql(monkeypatch):
    captured_kwargs = {}

    def fake_connect(**kwargs):
        captured_kwargs.update(kwargs)
        return "fake-connection"

    monkeypatch.setattr("trip_clustering.data.pymysql.connect", fake_connect)
    cfg = DatabaseConfig(host="h", user="u", password="p", database="d", port=1234, charset="utf8mb4")

    conn = cfg.connect()

    assert conn == "fake-connection"
    assert captured_kwargs["host"] == "h"
    assert captured_kwargs["user"] == "u"
    assert captured_kwargs["password"] == "p"
    assert captured_kwargs["database"] == "d"
    assert captured_kwargs["port"] == 1234
    assert captured_kwargs["charset"] == "utf8mb4"


def test_database_config_from_env():
    cfg = DatabaseConfig.from_env(
        {"DB_HOST": "db.internal", "DB_PORT": "3307", "DB_NAME": "taxi", "DB_USER": "reader", "DB_PASSWORD": "s3cret"}
    )

    assert (cfg.host, cfg.port, cfg.database, cfg.user, cfg.password) == ("db.internal", 3307, "taxi", "reader", "s3cret")


def test_database_config_from_env_falls_back_to_defaults():
    assert DatabaseConfig.from_env({}) == DatabaseConfig()


def capture_queries(monkeypatch):
    calls = []
    connection = FakeConnection()

    def fake_read_sql_query(query, conn, params=None):
        calls.append((query, params))
        return pd.DataFrame()

    monkeypatch.setattr(DatabaseConfig, "connect", lambda self: connection)
    monkeypatch.setattr("trip_clustering.data.pd.read_sql_query", fake_read_sql_query)
    return calls, connection


def test_fetch_trips_without_filters(monkeypatch):
    calls, connection = capture_queries(monkeypatch)

    fetch_trips(DatabaseConfig())

    query, params = calls[0]
    assert "WHERE" not in query
    assert query.endswith("ORDER BY pickup_datetime DESC LIMIT %s OFFSET %s")
    assert params == [1000, 0]
    assert connection.closed


def test_fetch_trips_binds_every_filter(monkeypatch):
    calls, _ = capture_queries(monkeypatch)

    fetch_trips(
        DatabaseConfig(),
        borough="Queens",
        hour=0,
        min_duration=60,
        max_duration=1800,
        trip_type="Cross Borough",
        limit=50,
        offset=100,
    )

    query, params = calls[0]
    assert "pickup_borough = %s" in query
    assert "hour_of_day = %s" in query
    assert "trip_duration >= %s" in query
    assert "trip_duration <= %s" in query
    assert "trip_type = %s" in query
    assert params == ["Queens", 0, 60, 1800, "Cross Borough", 50, 100]


def test_fetch_cluster_points_excludes_unknown_borough(monkeypatch):
    calls, _ = capture_queries(monkeypatch)

    fetch_cluster_points(DatabaseConfig(), limit=10000)

    query, params = calls[0]
    assert "pickup_latitude AS lat" in query
    assert params == ["Unknown", 10000]


def test_insert_trips_batches_rows(monkeypatch):
    connection = FakeConnection()
    monkeypatch.setattr(DatabaseConfig, "connect", lambda self: connection)
    rows = [{"id": f"id{i}", "trip_type": "Within Borough"} for i in range(5)]

    sent = insert_trips(DatabaseConfig(), rows, batch_size=2)

    assert sent == 5
    batches = connection.cursor_obj.batches
    assert [len(batch) for _, batch in batches] == [2, 2, 1]
    query = batches[0][0]
    assert query.startswith("INSERT IGNORE INTO trips")
    first_row = batches[0][1][0]
    assert len(first_row) == len(TRIP_COLUMNS)
    assert first_row[0] == "id0"
    assert first_row[TRIP_COLUMNS.index("trip_type")] == "Within Borough"
    assert connection.commits == 3
    assert connection.closed


class EscapingCursor(FakeCursor):
    """Escapes every value the way pymysql does before sending a query."""

    def executemany(self, query, rows):
        rows = list(rows)
        for row in rows:
            for value in row:
                escape_item(value, "utf8mb4")
        super().executemany(query, rows)


def test_insert_trips_stores_blank_csv_cells_as_null(monkeypatch, tmp_path):
    path = tmp_path / "train.csv"
    path.write_text(
        ",".join(RAW_TRIP_COLUMNS)
        + "\nid2875421,2,2016-03-14 17:24:55,2016-03-14 17:32:30,1,-73.982154846191406,40.767936706542969,"
        "-73.964630126953125,40.765602111816406,,455\n"
    )
    records = next(iter_trip_records(path))
    rows = [record.to_row() for record in enrich_trips(records).records]
    connection = FakeConnection()
    connection.cursor_obj = EscapingCursor()
    monkeypatch.setattr(DatabaseConfig, "connect", lambda self: connection)

    assert insert_trips(DatabaseConfig(), rows) == 1

    stored = connection.cursor_obj.batches[0][1][0]
    assert stored[TRIP_COLUMNS.index("store_and_fwd_flag")] is None
    assert stored[TRIP_COLUMNS.index("id")] == "id2875421"
