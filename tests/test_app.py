import io
import re
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from app.main import create_app
from app.schemas import ReadingPayload
from datastore.readings import ReadingTable, StoreError, build_default_table
from models.records import DOMAIN_FIELDS
from services.exporter import ExportService, build_default_export_service
from services.readings import ReadingService, build_default_reading_service
from services.workbook import XLSX_MEDIA_TYPE
from settings import get_settings


@pytest.fixture
def table(tmp_path) -> ReadingTable:
    return ReadingTable(name="test", persistence_path=tmp_path / "readings.json")


@pytest.fixture
def api_client(table: ReadingTable, monkeypatch) -> Iterator[TestClient]:
    reading_service = ReadingService(table=table, recent_limit=100)
    export_service = ExportService(table=table, window=timedelta(minutes=10))

    def build_test_table(name=None, path=None) -> ReadingTable:
        return table

    build_test_table.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_table", build_test_table)
    monkeypatch.setattr("app.api.build_default_reading_service", lambda: reading_service)
    monkeypatch.setattr("app.api.build_default_export_service", lambda: export_service)
    monkeypatch.setattr("app.web.build_default_reading_service", lambda: reading_service)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _insert(table: ReadingTable, minutes_ago: float, ph: float) -> str:
    timestamp = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return table.insert(ReadingPayload(ph=ph, timestamp=timestamp)).id


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_root_serves_banner(api_client: TestClient) -> None:
    response = api_client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "BioGas Monitoring Server Running" in response.text


def test_post_then_get_includes_reading_with_server_timestamp(api_client: TestClient) -> None:
    before = datetime.now(timezone.utc)
    response = api_client.post(
        "/sensorData",
        json={"ph": 7.1, "pressure1": 1.02, "temperature": 36.5, "unknown": "ignored"},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "success", "message": "Data saved"}

    readings = api_client.get("/sensorData").json()
    assert len(readings) == 1
    reading = readings[0]
    assert reading["ph"] == 7.1
    assert reading["pressure1"] == 1.02
    assert reading["pressure2"] is None
    assert reading["temperature"] == 36.5
    assert reading["_id"]
    assert reading["__v"] == 0
    assert "unknown" not in reading
    assert _parse(reading["timestamp"]) >= before


def test_post_keeps_client_timestamp(api_client: TestClient) -> None:
    api_client.post("/sensorData", json={"ph": 6.9, "timestamp": "2024-03-01T10:15:00Z"})

    reading = api_client.get("/sensorData").json()[0]

    assert _parse(reading["timestamp"]) == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)


def test_recent_is_capped_and_newest_first(api_client: TestClient, table: ReadingTable) -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(105):
        table.insert(ReadingPayload(ph=float(index), timestamp=start + timedelta(seconds=index)))

    readings = api_client.get("/sensorData").json()

    assert len(readings) == 100
    stamps = [_parse(reading["timestamp"]) for reading in readings]
    assert stamps == sorted(stamps, reverse=True)
    assert readings[0]["ph"] == 104.0
    assert readings[-1]["ph"] == 5.0


def test_invalid_payload_uses_error_shape(api_client: TestClient, table: ReadingTable) -> None:
    response = api_client.post("/sensorData", json={"ph": "acidic"})

    assert response.status_code == 422
    body = response.json()
    assert body["status"] == "error"
    assert "ph" in body["message"]
    assert table.count() == 0


def test_save_failure_returns_error(
    api_client: TestClient, table: ReadingTable, monkeypatch
) -> None:
    def broken_insert(payload):
        raise StoreError("write failed")

    monkeypatch.setattr(table, "insert", broken_insert)

    response = api_client.post("/sensorData", json={"ph": 7.0})

    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Failed to save data"}


def test_fetch_failure_returns_error(
    api_client: TestClient, table: ReadingTable, monkeypatch
) -> None:
    def broken_find(limit):
        raise StoreError("read failed")

    monkeypatch.setattr(table, "find_recent", broken_find)

    response = api_client.get("/sensorData")

    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Failed to fetch data"}


def test_export_and_delete_scenario(api_client: TestClient, table: ReadingTable) -> None:
    older = _insert(table, 15, ph=6.0)
    _insert(table, 5, ph=7.0)
    _insert(table, 1, ph=7.2)

    response = api_client.get("/export-and-delete")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(XLSX_MEDIA_TYPE)
    assert re.fullmatch(
        r'attachment; filename="Export_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}\.xlsx"',
        response.headers["content-disposition"],
    )
    rows = list(load_workbook(io.BytesIO(response.content)).active.iter_rows(values_only=True))
    assert rows[0] == DOMAIN_FIELDS
    assert [row[0] for row in rows[1:]] == [7.0, 7.2]
    assert [reading.id for reading in table.scan()] == [older]


def test_export_twice_reports_nothing_left(api_client: TestClient, table: ReadingTable) -> None:
    _insert(table, 2, ph=7.0)
    _insert(table, 20, ph=6.0)

    first = api_client.get("/export-and-delete")
    second = api_client.get("/export-and-delete")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == {
        "status": "info",
        "message": "No new data found in the last 10 minutes to export.",
    }
    assert table.count() == 1


def test_export_query_failure_returns_error(
    api_client: TestClient, table: ReadingTable, monkeypatch
) -> None:
    _insert(table, 2, ph=7.0)

    def broken_find(start, **kwargs):
        raise StoreError("read failed")

    monkeypatch.setattr(table, "find_since", broken_find)

    response = api_client.get("/export-and-delete")

    assert response.status_code == 500
    assert response.json() == {
        "status": "error",
        "message": "Failed to complete data export and deletion.",
    }
    assert table.count() == 1


def test_dashboard_lists_recent_readings(api_client: TestClient, table: ReadingTable) -> None:
    _insert(table, 1, ph=7.25)

    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "7.25" in response.text
    assert 'http-equiv="refresh"' in response.text


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_startup_fails_when_store_cannot_be_opened(tmp_path, monkeypatch) -> None:
    corrupt = tmp_path / "readings.json"
    corrupt.write_text("[{")
    monkeypatch.setenv("READINGS_PERSISTENCE_PATH", str(corrupt))
    caches = (
        get_settings,
        build_default_table,
        build_default_reading_service,
        build_default_export_service,
    )
    for cache in caches:
        cache.cache_clear()

    try:
        with pytest.raises(StoreError):
            with TestClient(create_app()):
                pass
    finally:
        for cache in caches:
            cache.cache_clear()


def test_lifespan_closes_store_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("READINGS_PERSISTENCE_PATH", str(tmp_path / "readings.json"))
    get_settings.cache_clear()
    build_default_table.cache_clear()

    try:
        with TestClient(create_app()):
            during = build_default_table()
            assert not during.closed

        assert during.closed
        after = build_default_table()
        assert after is not during
    finally:
        build_default_table.cache_clear()
        build_default_reading_service.cache_clear()
        build_default_export_service.cache_clear()
        get_settings.cache_clear()
