from __future__ import annotations

import datetime
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from api import app, get_services  # noqa: E402
from errors import DataFetchFailure  # noqa: E402
from services import StaffingServices  # noqa: E402
from memory_stores import MemoryStores, make_pattern  # noqa: E402


@pytest.fixture()
def stores():
    stores = MemoryStores()
    stores.add_pattern(make_pattern("Day", "A"))
    stores.add_pattern(make_pattern("Night", "A", start=datetime.time(20, 0), end=datetime.time(8, 0)))
    emergency = stores.add_department("Emergency", is_24_7=True, default_porters_required=3)
    stores.add_porter("Alice", regular_department_id=emergency.id)
    stores.add_porter("Nia", shift_type="Night A", is_floor_staff=True)
    return stores


@pytest.fixture()
def client(stores):
    overview = stores.overview(max_workers=2)
    services = StaffingServices(
        porters=stores,
        departments=stores,
        evaluator=overview.resolver.evaluator,
        resolver=overview.resolver,
        aggregator=overview.aggregator,
        overview=overview,
    )
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_porter_working_on(client, stores) -> None:
    alice = stores.porters[0]
    response = client.get(f"/api/v1/shift-calculations/porter/{alice.id}/working-on/2024-01-02")
    assert response.status_code == 200
    body = response.json()
    assert body["isWorking"] is True
    assert body["cycle"]["cycleDay"] == 2
    assert body["cycle"]["nextChangeDate"] == "2024-01-05"


@pytest.mark.parametrize("bad", ["20240102", "2024-13-40", "yesterday"])
def test_malformed_dates_are_rejected(client, stores, bad: str) -> None:
    response = client.get(f"/api/v1/shift-calculations/porter/{stores.porters[0].id}/working-on/{bad}")
    assert response.status_code == 400
    assert response.json()["detail"] == "date must be YYYY-MM-DD"


def test_unknown_porter_is_404(client) -> None:
    response = client.get("/api/v1/shift-calculations/porter/999/working-on/2024-01-02")
    assert response.status_code == 404
    assert response.json()["detail"] == "Porter with ID 999 not found"
    assert client.get("/api/v1/shift-calculations/porter/999/availability/2024-01-02").status_code == 404


def test_store_failure_is_503(client, stores, monkeypatch) -> None:
    def _boom(_porter_id):
        raise DataFetchFailure("get_porter", "connection refused")

    monkeypatch.setattr(stores, "get_porter", _boom)
    response = client.get("/api/v1/shift-calculations/porter/1/working-on/2024-01-02")
    assert response.status_code == 503
    assert "connection refused" in response.json()["detail"]


def test_porters_working_on_and_availability(client) -> None:
    working = client.get("/api/v1/shift-calculations/porters-working-on/2024-01-02").json()
    assert working["count"] == 2
    assert [item["name"] for item in working["porters"]] == ["Alice", "Nia"]

    availability = client.get("/api/v1/shift-calculations/availability/2024-01-06").json()
    assert availability["total"] == 2
    assert availability["available"] == 0
    assert availability["availabilities"][0]["workingHours"] == {"start": "08:00:00", "end": "20:00:00"}


def test_next_working_day(client, stores) -> None:
    alice = stores.porters[0]
    body = client.get(
        f"/api/v1/shift-calculations/porter/{alice.id}/next-working-day",
        params={"fromDate": "2024-01-04"},
    ).json()
    assert body["nextWorkingDay"] == "2024-01-09"

    body = client.get(
        f"/api/v1/shift-calculations/porter/{alice.id}/next-working-day",
        params={"fromDate": "2024-01-04", "maxDays": 3},
    ).json()
    assert body["nextWorkingDay"] is None

    response = client.get(
        f"/api/v1/shift-calculations/porter/{alice.id}/next-working-day",
        params={"maxDays": 0},
    )
    assert response.status_code == 422


def test_working_days(client, stores) -> None:
    url = f"/api/v1/shift-calculations/porter/{stores.porters[0].id}/working-days"
    body = client.get(url, params={"startDate": "2024-01-02", "endDate": "2024-01-15"}).json()
    assert body["count"] == 7
    assert body["workingDays"][:3] == ["2024-01-02", "2024-01-03", "2024-01-04"]

    assert client.get(url, params={"startDate": "2024-01-15", "endDate": "2024-01-02"}).status_code == 400
    assert client.get(url, params={"startDate": "2024-01-02"}).status_code == 400


def test_department_staffing(client, stores) -> None:
    emergency = stores.departments[0]
    body = client.get(f"/api/v1/staffing-alerts/department/{emergency.id}/date/2024-01-02").json()
    assert body["requiredPorters"] == 3
    assert [item["porter"]["name"] for item in body["availablePorters"]] == ["Alice", "Nia"]
    assert body["staffingLevel"] == "Low"
    assert client.get("/api/v1/staffing-alerts/department/999/date/2024-01-02").status_code == 404


def test_generate_list_and_delete_alerts(client) -> None:
    first = client.post("/api/v1/staffing-alerts/generate/2024-01-02").json()
    assert first["alerts_generated"] == 2
    second = client.post("/api/v1/staffing-alerts/generate/2024-01-02").json()
    assert second["alerts_generated"] == 0

    listed = client.get("/api/v1/staffing-alerts/alerts/2024-01-02").json()["alerts"]
    assert [alert["start_time"] for alert in listed] == ["08:00:00", "20:00:00"]
    assert {alert["alert_type"] for alert in listed} == {"Low Staff"}

    alert_id = listed[0]["id"]
    assert client.delete(f"/api/v1/staffing-alerts/alerts/{alert_id}").json() == {"deleted": alert_id}
    assert client.delete(f"/api/v1/staffing-alerts/alerts/{alert_id}").status_code == 404

    summary = client.get("/api/v1/staffing-alerts/summary/2024-01-02").json()
    assert summary["total_alerts"] == 1
    assert summary["departments_with_low_staffing"] == 1


def test_daily_overview(client) -> None:
    body = client.get("/api/v1/staffing-alerts/daily-overview/2024-01-02").json()
    assert body["date"] == "2024-01-02"
    assert body["dayShift"]["floorStaff"] == []
    assert [item["porter"]["name"] for item in body["nightShift"]["floorStaff"]] == ["Nia"]
    assert [item["department"]["name"] for item in body["nightShift"]["departments"]] == ["Emergency"]
    assert body["errors"] == []
