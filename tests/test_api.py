import pytest

from conftest import API_KEY
from src.floodwatch import crud
from src.floodwatch.config import Settings, get_settings
from src.floodwatch.errors import StoreError
from src.floodwatch.main import app

AUTH = {"Authorization": f"Bearer {API_KEY}"}


def push(client, headers=AUTH, **body):
    return client.post("/api/push-status", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


# -------------------------------------------------
# Auth
# -------------------------------------------------
@pytest.mark.parametrize(
    "headers, params",
    [
        ({"Authorization": f"Bearer {API_KEY}"}, {}),
        ({"Authorization": API_KEY}, {}),
        ({"x-api-key": API_KEY}, {}),
        ({}, {"key": API_KEY}),
    ],
)
def test_key_accepted_from_each_source(client, headers, params):
    resp = client.post("/api/push-status", json={"station": "Gent", "distance": 70}, headers=headers, params=params)
    assert resp.status_code == 200


def test_wrong_key_rejected(client):
    resp = push(client, headers={"Authorization": "Bearer nope"}, station="Gent", distance=70)
    assert resp.status_code == 401
    assert client.get("/api/get-status").json().keys() == {"Belgium"}


def test_authorization_header_takes_priority(client):
    resp = client.post(
        "/api/push-status",
        json={"station": "Gent", "distance": 70},
        headers={"Authorization": "Bearer nope", "x-api-key": API_KEY},
    )
    assert resp.status_code == 401


def test_missing_server_secret_is_500(client):
    app.dependency_overrides[get_settings] = lambda: Settings(flood_api_key=None)
    resp = push(client, station="Gent", distance=70)
    assert resp.status_code == 500
    assert resp.json()["error"] == "Server Configuration Error"


# -------------------------------------------------
# Push
# -------------------------------------------------
def test_push_response_shape(client):
    resp = push(client, station="Dendermonde", distance=50, warning=30, alarm=15)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["updated"] == "Dendermonde"
    assert body["historyCount"] == 1
    assert body["nextInterval"] == 900
    assert body["data"]["status"] == "NORMAL"
    assert body["data"]["warning"] == 30
    assert body["data"]["river"] == "Schelde"


def test_sensor_status_is_recomputed(client):
    body = push(client, station="Gent", distance=10, status="NORMAL").json()
    assert body["data"]["status"] == "ALARM"
    assert body["nextInterval"] == 120


def test_operator_push_with_simulation(client):
    push(client, station="Gent", distance=80)
    body = push(
        client, station="Gent", distance=80, warning=40, alarm=20,
        intervals={"sunny": 20, "moderate": 12, "stormy": 6, "waterbomb": 1},
        isUiUpdate=True, simWeatherTier="stormy",
    ).json()
    assert body["data"]["forcedWeatherTier"] == "stormy"
    assert body["data"]["forecast"] == "Simulation: Stormy / Heavy"
    assert body["nextInterval"] == 6 * 60

    body = push(client, station="Gent", distance=80, warning=99, alarm=98).json()
    assert body["data"]["warning"] == 40
    assert body["nextInterval"] == 6 * 60


def test_malformed_json_rejected(client):
    resp = client.post(
        "/api/push-status",
        content=b"{not json",
        headers=dict(AUTH, **{"Content-Type": "application/json"}),
    )
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert client.get("/api/get-status").json().keys() == {"Belgium"}


@pytest.mark.parametrize(
    "body",
    [
        {"station": "Gent", "distance": "deep"},
        {"station": "Gent", "distance": 50, "simWeatherTier": "hurricane"},
        {"station": "Gent", "distance": 50, "isUiUpdate": True,
         "intervals": {"sunny": 0, "moderate": 10, "stormy": 5, "waterbomb": 2}},
        {"station": "   ", "distance": 50},
    ],
)
def test_invalid_push_rejected_without_mutation(client, body):
    resp = client.post("/api/push-status", json=body, headers=AUTH)
    assert resp.status_code == 400
    assert client.get("/api/get-status").json().keys() == {"Belgium"}


# -------------------------------------------------
# Reads
# -------------------------------------------------
def test_get_status_aggregate(client):
    push(client, station="Gent", distance=25)
    resp = client.get("/api/get-status")
    assert resp.status_code == 200
    assert "no-store" in resp.headers["cache-control"]
    data = resp.json()
    assert data["gent"]["status"] == "WARNING"
    assert data["Belgium"]["status"] == "WARNING"


def test_history_read(client):
    push(client, station="Gent", distance=70)
    push(client, station="Gent", distance=-1)
    push(client, station="Gent", distance=65)
    resp = client.get("/api/get-history", params={"station": "Gent"})
    assert resp.status_code == 200
    assert [e["val"] for e in resp.json()] == [70, 65]
    assert "no-store" in resp.headers["cache-control"]


def test_history_unknown_station_is_empty(client):
    resp = client.get("/api/get-history", params={"station": "Atlantis"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_history_requires_station(client):
    assert client.get("/api/get-history").status_code == 400


def test_history_info(client):
    push(client, station="Doornik", distance=70)
    info = client.get("/api/history-info").json()
    assert info["station"] == "doornik"
    assert info["count"] == 1


# -------------------------------------------------
# Notifications
# -------------------------------------------------
def test_notify_round_trip(client):
    resp = client.post("/api/notify", json={"message": "hello", "station": "Gent"})
    assert resp.status_code == 200

    first = client.get("/api/check-notify", params={"station": "gent"}).json()
    assert first["pending"] is True
    assert first["message"] == "hello"
    assert "timestamp" in first

    assert client.get("/api/check-notify", params={"station": "Gent"}).json() == {"pending": False}


def test_notify_requires_message(client):
    assert client.post("/api/notify", json={"station": "Gent"}).status_code == 400
    assert client.post("/api/notify", json={"station": "Gent", "message": " "}).status_code == 400


# -------------------------------------------------
# Admin
# -------------------------------------------------
def test_delete_station(client):
    push(client, station="Gent", distance=70)
    resp = client.post("/api/delete-station", json={"station": "Gent"}, headers=AUTH)
    assert resp.json() == {"success": True, "deleted": "Gent"}
    assert "gent" not in client.get("/api/get-status").json()
    assert client.get("/api/get-history", params={"station": "gent"}).json() == []


def test_delete_requires_key(client):
    assert client.post("/api/delete-station", json={"station": "Gent"}).status_code == 401


def test_migrate_station(client):
    push(client, station="Gent", distance=70)
    resp = client.post(
        "/api/migrate-station",
        json={"oldStation": "Gent", "newStation": "Merelbeke", "river": "Schelde"},
        headers=AUTH,
    )
    assert resp.status_code == 200
    assert resp.json()["riverUpdated"] is True
    data = client.get("/api/get-status").json()
    assert "gent" not in data
    assert data["merelbeke"]["distance"] == 70
    assert len(client.get("/api/get-history", params={"station": "Merelbeke"}).json()) == 1


def test_seed_station(client):
    resp = client.post("/api/seed-station", json={"station": "Doornik"}, headers=AUTH)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Seeded 97 points for Doornik"
    assert body["latest"]["isSimulated"] is True
    assert len(client.get("/api/get-history", params={"station": "Doornik"}).json()) == 97


def test_store_failure_on_push_is_500(client, monkeypatch):
    real_set_json = crud.set_json

    def failing_set_json(db, bucket, key, value):
        if bucket == crud.STATIONS:
            raise StoreError(f"write {bucket}/{key} failed: disk full")
        return real_set_json(db, bucket, key, value)

    monkeypatch.setattr(crud, "set_json", failing_set_json)
    resp = push(client, station="Gent", distance=40)
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Storage unavailable"
    assert "disk full" in body["details"]
