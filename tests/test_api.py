from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import BIZ_ID


def test_health(client):
    response = client.get("/api/v3/health")
    assert response.status_code == 200
    data = response.get_json()
    assert data["ok"] is True
    assert data["payload"] == {"status": "ok"}
    assert data["rid"] == response.headers["X-Request-Id"]


def test_list_hosts_topo_endpoint(client):
    response = client.post(
        f"/api/v3/hosts/app/{BIZ_ID}/list_hosts_topo",
        json={"page": {"limit": 10}, "fields": ["bk_host_id", "bk_host_name"]},
        headers={"X-Request-Id": "req-42"},
    )
    assert response.status_code == 200
    assert response.headers["X-Request-Id"] == "req-42"
    data = response.get_json()
    assert data["rid"] == "req-42"
    assert data["payload"]["count"] == 2
    first = data["payload"]["info"][0]
    assert first["host"] == {"bk_host_id": 1, "bk_host_name": "web-1"}
    assert first["topo"][0]["bk_set_name"] == "SetA"


def test_bad_page_is_a_400(client):
    response = client.post(f"/api/v3/hosts/app/{BIZ_ID}/list_hosts_topo", json={"page": {"limit": 0}})
    assert response.status_code == 400
    data = response.get_json()
    assert data["ok"] is False
    assert data["code"] == "validation_error"


def test_bad_business_id_is_a_400(client):
    response = client.post("/api/v3/hosts/app/abc/list_hosts", json={"page": {"limit": 10}})
    assert response.status_code == 400


def test_list_hosts_endpoints(client):
    response = client.post(f"/api/v3/hosts/app/{BIZ_ID}/list_hosts", json={"bk_module_ids": [200], "page": {"limit": 10}})
    assert [row["bk_host_id"] for row in response.get_json()["payload"]["info"]] == [2]

    response = client.post("/api/v3/hosts/list_hosts_without_app", json={"page": {"limit": 10}})
    assert response.get_json()["payload"]["count"] == 3


def test_upgrade_endpoint(client):
    response = client.post("/api/v3/upgrade", json={})
    assert response.status_code == 200
    assert [item["version"] for item in response.get_json()["payload"]["applied"]] == [
        "x20.10.16.11",
        "y3.9.202106301723",
    ]
    response = client.post("/api/v3/upgrade", json={"version": "y3.9.202106301723"})
    assert response.status_code == 200
    response = client.post("/api/v3/upgrade", json={"version": "unknown"})
    assert response.status_code == 400


def test_failed_commit_returns_the_json_envelope(client, monkeypatch):
    def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", broken_commit)
    response = client.post("/api/v3/upgrade", json={})
    assert response.status_code == 500
    data = response.get_json()
    assert data["ok"] is False
    assert data["code"] == "storage_error"
