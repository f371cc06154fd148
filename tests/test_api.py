"""Test the POS integration API routes."""
import logging

import pytest
from fastapi.testclient import TestClient

from api.main import app, create_app
from api.routes import reset_adapters
from possync.config import ApiSettings

DEPARTMENTS_XML = """<NAXMLDepartmentMaintenance version="3.4">
  <Departments>
    <Department Code="10"><Description>Beer</Description></Department>
  </Departments>
</NAXMLDepartmentMaintenance>
"""


@pytest.fixture(autouse=True)
def fresh_adapters():
    reset_adapters()
    yield
    reset_adapters()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def base(tmp_path):
    (tmp_path / "Import").mkdir()
    (tmp_path / "Export").mkdir()
    return tmp_path


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_cors_origins_come_from_settings():
    client = TestClient(create_app(ApiSettings(cors_origins=("https://backoffice.example",))))
    preflight = {"Access-Control-Request-Method": "POST"}

    allowed = client.options(
        "/api/pos/adapters", headers={"Origin": "https://backoffice.example", **preflight}
    )
    denied = client.options(
        "/api/pos/adapters", headers={"Origin": "https://elsewhere.example", **preflight}
    )

    assert allowed.headers["access-control-allow-origin"] == "https://backoffice.example"
    assert "access-control-allow-origin" not in denied.headers


def test_api_settings_from_env(monkeypatch):
    monkeypatch.setenv("POSSYNC_CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("POSSYNC_LOG_LEVEL", "debug")
    settings = ApiSettings.from_env()
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.log_level == "DEBUG"
    monkeypatch.delenv("POSSYNC_CORS_ORIGINS")
    assert ApiSettings.from_env().cors_origins == ("http://localhost:3000",)


def test_list_adapters(client):
    data = client.get("/api/pos/adapters").json()["data"]
    assert {a["pos_type"] for a in data} == {"generic_rest", "generic_xml", "naxml_file"}
    rest = next(a for a in data if a["pos_type"] == "generic_rest")
    assert rest["capabilities"]["sync_departments"] is True


def test_connection_for_file_exchange(client, base, caplog):
    with caplog.at_level(logging.INFO, logger="api.routes"):
        resp = client.post(
            "/api/pos/test-connection",
            json={"pos_type": "naxml_file", "config": {"base_path": str(base)}},
            headers={"X-Store-ID": "store-42"},
        )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["details"]["pending_files"]["departments"] == 0
    assert "store-42" in caplog.text


def test_connection_failure_is_a_result_not_an_error(client, tmp_path):
    resp = client.post(
        "/api/pos/test-connection",
        json={"pos_type": "naxml_file", "config": {"base_path": str(tmp_path / "missing")}},
    )
    assert resp.status_code == 200
    assert resp.json()["error_code"] == "DIRECTORY_NOT_FOUND"


def test_missing_mappings_is_a_client_error(client):
    resp = client.post(
        "/api/pos/test-connection",
        json={"pos_type": "generic_rest", "config": {"host": "pos.example.com"}},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["error_code"] == "MISSING_MAPPINGS"


def test_invalid_config_is_422(client):
    resp = client.post(
        "/api/pos/test-connection",
        json={"pos_type": "generic_rest", "config": {"port": 99999}},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["loc"] == ["port"]


def test_unknown_pos_type_is_422(client):
    resp = client.post("/api/pos/test-connection", json={"pos_type": "abacus", "config": {}})
    assert resp.status_code == 422


def test_sync_departments_with_records(client, base):
    (base / "Export" / "DeptMaint_001.xml").write_text(DEPARTMENTS_XML)
    resp = client.post(
        "/api/pos/sync/departments",
        json={"pos_type": "naxml_file", "config": {"base_path": str(base)}, "include_records": True},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["entity_type"] == "departments"
    assert body["received_count"] == 1
    assert body["records"][0]["pos_code"] == "10"
    assert body["records"][0]["minimum_age"] == 21


def test_sync_transactions_unsupported_by_rest_adapter(client):
    resp = client.post(
        "/api/pos/sync/transactions",
        json={"pos_type": "generic_rest", "config": {"host": "pos.example.com", "mappings": {}}},
    )
    assert resp.status_code == 400
    assert "does not support transactions" in resp.json()["detail"]


def test_unknown_entity_type_is_422(client):
    resp = client.post("/api/pos/sync/widgets", json={"pos_type": "naxml_file", "config": {}})
    assert resp.status_code == 422
