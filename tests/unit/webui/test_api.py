import sqlite3
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from leasepool.core.config import LeasePoolConfig
from leasepool.core.pool import LeasePoolEngine, StoreUnavailable
from leasepool.webui.app import create_app


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "items.txt"


@pytest.fixture
def client(engine: LeasePoolEngine, db_path: Path, source_file: Path):
    config = LeasePoolConfig(db_path=db_path, source_file=source_file)
    with TestClient(create_app(engine=engine, config=config)) as c:
        yield c


def test_lease_returns_item(client: TestClient, engine: LeasePoolEngine) -> None:
    engine.ingest(["a@example.com"])

    resp = client.get("/api/lease")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["item"]["value"] == "a@example.com"
    assert isinstance(body["timestamp"], int)


def test_lease_on_exhausted_pool_is_429(client: TestClient) -> None:
    resp = client.get("/api/lease")

    assert resp.status_code == 429
    body = resp.json()
    assert body["ok"] is False
    assert body["error_code"] == "NO_ITEMS_AVAILABLE"
    assert body["timestamp"].endswith("Z")


def test_release_endpoint(client: TestClient, engine: LeasePoolEngine) -> None:
    engine.ingest(["a@example.com"])
    item_id = client.get("/api/lease").json()["item"]["id"]

    resp = client.post(f"/api/leases/{item_id}/release")
    assert resp.json() == {"ok": True, "item_id": item_id, "released": True, "message": None}

    resp = client.post(f"/api/leases/{item_id}/release")
    assert resp.json()["released"] is False


def test_store_failure_is_503(client: TestClient, engine: LeasePoolEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken():
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(engine.leases, "acquire_one", broken)

    resp = client.get("/api/lease")

    assert resp.status_code == 503
    assert resp.json()["error_code"] == "STORE_UNAVAILABLE"


def test_stats_endpoint(client: TestClient, engine: LeasePoolEngine) -> None:
    engine.ingest(["a@example.com", "b@example.com"])
    engine.acquire_one()

    resp = client.get("/api/admin/stats")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"total": 2, "leased": 1, "available": 1, "approximate": False}


def test_list_items_with_search(client: TestClient, engine: LeasePoolEngine) -> None:
    engine.ingest([f"user{i}@example.com" for i in range(15)] + ["other@test.org"])

    data = client.get("/api/admin/items", params={"page": 1, "limit": 10}).json()["data"]
    assert len(data["items"]) == 10
    assert data["has_more"] is True
    assert data["total"] == 16

    data = client.get("/api/admin/items", params={"search": "test.org", "limit": 10}).json()["data"]
    assert [item["value"] for item in data["items"]] == ["other@test.org"]
    assert data["estimated"] is True


@pytest.mark.parametrize("params", [{"page": 0}, {"limit": 5}, {"limit": 5000}])
def test_list_items_rejects_bad_window(client: TestClient, params: dict) -> None:
    resp = client.get("/api/admin/items", params=params)

    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


def test_add_item(client: TestClient) -> None:
    resp = client.post("/api/admin/items", json={"value": "a@example.com"})
    assert resp.status_code == 201
    assert resp.json()["data"] == {"created": True}

    assert client.post("/api/admin/items", json={"value": "a@example.com"}).json()["data"] == {"created": False}

    resp = client.post("/api/admin/items", json={"value": "nope"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_VALUE"


def test_bulk_operations(client: TestClient, engine: LeasePoolEngine) -> None:
    resp = client.post("/api/admin/bulk", json={
        "operation": "bulk_add",
        "values": ["a@example.com", "b@example.com", "bad"],
    })
    assert resp.json() == {"ok": True, "operation": "bulk_add", "count": 2, "message": "Added 2 items"}

    engine.acquire_one()
    resp = client.post("/api/admin/bulk", json={"operation": "clear_locked"})
    assert resp.json()["count"] == 1

    ids = [item.id for item in engine.list(1, 10).items]
    resp = client.post("/api/admin/bulk", json={"operation": "bulk_delete", "ids": ids + [999]})
    assert resp.json()["count"] == 2


def test_bulk_requires_input(client: TestClient) -> None:
    resp = client.post("/api/admin/bulk", json={"operation": "bulk_add"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "BAD_REQUEST"
    assert resp.json()["message"] == "No values provided"

    resp = client.post("/api/admin/bulk", json={"operation": "bulk_delete", "ids": []})
    assert resp.status_code == 400

    resp = client.post("/api/admin/bulk", json={"operation": "drop_table"})
    assert resp.status_code == 422


def test_bulk_partial_failure_is_500(client: TestClient, engine: LeasePoolEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(batch):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(engine.bulk, "_insert_batch", failing)

    resp = client.post("/api/admin/bulk", json={"operation": "bulk_add", "values": ["a@example.com"]})

    assert resp.status_code == 500
    body = resp.json()
    assert body["error_code"] == "PARTIAL_BATCH_FAILURE"
    assert body["details"] == {"batch_index": 0, "inserted_count": 0}


def test_save_source(client: TestClient, engine: LeasePoolEngine, source_file: Path) -> None:
    resp = client.put("/api/admin/source", json={"values": ["a@example.com", "junk"]})

    assert resp.status_code == 200
    assert resp.json()["data"] == {"count": 1}
    assert source_file.read_text(encoding="utf-8") == "a@example.com\n"
    assert list(engine.bulk.iter_values()) == ["a@example.com"]

    resp = client.put("/api/admin/source", json={"values": ["junk"]})
    assert resp.status_code == 400


def test_export(client: TestClient, engine: LeasePoolEngine) -> None:
    engine.ingest(["a@example.com", "b@example.com"])

    resp = client.get("/api/admin/export")

    assert resp.status_code == 200
    assert resp.text == "a@example.com\nb@example.com\n"
    assert "attachment; filename=\"items_" in resp.headers["content-disposition"]


def test_preload(client: TestClient, engine: LeasePoolEngine) -> None:
    data = client.get("/api/admin/preload").json()["data"]
    assert data["has_data"] is False

    engine.ingest(["a@example.com"])
    engine.stats.invalidate()
    data = client.get("/api/admin/preload").json()["data"]
    assert data["has_data"] is True
    assert data["stats"]["total"] == 1
    assert len(data["items"]["items"]) == 1


def test_health(client: TestClient) -> None:
    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["components"]["database"]["status"] == "ok"


def test_unknown_route_uses_envelope(client: TestClient) -> None:
    resp = client.get("/api/nope")

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"


def test_app_opens_engine_from_config(tmp_path: Path) -> None:
    config = LeasePoolConfig(db_path=tmp_path / "served.sqlite", source_file=tmp_path / "items.txt")

    with TestClient(create_app(config=config)) as c:
        assert c.get("/api/health").json()["status"] == "ok"
        assert c.post("/api/admin/items", json={"value": "a@example.com"}).status_code == 201

    assert (tmp_path / "served.sqlite").exists()


@pytest.mark.parametrize("debug", [True, False])
def test_unhandled_error_detail_follows_app_config(engine: LeasePoolEngine, db_path: Path, tmp_path: Path, debug: bool) -> None:
    config = LeasePoolConfig(db_path=db_path, source_file=tmp_path / "items.txt", debug=debug)
    app = create_app(engine=engine, config=config)

    @app.get("/api/explode")
    def explode():
        raise RuntimeError("kaboom")

    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/api/explode")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error_code"] == "INTERNAL_ERROR"
    if debug:
        assert body["message"] == "RuntimeError: kaboom"
        assert body["details"]["exception_type"] == "RuntimeError"
    else:
        assert body["message"] == "Internal server error"
        assert "traceback" not in body["details"]
