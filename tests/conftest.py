import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from state import LocalStore


@pytest.fixture
def db(monkeypatch):
    mock = mongomock.MongoClient()["bricxo_test"]
    monkeypatch.setattr(database, "db", mock)
    database.ensure_indexes()
    return mock


@pytest.fixture
def client(db, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "local_store", LocalStore(tmp_path / "store.json"))
    main._states.clear()
    for snap in (main.products_snapshot, main.categories_snapshot, main.orders_snapshot):
        snap.invalidate()
    return TestClient(main.app)


@pytest.fixture
def admin_headers(client):
    res = client.post("/admin/login", json={"pin": "1234"})
    assert res.status_code == 200
    return {"X-Admin-Token": res.json()["token"]}


@pytest.fixture
def products(db):
    rows = [
        {"name": "River Sand", "price": 55.0, "category": "Sand", "featured": True},
        {"name": "Red Bricks", "price": 8.0, "category": "Bricks", "featured": False},
        {"name": "PVC Pipe 1in", "price": 120.0, "category": "Plumbing", "featured": True},
    ]
    ids = database.insert(database.PRODUCTS, rows)
    return dict(zip(["sand", "bricks", "pipe"], ids))
