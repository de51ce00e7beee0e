"""Tests for the REST API (Flask test client)."""

from unittest.mock import MagicMock

import pytest

from scantrack.api import create_app
from scantrack.config import load_config
from scantrack.dates import future_date
from scantrack.lookup import ProductLookupError, ProductNotFoundError
from scantrack.models import ProductCandidate

USER = {"X-User-Id": "u1", "X-User-Name": "花子"}
OTHER = {"X-User-Id": "u2"}


@pytest.fixture
def lookup():
    return MagicMock()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    monkeypatch.delenv("SCANTRACK_DB_PATH", raising=False)
    cfg = load_config()
    cfg.database.path = str(tmp_path / "api.db")
    cfg.reminder.cron_secret = "s3cret"
    return cfg


@pytest.fixture
def client(config, lookup, notifier):
    app = create_app(config, lookup=lookup, notifier=notifier)
    app.testing = True
    return app.test_client()


@pytest.fixture
def fridge_id(client):
    res = client.post("/api/refrigerators", json={"name": "自宅"}, headers=USER)
    return res.get_json()["id"]


def _item_body(fridge_id, **overrides):
    body = {
        "refrigerator_id": fridge_id,
        "name": "牛乳",
        "barcode": "4901",
        "image": "https://img/milk.jpg",
        "expiry_date": "2025-01-17",
    }
    body.update(overrides)
    return body


class TestAuth:
    def test_missing_user_header(self, client):
        res = client.get("/api/dashboard")
        assert res.status_code == 401
        assert res.get_json()["error"] == "認証ヘッダーが設定されていません"


class TestRefrigerators:
    def test_create_and_dashboard(self, client, fridge_id):
        res = client.get("/api/dashboard", headers=USER)
        assert res.status_code == 200
        assert res.get_json() == [
            {"role": "owner", "refrigerators": {"id": fridge_id, "name": "自宅"}}
        ]

    def test_create_returns_201(self, client):
        res = client.post("/api/refrigerators", json={"name": "会社"}, headers=USER)
        assert res.status_code == 201
        assert res.get_json()["name"] == "会社"

    def test_blank_name(self, client):
        res = client.post("/api/refrigerators", json={"name": " "}, headers=USER)
        assert res.status_code == 400

    def test_unauthenticated_blank_name(self, client):
        res = client.post("/api/refrigerators", json={"name": " "})
        assert res.status_code == 401


class TestItems:
    def test_crud_flow(self, client, fridge_id):
        res = client.post("/api/items", json=_item_body(fridge_id), headers=USER)
        assert res.status_code == 201
        item_id = res.get_json()["id"]

        res = client.get(f"/api/items?refrigerator_id={fridge_id}", headers=USER)
        items = res.get_json()
        assert [i["name"] for i in items] == ["牛乳"]
        assert items[0]["status"] == "active"

        res = client.patch(f"/api/items/{item_id}", json={"status": "consumed"}, headers=USER)
        assert res.status_code == 200
        assert res.get_json()["status"] == "consumed"
        assert res.get_json()["expiry_date"] == "2025-01-17"

        res = client.patch(
            f"/api/items/{item_id}", json={"expiry_date": "2025-02-01"}, headers=USER
        )
        assert res.get_json()["expiry_date"] == "2025-02-01"
        assert res.get_json()["status"] == "consumed"

        res = client.delete(f"/api/items/{item_id}", headers=USER)
        assert res.status_code == 204
        res = client.get(f"/api/items?refrigerator_id={fridge_id}", headers=USER)
        assert res.get_json() == []

    def test_list_requires_refrigerator_id(self, client):
        res = client.get("/api/items", headers=USER)
        assert res.status_code == 400

    def test_list_other_users_fridge(self, client, fridge_id):
        res = client.get(f"/api/items?refrigerator_id={fridge_id}", headers=OTHER)
        assert res.status_code == 403

    def test_add_missing_barcode(self, client, fridge_id):
        res = client.post("/api/items", json=_item_body(fridge_id, barcode=""), headers=USER)
        assert res.status_code == 400
        assert res.get_json()["error"] == "バーコードは必須です"

    def test_add_invalid_expiry(self, client, fridge_id):
        res = client.post(
            "/api/items", json=_item_body(fridge_id, expiry_date="someday"), headers=USER
        )
        assert res.status_code == 400

    def test_add_numeric_expiry(self, client, fridge_id):
        res = client.post(
            "/api/items", json=_item_body(fridge_id, expiry_date=20240301), headers=USER
        )
        assert res.status_code == 400
        assert res.get_json()["error"] == "賞味期限は文字列で指定してください"

    def test_patch_non_string_values(self, client, fridge_id):
        item_id = client.post("/api/items", json=_item_body(fridge_id), headers=USER).get_json()["id"]
        res = client.patch(f"/api/items/{item_id}", json={"status": ["consumed"]}, headers=USER)
        assert res.status_code == 400
        res = client.patch(f"/api/items/{item_id}", json={"expiry_date": 20250201}, headers=USER)
        assert res.status_code == 400

    def test_patch_nothing(self, client, fridge_id):
        item_id = client.post("/api/items", json=_item_body(fridge_id), headers=USER).get_json()["id"]
        res = client.patch(f"/api/items/{item_id}", json={}, headers=USER)
        assert res.status_code == 400

    def test_patch_unknown(self, client):
        res = client.patch("/api/items/nope", json={"status": "consumed"}, headers=USER)
        assert res.status_code == 404


class TestProductSearch:
    def test_requires_query(self, client):
        assert client.get("/api/product").status_code == 400

    def test_results_are_deduplicated(self, client, lookup):
        lookup.search.return_value = [
            ProductCandidate(name="A", code="111", image="i"),
            ProductCandidate(name="B", code="111", image="i"),
            ProductCandidate(name="A", image="i"),
        ]
        res = client.get("/api/product?code=お茶")
        assert res.status_code == 200
        body = res.get_json()
        assert [(p["name"], p["code"]) for p in body] == [("A", "111"), ("A", None)]
        lookup.search.assert_called_once_with("お茶")

    def test_not_found(self, client, lookup):
        lookup.search.side_effect = ProductNotFoundError("none")
        res = client.get("/api/product?code=0000")
        assert res.status_code == 404
        assert res.get_json()["error"] == "商品が見つかりませんでした"

    def test_upstream_failure(self, client, lookup):
        lookup.search.side_effect = ProductLookupError("down")
        res = client.get("/api/product?code=milk")
        assert res.status_code == 500


class TestCron:
    def test_wrong_secret(self, client):
        res = client.get("/api/cron", headers={"Authorization": "Bearer wrong"})
        assert res.status_code == 401

    def test_sends_reminders(self, client, fridge_id, notifier):
        client.post(
            "/api/items",
            json=_item_body(fridge_id, expiry_date=future_date(1)),
            headers=USER,
        )
        res = client.get("/api/cron", headers={"Authorization": "Bearer s3cret"})

        assert res.status_code == 200
        assert res.get_json()["sent"] == 1
        sent = notifier.send.call_args.args[0]
        assert sent.user_id == "u1"
        assert sent.display_name == "花子"

    def test_missing_secret_outside_debug(self, config, lookup, notifier):
        config.reminder.cron_secret = ""
        app = create_app(config, lookup=lookup, notifier=notifier)
        res = app.test_client().get("/api/cron")
        assert res.status_code == 500
