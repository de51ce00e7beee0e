"""REST API for the Scan & Track client.

Authentication is done upstream: the auth proxy in front of this app sets
``X-User-Id`` (and optionally ``X-User-Name``) for every signed-in request.
"""

from __future__ import annotations

import logging

from flask import Flask, current_app, g, jsonify, request

from .candidates import dedupe
from .config import AppConfig, load_config
from .db import AccessDeniedError, InventoryDB, ItemNotFoundError
from .lookup import ProductLookup, ProductLookupError, ProductNotFoundError, create_lookup
from .reminder import ExpiryReminder, Notifier

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """The request carries no user identity."""


def create_app(
    config: AppConfig | None = None,
    lookup: ProductLookup | None = None,
    notifier: Notifier | None = None,
) -> Flask:
    """Application factory."""
    config = config or load_config()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = config
    app.config["DEBUG"] = config.server.debug
    app.extensions["scantrack.lookup"] = lookup or create_lookup(config)
    app.extensions["scantrack.notifier"] = notifier

    @app.teardown_appcontext
    def _close_db(exc):
        db = g.pop("db", None)
        if db is not None:
            db.close()

    @app.errorhandler(AuthError)
    def _auth_error(e):
        return jsonify({"error": str(e)}), 401

    @app.errorhandler(AccessDeniedError)
    def _access_denied(e):
        return jsonify({"error": str(e)}), 403

    @app.errorhandler(ItemNotFoundError)
    def _not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(ValueError)
    def _bad_request(e):
        return jsonify({"error": str(e)}), 400

    _register_routes(app)
    return app


def _db() -> InventoryDB:
    if "db" not in g:
        g.db = InventoryDB(current_app.config["APP_CONFIG"].database.path)
    return g.db


def _current_user() -> str:
    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        raise AuthError("認証ヘッダーが設定されていません")
    _db().ensure_profile(user_id, request.headers.get("X-User-Name") or None)
    return user_id


def _register_routes(app: Flask) -> None:

    @app.get("/api/product")
    def search_product():
        query = request.args.get("code", "").strip()
        if not query:
            return jsonify({"error": "検索ワードが必要です"}), 400

        lookup: ProductLookup = current_app.extensions["scantrack.lookup"]
        try:
            results = dedupe(lookup.search(query))
        except ProductNotFoundError:
            return jsonify({"error": "商品が見つかりませんでした"}), 404
        except ProductLookupError:
            logger.exception("商品検索に失敗しました: %s", query)
            return jsonify({"error": "情報の取得に失敗しました"}), 500

        return jsonify([c.to_dict() for c in results])

    @app.get("/api/dashboard")
    def dashboard():
        user_id = _current_user()
        return jsonify(_db().list_refrigerators(user_id))

    @app.post("/api/refrigerators")
    def create_refrigerator():
        user_id = _current_user()
        body = request.get_json(silent=True) or {}
        name = body.get("name") or ""
        if not isinstance(name, str) or not name.strip():
            return jsonify({"error": "冷蔵庫名は必須です"}), 400
        name = name.strip()
        return jsonify(_db().create_refrigerator(user_id, name)), 201

    @app.get("/api/items")
    def list_items():
        refrigerator_id = request.args.get("refrigerator_id", "").strip()
        if not refrigerator_id:
            return jsonify({"error": "refrigerator_id が必要です"}), 400
        user_id = _current_user()
        return jsonify(_db().list_items(user_id, refrigerator_id))

    @app.post("/api/items")
    def add_item():
        body = request.get_json(silent=True) or {}
        user_id = _current_user()
        item = _db().add_item(
            user_id,
            body.get("refrigerator_id") or "",
            name=body.get("name") or "",
            barcode=body.get("barcode") or "",
            image=body.get("image") or "",
            expiry_date=body.get("expiry_date") or "",
            category=body.get("category"),
        )
        return jsonify(item), 201

    @app.patch("/api/items/<item_id>")
    def update_item(item_id: str):
        body = request.get_json(silent=True) or {}
        user_id = _current_user()
        item = _db().update_item(
            user_id,
            item_id,
            status=body.get("status"),
            expiry_date=body.get("expiry_date"),
        )
        return jsonify(item)

    @app.delete("/api/items/<item_id>")
    def delete_item(item_id: str):
        user_id = _current_user()
        _db().delete_item(user_id, item_id)
        return "", 204

    @app.get("/api/cron")
    def cron():
        config: AppConfig = current_app.config["APP_CONFIG"]
        secret = config.reminder.cron_secret
        if not secret:
            if not current_app.debug:
                return jsonify(
                    {"error": "CRON_SECRET が未設定のためバッチ処理を実行できません。"}
                ), 500
            logger.warning(
                "CRON_SECRET が未設定ですが、デバッグモードのため認証チェックをスキップします。"
            )
        elif request.headers.get("Authorization") != f"Bearer {secret}":
            return jsonify({"error": "Unauthorized"}), 401

        reminder = ExpiryReminder(
            _db(),
            notifier=current_app.extensions["scantrack.notifier"],
            days_ahead=config.reminder.days_ahead,
        )
        result = reminder.run()
        return jsonify({
            "success": True,
            "message": result.message,
            "target_date": result.target_date,
            "sent": len(result.sent),
            "failed": len(result.failed),
        })
