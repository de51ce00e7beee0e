"""Refrigerator and inventory CRUD operations.

Every user-facing operation is scoped by refrigerator membership: a user
only sees and changes items in refrigerators they belong to.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime
from pathlib import Path

from ..dates import local_date_string, parse_local_date
from ..models import UNCATEGORIZED, ItemStatus
from .schema import ensure_schema

UNNAMED_ITEM = "名称未設定"


class AccessDeniedError(PermissionError):
    """The user is not a member of the refrigerator."""


class ItemNotFoundError(LookupError):
    """No visible inventory item has the given ID."""


class InventoryDB:
    """Manages refrigerators, the product master and inventory items."""

    def __init__(self, db_path: str | Path = "~/.config/scantrack/inventory.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -- profiles / refrigerators ------------------------------------------

    def ensure_profile(self, user_id: str, display_name: str | None = None) -> None:
        """Create the user's profile, or update the display name if given."""
        conn = self._get_conn()
        if display_name:
            conn.execute(
                """INSERT INTO profiles (user_id, display_name) VALUES (?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET display_name = excluded.display_name""",
                (user_id, display_name),
            )
        else:
            conn.execute(
                "INSERT OR IGNORE INTO profiles (user_id) VALUES (?)",
                (user_id,),
            )
        conn.commit()

    def create_refrigerator(self, user_id: str, name: str) -> dict:
        """Create a refrigerator and register *user_id* as its owner.

        Both rows are written in one transaction.

        Raises:
            ValueError: If the name is blank.
        """
        if not name or not name.strip():
            raise ValueError("冷蔵庫名は必須です")

        conn = self._get_conn()
        ref_id = str(uuid.uuid4())
        with conn:
            conn.execute(
                "INSERT INTO refrigerators (id, name) VALUES (?, ?)",
                (ref_id, name),
            )
            conn.execute(
                """INSERT INTO refrigerator_members (refrigerator_id, user_id, role)
                   VALUES (?, ?, 'owner')""",
                (ref_id, user_id),
            )
        return {"id": ref_id, "name": name}

    def add_member(self, user_id: str, refrigerator_id: str, member_id: str) -> None:
        """Share a refrigerator with another user.

        Raises:
            AccessDeniedError: If *user_id* is not a member.
        """
        self._require_member(user_id, refrigerator_id)
        conn = self._get_conn()
        conn.execute(
            """INSERT OR IGNORE INTO refrigerator_members (refrigerator_id, user_id, role)
               VALUES (?, ?, 'member')""",
            (refrigerator_id, member_id),
        )
        conn.commit()

    def list_refrigerators(self, user_id: str) -> list[dict]:
        """Return the user's memberships as ``{role, refrigerators: {id, name}}``."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT m.role, r.id, r.name
               FROM refrigerator_members m
               JOIN refrigerators r ON r.id = m.refrigerator_id
               WHERE m.user_id = ?
               ORDER BY r.created_at, r.name""",
            (user_id,),
        ).fetchall()
        return [
            {"role": r["role"], "refrigerators": {"id": r["id"], "name": r["name"]}}
            for r in rows
        ]

    def is_member(self, user_id: str, refrigerator_id: str) -> bool:
        conn = self._get_conn()
        row = conn.execute(
            """SELECT 1 FROM refrigerator_members
               WHERE user_id = ? AND refrigerator_id = ?""",
            (user_id, refrigerator_id),
        ).fetchone()
        return row is not None

    def _require_member(self, user_id: str, refrigerator_id: str) -> None:
        if not self.is_member(user_id, refrigerator_id):
            raise AccessDeniedError("この冷蔵庫へのアクセス権限がありません")

    # -- inventory items ---------------------------------------------------

    def list_items(self, user_id: str, refrigerator_id: str) -> list[dict]:
        """Return the refrigerator's items ordered by expiration date.

        Raises:
            AccessDeniedError: If the user is not a member.
        """
        self._require_member(user_id, refrigerator_id)
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT i.*, p.name, p.image_url, p.category
               FROM inventory_items i
               LEFT JOIN products_master p ON p.barcode = i.barcode
               WHERE i.refrigerator_id = ?
               ORDER BY i.expiration_date""",
            (refrigerator_id,),
        ).fetchall()
        return [_format_item(r) for r in rows]

    def add_item(
        self,
        user_id: str,
        refrigerator_id: str,
        *,
        name: str,
        barcode: str,
        image: str,
        expiry_date: str,
        category: str | None = None,
    ) -> dict:
        """Upsert the product master and add an active item.

        Raises:
            ValueError: If a required field is blank or the date is invalid.
            AccessDeniedError: If the user is not a member.
        """
        for value, label in (
            (refrigerator_id, "refrigerator_id "),
            (name, "商品名（name）"),
            (barcode, "バーコード"),
            (image, "画像URL"),
            (expiry_date, "賞味期限"),
        ):
            _require_text(value, label)
        if category is not None and not isinstance(category, str):
            raise ValueError("カテゴリは文字列で指定してください")

        expiry = parse_local_date(expiry_date)
        if expiry is None:
            raise ValueError("賞味期限の形式が不正です")

        self._require_member(user_id, refrigerator_id)

        conn = self._get_conn()
        item_id = str(uuid.uuid4())
        with conn:
            conn.execute(
                """INSERT INTO products_master (barcode, name, image_url, category)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(barcode) DO UPDATE SET
                     name = excluded.name,
                     image_url = excluded.image_url,
                     category = excluded.category,
                     updated_at = datetime('now', 'localtime')""",
                (barcode, name, image, category or UNCATEGORIZED),
            )
            conn.execute(
                """INSERT INTO inventory_items
                   (id, refrigerator_id, barcode, expiration_date, status, added_at)
                   VALUES (?, ?, ?, ?, 'active', ?)""",
                (
                    item_id,
                    refrigerator_id,
                    barcode,
                    local_date_string(expiry),
                    datetime.now().astimezone().isoformat(),
                ),
            )
        return self._get_item(item_id)

    def update_item(
        self,
        user_id: str,
        item_id: str,
        *,
        status: str | None = None,
        expiry_date: str | None = None,
    ) -> dict:
        """Update only the supplied fields of an item.

        Raises:
            ValueError: If nothing is supplied or a value is invalid.
            ItemNotFoundError: If the item does not exist or is not visible.
        """
        fields: dict[str, str] = {}
        if status is not None:
            if not isinstance(status, str) or status not in {s.value for s in ItemStatus}:
                raise ValueError(f"不正なステータスです: {status}")
            fields["status"] = status
        if expiry_date is not None:
            if not isinstance(expiry_date, str):
                raise ValueError("賞味期限は文字列で指定してください")
            expiry = parse_local_date(expiry_date)
            if expiry is None:
                raise ValueError("賞味期限の形式が不正です")
            fields["expiration_date"] = local_date_string(expiry)

        if not fields:
            raise ValueError("更新対象フィールドが指定されていません。")

        self._require_visible_item(user_id, item_id)

        conn = self._get_conn()
        assignments = ", ".join(f"{column} = ?" for column in fields)
        conn.execute(
            f"UPDATE inventory_items SET {assignments} WHERE id = ?",
            (*fields.values(), item_id),
        )
        conn.commit()
        return self._get_item(item_id)

    def delete_item(self, user_id: str, item_id: str) -> bool:
        """Delete an item. Returns False if nothing visible was deleted."""
        conn = self._get_conn()
        cur = conn.execute(
            """DELETE FROM inventory_items
               WHERE id = ?
                 AND refrigerator_id IN (
                     SELECT refrigerator_id FROM refrigerator_members WHERE user_id = ?
                 )""",
            (item_id, user_id),
        )
        conn.commit()
        return cur.rowcount > 0

    def items_expiring_on(self, day: date) -> list[dict]:
        """Return active items expiring on *day*, one row per refrigerator member.

        Not scoped by user; used by the reminder job.
        """
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT i.id, i.expiration_date, i.refrigerator_id,
                      p.name AS product_name,
                      r.name AS refrigerator_name,
                      m.user_id,
                      pr.display_name
               FROM inventory_items i
               LEFT JOIN products_master p ON p.barcode = i.barcode
               LEFT JOIN refrigerators r ON r.id = i.refrigerator_id
               LEFT JOIN refrigerator_members m ON m.refrigerator_id = i.refrigerator_id
               LEFT JOIN profiles pr ON pr.user_id = m.user_id
               WHERE i.status = 'active' AND i.expiration_date = ?
               ORDER BY i.refrigerator_id, i.id""",
            (local_date_string(day),),
        ).fetchall()
        return [dict(r) for r in rows]

    def _require_visible_item(self, user_id: str, item_id: str) -> None:
        conn = self._get_conn()
        row = conn.execute(
            """SELECT 1 FROM inventory_items i
               JOIN refrigerator_members m ON m.refrigerator_id = i.refrigerator_id
               WHERE i.id = ? AND m.user_id = ?""",
            (item_id, user_id),
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(
                "指定されたIDのアイテムは存在しないか、権限がありません。"
            )

    def _get_item(self, item_id: str) -> dict:
        conn = self._get_conn()
        row = conn.execute(
            """SELECT i.*, p.name, p.image_url, p.category
               FROM inventory_items i
               LEFT JOIN products_master p ON p.barcode = i.barcode
               WHERE i.id = ?""",
            (item_id,),
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(f"アイテムが見つかりません: {item_id}")
        return _format_item(row)


def _require_text(value, label: str) -> None:
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{label}は文字列で指定してください")
    if not value or not value.strip():
        raise ValueError(f"{label}は必須です")


def _format_item(row: sqlite3.Row) -> dict:
    """Shape a joined row the way the inventory screen expects it."""
    return {
        "id": row["id"],
        "refrigerator_id": row["refrigerator_id"],
        "barcode": row["barcode"],
        "name": row["name"] or UNNAMED_ITEM,
        "image_url": row["image_url"] or "",
        "category": row["category"] or "",
        "expiry_date": row["expiration_date"],
        "status": row["status"],
        "created_at": row["added_at"],
    }
