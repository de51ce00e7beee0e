"""Expiry reminders: tell every refrigerator member what expires tomorrow."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from .dates import today as local_today

if TYPE_CHECKING:
    from .db import InventoryDB

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "ユーザー"
UNKNOWN_PRODUCT = "不明な商品"
UNKNOWN_REFRIGERATOR = "不明な冷蔵庫"
SUBJECT = "【リマインダー】明日賞味期限切れになる商品があります"


@dataclass
class ReminderLine:
    product_name: str
    refrigerator_name: str


@dataclass
class Notification:
    user_id: str
    display_name: str
    items: list[ReminderLine] = field(default_factory=list)

    @property
    def subject(self) -> str:
        return SUBJECT

    def body(self) -> str:
        lines = [f"{self.display_name} 様", ""]
        lines += [
            f"  - {i.product_name} (場所: {i.refrigerator_name})" for i in self.items
        ]
        return "\n".join(lines)


@dataclass
class ReminderResult:
    target_date: str
    item_count: int = 0
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.item_count == 0:
            return "明日期限切れのアイテムはありませんでした。"
        return f"{len(self.sent)}人のユーザーにリマインダーを送信しました。"


class Notifier(ABC):
    """Delivers one reminder to one user."""

    @abstractmethod
    def send(self, notification: Notification) -> None:
        ...


class LogNotifier(Notifier):
    """Writes the reminder mail to the log instead of sending it."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "[Mock Email] To UserID: %s (%s 様)\nSubject: %s\n%s",
            notification.user_id,
            notification.display_name,
            notification.subject,
            notification.body(),
        )


def build_notifications(rows: list[dict]) -> dict[str, Notification]:
    """Group expiring-item rows (one per item and member) by user."""
    by_user: dict[str, Notification] = {}
    for row in rows:
        user_id = row.get("user_id")
        if not user_id:
            # Refrigerator without members
            continue
        notification = by_user.get(user_id)
        if notification is None:
            notification = Notification(
                user_id=user_id,
                display_name=row.get("display_name") or DEFAULT_DISPLAY_NAME,
            )
            by_user[user_id] = notification
        notification.items.append(
            ReminderLine(
                product_name=row.get("product_name") or UNKNOWN_PRODUCT,
                refrigerator_name=row.get("refrigerator_name") or UNKNOWN_REFRIGERATOR,
            )
        )
    return by_user


class ExpiryReminder:
    """Finds items expiring soon and notifies every member of their refrigerator."""

    def __init__(
        self,
        db: InventoryDB,
        notifier: Notifier | None = None,
        days_ahead: int = 1,
    ) -> None:
        self._db = db
        self._notifier = notifier or LogNotifier()
        self._days_ahead = days_ahead

    def run(self, today: date | None = None) -> ReminderResult:
        """Send reminders for items expiring *days_ahead* days after *today*.

        A failed send is logged and recorded; the remaining users are still
        notified.
        """
        target = (today or local_today()) + timedelta(days=self._days_ahead)
        rows = self._db.items_expiring_on(target)
        result = ReminderResult(
            target_date=target.isoformat(),
            item_count=len({r["id"] for r in rows}),
        )
        if not rows:
            logger.info("%s に期限切れになるアイテムはありません", target)
            return result

        for user_id, notification in build_notifications(rows).items():
            try:
                self._notifier.send(notification)
            except Exception:
                logger.exception("リマインダー送信に失敗しました: %s", user_id)
                result.failed.append(user_id)
            else:
                result.sent.append(user_id)

        logger.info(result.message)
        return result
