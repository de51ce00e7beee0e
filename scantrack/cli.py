"""CLI entry point for Scan & Track."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

from .config import load_config
from .dates import format_date_for_display, future_date
from .db import AccessDeniedError, InventoryDB, ItemNotFoundError
from .lookup import ProductLookupError, ProductNotFoundError, create_lookup
from .models import (
    PLACEHOLDER_IMAGE,
    FilterOption,
    InventoryRecord,
    ItemStatus,
    SortOption,
    ViewParameters,
)
from .session import CandidateBrowser
from .view import ViewDiagnostics, compute_view, is_expired


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="scantrack",
        description="Scan & Track: 冷蔵庫の在庫と賞味期限を管理します",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="設定ファイルのパス (TOML)"
    )
    parser.add_argument(
        "--user", "-u", type=str, default=None,
        help="操作するユーザーID (既定: 環境変数 SCANTRACK_USER)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="詳細ログを表示")

    sub = parser.add_subparsers(dest="command")

    # search
    search_parser = sub.add_parser("search", help="バーコード / 商品名で商品を検索")
    search_parser.add_argument("query", type=str)
    search_parser.add_argument("--page", type=int, default=1, help="表示するページ")
    search_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # fridges
    sub.add_parser("fridges", help="参加している冷蔵庫の一覧")
    new_fridge = sub.add_parser("new-fridge", help="冷蔵庫を作成")
    new_fridge.add_argument("name", type=str)

    # add
    add_parser = sub.add_parser("add", help="在庫に商品を追加")
    add_parser.add_argument("--fridge", "-f", required=True, help="冷蔵庫ID")
    add_parser.add_argument("--name", required=True, help="商品名")
    add_parser.add_argument("--barcode", required=True, help="JANコード")
    add_parser.add_argument("--image", default=PLACEHOLDER_IMAGE, help="画像URL")
    add_parser.add_argument("--category", default=None, help="カテゴリ")
    expiry = add_parser.add_mutually_exclusive_group()
    expiry.add_argument("--expiry", default=None, help="賞味期限 (YYYY-MM-DD)")
    expiry.add_argument("--in-days", type=int, default=None, help="今日から N 日後を賞味期限にする")

    # list
    list_parser = sub.add_parser("list", help="在庫一覧を表示")
    list_parser.add_argument("--fridge", "-f", required=True, help="冷蔵庫ID")
    list_parser.add_argument("--search", "-s", default="", help="キーワード検索")
    list_parser.add_argument("--from", dest="date_from", default=None, help="賞味期限 いつから")
    list_parser.add_argument("--to", dest="date_to", default=None, help="賞味期限 いつまで")
    list_parser.add_argument(
        "--filter", choices=[o.value for o in FilterOption], default=FilterOption.ALL.value
    )
    list_parser.add_argument(
        "--sort", choices=[o.value for o in SortOption],
        default=SortOption.EXPIRY_ASCENDING.value,
    )
    list_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # status changes
    for command, help_text in (
        ("consume", "完食にする"),
        ("discard", "廃棄にする"),
        ("delete", "完全に削除する"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("item_id", type=str)

    set_expiry = sub.add_parser("set-expiry", help="賞味期限を変更")
    set_expiry.add_argument("item_id", type=str)
    set_expiry.add_argument("date", type=str, help="YYYY-MM-DD")

    # jobs / server
    sub.add_parser("remind", help="明日期限切れになる商品のリマインダーを送信")
    sub.add_parser("schedule", help="リマインダーを定期実行")
    serve_parser = sub.add_parser("serve", help="REST API サーバーを起動")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)

    match args.command:
        case "search":
            asyncio.run(_cmd_search(config, args))
        case "serve":
            _cmd_serve(config, args)
        case "schedule":
            asyncio.run(_cmd_schedule(config))
        case "remind":
            _with_db(config, _cmd_remind, args)
        case _:
            _with_db(config, _cmd_user_action, args)


def _with_db(config, func, args) -> None:
    db = InventoryDB(config.database.path)
    try:
        func(config, db, args)
    except (ValueError, AccessDeniedError, ItemNotFoundError) as e:
        print(f"エラー: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


def _resolve_user(args) -> str:
    user_id = args.user or os.environ.get("SCANTRACK_USER", "")
    if not user_id:
        raise ValueError("ユーザーIDが指定されていません (--user または SCANTRACK_USER)")
    return user_id


def _cmd_user_action(config, db: InventoryDB, args) -> None:
    user_id = _resolve_user(args)
    db.ensure_profile(user_id)

    match args.command:
        case "fridges":
            _cmd_fridges(db, user_id)
        case "new-fridge":
            fridge = db.create_refrigerator(user_id, args.name)
            print(f"冷蔵庫を作成しました: {fridge['name']} (ID: {fridge['id']})")
        case "add":
            _cmd_add(config, db, user_id, args)
        case "list":
            _cmd_list(db, user_id, args)
        case "consume":
            db.update_item(user_id, args.item_id, status=ItemStatus.CONSUMED.value)
            print("😋 完食にしました")
        case "discard":
            db.update_item(user_id, args.item_id, status=ItemStatus.DISCARDED.value)
            print("😱 廃棄にしました")
        case "delete":
            if db.delete_item(user_id, args.item_id):
                print("🗑  削除しました")
            else:
                print("削除対象のアイテムが見つかりませんでした。")
        case "set-expiry":
            item = db.update_item(user_id, args.item_id, expiry_date=args.date)
            print(f"賞味期限を {format_date_for_display(item['expiry_date'])} に変更しました")


def _cmd_fridges(db: InventoryDB, user_id: str) -> None:
    memberships = db.list_refrigerators(user_id)
    if not memberships:
        print("参加している冷蔵庫がありません。")
        return
    print(f"冷蔵庫: {len(memberships)} 台")
    for m in memberships:
        fridge = m["refrigerators"]
        print(f"  {fridge['name']}  [{m['role']}]  ID: {fridge['id']}")


def _cmd_add(config, db: InventoryDB, user_id: str, args) -> None:
    if args.expiry:
        expiry_date = args.expiry
    else:
        days = args.in_days if args.in_days is not None else config.view.default_expiry_days
        expiry_date = future_date(days)

    item = db.add_item(
        user_id,
        args.fridge,
        name=args.name,
        barcode=args.barcode,
        image=args.image,
        expiry_date=expiry_date,
        category=args.category,
    )
    print(
        f"「{item['name']}」を追加しました！ "
        f"(期限: {format_date_for_display(item['expiry_date'])})"
    )


def _cmd_list(db: InventoryDB, user_id: str, args) -> None:
    records = [InventoryRecord.from_dict(d) for d in db.list_items(user_id, args.fridge)]
    params = ViewParameters(
        search_text=args.search,
        date_range_start=args.date_from,
        date_range_end=args.date_to,
        filter_option=args.filter,
        sort_option=args.sort,
    )
    diagnostics = ViewDiagnostics()
    shown = compute_view(records, params, diagnostics=diagnostics)

    if args.json:
        print(json.dumps([r.to_dict() for r in shown], ensure_ascii=False, indent=2))
        return

    if not shown:
        if args.search:
            print("検索条件に一致する在庫がありません")
        else:
            print("表示する在庫がありません")
        return

    print(f"📦 冷蔵庫の中身 ({len(shown)} 品):")
    for r in shown:
        mark = "  ⚠️ 期限切れ" if is_expired(r) else ""
        expiry = format_date_for_display(r.expiry_date) or "----/--/--"
        print(f"  {expiry}  {r.name:<20} [{r.display_category}]{mark}  ID: {r.id}")
    if diagnostics.range_skipped:
        print("※ 開始日が終了日より後のため、期間指定は無視されました", file=sys.stderr)


async def _cmd_search(config, args) -> None:
    lookup = create_lookup(config)
    browser = CandidateBrowser(page_size=config.view.candidates_per_page)

    print("🔍 商品を検索中...")
    try:
        await browser.search(lookup, args.query)
    except ProductNotFoundError:
        print("商品が見つかりませんでした")
        return
    except ProductLookupError as e:
        print(f"検索エラーが発生しました: {e}", file=sys.stderr)
        sys.exit(1)

    page = browser.go_to(args.page)

    if args.json:
        print(json.dumps([c.to_dict() for c in page.items], ensure_ascii=False, indent=2))
        return

    print(f"\n検索結果 ({page.total}件)  {page.number} / {page.page_count}")
    for c in page.items:
        code = c.code or "-"
        print(f"  {c.name:<30} JAN: {code}")


def _cmd_remind(config, db: InventoryDB, args) -> None:
    from .reminder import ExpiryReminder

    result = ExpiryReminder(db, days_ahead=config.reminder.days_ahead).run()
    print(result.message)


def _cmd_serve(config, args) -> None:
    from .api import create_app

    app = create_app(config)
    app.run(
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        debug=config.server.debug,
    )


async def _cmd_schedule(config) -> None:
    from .scheduler import ReminderScheduler

    scheduler = ReminderScheduler(config)
    scheduler.start()
    for job in scheduler.get_jobs():
        print(f"⏰ {job['name']} (次回: {job['next_run']})")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
