"""
Waitlist CLI - ウェイティングリスト・通知運用CLI
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig
from ..exceptions import RepositoryError
from ..integrations.firestore_client import FirestoreClient, create_firestore_stores
from ..integrations.memory_store import InMemoryDatabase, create_memory_stores
from ..models.repository import Stores
from ..models.user_profile import UserProfile
from ..services.notification_dispatcher import NotificationDispatcher
from ..services.waitlist_manager import WaitlistManager

console = Console()
app = typer.Typer(help="Event Waitlist CLI - ウェイティングリスト・通知管理ツール")

logger = logging.getLogger(__name__)

FORMAT_HELP = "出力形式 (table/json/yaml)"


class WaitlistCLI:
    """
    ウェイティングリストCLI
    - ストアとサービスの組み立て
    - 結果の表示
    """

    def __init__(self, config: AppConfig, stores: Stores):
        self.config = config
        self.stores = stores
        self.manager = WaitlistManager(stores.entries, stores.decisions, stores.profiles)
        self.dispatcher = NotificationDispatcher(
            stores.profiles,
            stores.notifications,
            stores.decisions,
            stores.entries,
            config=config.dispatch,
        )

    @classmethod
    def from_firestore(cls, config: Optional[AppConfig] = None) -> "WaitlistCLI":
        config = config or AppConfig.from_env()
        client = FirestoreClient(config.firestore)
        return cls(config, create_firestore_stores(client))

    @classmethod
    def in_memory(cls, db: Optional[InMemoryDatabase] = None) -> "WaitlistCLI":
        return cls(AppConfig(), create_memory_stores(db))


def _run(coro):
    """コルーチンを実行し、ドメインエラーは終了コード1で報告"""
    try:
        return asyncio.run(coro)
    except RepositoryError as e:
        console.print(f"❌ {type(e).__name__}: {e}", style="red")
        raise typer.Exit(code=1)


def _emit(data: Any, output_format: str, title: str, columns: Optional[List[str]] = None) -> None:
    """結果表示"""
    if output_format == "json":
        console.print_json(json.dumps(data, ensure_ascii=False, default=str))
        return
    if output_format == "yaml":
        console.print(yaml.safe_dump(data, allow_unicode=True, sort_keys=False))
        return

    rows: List[Dict[str, Any]] = data if isinstance(data, list) else [data]
    if not rows:
        console.print(f"{title}: 0件", style="yellow")
        return

    table = Table(title=title)
    for column in columns or list(rows[0].keys()):
        table.add_column(column, style="cyan" if column.endswith("id") else None)
    for row in rows:
        table.add_row(*[("" if row.get(c) is None else str(row.get(c))) for c in (columns or list(rows[0].keys()))])
    console.print(table)


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="ログレベル（省略時は WAITLIST_LOG_LEVEL）")):
    """ログ設定"""
    try:
        level = AppConfig(log_level=log_level).log_level if log_level else AppConfig.from_env().log_level
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")
    logging.basicConfig(level=getattr(logging, level))


@app.command()
def join(
    event_id: str = typer.Argument(..., help="イベントID"),
    entrant_id: str = typer.Argument(..., help="参加者のユーザーID"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """ウェイティングリストに参加"""

    async def _join():
        cli = WaitlistCLI.from_firestore()
        result = await cli.manager.join(event_id, entrant_id)
        _emit(result.to_dict(), output_format, "Join Result")

    _run(_join())


@app.command()
def leave(
    event_id: str = typer.Argument(..., help="イベントID"),
    entrant_id: str = typer.Argument(..., help="参加者のユーザーID"),
    entry_id: str = typer.Argument(..., help="ウェイティングリストエントリID"),
    decision_id: Optional[str] = typer.Option(None, help="選考結果ID（省略時は検索）")
):
    """ウェイティングリストから離脱"""

    async def _leave():
        cli = WaitlistCLI.from_firestore()
        await cli.manager.leave(event_id, entrant_id, entry_id, decision_id)
        console.print("✅ 離脱しました", style="green")

    _run(_leave())


@app.command()
def accept(
    event_id: str = typer.Argument(..., help="イベントID"),
    entrant_id: str = typer.Argument(..., help="参加者のユーザーID"),
    decision_id: str = typer.Argument(..., help="選考結果ID")
):
    """招待を承諾"""

    async def _accept():
        cli = WaitlistCLI.from_firestore()
        decision = await cli.manager.accept_invitation(event_id, entrant_id, decision_id)
        console.print(f"✅ {decision.status.value}", style="green")

    _run(_accept())


@app.command()
def decline(
    event_id: str = typer.Argument(..., help="イベントID"),
    entrant_id: str = typer.Argument(..., help="参加者のユーザーID"),
    decision_id: str = typer.Argument(..., help="選考結果ID")
):
    """招待を辞退"""

    async def _decline():
        cli = WaitlistCLI.from_firestore()
        decision = await cli.manager.decline_invitation(event_id, entrant_id, decision_id)
        console.print(f"✅ {decision.status.value}", style="green")

    _run(_decline())


@app.command()
def registrations(
    event_id: str = typer.Argument(..., help="イベントID"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """イベントの登録状況"""

    async def _registrations():
        cli = WaitlistCLI.from_firestore()
        rows = await cli.manager.get_event_registrations(event_id)
        _emit(
            [r.model_dump(mode="json") for r in rows],
            output_format,
            f"Registrations: {event_id}",
            columns=["entrant_id", "status", "join_timestamp", "updated_at", "responded_at"],
        )

    _run(_registrations())


@app.command("my-decisions")
def my_decisions(
    entrant_id: str = typer.Argument(..., help="参加者のユーザーID"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """参加者の全イベント横断の選考結果"""

    async def _my_decisions():
        cli = WaitlistCLI.from_firestore()
        decisions = await cli.manager.get_registered_decisions(entrant_id)
        _emit(
            [d.model_dump(mode="json") for d in decisions],
            output_format,
            f"Decisions: {entrant_id}",
            columns=["event_id", "decision_id", "status", "updated_at"],
        )

    _run(_my_decisions())


@app.command()
def notify(
    user_id: str = typer.Argument(..., help="ユーザーID"),
    event_id: str = typer.Argument(..., help="イベントID"),
    notification_type: str = typer.Option("INVITED", "--type", help="通知タイプ"),
    title: str = typer.Option(..., help="タイトル"),
    message: str = typer.Option(..., help="本文")
):
    """単一ユーザーへ通知"""

    async def _notify():
        cli = WaitlistCLI.from_firestore()
        ref = await cli.dispatcher.send_notification(user_id, event_id, notification_type, title, message)
        if ref is None:
            console.print("⏭️ 送信しませんでした（オプトアウトまたはプロフィールなし）", style="yellow")
        else:
            console.print(f"✅ 送信しました: {ref.path}", style="green")

    _run(_notify())


@app.command("notify-status")
def notify_status(
    event_id: str = typer.Argument(..., help="イベントID"),
    statuses: List[str] = typer.Argument(..., help="対象の選考ステータス（複数可）"),
    title: str = typer.Option(..., help="タイトル"),
    message: str = typer.Option(..., help="本文"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """選考ステータス別に一括通知"""

    async def _notify_status():
        cli = WaitlistCLI.from_firestore()
        if len(statuses) == 1:
            result = await cli.dispatcher.send_notifications_to_entrants_by_status(
                event_id, statuses[0], title, message
            )
        else:
            result = await cli.dispatcher.send_notifications_to_entrants(event_id, statuses, title, message)
        _emit(result.to_dict(), output_format, "Notification Result")

    _run(_notify_status())


@app.command("notify-waitlist")
def notify_waitlist(
    event_id: str = typer.Argument(..., help="イベントID"),
    title: str = typer.Option(..., help="タイトル"),
    message: str = typer.Option(..., help="本文"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """ウェイティングリストの全参加者へ通知"""

    async def _notify_waitlist():
        cli = WaitlistCLI.from_firestore()
        result = await cli.dispatcher.send_notifications_to_waiting_list_entrants(event_id, title, message)
        _emit(result.to_dict(), output_format, "Notification Result")

    _run(_notify_waitlist())


@app.command()
def inbox(
    user_id: str = typer.Argument(..., help="ユーザーID"),
    unread: bool = typer.Option(False, "--unread", help="未読のみ"),
    output_format: str = typer.Option("table", "--format", help=FORMAT_HELP)
):
    """ユーザーの通知一覧"""

    async def _inbox():
        cli = WaitlistCLI.from_firestore()
        if unread:
            notifications = await cli.dispatcher.get_unread_notifications(user_id)
        else:
            notifications = await cli.dispatcher.get_user_notifications(user_id)
        _emit(
            [n.model_dump(mode="json") for n in notifications],
            output_format,
            f"Notifications: {user_id}",
            columns=["notification_id", "type", "title", "read", "timestamp"],
        )

    _run(_inbox())


@app.command("mark-read")
def mark_read(
    user_id: str = typer.Argument(..., help="ユーザーID"),
    notification_id: str = typer.Argument(..., help="通知ID")
):
    """通知を既読にする"""

    async def _mark_read():
        cli = WaitlistCLI.from_firestore()
        await cli.dispatcher.mark_notification_read(user_id, notification_id)
        console.print("✅ 既読にしました", style="green")

    _run(_mark_read())


@app.command()
def demo(
    event_id: str = typer.Option("event-123", help="イベントID"),
    entrant_id: str = typer.Option("user-456", help="参加者のユーザーID")
):
    """インメモリストアで参加→通知→離脱の流れを実行"""

    async def _demo():
        db = InMemoryDatabase()
        cli = WaitlistCLI.in_memory(db)
        await cli.stores.profiles.put(
            entrant_id, UserProfile(user_id=entrant_id, registered_event_ids=["other"])
        )

        first = await cli.manager.join(event_id, entrant_id)
        second = await cli.manager.join(event_id, entrant_id)
        batch = await cli.dispatcher.send_notifications_to_entrants_by_status(
            event_id, "PENDING", "Waitlist", "You are on the waiting list."
        )
        await cli.manager.leave(event_id, entrant_id, first.entry_id)
        profile = await cli.stores.profiles.get(entrant_id)

        console.print(Panel.fit(
            f"join #1: {first.to_dict()}\n"
            f"join #2: {second.to_dict()}\n"
            f"notify PENDING: {batch.to_dict()}\n"
            f"registeredEventIds after leave: {profile.registered_event_ids}",
            title="Demo (in-memory)"
        ))

        table = Table(title="Store Stats")
        table.add_column("Metric", style="cyan")
        table.add_column("Value")
        for key, value in db.stats.items():
            table.add_row(key, str(value))
        console.print(table)

    _run(_demo())


if __name__ == "__main__":
    app()
