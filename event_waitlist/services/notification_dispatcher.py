"""
通知配信サービス

単一通知の送信と、選考ステータス・ウェイティングリスト単位の一括配信を行います。
ユーザーの notificationOptOut が true の場合は通知を作成しません。

一括配信は例外を送出せず、常に BatchResult / MultiStatusResult を返します。
参加者ごとの失敗はログに残してスキップし、実際に作成した通知だけを数えます。
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence, Union

from ..config import DispatchConfig
from ..exceptions import require_id
from ..models.decision import DecisionStatus
from ..models.notification import Notification, NotificationType
from ..models.repository import (
    DecisionStore,
    DocumentRef,
    EntryStore,
    NotificationStore,
    ProfileStore,
)
from ..models.results import BatchResult, BatchStatus, MultiStatusResult
from ..models.timestamps import utcnow

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    通知配信
    - オプトアウトを考慮した単一通知
    - ステータス別の一括配信（ファンアウト）
    - 通知一覧・既読化
    """

    def __init__(
        self,
        profiles: ProfileStore,
        notifications: NotificationStore,
        decisions: DecisionStore,
        entries: EntryStore,
        config: Optional[DispatchConfig] = None
    ):
        self.profiles = profiles
        self.notifications = notifications
        self.decisions = decisions
        self.entries = entries
        self.config = config or DispatchConfig()

    async def send_notification(
        self,
        user_id: str,
        event_id: str,
        notification_type: Union[NotificationType, DecisionStatus, str],
        title: str,
        message: str
    ) -> Optional[DocumentRef]:
        """
        ユーザーに通知を送信

        Returns:
            作成した通知への参照。プロフィールが存在しない、
            またはオプトアウトしている場合は None

        Raises:
            InvalidArgumentError: 引数が不正な場合（ストア呼び出し前）
            StoreError: ストア呼び出しの失敗
        """
        require_id("user_id", user_id)
        require_id("event_id", event_id)
        notification_type = NotificationType.parse(notification_type)

        profile = await self.profiles.get(user_id)
        if profile is None:
            logger.debug(f"プロフィールなし、通知をスキップ: {user_id}")
            return None

        if profile.notification_opt_out:
            logger.debug(f"通知オプトアウト中、通知をスキップ: {user_id}")
            return None

        notification = Notification(
            user_id=user_id,
            event_id=event_id,
            type=notification_type,
            title=title,
            message=message,
            read=False,
            timestamp=utcnow(),
        )
        return await self.notifications.create(user_id, notification)

    async def send_notifications_to_entrants_by_status(
        self,
        event_id: str,
        status: Union[DecisionStatus, str],
        title: str,
        message: str
    ) -> BatchResult:
        """指定ステータスの選考結果を持つ全参加者へ通知"""
        try:
            require_id("event_id", event_id)
            status = DecisionStatus.parse(status)
        except Exception as e:
            logger.error(f"一括通知の引数エラー: {str(e)}")
            return BatchResult.error(str(e))

        try:
            decisions = await self.decisions.query_by_status(event_id, status)
        except Exception as e:
            logger.error(f"選考結果の取得に失敗: event={event_id} status={status.value} - {str(e)}")
            return BatchResult.error("Failed to get decisions")

        if not decisions:
            return BatchResult.success(0, "No entrants found")

        entrant_ids = [d.entrant_id for d in decisions if d.entrant_id]
        skipped = len(decisions) - len(entrant_ids)
        if skipped:
            logger.warning(f"entrantIdのない選考結果をスキップ: event={event_id} 件数={skipped}")

        sent = await self._fan_out(entrant_ids, event_id, NotificationType.parse(status), title, message)
        logger.info(f"ステータス別一括通知: event={event_id} status={status.value} 送信={sent}/{len(decisions)}")
        return BatchResult.success(sent, f"Sent {sent} notifications")

    async def send_notifications_to_waiting_list_entrants(
        self,
        event_id: str,
        title: str,
        message: str
    ) -> BatchResult:
        """ウェイティングリストの全参加者へ ENROLLED 通知"""
        try:
            require_id("event_id", event_id)
        except Exception as e:
            logger.error(f"一括通知の引数エラー: {str(e)}")
            return BatchResult.error(str(e))

        try:
            entries = await self.entries.query_for_event(event_id)
        except Exception as e:
            logger.error(f"ウェイティングリストの取得に失敗: event={event_id} - {str(e)}")
            return BatchResult.error("Failed to get waiting list")

        if not entries:
            return BatchResult.success(0, "No entrants found on waiting list")

        entrant_ids = [e.entrant_id for e in entries if e.entrant_id]
        sent = await self._fan_out(entrant_ids, event_id, NotificationType.ENROLLED, title, message)
        logger.info(f"ウェイティングリスト一括通知: event={event_id} 送信={sent}/{len(entries)}")
        return BatchResult.success(sent, f"Sent {sent} notifications")

    async def send_notifications_to_entrants(
        self,
        event_id: str,
        statuses: Union[Sequence[Union[DecisionStatus, str]], DecisionStatus, str, None],
        title: str,
        message: str
    ) -> MultiStatusResult:
        """複数ステータスへの一括通知（ステータスごとに並行実行して集計）"""
        if not statuses:
            return MultiStatusResult(status=BatchStatus.ERROR, message="No statuses selected")

        if isinstance(statuses, str):
            # 単一ステータスの文字列を1文字ずつ扱わない
            statuses = [statuses]

        # 順序を保ったまま重複を除去
        unique_statuses = list(dict.fromkeys(str(getattr(s, "value", s)).strip().upper() for s in statuses))

        results: List[BatchResult] = await asyncio.gather(*(
            self.send_notifications_to_entrants_by_status(event_id, status, title, message)
            for status in unique_statuses
        ))

        status_counts = {status: result.count for status, result in zip(unique_statuses, results)}
        total_sent = sum(status_counts.values())
        overall = BatchStatus.SUCCESS if any(r.ok for r in results) else BatchStatus.ERROR

        return MultiStatusResult(
            status=overall,
            total_sent=total_sent,
            status_counts=status_counts,
            message=f"Sent {total_sent} notifications",
        )

    async def get_user_notifications(self, user_id: str) -> List[Notification]:
        """ユーザーの通知一覧（新しい順）"""
        require_id("user_id", user_id)
        return await self.notifications.query_for_user(user_id)

    async def get_unread_notifications(self, user_id: str) -> List[Notification]:
        """未読通知（新しい順）"""
        # 複合インデックスを避けるため全件取得してから絞り込む
        notifications = await self.get_user_notifications(user_id)
        return [n for n in notifications if not n.read]

    async def mark_notification_read(self, user_id: str, notification_id: str) -> None:
        """通知を既読にする（read フィールドのみ更新）"""
        require_id("user_id", user_id)
        require_id("notification_id", notification_id)
        await self.notifications.patch(user_id, notification_id, {"read": True})

    async def _fan_out(
        self,
        user_ids: Iterable[str],
        event_id: str,
        notification_type: NotificationType,
        title: str,
        message: str
    ) -> int:
        """参加者ごとの送信を並行実行し、作成できた通知数を返す"""
        user_ids = list(user_ids)
        limit = self.config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit else None

        async def _send_one(user_id: str) -> Optional[DocumentRef]:
            if semaphore is None:
                return await self.send_notification(user_id, event_id, notification_type, title, message)
            async with semaphore:
                return await self.send_notification(user_id, event_id, notification_type, title, message)

        results = await asyncio.gather(*(_send_one(u) for u in user_ids), return_exceptions=True)

        sent = 0
        for user_id, result in zip(user_ids, results):
            if isinstance(result, Exception):
                logger.warning(f"通知送信に失敗（スキップ）: user={user_id} event={event_id} - {str(result)}")
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                sent += 1
        return sent
