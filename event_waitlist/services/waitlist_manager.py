"""
ウェイティングリスト管理サービス

参加・離脱で WaitingListEntry と Decision を作成／削除し、
ユーザープロフィールの registeredEventIds を整合させます。

複数ドキュメントにまたがるトランザクションは使用しません。途中で失敗した場合は
join()/leave() を再実行することで回復できるよう、どちらも冪等に作られています。
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..exceptions import DocumentNotFoundError, InvalidArgumentError, require_id
from ..models.decision import Decision, DecisionStatus
from ..models.repository import DecisionStore, EntryStore, ProfileStore
from ..models.results import JoinResult, Registration
from ..models.timestamps import utcnow
from ..models.waiting_list_entry import WaitingListEntry

logger = logging.getLogger(__name__)


class WaitlistManager:
    """
    ウェイティングリスト管理
    - 参加（1イベント1参加者1エントリ）
    - 離脱
    - 招待への応答（承諾・辞退）
    - 主催者向け登録状況
    """

    def __init__(self, entries: EntryStore, decisions: DecisionStore, profiles: ProfileStore):
        self.entries = entries
        self.decisions = decisions
        self.profiles = profiles

    async def join(self, event_id: str, entrant_id: str) -> JoinResult:
        """
        ウェイティングリストに参加

        既にエントリがある場合は副作用なしで already_exists を返す。

        Args:
            event_id: イベントID
            entrant_id: 参加者のユーザーID

        Returns:
            JoinResult: status と作成したエントリ／選考結果のID

        Raises:
            InvalidArgumentError: IDが空の場合（ストア呼び出し前）
            StoreError: ストア呼び出しの失敗
        """
        require_id("event_id", event_id)
        require_id("entrant_id", entrant_id)

        existing = await self.entries.query(event_id, entrant_id)
        if existing:
            logger.info(f"既にウェイティングリストに登録済み: event={event_id} entrant={entrant_id}")
            return JoinResult.already_exists()

        now = utcnow()
        entry = WaitingListEntry(event_id=event_id, entrant_id=entrant_id, join_timestamp=now)
        entry_ref = await self.entries.add(event_id, entry)

        decision = Decision(
            event_id=event_id,
            entrant_id=entrant_id,
            entry_id=entry_ref.id,
            status=DecisionStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        decision_ref = await self.decisions.create(event_id, decision)

        await self._add_registered_event(entrant_id, event_id)

        logger.info(
            f"ウェイティングリストに参加: event={event_id} entrant={entrant_id} "
            f"entry={entry_ref.id} decision={decision_ref.id}"
        )
        return JoinResult.success(entry_ref.id, decision_ref.id)

    async def leave(
        self,
        event_id: str,
        entrant_id: str,
        entry_id: str,
        decision_id: Optional[str] = None
    ) -> None:
        """
        ウェイティングリストから離脱

        decision_id が未指定の場合は (event_id, entrant_id) で検索して削除する。
        見つからなければ削除をスキップする（エラーにしない）。

        Raises:
            InvalidArgumentError: IDが空の場合（ストア呼び出し前）
            StoreError: ストア呼び出しの失敗
        """
        require_id("event_id", event_id)
        require_id("entrant_id", entrant_id)
        require_id("entry_id", entry_id)

        if decision_id:
            decision_ids = [decision_id]
        else:
            found = await self.decisions.query_by_user(event_id, entrant_id)
            decision_ids = [d.decision_id for d in found if d.decision_id]
            if not decision_ids:
                logger.debug(f"削除対象の選考結果なし: event={event_id} entrant={entrant_id}")

        for target_id in decision_ids:
            await self.decisions.delete(event_id, target_id)

        await self.entries.delete(event_id, entry_id)

        await self._remove_registered_event(entrant_id, event_id)

        logger.info(f"ウェイティングリストから離脱: event={event_id} entrant={entrant_id} entry={entry_id}")

    async def accept_invitation(self, event_id: str, entrant_id: str, decision_id: str) -> Decision:
        """招待を承諾（INVITED → ACCEPTED）"""
        return await self._respond(event_id, entrant_id, decision_id, DecisionStatus.ACCEPTED)

    async def decline_invitation(self, event_id: str, entrant_id: str, decision_id: str) -> Decision:
        """招待を辞退（INVITED → DECLINED）

        繰り上げ当選の選出は行わない。
        """
        return await self._respond(event_id, entrant_id, decision_id, DecisionStatus.DECLINED)

    async def get_event_registrations(self, event_id: str) -> List[Registration]:
        """イベントの登録状況（選考結果ごとにエントリ情報を結合）"""
        require_id("event_id", event_id)

        entries, decisions = await asyncio.gather(
            self.entries.query_for_event(event_id),
            self.decisions.query_for_event(event_id),
        )

        entry_by_entrant: Dict[str, WaitingListEntry] = {
            entry.entrant_id: entry for entry in entries if entry.entrant_id
        }

        registrations = []
        for decision in decisions:
            entry = entry_by_entrant.get(decision.entrant_id) if decision.entrant_id else None
            registrations.append(Registration(
                entrant_id=decision.entrant_id,
                decision_id=decision.decision_id,
                entry_id=entry.entry_id if entry else decision.entry_id,
                status=decision.status,
                updated_at=decision.updated_at,
                responded_at=decision.responded_at,
                join_timestamp=entry.join_timestamp if entry else None,
                invited_at=entry.invited_at if entry else None,
            ))

        return registrations

    async def get_registered_decisions(self, entrant_id: str) -> List[Decision]:
        """参加者の全イベント横断の選考結果"""
        require_id("entrant_id", entrant_id)
        return await self.decisions.query_across_events(entrant_id)

    async def _respond(
        self,
        event_id: str,
        entrant_id: str,
        decision_id: str,
        target: DecisionStatus
    ) -> Decision:
        """参加者による招待への応答"""
        require_id("event_id", event_id)
        require_id("entrant_id", entrant_id)
        require_id("decision_id", decision_id)

        decision = await self.decisions.get(event_id, decision_id)
        if decision is None:
            raise DocumentNotFoundError("Decision", decision_id)
        if not decision.belongs_to(entrant_id):
            raise InvalidArgumentError(f"Decision {decision_id} does not belong to {entrant_id}")

        # 不正な遷移は InvalidTransitionError
        decision.transition_to(target, responded=True)
        await self.decisions.replace(event_id, decision_id, decision)

        logger.info(f"招待に応答: event={event_id} entrant={entrant_id} status={target.value}")
        return decision

    async def _add_registered_event(self, user_id: str, event_id: str) -> None:
        profile = await self.profiles.get(user_id)
        if profile is None:
            logger.warning(f"プロフィールが見つかりません（登録イベント追加をスキップ）: {user_id}")
            return

        if profile.register_event(event_id):
            await self.profiles.patch(user_id, {"registeredEventIds": profile.registered_event_ids})

    async def _remove_registered_event(self, user_id: str, event_id: str) -> None:
        profile = await self.profiles.get(user_id)
        if profile is None:
            logger.warning(f"プロフィールが見つかりません（登録イベント削除をスキップ）: {user_id}")
            return

        if profile.unregister_event(event_id):
            await self.profiles.patch(user_id, {"registeredEventIds": profile.registered_event_ids})
