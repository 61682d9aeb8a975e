"""
インメモリ ストア実装

テスト・デモ用。ドキュメントをフルパスをキーとする辞書に保持し、
Firestoreのサブコレクション／コレクショングループの挙動を再現します。
操作ごとの失敗注入と読み書き統計を備えています。
"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from ..exceptions import StoreError
from ..models.decision import Decision, DecisionStatus
from ..models.notification import Notification
from ..models.repository import (
    DECISIONS_SUBCOLLECTION,
    WAITING_LIST_SUBCOLLECTION,
    DecisionStore,
    DocumentRef,
    EntryStore,
    NotificationStore,
    ProfileStore,
    Stores,
    event_subcollection_path,
    notifications_path,
    user_document_path,
)
from ..models.user_profile import UserProfile
from ..models.waiting_list_entry import WaitingListEntry

logger = logging.getLogger(__name__)

Snapshot = Tuple[str, str, Dict[str, Any]]  # (document_id, full_path, data)


class InMemoryDatabase:
    """
    パスキー型のインメモリドキュメントDB
    - サブコレクション・コレクショングループ検索
    - 失敗注入（操作名 + 任意のキー）
    - 統計情報
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.id_factory = id_factory or (lambda: uuid4().hex[:20])
        self._failures: Dict[Tuple[str, Optional[str]], Exception] = {}
        self.operations: List[Tuple[str, Optional[str]]] = []

        self.stats = {
            "reads": 0,
            "writes": 0,
            "deletes": 0,
        }

    def fail_on(self, operation: str, key: Optional[str] = None, error: Optional[Exception] = None) -> None:
        """操作を失敗させる。keyを指定するとそのイベント／ユーザーに限定"""
        self._failures[(operation, key)] = error or RuntimeError(f"{operation} unavailable")

    def clear_failures(self) -> None:
        self._failures.clear()

    async def enter(self, operation: str, key: Optional[str] = None) -> None:
        """操作の開始。注入された失敗があればStoreErrorを送出"""
        # 他のタスクに実行を譲り、実ストアの非同期性を再現する
        await asyncio.sleep(0)
        self.operations.append((operation, key))

        error = self._failures.get((operation, key)) or self._failures.get((operation, None))
        if error is not None:
            logger.error(f"インメモリストア操作エラー: {operation} ({key}) - {error}")
            raise StoreError(f"{operation} failed: {error}", operation=operation) from error

    def calls(self, operation: str) -> int:
        """指定操作の呼び出し回数"""
        return sum(1 for op, _ in self.operations if op == operation)

    @property
    def write_count(self) -> int:
        return self.stats["writes"] + self.stats["deletes"]

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        self.stats["reads"] += 1
        data = self.documents.get(path)
        return copy.deepcopy(data) if data is not None else None

    def add(self, collection_path: str, data: Dict[str, Any]) -> DocumentRef:
        document_id = self.id_factory()
        path = f"{collection_path}/{document_id}"
        self.set(path, data)
        return DocumentRef(id=document_id, path=path)

    def set(self, path: str, data: Dict[str, Any]) -> None:
        self.stats["writes"] += 1
        self.documents[path] = copy.deepcopy(data)
        logger.debug(f"インメモリ書き込み: {path}")

    def update(self, path: str, fields: Dict[str, Any]) -> None:
        if path not in self.documents:
            # Firestoreのupdate()と同様、存在しないドキュメントは失敗
            raise StoreError(f"No document to update: {path}", operation="update")
        self.stats["writes"] += 1
        self.documents[path].update(copy.deepcopy(fields))

    def delete(self, path: str) -> None:
        self.stats["deletes"] += 1
        self.documents.pop(path, None)

    def collection(self, collection_path: str) -> List[Snapshot]:
        """直下のドキュメント一覧"""
        prefix = collection_path.rstrip("/") + "/"
        results = []
        for path, data in self.documents.items():
            if path.startswith(prefix) and "/" not in path[len(prefix):]:
                results.append((path[len(prefix):], path, copy.deepcopy(data)))
        self.stats["reads"] += len(results)
        return results

    def collection_group(self, name: str) -> List[Snapshot]:
        """同名サブコレクションを横断したドキュメント一覧"""
        results = []
        for path, data in self.documents.items():
            segments = path.split("/")
            if len(segments) >= 2 and segments[-2] == name:
                results.append((segments[-1], path, copy.deepcopy(data)))
        self.stats["reads"] += len(results)
        return results

    def documents_under(self, collection_path: str) -> Dict[str, Dict[str, Any]]:
        """テスト検証用: コレクション直下のドキュメント（ID→データ）"""
        return {doc_id: data for doc_id, _, data in self.collection(collection_path)}


class InMemoryEntryStore(EntryStore):
    """ウェイティングリストエントリ（インメモリ）"""

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def _collection(self, event_id: str) -> str:
        return event_subcollection_path(event_id, WAITING_LIST_SUBCOLLECTION)

    def _load(self, event_id: str, snapshots: List[Snapshot]) -> List[WaitingListEntry]:
        return [
            WaitingListEntry.from_dict(data, entry_id=doc_id, event_id=event_id)
            for doc_id, _, data in snapshots
        ]

    async def add(self, event_id: str, entry: WaitingListEntry) -> DocumentRef:
        await self.db.enter("entries.add", event_id)
        return self.db.add(self._collection(event_id), entry.to_dict())

    async def query(self, event_id: str, entrant_id: str) -> List[WaitingListEntry]:
        await self.db.enter("entries.query", event_id)
        snapshots = [s for s in self.db.collection(self._collection(event_id)) if s[2].get("entrantId") == entrant_id]
        return self._load(event_id, snapshots)

    async def query_for_event(self, event_id: str) -> List[WaitingListEntry]:
        await self.db.enter("entries.query_for_event", event_id)
        return self._load(event_id, self.db.collection(self._collection(event_id)))

    async def delete(self, event_id: str, entry_id: str) -> None:
        await self.db.enter("entries.delete", event_id)
        self.db.delete(f"{self._collection(event_id)}/{entry_id}")


class InMemoryDecisionStore(DecisionStore):
    """選考結果（インメモリ）"""

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def _collection(self, event_id: str) -> str:
        return event_subcollection_path(event_id, DECISIONS_SUBCOLLECTION)

    @staticmethod
    def _load(snapshots: List[Snapshot]) -> List[Decision]:
        return [Decision.from_dict(data, decision_id=doc_id, path=path) for doc_id, path, data in snapshots]

    async def create(self, event_id: str, decision: Decision) -> DocumentRef:
        await self.db.enter("decisions.create", event_id)
        data = decision.to_dict()
        data["eventId"] = event_id
        return self.db.add(self._collection(event_id), data)

    async def get(self, event_id: str, decision_id: str) -> Optional[Decision]:
        await self.db.enter("decisions.get", event_id)
        path = f"{self._collection(event_id)}/{decision_id}"
        data = self.db.get(path)
        if data is None:
            return None
        return Decision.from_dict(data, decision_id=decision_id, path=path)

    async def replace(self, event_id: str, decision_id: str, decision: Decision) -> None:
        await self.db.enter("decisions.replace", event_id)
        data = decision.to_dict()
        data["eventId"] = event_id
        self.db.set(f"{self._collection(event_id)}/{decision_id}", data)

    async def query_by_user(self, event_id: str, entrant_id: str) -> List[Decision]:
        await self.db.enter("decisions.query_by_user", event_id)
        snapshots = self.db.collection(self._collection(event_id))
        return self._load([s for s in snapshots if s[2].get("entrantId") == entrant_id])

    async def query_by_status(self, event_id: str, status: DecisionStatus) -> List[Decision]:
        await self.db.enter("decisions.query_by_status", event_id)
        snapshots = self.db.collection(self._collection(event_id))
        return self._load([s for s in snapshots if s[2].get("status") == DecisionStatus.parse(status).value])

    async def query_for_event(self, event_id: str) -> List[Decision]:
        await self.db.enter("decisions.query_for_event", event_id)
        return self._load(self.db.collection(self._collection(event_id)))

    async def query_across_events(self, entrant_id: str) -> List[Decision]:
        await self.db.enter("decisions.query_across_events", entrant_id)
        snapshots = self.db.collection_group(DECISIONS_SUBCOLLECTION)
        return self._load([s for s in snapshots if s[2].get("entrantId") == entrant_id])

    async def delete(self, event_id: str, decision_id: str) -> None:
        await self.db.enter("decisions.delete", event_id)
        self.db.delete(f"{self._collection(event_id)}/{decision_id}")


class InMemoryProfileStore(ProfileStore):
    """ユーザープロフィール（インメモリ）"""

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def get(self, user_id: str) -> Optional[UserProfile]:
        await self.db.enter("profiles.get", user_id)
        data = self.db.get(user_document_path(user_id))
        if data is None:
            return None
        return UserProfile.from_dict(data, user_id=user_id)

    async def put(self, user_id: str, profile: UserProfile) -> None:
        await self.db.enter("profiles.put", user_id)
        self.db.set(user_document_path(user_id), profile.to_dict())

    async def patch(self, user_id: str, fields: Dict[str, Any]) -> None:
        await self.db.enter("profiles.patch", user_id)
        self.db.update(user_document_path(user_id), fields)


class InMemoryNotificationStore(NotificationStore):
    """通知（インメモリ）"""

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def create(self, user_id: str, notification: Notification) -> DocumentRef:
        await self.db.enter("notifications.create", user_id)
        return self.db.add(notifications_path(user_id), notification.to_dict())

    async def query_for_user(self, user_id: str) -> List[Notification]:
        await self.db.enter("notifications.query_for_user", user_id)
        notifications = [
            Notification.from_dict(data, notification_id=doc_id, user_id=user_id)
            for doc_id, _, data in self.db.collection(notifications_path(user_id))
        ]
        notifications.sort(key=lambda n: n.timestamp, reverse=True)
        return notifications

    async def patch(self, user_id: str, notification_id: str, fields: Dict[str, Any]) -> None:
        await self.db.enter("notifications.patch", user_id)
        self.db.update(f"{notifications_path(user_id)}/{notification_id}", fields)


def create_memory_stores(db: Optional[InMemoryDatabase] = None) -> Stores:
    """インメモリストア一式を作成"""
    db = db or InMemoryDatabase()
    return Stores(
        entries=InMemoryEntryStore(db),
        decisions=InMemoryDecisionStore(db),
        profiles=InMemoryProfileStore(db),
        notifications=InMemoryNotificationStore(db),
    )
