"""
Firestore接続・ストア実装

google-cloud-firestore の AsyncClient を使って各ストア契約を実装します。
すべての呼び出しは FirestoreClient.run() を経由し、失敗は StoreError に変換されます。
"""

import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from ..config import FirestoreConfig
from ..exceptions import StoreError
from ..models.decision import Decision, DecisionStatus
from ..models.notification import Notification
from ..models.repository import (
    DECISIONS_SUBCOLLECTION,
    EVENTS_COLLECTION,
    NOTIFICATIONS_SUBCOLLECTION,
    USERS_COLLECTION,
    WAITING_LIST_SUBCOLLECTION,
    DecisionStore,
    DocumentRef,
    EntryStore,
    NotificationStore,
    ProfileStore,
    Stores,
)
from ..models.user_profile import UserProfile
from ..models.waiting_list_entry import WaitingListEntry

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FirestoreClient:
    """
    Firestore接続クライアント
    - 非同期クライアントの遅延生成
    - コレクション参照の組み立て
    - エラーハンドリング・統計
    """

    def __init__(self, config: FirestoreConfig, client: Optional[firestore.AsyncClient] = None):
        self.config = config
        self._client = client

        # 統計情報
        self.stats = {
            "calls": 0,
            "errors": 0
        }

    @property
    def db(self) -> firestore.AsyncClient:
        if self._client is None:
            self.connect()
        return self._client

    def connect(self) -> None:
        """Firestore接続確立"""
        if self.config.emulator_host:
            # クライアントライブラリは環境変数でエミュレータを検出する
            os.environ["FIRESTORE_EMULATOR_HOST"] = self.config.emulator_host
            logger.info(f"Firestoreエミュレータ接続: {self.config.emulator_host}")
        else:
            logger.info(f"Firestore接続開始: {self.config.project_id}")

        self._client = firestore.AsyncClient(
            project=self.config.project_id,
            database=self.config.database_id
        )

    def disconnect(self) -> None:
        """接続切断"""
        logger.info("Firestore接続切断")
        self._client = None

    def event_subcollection(self, event_id: str, name: str):
        return self.db.collection(EVENTS_COLLECTION).document(event_id).collection(name)

    def user_document(self, user_id: str):
        return self.db.collection(USERS_COLLECTION).document(user_id)

    def notifications(self, user_id: str):
        return self.user_document(user_id).collection(NOTIFICATIONS_SUBCOLLECTION)

    async def run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Firestore呼び出しを実行し、失敗をStoreErrorに変換

        参照の組み立て（遅延接続を含む）も call の中で行うこと
        """
        self.stats["calls"] += 1
        try:
            return await call()
        except Exception as e:
            self.stats["errors"] += 1
            logger.error(f"Firestore操作エラー: {operation} - {str(e)}")
            raise StoreError(f"{operation}に失敗しました: {e}", operation=operation) from e

    def get_stats(self) -> Dict[str, Any]:
        """統計情報取得"""
        return {
            **self.stats,
            "connection_status": "connected" if self._client is not None else "disconnected"
        }


def _ref(doc_ref) -> DocumentRef:
    return DocumentRef(id=doc_ref.id, path=doc_ref.path)


class FirestoreEntryStore(EntryStore):
    """events/{eventId}/waitingList"""

    def __init__(self, client: FirestoreClient):
        self.client = client

    def _collection(self, event_id: str):
        return self.client.event_subcollection(event_id, WAITING_LIST_SUBCOLLECTION)

    async def add(self, event_id: str, entry: WaitingListEntry) -> DocumentRef:
        async def _add() -> DocumentRef:
            _, doc_ref = await self._collection(event_id).add(entry.to_dict())
            logger.info(f"ウェイティングリストに追加: {doc_ref.path}")
            return _ref(doc_ref)

        return await self.client.run("waitingList追加", _add)

    async def query(self, event_id: str, entrant_id: str) -> List[WaitingListEntry]:
        async def _query() -> List[WaitingListEntry]:
            query = self._collection(event_id).where(filter=FieldFilter("entrantId", "==", entrant_id))
            docs = await query.get()
            return [WaitingListEntry.from_dict(doc.to_dict(), entry_id=doc.id, event_id=event_id) for doc in docs]

        return await self.client.run("waitingList検索", _query)

    async def query_for_event(self, event_id: str) -> List[WaitingListEntry]:
        async def _query() -> List[WaitingListEntry]:
            docs = await self._collection(event_id).get()
            return [WaitingListEntry.from_dict(doc.to_dict(), entry_id=doc.id, event_id=event_id) for doc in docs]

        return await self.client.run("waitingList一覧取得", _query)

    async def delete(self, event_id: str, entry_id: str) -> None:
        async def _delete() -> None:
            await self._collection(event_id).document(entry_id).delete()

        await self.client.run("waitingList削除", _delete)
        logger.info(f"ウェイティングリストから削除: {event_id}/{entry_id}")


class FirestoreDecisionStore(DecisionStore):
    """events/{eventId}/decisions"""

    def __init__(self, client: FirestoreClient):
        self.client = client

    def _collection(self, event_id: str):
        return self.client.event_subcollection(event_id, DECISIONS_SUBCOLLECTION)

    @staticmethod
    def _load(docs) -> List[Decision]:
        # パスからのイベントID復元は eventId を持たない旧ドキュメント向け
        return [Decision.from_dict(doc.to_dict(), decision_id=doc.id, path=doc.reference.path) for doc in docs]

    async def _get_where(self, operation: str, build_query: Callable[[], Any]) -> List[Decision]:
        async def _query() -> List[Decision]:
            return self._load(await build_query().get())

        return await self.client.run(operation, _query)

    async def create(self, event_id: str, decision: Decision) -> DocumentRef:
        async def _create() -> DocumentRef:
            data = decision.to_dict()
            data["eventId"] = event_id
            _, doc_ref = await self._collection(event_id).add(data)
            logger.info(f"選考結果を作成: {doc_ref.path}")
            return _ref(doc_ref)

        return await self.client.run("decision作成", _create)

    async def get(self, event_id: str, decision_id: str) -> Optional[Decision]:
        async def _get() -> Optional[Decision]:
            doc = await self._collection(event_id).document(decision_id).get()
            if not doc.exists:
                return None
            return Decision.from_dict(doc.to_dict(), decision_id=doc.id, path=doc.reference.path)

        return await self.client.run("decision取得", _get)

    async def replace(self, event_id: str, decision_id: str, decision: Decision) -> None:
        async def _replace() -> None:
            data = decision.to_dict()
            data["eventId"] = event_id
            await self._collection(event_id).document(decision_id).set(data)

        await self.client.run("decision更新", _replace)
        logger.info(f"選考結果を更新: {event_id}/{decision_id} -> {decision.status.value}")

    async def query_by_user(self, event_id: str, entrant_id: str) -> List[Decision]:
        return await self._get_where(
            "decision検索（参加者）",
            lambda: self._collection(event_id).where(filter=FieldFilter("entrantId", "==", entrant_id)),
        )

    async def query_by_status(self, event_id: str, status: DecisionStatus) -> List[Decision]:
        status = DecisionStatus.parse(status)
        return await self._get_where(
            "decision検索（ステータス）",
            lambda: self._collection(event_id).where(filter=FieldFilter("status", "==", status.value)),
        )

    async def query_for_event(self, event_id: str) -> List[Decision]:
        return await self._get_where("decision一覧取得", lambda: self._collection(event_id))

    async def query_across_events(self, entrant_id: str) -> List[Decision]:
        # コレクショングループクエリ - entrantId の単一フィールドインデックス（グループ範囲）が必要
        return await self._get_where(
            "decision横断検索",
            lambda: self.client.db.collection_group(DECISIONS_SUBCOLLECTION).where(
                filter=FieldFilter("entrantId", "==", entrant_id)
            ),
        )

    async def delete(self, event_id: str, decision_id: str) -> None:
        async def _delete() -> None:
            await self._collection(event_id).document(decision_id).delete()

        await self.client.run("decision削除", _delete)
        logger.info(f"選考結果を削除: {event_id}/{decision_id}")


class FirestoreProfileStore(ProfileStore):
    """users/{userId}"""

    def __init__(self, client: FirestoreClient):
        self.client = client

    async def get(self, user_id: str) -> Optional[UserProfile]:
        async def _get() -> Optional[UserProfile]:
            doc = await self.client.user_document(user_id).get()
            if not doc.exists:
                return None
            return UserProfile.from_dict(doc.to_dict(), user_id=doc.id)

        return await self.client.run("profile取得", _get)

    async def put(self, user_id: str, profile: UserProfile) -> None:
        async def _put() -> None:
            await self.client.user_document(user_id).set(profile.to_dict())

        await self.client.run("profile保存", _put)
        logger.info(f"プロフィールを保存: {user_id}")

    async def patch(self, user_id: str, fields: Dict[str, Any]) -> None:
        async def _patch() -> None:
            await self.client.user_document(user_id).update(fields)

        await self.client.run("profile部分更新", _patch)
        logger.info(f"プロフィールを部分更新: {user_id} {sorted(fields)}")


class FirestoreNotificationStore(NotificationStore):
    """users/{userId}/notifications"""

    def __init__(self, client: FirestoreClient):
        self.client = client

    async def create(self, user_id: str, notification: Notification) -> DocumentRef:
        async def _create() -> DocumentRef:
            _, doc_ref = await self.client.notifications(user_id).add(notification.to_dict())
            logger.info(f"通知を作成: {doc_ref.path}")
            return _ref(doc_ref)

        return await self.client.run("notification作成", _create)

    async def query_for_user(self, user_id: str) -> List[Notification]:
        async def _query() -> List[Notification]:
            query = self.client.notifications(user_id).order_by(
                "timestamp", direction=firestore.Query.DESCENDING
            )
            docs = await query.get()
            return [Notification.from_dict(doc.to_dict(), notification_id=doc.id, user_id=user_id) for doc in docs]

        return await self.client.run("notification一覧取得", _query)

    async def patch(self, user_id: str, notification_id: str, fields: Dict[str, Any]) -> None:
        async def _patch() -> None:
            await self.client.notifications(user_id).document(notification_id).update(fields)

        await self.client.run("notification部分更新", _patch)


def create_firestore_stores(client: FirestoreClient) -> Stores:
    """Firestoreストア一式を作成"""
    return Stores(
        entries=FirestoreEntryStore(client),
        decisions=FirestoreDecisionStore(client),
        profiles=FirestoreProfileStore(client),
        notifications=FirestoreNotificationStore(client),
    )
