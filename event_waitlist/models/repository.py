"""
ストア契約（リポジトリ基底クラス）

コアロジックが利用する4つの非同期ストアのインターフェースを定義します。
Firestore実装は integrations.firestore_client、
インメモリ実装は integrations.memory_store にあります。

ドキュメント配置:
    events/{eventId}/waitingList/{entryId}
    events/{eventId}/decisions/{decisionId}
    users/{userId}
    users/{userId}/notifications/{notificationId}
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .decision import Decision, DecisionStatus
from .notification import Notification
from .user_profile import UserProfile
from .waiting_list_entry import WaitingListEntry

EVENTS_COLLECTION = "events"
USERS_COLLECTION = "users"
WAITING_LIST_SUBCOLLECTION = "waitingList"
DECISIONS_SUBCOLLECTION = "decisions"
NOTIFICATIONS_SUBCOLLECTION = "notifications"


def event_subcollection_path(event_id: str, subcollection: str) -> str:
    return f"{EVENTS_COLLECTION}/{event_id}/{subcollection}"


def user_document_path(user_id: str) -> str:
    return f"{USERS_COLLECTION}/{user_id}"


def notifications_path(user_id: str) -> str:
    return f"{user_document_path(user_id)}/{NOTIFICATIONS_SUBCOLLECTION}"


class DocumentRef(BaseModel):
    """作成されたドキュメントへの参照"""
    id: str
    path: str

    @property
    def parent_path(self) -> str:
        return self.path.rsplit("/", 1)[0]


class EntryStore(ABC):
    """ウェイティングリストエントリのストア"""

    @abstractmethod
    async def add(self, event_id: str, entry: WaitingListEntry) -> DocumentRef:
        """エントリを新しいIDで作成"""

    @abstractmethod
    async def query(self, event_id: str, entrant_id: str) -> List[WaitingListEntry]:
        """イベント内の参加者のエントリを検索"""

    @abstractmethod
    async def query_for_event(self, event_id: str) -> List[WaitingListEntry]:
        """イベントの全エントリ"""

    @abstractmethod
    async def delete(self, event_id: str, entry_id: str) -> None:
        """エントリを削除（存在しなくてもエラーにしない）"""


class DecisionStore(ABC):
    """選考結果のストア"""

    @abstractmethod
    async def create(self, event_id: str, decision: Decision) -> DocumentRef:
        """選考結果を新しいIDで作成"""

    @abstractmethod
    async def get(self, event_id: str, decision_id: str) -> Optional[Decision]:
        """IDで取得。存在しなければNone"""

    @abstractmethod
    async def replace(self, event_id: str, decision_id: str, decision: Decision) -> None:
        """ドキュメント全体を置き換え"""

    @abstractmethod
    async def query_by_user(self, event_id: str, entrant_id: str) -> List[Decision]:
        """イベント内の参加者の選考結果"""

    @abstractmethod
    async def query_by_status(self, event_id: str, status: DecisionStatus) -> List[Decision]:
        """イベント内の指定ステータスの選考結果"""

    @abstractmethod
    async def query_for_event(self, event_id: str) -> List[Decision]:
        """イベントの全選考結果"""

    @abstractmethod
    async def query_across_events(self, entrant_id: str) -> List[Decision]:
        """全イベント横断で参加者の選考結果を検索（コレクショングループクエリ）"""

    @abstractmethod
    async def delete(self, event_id: str, decision_id: str) -> None:
        """選考結果を削除"""


class ProfileStore(ABC):
    """ユーザープロフィールのストア"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        """プロフィールを取得。存在しなければNone"""

    @abstractmethod
    async def put(self, user_id: str, profile: UserProfile) -> None:
        """プロフィール全体を置き換え"""

    @abstractmethod
    async def patch(self, user_id: str, fields: Dict[str, Any]) -> None:
        """指定フィールドのみ更新"""


class NotificationStore(ABC):
    """通知のストア"""

    @abstractmethod
    async def create(self, user_id: str, notification: Notification) -> DocumentRef:
        """通知を新しいIDで作成"""

    @abstractmethod
    async def query_for_user(self, user_id: str) -> List[Notification]:
        """ユーザーの通知（新しい順）"""

    @abstractmethod
    async def patch(self, user_id: str, notification_id: str, fields: Dict[str, Any]) -> None:
        """指定フィールドのみ更新（既読化など）"""


class Stores:
    """4つのストアの組"""

    def __init__(
        self,
        entries: EntryStore,
        decisions: DecisionStore,
        profiles: ProfileStore,
        notifications: NotificationStore
    ):
        self.entries = entries
        self.decisions = decisions
        self.profiles = profiles
        self.notifications = notifications
