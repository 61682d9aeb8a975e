"""
データモデル - Event Waitlist Pipeline

ウェイティングリスト・選考結果・プロフィール・通知のエンティティと
ストア契約が含まれています。
"""

from .decision import Decision, DecisionStatus, event_id_from_path
from .waiting_list_entry import WaitingListEntry
from .user_profile import UserProfile
from .notification import Notification, NotificationType
from .results import (
    BatchResult,
    BatchStatus,
    JoinResult,
    JoinStatus,
    MultiStatusResult,
    Registration,
)
from .repository import (
    DecisionStore,
    DocumentRef,
    EntryStore,
    NotificationStore,
    ProfileStore,
    Stores,
)

__all__ = [
    # Decision関連
    "Decision",
    "DecisionStatus",
    "event_id_from_path",

    # エンティティ
    "WaitingListEntry",
    "UserProfile",
    "Notification",
    "NotificationType",

    # 結果
    "BatchResult",
    "BatchStatus",
    "JoinResult",
    "JoinStatus",
    "MultiStatusResult",
    "Registration",

    # ストア契約
    "DecisionStore",
    "DocumentRef",
    "EntryStore",
    "NotificationStore",
    "ProfileStore",
    "Stores",
]
