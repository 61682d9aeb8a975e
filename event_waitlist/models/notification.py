"""
Notification エンティティモデル
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..exceptions import InvalidArgumentError
from .decision import DecisionStatus
from .timestamps import parse_timestamp, utcnow


class NotificationType(str, Enum):
    """通知タイプ列挙（選考ステータス + 補助マーカー）"""
    PENDING = "PENDING"
    INVITED = "INVITED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    LOST = "LOST"
    ENROLLED = "ENROLLED"                          # ウェイティングリスト登録者向け
    REPLACEMENT_SELECTED = "REPLACEMENT_SELECTED"  # 繰り上げ当選

    @classmethod
    def parse(cls, value: Any) -> "NotificationType":
        if isinstance(value, cls):
            return value
        if isinstance(value, DecisionStatus):
            return cls(value.value)
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidArgumentError(f"Unknown notification type: {value!r}")


class Notification(BaseModel):
    """通知エンティティ"""

    notification_id: Optional[str] = Field(None, description="ドキュメントID（保存時は含めない）")
    user_id: str = Field(..., description="受信ユーザーID")
    event_id: Optional[str] = Field(None, description="関連イベントID")
    type: NotificationType = Field(..., description="通知タイプ")
    title: str = ""
    message: str = ""
    read: bool = False
    timestamp: datetime = Field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換（Firestore保存用）"""
        return {
            "userId": self.user_id,
            "eventId": self.event_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        notification_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> "Notification":
        """辞書から Notification インスタンスを作成"""
        return cls(
            notification_id=notification_id,
            # 親ドキュメントのユーザーIDを優先
            user_id=user_id or data.get("userId"),
            event_id=data.get("eventId"),
            type=NotificationType.parse(data.get("type")),
            title=data.get("title") or "",
            message=data.get("message") or "",
            read=bool(data.get("read") or False),
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
        )
