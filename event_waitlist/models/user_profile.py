"""
UserProfile エンティティモデル

通知の受信設定と、参加登録済みイベントIDの集合を保持します。
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

# to_dict/from_dict で明示的に扱うフィールド
_KNOWN_FIELDS = {
    "userId", "name", "email", "deviceId", "role",
    "notificationOptOut", "registeredEventIds",
}


class UserProfile(BaseModel):
    """ユーザープロフィール"""

    user_id: str = Field(..., description="ユーザーID（auth uid）")
    name: Optional[str] = None
    email: Optional[str] = None
    device_id: Optional[str] = None
    role: Optional[str] = None

    notification_opt_out: bool = Field(default=False, description="通知を受け取らない")
    registered_event_ids: List[str] = Field(default_factory=list, description="登録済みイベントID（集合）")

    # 本パッケージが扱わないフィールド（位置情報など）を置換保存時に失わないため保持する
    extra_fields: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("registered_event_ids")
    @classmethod
    def deduplicate_event_ids(cls, v: List[str]) -> List[str]:
        """重複を除去（集合として扱う）"""
        return list(dict.fromkeys(event_id for event_id in v if event_id))

    def is_registered_for(self, event_id: str) -> bool:
        return event_id in self.registered_event_ids

    def register_event(self, event_id: str) -> bool:
        """イベントIDを追加。追加した場合True"""
        if self.is_registered_for(event_id):
            return False
        self.registered_event_ids.append(event_id)
        return True

    def unregister_event(self, event_id: str) -> bool:
        """イベントIDを削除。削除した場合True"""
        if not self.is_registered_for(event_id):
            return False
        self.registered_event_ids = [e for e in self.registered_event_ids if e != event_id]
        return True

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換（Firestore保存用）"""
        data = dict(self.extra_fields)
        data.update({
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "deviceId": self.device_id,
            "role": self.role,
            "notificationOptOut": self.notification_opt_out,
            "registeredEventIds": list(self.registered_event_ids),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], user_id: Optional[str] = None) -> "UserProfile":
        """辞書から UserProfile インスタンスを作成"""
        return cls(
            user_id=data.get("userId") or user_id,
            name=data.get("name"),
            email=data.get("email"),
            device_id=data.get("deviceId"),
            role=data.get("role"),
            # 未設定・nullは通知を受け取る扱い
            notification_opt_out=bool(data.get("notificationOptOut") or False),
            registered_event_ids=list(data.get("registeredEventIds") or []),
            extra_fields={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )
