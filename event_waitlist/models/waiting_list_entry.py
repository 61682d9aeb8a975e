"""
WaitingListEntry エンティティモデル
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .timestamps import parse_timestamp, utcnow


class WaitingListEntry(BaseModel):
    """ウェイティングリストエントリ"""

    entry_id: Optional[str] = Field(None, description="ドキュメントID（保存時は含めない）")
    event_id: Optional[str] = Field(None, description="イベントID")
    entrant_id: Optional[str] = Field(None, description="参加者のユーザーID")
    join_timestamp: datetime = Field(default_factory=utcnow, description="参加登録時刻")
    invited_at: Optional[datetime] = Field(None, description="招待時刻")

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換（Firestore保存用）"""
        return {
            "eventId": self.event_id,
            "entrantId": self.entrant_id,
            "joinTimestamp": self.join_timestamp,
            "invitedAt": self.invited_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        entry_id: Optional[str] = None,
        event_id: Optional[str] = None
    ) -> "WaitingListEntry":
        """辞書から WaitingListEntry インスタンスを作成"""
        return cls(
            entry_id=entry_id,
            event_id=data.get("eventId") or event_id,
            entrant_id=data.get("entrantId"),
            join_timestamp=parse_timestamp(data.get("joinTimestamp")) or utcnow(),
            invited_at=parse_timestamp(data.get("invitedAt")),
        )
