"""
Decision エンティティモデル

イベント×参加者ごとの選考結果と、そのステータス遷移を表現します。
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import InvalidArgumentError, InvalidTransitionError
from .timestamps import parse_timestamp, utcnow


class DecisionStatus(str, Enum):
    """選考ステータス列挙"""
    PENDING = "PENDING"      # 抽選待ち
    INVITED = "INVITED"      # 当選・招待済み
    ACCEPTED = "ACCEPTED"    # 参加確定
    DECLINED = "DECLINED"    # 辞退
    LOST = "LOST"            # 落選

    @classmethod
    def parse(cls, value: Any) -> "DecisionStatus":
        """文字列またはEnumからステータスを取得（大文字小文字は区別しない）"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidArgumentError(f"Unknown decision status: {value!r}")

    def allowed_transitions(self) -> frozenset:
        """このステータスから遷移可能なステータス"""
        transitions = {
            DecisionStatus.PENDING: {DecisionStatus.INVITED},
            DecisionStatus.INVITED: {
                DecisionStatus.ACCEPTED,
                DecisionStatus.DECLINED,
                DecisionStatus.LOST,
            },
            DecisionStatus.DECLINED: {DecisionStatus.LOST},
            DecisionStatus.ACCEPTED: set(),  # 終了状態
            DecisionStatus.LOST: set(),      # 終了状態
        }
        return frozenset(transitions[self])

    def can_transition_to(self, target: "DecisionStatus") -> bool:
        """ステータス遷移が可能かチェック"""
        return target in self.allowed_transitions()

    @property
    def is_terminal(self) -> bool:
        return not self.allowed_transitions()


def event_id_from_path(path: Optional[str]) -> Optional[str]:
    """`events/{eventId}/decisions/{decisionId}` 形式のパスからイベントIDを取り出す

    eventIdフィールドを持たない旧ドキュメントの読み込み時のみ使用する。
    """
    if not path:
        return None
    segments = path.strip("/").split("/")
    if len(segments) < 4:
        return None
    if segments[-4] == "events" and segments[-2] == "decisions" and segments[-3]:
        return segments[-3]
    return None


class Decision(BaseModel):
    """選考結果エンティティ"""

    model_config = ConfigDict(validate_assignment=True)

    decision_id: Optional[str] = Field(None, description="ドキュメントID（保存時は含めない）")
    event_id: Optional[str] = Field(None, description="所属イベントID")
    entrant_id: Optional[str] = Field(None, description="参加者のユーザーID")
    entry_id: Optional[str] = Field(None, description="対応するウェイティングリストエントリID")

    status: DecisionStatus = Field(default=DecisionStatus.PENDING)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    responded_at: Optional[datetime] = Field(None, description="参加者が応答した時刻")

    def transition_to(self, target: DecisionStatus, responded: bool = False) -> None:
        """ステータス遷移を実行

        Raises:
            InvalidTransitionError: 遷移表にない遷移の場合
        """
        target = DecisionStatus.parse(target)
        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(self.status.value, target.value)

        now = utcnow()
        self.status = target
        self.updated_at = now
        if responded:
            self.responded_at = now

    def belongs_to(self, entrant_id: str) -> bool:
        return self.entrant_id is not None and self.entrant_id == entrant_id

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換（Firestore保存用）"""
        return {
            "eventId": self.event_id,
            "entrantId": self.entrant_id,
            "entryId": self.entry_id,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "respondedAt": self.responded_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        decision_id: Optional[str] = None,
        path: Optional[str] = None
    ) -> "Decision":
        """辞書から Decision インスタンスを作成"""
        updated_at = parse_timestamp(data.get("updatedAt")) or utcnow()
        return cls(
            decision_id=decision_id,
            event_id=data.get("eventId") or event_id_from_path(path),
            entrant_id=data.get("entrantId"),
            entry_id=data.get("entryId"),
            status=DecisionStatus.parse(data.get("status") or DecisionStatus.PENDING),
            # 旧ドキュメントにはcreatedAtがない
            created_at=parse_timestamp(data.get("createdAt")) or updated_at,
            updated_at=updated_at,
            responded_at=parse_timestamp(data.get("respondedAt")),
        )
