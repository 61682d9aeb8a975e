"""
サービス操作の結果モデル
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .decision import DecisionStatus


class JoinStatus(str, Enum):
    """参加登録結果"""
    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"


class BatchStatus(str, Enum):
    """一括配信結果"""
    SUCCESS = "success"
    ERROR = "error"


class JoinResult(BaseModel):
    """join() の結果"""
    status: JoinStatus
    entry_id: Optional[str] = None
    decision_id: Optional[str] = None

    @classmethod
    def success(cls, entry_id: str, decision_id: str) -> "JoinResult":
        return cls(status=JoinStatus.SUCCESS, entry_id=entry_id, decision_id=decision_id)

    @classmethod
    def already_exists(cls) -> "JoinResult":
        return cls(status=JoinStatus.ALREADY_EXISTS)

    def to_dict(self) -> Dict[str, Any]:
        """UI向けの辞書形式（IDは存在する場合のみ含める）"""
        data: Dict[str, Any] = {"status": self.status.value}
        if self.entry_id is not None:
            data["entryId"] = self.entry_id
        if self.decision_id is not None:
            data["decisionId"] = self.decision_id
        return data


class BatchResult(BaseModel):
    """一括通知配信の結果。例外の代わりに常にこの形で返す"""
    status: BatchStatus
    count: int = 0
    message: str = ""

    @classmethod
    def success(cls, count: int, message: str) -> "BatchResult":
        return cls(status=BatchStatus.SUCCESS, count=count, message=message)

    @classmethod
    def error(cls, message: str) -> "BatchResult":
        return cls(status=BatchStatus.ERROR, count=0, message=message)

    @property
    def ok(self) -> bool:
        return self.status == BatchStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "count": self.count, "message": self.message}


class MultiStatusResult(BaseModel):
    """複数ステータスへの一括通知配信の結果"""
    status: BatchStatus
    total_sent: int = 0
    status_counts: Dict[str, int] = Field(default_factory=dict)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "totalSent": self.total_sent,
            "statusCounts": dict(self.status_counts),
            "message": self.message,
        }


class Registration(BaseModel):
    """主催者向けの登録状況（選考結果 + エントリ情報）"""
    entrant_id: Optional[str] = None
    decision_id: Optional[str] = None
    entry_id: Optional[str] = None
    status: DecisionStatus
    updated_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    join_timestamp: Optional[datetime] = None
    invited_at: Optional[datetime] = None
