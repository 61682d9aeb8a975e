"""
設定管理

環境変数からFirestore接続設定と通知配信設定を読み込みます。
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class FirestoreConfig(BaseModel):
    """Firestore設定"""
    project_id: Optional[str] = None
    database_id: str = "(default)"
    emulator_host: Optional[str] = None  # 開発環境用

    @classmethod
    def from_env(cls) -> "FirestoreConfig":
        return cls(
            project_id=os.getenv("GCP_PROJECT_ID"),
            database_id=os.getenv("FIRESTORE_DATABASE_ID", "(default)"),
            emulator_host=os.getenv("FIRESTORE_EMULATOR_HOST"),
        )


class DispatchConfig(BaseModel):
    """通知配信設定"""
    # Noneは無制限（小〜中規模の配信向け）
    max_concurrency: Optional[int] = Field(None, ge=1, description="配信の同時実行数上限")

    @classmethod
    def from_env(cls) -> "DispatchConfig":
        raw = os.getenv("WAITLIST_MAX_CONCURRENCY")
        return cls(max_concurrency=int(raw) if raw else None)


class AppConfig(BaseModel):
    """アプリケーション設定"""
    firestore: FirestoreConfig = Field(default_factory=FirestoreConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """ログレベルの検証"""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_env(cls) -> "AppConfig":
        """環境変数から設定を構築"""
        return cls(
            firestore=FirestoreConfig.from_env(),
            dispatch=DispatchConfig.from_env(),
            log_level=os.getenv("WAITLIST_LOG_LEVEL", "INFO"),
        )
