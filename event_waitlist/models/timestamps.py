"""
タイムスタンプ変換ヘルパー
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """現在時刻（UTC、タイムゾーン付き）"""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ストア上の値をdatetimeに変換

    Firestoreはdatetime（DatetimeWithNanoseconds）を返し、
    JSON経由のデータはISO文字列になっているため両方を受け付ける。
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, str):
        result = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result
