"""
例外定義
"""

from typing import Any, Optional


class RepositoryError(Exception):
    """ウェイティングリスト処理のエラー基底クラス"""
    pass


class StoreError(RepositoryError):
    """ストア呼び出しの失敗（ネットワーク・権限・バックエンド）"""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class DocumentNotFoundError(RepositoryError):
    """ドキュメント未発見エラー"""

    def __init__(self, resource: str, identifier: Any = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        super().__init__(message)


class InvalidArgumentError(RepositoryError, ValueError):
    """不正な引数（空・NoneのIDなど）"""
    pass


class InvalidTransitionError(RepositoryError):
    """許可されていないステータス遷移"""

    def __init__(self, current: Any, target: Any):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition decision from {current} to {target}")


def require_id(name: str, value: Optional[str]) -> str:
    """IDが空でなく、パス区切りを含まないことを検証"""
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{name} must be a non-empty string")
    if "/" in value:
        # ドキュメントIDに "/" を含めるとパスの階層がずれる
        raise InvalidArgumentError(f"{name} must not contain '/': {value!r}")
    return value
