"""Ports - 外部コラボレーターのインターフェース定義（ABC）

各Port（抽象基底クラス）は外部サービスとの契約を定義します。
実装クラス（Adapter）はこれらのABCを継承し、全ての抽象メソッドを実装する必要があります。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from mentorship.domain.models import StoredDocument

T = TypeVar("T")

# (field, op, value)。op は "==" | "in" | "array_contains"
Filter = tuple[str, str, Any]


class Transaction(ABC):
    """トランザクションハンドル。読み取りは全て書き込みより前に行うこと"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        """トランザクション内で読み取る。存在しない場合は None"""
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """ドキュメントを作成または上書き"""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: dict) -> None:
        """既存ドキュメントを部分更新"""
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """ドキュメントを削除"""
        pass


class DocumentStore(ABC):
    """名前付きコレクションのドキュメントストア（Firestore等）"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        """ドキュメントを取得。存在しない場合は None"""
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
    ) -> list[StoredDocument]:
        """全フィルターを AND で適用して検索する"""
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """ドキュメントを作成または上書き"""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: dict) -> None:
        """
        既存ドキュメントを部分更新。

        Raises:
            NotFoundError: ドキュメントが存在しない場合
        """
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """ドキュメントを削除。存在しなくてもエラーにしない"""
        pass

    @abstractmethod
    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        fn をアトミックに実行する（楽観的並行制御）。

        読み取ったドキュメントがコミットまでに変更された場合は fn を再実行する。
        fn が例外を送出した場合は何も書き込まずに例外をそのまま伝播する。

        Raises:
            ConflictError: 再試行回数を使い切った場合
        """
        pass


class BlobStorage(ABC):
    """バイナリファイルの保存・削除（GCS等）"""

    @abstractmethod
    def upload(self, blob_path: str, content: bytes, content_type: str) -> str:
        """
        ファイルを保存してロケーター（blob_path）を返す。

        Raises:
            StorageError: 保存に失敗した場合
        """
        pass

    @abstractmethod
    def delete(self, blob_path: str) -> None:
        """
        ファイルを削除。存在しない場合は成功扱い。

        Raises:
            StorageError: 削除に失敗した場合
        """
        pass


class IdentityProvider(ABC):
    """認証基盤のアカウント操作（Firebase Auth等）"""

    @abstractmethod
    def delete_identity(self, uid: str) -> None:
        """
        アカウントを削除。存在しない場合は成功扱い。

        Raises:
            IdentityProviderError: 削除に失敗した場合
        """
        pass
