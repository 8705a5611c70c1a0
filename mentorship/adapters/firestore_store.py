"""Firestore DocumentStore Adapter

DocumentStore ABC の Firestore 実装。

Firestore コレクション構造（トップレベルのみ、外部キー制約なし）:
  users/{uid}
  families/{familyId}
  pairings/{pairingId}
  submissions/{submissionId}
  bonus_activities/{bonusActivityId}
  audit_logs/{entryId}
  applications/{applicationId}
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from google.api_core import exceptions as api_exceptions
from google.cloud import firestore

from mentorship.domain.errors import ConflictError, NotFoundError
from mentorship.domain.models import StoredDocument
from mentorship.domain.ports import DocumentStore, Filter, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_MAX_ATTEMPTS = 5


class FirestoreTransaction(Transaction):
    """firestore.Transaction を Transaction ABC に合わせるラッパー"""

    def __init__(self, db: firestore.Client, transaction: firestore.Transaction) -> None:
        self._db = db
        self._transaction = transaction

    def get(self, collection: str, doc_id: str) -> dict | None:
        snap = self._db.collection(collection).document(doc_id).get(
            transaction=self._transaction
        )
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._transaction.set(self._db.collection(collection).document(doc_id), data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self._transaction.update(
            self._db.collection(collection).document(doc_id), data
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self._transaction.delete(self._db.collection(collection).document(doc_id))


class FirestoreDocumentStore(DocumentStore):
    """
    Firestore を使った DocumentStore 実装。

    run_transaction は @firestore.transactional に委譲する。
    Firestore は読み取ったドキュメントがコミット前に更新されると
    トランザクションを Abort し、max_attempts まで自動で再実行する。
    """

    def __init__(
        self, db: firestore.Client, max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    ) -> None:
        """
        Args:
            db: 初期化済みの Firestore クライアント
            max_attempts: トランザクションの最大試行回数
        """
        self._db = db
        self._max_attempts = max_attempts

    def get(self, collection: str, doc_id: str) -> dict | None:
        snap = self._db.collection(collection).document(doc_id).get()
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
    ) -> list[StoredDocument]:
        query = self._db.collection(collection)
        for field_path, op, value in filters or []:
            query = query.where(field_path, op, value)
        if order_by:
            query = query.order_by(order_by)
        return [
            StoredDocument(id=snap.id, data=snap.to_dict() or {})
            for snap in query.stream()
        ]

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._db.collection(collection).document(doc_id).set(data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            self._db.collection(collection).document(doc_id).update(data)
        except api_exceptions.NotFound as e:
            raise NotFoundError(f"{collection}/{doc_id} not found") from e

    def delete(self, collection: str, doc_id: str) -> None:
        # Firestore の delete は存在しないドキュメントでも成功する
        self._db.collection(collection).document(doc_id).delete()

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        transaction = self._db.transaction(max_attempts=self._max_attempts)

        @firestore.transactional
        def _run(txn: firestore.Transaction) -> T:
            return fn(FirestoreTransaction(self._db, txn))

        try:
            return _run(transaction)
        except api_exceptions.Aborted as e:
            logger.warning("Transaction aborted: %s", e)
            raise ConflictError(
                "Concurrent update detected; please reload and retry"
            ) from e
        except ValueError as e:
            # 再試行回数超過時、google-cloud-firestore は ValueError を送出する
            if "Failed to commit transaction" not in str(e):
                raise
            logger.warning("Transaction retries exhausted: %s", e)
            raise ConflictError(
                "Concurrent update detected; please reload and retry"
            ) from e
