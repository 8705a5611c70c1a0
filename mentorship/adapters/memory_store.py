"""In-memory DocumentStore Adapter

LOCAL_MODE とテストで使う DocumentStore 実装。
Firestore と同じく楽観的並行制御でトランザクションを処理する:
読み取り時のバージョンを記録し、コミット時にどれか1つでも変わっていれば
書き込みを破棄して fn を再実行する。
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from mentorship.domain.errors import ConflictError, NotFoundError
from mentorship.domain.models import StoredDocument
from mentorship.domain.ports import DocumentStore, Filter, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ABSENT = 0  # 存在しないドキュメントのバージョン


def _matches(data: dict, filters: list[Filter]) -> bool:
    for field_path, op, value in filters:
        actual = data.get(field_path)
        if op == "==":
            if actual != value:
                return False
        elif op == "in":
            if actual not in value:
                return False
        elif op == "array_contains":
            if not isinstance(actual, list) or value not in actual:
                return False
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
    return True


class InMemoryTransaction(Transaction):
    """読み取りバージョンと書き込みをバッファするトランザクション"""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self.read_versions: dict[tuple[str, str], int] = {}
        self.writes: list[tuple[str, str, str, dict | None]] = []

    def get(self, collection: str, doc_id: str) -> dict | None:
        if self.writes:
            raise ValueError("Transactions require all reads to happen before writes")
        version, data = self._store._snapshot(collection, doc_id)
        self.read_versions.setdefault((collection, doc_id), version)
        return data

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self.writes.append(("set", collection, doc_id, copy.deepcopy(data)))

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self.writes.append(("update", collection, doc_id, copy.deepcopy(data)))

    def delete(self, collection: str, doc_id: str) -> None:
        self.writes.append(("delete", collection, doc_id, None))


class InMemoryDocumentStore(DocumentStore):
    """プロセス内メモリに保持する DocumentStore（スレッドセーフ）"""

    def __init__(self, max_attempts: int = 5) -> None:
        self._lock = threading.Lock()
        self._docs: dict[str, dict[str, tuple[int, dict]]] = {}
        self._versions = itertools.count(1)
        self._max_attempts = max_attempts

    # ── 非トランザクション操作 ─────────────────────────────────────────────

    def get(self, collection: str, doc_id: str) -> dict | None:
        return self._snapshot(collection, doc_id)[1]

    def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
    ) -> list[StoredDocument]:
        with self._lock:
            results = [
                StoredDocument(id=doc_id, data=copy.deepcopy(data))
                for doc_id, (_, data) in self._docs.get(collection, {}).items()
                if _matches(data, filters or [])
            ]
        if order_by:
            results.sort(key=lambda d: _sort_key(d.data.get(order_by)))
        return results

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            self._write("set", collection, doc_id, copy.deepcopy(data))

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            self._write("update", collection, doc_id, copy.deepcopy(data))

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._write("delete", collection, doc_id, None)

    # ── トランザクション ────────────────────────────────────────────────────

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        for attempt in range(1, self._max_attempts + 1):
            txn = InMemoryTransaction(self)
            result = fn(txn)
            if self._commit(txn):
                return result
            logger.debug("Transaction conflict, retrying: attempt=%d", attempt)
        raise ConflictError("Concurrent update detected; please reload and retry")

    def _commit(self, txn: InMemoryTransaction) -> bool:
        """読み取りバージョンが変わっていなければ書き込みを適用する"""
        with self._lock:
            for (collection, doc_id), version in txn.read_versions.items():
                if self._version(collection, doc_id) != version:
                    return False
            # update 対象の存在確認を先に済ませ、部分適用を防ぐ
            pending = {key: self._version(*key) for key in _touched(txn.writes)}
            for op, collection, doc_id, _ in txn.writes:
                if op == "set":
                    pending[(collection, doc_id)] = 1
                elif op == "delete":
                    pending[(collection, doc_id)] = _ABSENT
                elif pending[(collection, doc_id)] == _ABSENT:
                    raise NotFoundError(f"{collection}/{doc_id} not found")
            for op, collection, doc_id, data in txn.writes:
                self._write(op, collection, doc_id, data)
            return True

    def _snapshot(self, collection: str, doc_id: str) -> tuple[int, dict | None]:
        with self._lock:
            entry = self._docs.get(collection, {}).get(doc_id)
            if entry is None:
                return _ABSENT, None
            return entry[0], copy.deepcopy(entry[1])

    # ── 内部ヘルパー（呼び出し側でロックを取ること） ─────────────────────────

    def _version(self, collection: str, doc_id: str) -> int:
        entry = self._docs.get(collection, {}).get(doc_id)
        return entry[0] if entry else _ABSENT

    def _write(self, op: str, collection: str, doc_id: str, data: dict | None) -> None:
        docs = self._docs.setdefault(collection, {})
        if op == "delete":
            docs.pop(doc_id, None)
            return
        if op == "update":
            if doc_id not in docs:
                raise NotFoundError(f"{collection}/{doc_id} not found")
            data = {**docs[doc_id][1], **(data or {})}
        docs[doc_id] = (next(self._versions), data or {})


def _touched(writes: list[tuple[str, str, str, Any]]) -> set[tuple[str, str]]:
    return {(collection, doc_id) for _, collection, doc_id, _ in writes}


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None は末尾に並べる
    return (value is None, value if value is not None else 0)
