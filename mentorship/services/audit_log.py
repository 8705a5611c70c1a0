"""AuditLog - 変更操作の追記専用ログ

全ての変更操作は 1 件の AuditLogEntry を残す。
ポイント台帳を動かすエントリはトランザクションハンドルを渡して
同じトランザクション内で書き込む（コミットされた変更にだけログが残る）。
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from typing import Any

from mentorship.domain.errors import ValidationError
from mentorship.domain.models import AuditAction, AuditLogEntry
from mentorship.domain.ports import DocumentStore, Transaction
from mentorship.services.mappers import (
    AUDIT_LOGS,
    audit_entry_from_doc,
    audit_entry_to_doc,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class AuditLog:
    """監査ログの書き込みと読み出し"""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        """
        Args:
            store: ドキュメントストア
            clock: 現在時刻を返す関数（テスト用に差し替え可能）
        """
        self._store = store
        self._clock = clock or utc_now

    def build_entry(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        changes: dict[str, Any] | None = None,
        pairing_id: str | None = None,
    ) -> AuditLogEntry:
        return AuditLogEntry(
            id=str(uuid.uuid4()),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            changes=dict(changes or {}),
            timestamp=self._clock(),
            pairing_id=pairing_id,
        )

    def append(self, entry: AuditLogEntry, txn: Transaction | None = None) -> str:
        """
        エントリを追記する。

        Args:
            entry: 追記するエントリ
            txn: 指定時はそのトランザクション内で書き込む

        Returns:
            エントリID
        """
        doc = audit_entry_to_doc(entry)
        if txn is not None:
            txn.set(AUDIT_LOGS, entry.id, doc)
        else:
            self._store.set(AUDIT_LOGS, entry.id, doc)
            logger.debug(
                "Audit appended: action=%s, entity=%s/%s",
                entry.action.value,
                entry.entity_type,
                entry.entity_id,
            )
        return entry.id

    def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        changes: dict[str, Any] | None = None,
        pairing_id: str | None = None,
    ) -> AuditLogEntry:
        """コミット済みの変更に対してエントリを作成・追記する"""
        entry = self.build_entry(
            action, entity_type, entity_id, actor_id, changes, pairing_id
        )
        self.append(entry)
        return entry

    # ── 読み出し ────────────────────────────────────────────────────────────

    def trail_for_pairing(self, pairing_id: str) -> list[AuditLogEntry]:
        """ペアリングに関係するエントリを古い順で返す"""
        docs = self._store.query(AUDIT_LOGS, [("pairing_id", "==", pairing_id)])
        return _sorted(audit_entry_from_doc(d.id, d.data) for d in docs)

    def trail_for_user(self, user_id: str) -> list[AuditLogEntry]:
        """ユーザーが実行者または対象のエントリを古い順で返す"""
        entries: dict[str, AuditLogEntry] = {}
        for field_path in ("actor_id", "entity_id"):
            for d in self._store.query(AUDIT_LOGS, [(field_path, "==", user_id)]):
                entry = audit_entry_from_doc(d.id, d.data)
                if field_path == "entity_id" and entry.entity_type != "user":
                    continue
                entries[entry.id] = entry
        return _sorted(entries.values())

    def trail(
        self, pairing_id: str | None = None, user_id: str | None = None
    ) -> list[AuditLogEntry]:
        """pairing_id / user_id のどちらか一方を指定して監査証跡を取得"""
        if bool(pairing_id) == bool(user_id):
            raise ValidationError("Specify exactly one of pairing_id or user_id")
        if pairing_id:
            return self.trail_for_pairing(pairing_id)
        return self.trail_for_user(user_id or "")

    def replay_pairing_total(self, pairing_id: str) -> int:
        """台帳エントリの delta を 0 から積み上げてペアリングの合計を再構築する"""
        return sum(entry.delta for entry in self.trail_for_pairing(pairing_id))


def _sorted(entries) -> list[AuditLogEntry]:
    return sorted(entries, key=lambda e: (e.timestamp, e.id))
