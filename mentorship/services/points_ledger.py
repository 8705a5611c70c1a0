"""PointsLedger - ペアリングのポイント台帳

台帳は独立したストアではなく、Pairing ドキュメント上の
weekly_points / total_points の 2 カウンター。書き込み経路は 2 つだけ:
  (a) 提出物の承認（SubmissionReviewService.approve から apply_in_transaction）
  (b) 管理者による手動調整（adjust_points）

どちらも同じトランザクション内で previous_points / delta / new_points を
記録した AuditLogEntry を書き込むため、監査ログの delta を合計すれば
total_points を再構築できる。
weekly_points のリセットはコアの外側（週次運用）で行う。
"""

from __future__ import annotations

import logging
from typing import Any

from mentorship.domain.errors import NotFoundError, PreconditionError, ValidationError
from mentorship.domain.models import (
    AuditAction,
    AuditLogEntry,
    FamilyStanding,
    LedgerCheck,
    Pairing,
    PointsAdjustment,
)
from mentorship.domain.ports import DocumentStore, Transaction
from mentorship.services.audit_log import AuditLog
from mentorship.services.mappers import (
    FAMILIES,
    PAIRINGS,
    family_from_doc,
    pairing_from_doc,
)

logger = logging.getLogger(__name__)


class PointsLedger:
    """ペアリングのポイントカウンターを変更・集計する"""

    def __init__(self, store: DocumentStore, audit_log: AuditLog) -> None:
        self._store = store
        self._audit = audit_log

    def apply_in_transaction(
        self,
        txn: Transaction,
        pairing_id: str,
        pairing_data: dict,
        delta: int,
        actor_id: str,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        include_weekly: bool = True,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """
        トランザクション内でカウンターを加算し、監査エントリを書き込む。

        呼び出し側は pairing_data を同じトランザクションで読み取り済みであること。

        Args:
            txn: 実行中のトランザクション
            pairing_id: 対象ペアリングID
            pairing_data: txn.get で読み取ったペアリング
            delta: 加算するポイント（負数で減算）
            include_weekly: weekly_points にも反映するか

        Returns:
            書き込んだ AuditLogEntry
        """
        previous = int(pairing_data.get("total_points") or 0)
        new_points = previous + delta
        update: dict[str, Any] = {"total_points": new_points}
        if include_weekly:
            update["weekly_points"] = int(pairing_data.get("weekly_points") or 0) + delta
        txn.update(PAIRINGS, pairing_id, update)

        entry = self._audit.build_entry(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            changes={
                "previous_points": previous,
                "delta": delta,
                "new_points": new_points,
                **(details or {}),
            },
            pairing_id=pairing_id,
        )
        self._audit.append(entry, txn)
        return entry

    def adjust_points(
        self, pairing_id: str, actor_id: str, delta: int, reason: str
    ) -> PointsAdjustment:
        """
        管理者による手動ポイント調整。

        Args:
            pairing_id: 対象ペアリングID
            actor_id: 実行した管理者のID
            delta: 0 以外の整数（負数で減算）
            reason: 調整理由（必須）

        Raises:
            ValidationError: 理由が空、delta が 0 または整数でない場合
            NotFoundError: ペアリングが存在しない場合
            PreconditionError: 減算で合計が負になる場合
        """
        if not pairing_id:
            raise ValidationError("Pairing ID is required")
        if not actor_id:
            raise ValidationError("Actor ID is required")
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("Amount must be an integer")
        if delta == 0:
            raise ValidationError("Amount must be non-zero")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required for point adjustments")

        action = AuditAction.POINTS_ADDED if delta > 0 else AuditAction.POINTS_DEDUCTED

        def _adjust(txn: Transaction) -> PointsAdjustment:
            data = txn.get(PAIRINGS, pairing_id)
            if data is None:
                raise NotFoundError("Pairing not found")
            previous = int(data.get("total_points") or 0)
            if previous + delta < 0:
                raise PreconditionError(
                    f"Adjustment would make total points negative ({previous} + {delta})"
                )
            self.apply_in_transaction(
                txn,
                pairing_id,
                data,
                delta,
                actor_id,
                action,
                entity_type="pairing",
                entity_id=pairing_id,
                include_weekly=False,
                details={"reason": reason},
            )
            return PointsAdjustment(
                pairing_id=pairing_id,
                previous_points=previous,
                delta=delta,
                new_points=previous + delta,
            )

        result = self._store.run_transaction(_adjust)
        logger.info(
            "Adjusted points: pairing_id=%s, actor_id=%s, %d -> %d",
            pairing_id,
            actor_id,
            result.previous_points,
            result.new_points,
        )
        return result

    # ── 読み取りモデル ──────────────────────────────────────────────────────

    def get_pairing(self, pairing_id: str) -> Pairing:
        data = self._store.get(PAIRINGS, pairing_id)
        if data is None:
            raise NotFoundError("Pairing not found")
        return pairing_from_doc(pairing_id, data)

    def verify(self, pairing_id: str) -> LedgerCheck:
        """保存済み total_points と監査ログの再生結果を照合する"""
        pairing = self.get_pairing(pairing_id)
        check = LedgerCheck(
            pairing_id=pairing_id,
            stored_total=pairing.total_points,
            replayed_total=self._audit.replay_pairing_total(pairing_id),
        )
        if not check.consistent:
            logger.warning(
                "Ledger mismatch: pairing_id=%s, stored=%d, replayed=%d",
                pairing_id,
                check.stored_total,
                check.replayed_total,
            )
        return check

    def list_pairings(self) -> list[Pairing]:
        return [pairing_from_doc(d.id, d.data) for d in self._store.query(PAIRINGS)]

    def pairing_leaderboard(self) -> list[Pairing]:
        """total_points の降順でペアリングを返す"""
        return sorted(self.list_pairings(), key=lambda p: p.total_points, reverse=True)

    def family_total_points(self, family_id: str) -> int:
        """ファミリー合計はペアリングから読み取り時に集計する（保存しない）"""
        docs = self._store.query(PAIRINGS, [("family_id", "==", family_id)])
        return sum(pairing_from_doc(d.id, d.data).total_points for d in docs)

    def family_leaderboard(self, include_archived: bool = False) -> list[FamilyStanding]:
        """ファミリーごとのペアリング合計を降順で返す"""
        totals: dict[str, int] = {}
        for pairing in self.list_pairings():
            if pairing.family_id:
                totals[pairing.family_id] = (
                    totals.get(pairing.family_id, 0) + pairing.total_points
                )

        standings = []
        for d in self._store.query(FAMILIES):
            family = family_from_doc(d.id, d.data)
            if family.is_archived and not include_archived:
                continue
            standings.append(
                FamilyStanding(family=family, total_points=totals.get(family.id, 0))
            )
        return sorted(standings, key=lambda s: s.total_points, reverse=True)
