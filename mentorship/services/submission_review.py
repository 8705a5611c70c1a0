"""SubmissionReviewService - 提出物のレビュー状態遷移

状態遷移:
  PENDING → APPROVED（終端）
  PENDING → REJECTED（終端）

承認・却下は前提条件チェック（存在・PENDING）と書き込みを 1 トランザクションで行う。
同じ提出物への同時承認は片方だけが成功し、もう片方は再試行時に
APPROVED を読んで ConflictError になる（ポイントの二重加算は起きない）。

ポイントは作成時に確定（スナップショット）し、承認時に再計算しない。
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable

from mentorship.domain.errors import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from mentorship.domain.models import AuditAction, Submission, SubmissionStatus
from mentorship.domain.ports import DocumentStore, Transaction
from mentorship.services.audit_log import AuditLog, utc_now
from mentorship.services.mappers import (
    BONUS_ACTIVITIES,
    PAIRINGS,
    SUBMISSIONS,
    USERS,
    submission_from_doc,
    submission_to_doc,
)
from mentorship.services.points_ledger import PointsLedger

logger = logging.getLogger(__name__)

BASE_POINTS = 10  # 1 提出あたりの基本ポイント
_ALREADY_REVIEWED = "Submission has already been reviewed"


class SubmissionReviewService:
    """提出物の作成・承認・却下"""

    def __init__(
        self,
        store: DocumentStore,
        ledger: PointsLedger,
        audit_log: AuditLog,
        base_points: int = BASE_POINTS,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        """
        Args:
            store: ドキュメントストア
            ledger: ポイント台帳（承認時の加算に使用）
            audit_log: 監査ログ
            base_points: 基本ポイント
            clock: 現在時刻を返す関数（テスト用に差し替え可能）
        """
        self._store = store
        self._ledger = ledger
        self._audit = audit_log
        self._base_points = base_points
        self._clock = clock or utc_now

    # ── 作成 ────────────────────────────────────────────────────────────────

    def create_submission(
        self,
        submitter_id: str,
        week_number: int,
        year: int,
        image_locator: str,
        bonus_activity_ids: list[str] | None = None,
    ) -> Submission:
        """
        提出物を PENDING で作成する。台帳は変更しない。

        ボーナスポイントは「現在アクティブなボーナス活動」の points を
        この時点で合計して保存する。以降ボーナス活動が編集されても変わらない。

        Raises:
            ValidationError: 入力形式が不正な場合
            NotFoundError: 提出者のユーザーが存在しない場合
            PreconditionError: 提出者がどのペアリングにも属していない場合
        """
        _validate_week(week_number, year)
        if not submitter_id:
            raise ValidationError("Submitter ID is required")
        if not (image_locator or "").strip():
            raise ValidationError("Image locator is required")

        if self._store.get(USERS, submitter_id) is None:
            raise NotFoundError("User profile not found")
        pairing_id = self.resolve_pairing_id(submitter_id)
        if pairing_id is None:
            raise PreconditionError(
                "You are not part of a pairing yet. Please contact an admin."
            )

        awarded = self._snapshot_bonus_points(bonus_activity_ids or [])
        bonus_points = sum(awarded.values())
        submission = Submission(
            id=str(uuid.uuid4()),
            pairing_id=pairing_id,
            submitter_id=submitter_id,
            week_number=week_number,
            year=year,
            image_locator=image_locator,
            status=SubmissionStatus.PENDING,
            base_points=self._base_points,
            bonus_points=bonus_points,
            total_points=self._base_points + bonus_points,
            bonus_activity_ids=list(awarded),
            bonus_points_awarded=awarded,
            created_at=self._clock(),
        )
        self._store.set(SUBMISSIONS, submission.id, submission_to_doc(submission))
        self._audit.record(
            AuditAction.SUBMIT,
            entity_type="submission",
            entity_id=submission.id,
            actor_id=submitter_id,
            changes={
                "status": submission.status.value,
                "total_points": submission.total_points,
            },
            pairing_id=pairing_id,
        )
        logger.info(
            "Created submission: submission_id=%s, pairing_id=%s, total_points=%d",
            submission.id,
            pairing_id,
            submission.total_points,
        )
        return submission

    def resolve_pairing_id(self, user_id: str) -> str | None:
        """メンターとしてのペアリング → メンティーとしてのペアリングの順で探す"""
        as_mentor = self._store.query(PAIRINGS, [("mentor_id", "==", user_id)])
        if as_mentor:
            return as_mentor[0].id
        as_mentee = self._store.query(PAIRINGS, [("mentee_ids", "array_contains", user_id)])
        if as_mentee:
            return as_mentee[0].id
        return None

    def _snapshot_bonus_points(self, bonus_activity_ids: list[str]) -> dict[str, int]:
        awarded: dict[str, int] = {}
        for bonus_id in dict.fromkeys(bonus_activity_ids):
            data = self._store.get(BONUS_ACTIVITIES, bonus_id)
            if data is None or not data.get("is_active", False):
                logger.info("Skipping inactive or missing bonus: bonus_id=%s", bonus_id)
                continue
            awarded[bonus_id] = int(data.get("points") or 0)
        return awarded

    # ── レビュー ────────────────────────────────────────────────────────────

    def approve(self, submission_id: str, reviewer_id: str) -> Submission:
        """
        提出物を承認し、確定済み total_points をペアリングに加算する。

        Raises:
            NotFoundError: 提出物（または所属ペアリング）が存在しない場合
            ConflictError: コミット時点で PENDING でない場合
        """
        _require_ids(submission_id, reviewer_id)

        def _approve(txn: Transaction) -> Submission:
            data = _read_pending(txn, submission_id)
            pairing_id = data.get("pairing_id") or ""
            pairing_data = txn.get(PAIRINGS, pairing_id) if pairing_id else None
            if pairing_data is None:
                raise NotFoundError("Pairing for this submission not found")

            reviewed_at = self._clock()
            review = {
                "status": SubmissionStatus.APPROVED.value,
                "reviewer_id": reviewer_id,
                "reviewed_at": reviewed_at,
            }
            txn.update(SUBMISSIONS, submission_id, review)
            points = int(data.get("total_points") or 0)
            self._ledger.apply_in_transaction(
                txn,
                pairing_id,
                pairing_data,
                points,
                reviewer_id,
                AuditAction.APPROVE,
                entity_type="submission",
                entity_id=submission_id,
                details={"status": SubmissionStatus.APPROVED.value},
            )
            return submission_from_doc(submission_id, {**data, **review})

        submission = self._store.run_transaction(_approve)
        logger.info(
            "Approved submission: submission_id=%s, pairing_id=%s, delta=%d",
            submission_id,
            submission.pairing_id,
            submission.total_points,
        )
        return submission

    def reject(self, submission_id: str, reviewer_id: str, reason: str) -> Submission:
        """
        提出物を却下する。ポイントは 0 に書き換え、台帳は変更しない。

        Raises:
            ValidationError: 理由が空の場合（トランザクション開始前に判定）
            NotFoundError: 提出物が存在しない場合
            ConflictError: コミット時点で PENDING でない場合
        """
        _require_ids(submission_id, reviewer_id)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required for rejection")

        def _reject(txn: Transaction) -> Submission:
            data = _read_pending(txn, submission_id)
            review = {
                "status": SubmissionStatus.REJECTED.value,
                "reviewer_id": reviewer_id,
                "review_reason": reason,
                "reviewed_at": self._clock(),
                "base_points": 0,
                "bonus_points": 0,
                "total_points": 0,
                "bonus_points_awarded": {},
            }
            txn.update(SUBMISSIONS, submission_id, review)
            entry = self._audit.build_entry(
                AuditAction.REJECT,
                entity_type="submission",
                entity_id=submission_id,
                actor_id=reviewer_id,
                changes={
                    "status": SubmissionStatus.REJECTED.value,
                    "reason": reason,
                    "forfeited_points": int(data.get("total_points") or 0),
                },
                pairing_id=data.get("pairing_id"),
            )
            self._audit.append(entry, txn)
            return submission_from_doc(submission_id, {**data, **review})

        submission = self._store.run_transaction(_reject)
        logger.info(
            "Rejected submission: submission_id=%s, reviewer_id=%s",
            submission_id,
            reviewer_id,
        )
        return submission

    # ── 参照 ────────────────────────────────────────────────────────────────

    def get_submission(self, submission_id: str) -> Submission:
        data = self._store.get(SUBMISSIONS, submission_id)
        if data is None:
            raise NotFoundError("Submission not found")
        return submission_from_doc(submission_id, data)

    def list_submissions(
        self,
        status: SubmissionStatus | None = None,
        pairing_id: str | None = None,
    ) -> list[Submission]:
        """提出物を新しい順で返す"""
        filters = []
        if status is not None:
            filters.append(("status", "==", status.value))
        if pairing_id:
            filters.append(("pairing_id", "==", pairing_id))
        submissions = [
            submission_from_doc(d.id, d.data)
            for d in self._store.query(SUBMISSIONS, filters)
        ]
        return sorted(
            submissions,
            key=lambda s: (s.created_at is not None, s.created_at or 0),
            reverse=True,
        )


def _read_pending(txn: Transaction, submission_id: str) -> dict:
    data = txn.get(SUBMISSIONS, submission_id)
    if data is None:
        raise NotFoundError("Submission not found")
    if data.get("status") != SubmissionStatus.PENDING.value:
        raise ConflictError(_ALREADY_REVIEWED)
    return data


def _require_ids(submission_id: str, reviewer_id: str) -> None:
    if not submission_id:
        raise ValidationError("Submission ID is required")
    if not reviewer_id:
        raise ValidationError("Reviewer ID is required")


def _validate_week(week_number: int, year: int) -> None:
    for name, value in (("week_number", week_number), ("year", year)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer")
    if not 1 <= week_number <= 53:
        raise ValidationError("week_number must be between 1 and 53")
    if year < 2000:
        raise ValidationError("year is out of range")
