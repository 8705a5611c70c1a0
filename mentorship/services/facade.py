"""MentorshipFacade - コア境界

UI・API などの呼び出し側はこのクラスだけを使う。
全メソッドは OperationResult を返し、例外はこの境界を越えない。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from mentorship.domain.errors import MentorshipError
from mentorship.domain.models import OperationResult, SubmissionStatus
from mentorship.services.audit_log import AuditLog
from mentorship.services.cascade import CascadeEngine
from mentorship.services.points_ledger import PointsLedger
from mentorship.services.registry import Registry
from mentorship.services.submission_review import SubmissionReviewService

logger = logging.getLogger(__name__)


class MentorshipFacade:
    """提出物レビュー・ポイント台帳・カスケード削除の公開インターフェース"""

    def __init__(
        self,
        review: SubmissionReviewService,
        ledger: PointsLedger,
        cascade: CascadeEngine,
        registry: Registry,
        audit_log: AuditLog,
    ) -> None:
        self._review = review
        self._ledger = ledger
        self._cascade = cascade
        self._registry = registry
        self._audit = audit_log

    def _run(self, operation: str, fn: Callable[[], Any]) -> OperationResult:
        try:
            return OperationResult.ok(fn())
        except MentorshipError as e:
            logger.warning("%s failed: code=%s, error=%s", operation, e.code, e.message)
            return OperationResult.fail(e)
        except Exception:
            logger.exception("%s failed with unexpected error", operation)
            return OperationResult(
                success=False, error="Internal error", error_code="INTERNAL"
            )

    # ── 提出物 ──────────────────────────────────────────────────────────────

    def create_submission(
        self,
        submitter_id: str,
        week_number: int,
        year: int,
        image_locator: str,
        bonus_activity_ids: list[str] | None = None,
    ) -> OperationResult:
        """成功時の value は作成された Submission（id が submissionId）"""
        return self._run(
            "create_submission",
            lambda: self._review.create_submission(
                submitter_id, week_number, year, image_locator, bonus_activity_ids
            ),
        )

    def approve_submission(self, submission_id: str, reviewer_id: str) -> OperationResult:
        return self._run(
            "approve_submission",
            lambda: self._review.approve(submission_id, reviewer_id),
        )

    def reject_submission(
        self, submission_id: str, reviewer_id: str, reason: str
    ) -> OperationResult:
        return self._run(
            "reject_submission",
            lambda: self._review.reject(submission_id, reviewer_id, reason),
        )

    def get_submission(self, submission_id: str) -> OperationResult:
        return self._run(
            "get_submission", lambda: self._review.get_submission(submission_id)
        )

    def list_submissions(
        self,
        status: SubmissionStatus | None = None,
        pairing_id: str | None = None,
    ) -> OperationResult:
        return self._run(
            "list_submissions",
            lambda: self._review.list_submissions(status=status, pairing_id=pairing_id),
        )

    # ── ポイント ────────────────────────────────────────────────────────────

    def adjust_points(
        self, pairing_id: str, actor_id: str, delta: int, reason: str
    ) -> OperationResult:
        return self._run(
            "adjust_points",
            lambda: self._ledger.adjust_points(pairing_id, actor_id, delta, reason),
        )

    def verify_ledger(self, pairing_id: str) -> OperationResult:
        return self._run("verify_ledger", lambda: self._ledger.verify(pairing_id))

    def list_pairings(self) -> OperationResult:
        return self._run("list_pairings", self._ledger.list_pairings)

    def pairing_leaderboard(self) -> OperationResult:
        return self._run("pairing_leaderboard", self._ledger.pairing_leaderboard)

    def family_leaderboard(self, include_archived: bool = False) -> OperationResult:
        return self._run(
            "family_leaderboard",
            lambda: self._ledger.family_leaderboard(include_archived=include_archived),
        )

    def get_audit_trail(
        self, pairing_id: str | None = None, user_id: str | None = None
    ) -> OperationResult:
        """古い順の AuditLogEntry のリストを返す（どちらか一方を指定）"""
        return self._run(
            "get_audit_trail",
            lambda: self._audit.trail(pairing_id=pairing_id, user_id=user_id),
        )

    # ── 削除 ────────────────────────────────────────────────────────────────

    def delete_user(self, user_id: str, actor_id: str) -> OperationResult:
        return self._run(
            "delete_user", lambda: self._cascade.delete_user(user_id, actor_id)
        )

    def delete_pairing(self, pairing_id: str, actor_id: str) -> OperationResult:
        return self._run(
            "delete_pairing", lambda: self._cascade.delete_pairing(pairing_id, actor_id)
        )

    def delete_family(self, family_id: str, actor_id: str) -> OperationResult:
        return self._run(
            "delete_family", lambda: self._cascade.delete_family(family_id, actor_id)
        )

    def remove_mentee(
        self, pairing_id: str, mentee_id: str, actor_id: str
    ) -> OperationResult:
        """CascadeReport を返す（最後のメンティーならペアリングごと削除）"""
        return self._run(
            "remove_mentee",
            lambda: self._cascade.remove_mentee(pairing_id, mentee_id, actor_id),
        )

    # ── 登録 ────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> OperationResult:
        return self._run("get_user", lambda: self._registry.get_user(user_id))

    def create_family(self, name: str, actor_id: str) -> OperationResult:
        return self._run(
            "create_family", lambda: self._registry.create_family(name, actor_id)
        )

    def create_pairing(
        self, family_id: str, mentor_id: str, mentee_ids: list[str], actor_id: str
    ) -> OperationResult:
        return self._run(
            "create_pairing",
            lambda: self._registry.create_pairing(
                family_id, mentor_id, mentee_ids, actor_id
            ),
        )

    def add_mentee(
        self, pairing_id: str, mentee_id: str, actor_id: str
    ) -> OperationResult:
        return self._run(
            "add_mentee",
            lambda: self._registry.add_mentee(pairing_id, mentee_id, actor_id),
        )

    def create_bonus_activity(
        self, name: str, points: int, actor_id: str, description: str = ""
    ) -> OperationResult:
        return self._run(
            "create_bonus_activity",
            lambda: self._registry.create_bonus_activity(
                name, points, actor_id, description
            ),
        )

    def update_bonus_activity(
        self,
        bonus_activity_id: str,
        actor_id: str,
        name: str | None = None,
        points: int | None = None,
        is_active: bool | None = None,
    ) -> OperationResult:
        return self._run(
            "update_bonus_activity",
            lambda: self._registry.update_bonus_activity(
                bonus_activity_id, actor_id, name=name, points=points, is_active=is_active
            ),
        )

    def delete_bonus_activity(
        self, bonus_activity_id: str, actor_id: str
    ) -> OperationResult:
        return self._run(
            "delete_bonus_activity",
            lambda: self._registry.delete_bonus_activity(bonus_activity_id, actor_id),
        )

    def list_bonus_activities(self, active_only: bool = False) -> OperationResult:
        return self._run(
            "list_bonus_activities",
            lambda: self._registry.list_bonus_activities(active_only=active_only),
        )
