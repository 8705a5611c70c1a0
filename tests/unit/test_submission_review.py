"""SubmissionReviewService のユニットテスト

状態遷移（PENDING → APPROVED / REJECTED）と、承認時の台帳加算が
1 トランザクションで行われることを InMemoryDocumentStore 上で検証する。
"""

from __future__ import annotations

import threading

import pytest

from mentorship.adapters.memory_store import InMemoryDocumentStore
from mentorship.domain.errors import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from mentorship.domain.models import AuditAction, SubmissionStatus
from mentorship.services.audit_log import AuditLog
from mentorship.services.mappers import AUDIT_LOGS, PAIRINGS, SUBMISSIONS
from mentorship.services.points_ledger import PointsLedger
from mentorship.services.registry import Registry
from mentorship.services.submission_review import SubmissionReviewService
from tests.conftest import (
    ADMIN_ID,
    MENTEE_2_ID,
    MENTEE_ID,
    MENTOR_ID,
    OUTSIDER_ID,
    add_user,
)

_IMAGE = "submissions/mentor-1/photo.jpg"


def _create(review, program, submitter=MENTOR_ID, bonus_ids=None):
    return review.create_submission(
        submitter, 14, 2025, _IMAGE, bonus_ids if bonus_ids is not None else [program.bonus_id]
    )


def _audit_count(store) -> int:
    return len(store.query(AUDIT_LOGS))


class TestCreateSubmission:
    """create_submission() のテスト"""

    def test_snapshots_active_bonus_points(self, review, program):
        """アクティブなボーナスだけが合計され、非アクティブは無視されること"""
        submission = _create(
            review, program, bonus_ids=[program.bonus_id, program.inactive_bonus_id]
        )

        assert submission.status == SubmissionStatus.PENDING
        assert submission.base_points == 10
        assert submission.bonus_points == 5
        assert submission.total_points == 15
        assert submission.bonus_activity_ids == [program.bonus_id]
        assert submission.bonus_points_awarded == {program.bonus_id: 5}

    def test_duplicate_bonus_ids_counted_once(self, review, program):
        submission = _create(review, program, bonus_ids=[program.bonus_id, program.bonus_id])
        assert submission.bonus_points == 5

    def test_unknown_bonus_is_ignored(self, review, program):
        submission = _create(review, program, bonus_ids=["no-such-bonus"])
        assert submission.bonus_points == 0
        assert submission.total_points == 10

    def test_does_not_touch_ledger(self, review, ledger, program):
        """作成時点では台帳を変更しないこと"""
        _create(review, program)
        pairing = ledger.get_pairing(program.pairing_id)
        assert pairing.total_points == 0
        assert pairing.weekly_points == 0

    def test_mentee_resolves_to_pairing(self, review, program):
        submission = _create(review, program, submitter=MENTEE_2_ID)
        assert submission.pairing_id == program.pairing_id

    def test_records_submit_audit_entry(self, review, audit_log, program):
        submission = _create(review, program)
        trail = audit_log.trail_for_pairing(program.pairing_id)
        submit_entries = [e for e in trail if e.action == AuditAction.SUBMIT]
        assert len(submit_entries) == 1
        assert submit_entries[0].entity_id == submission.id
        assert submit_entries[0].delta == 0

    def test_submitter_without_pairing_is_precondition_error(self, review, program):
        with pytest.raises(PreconditionError):
            _create(review, program, submitter=OUTSIDER_ID)

    def test_unknown_submitter_is_not_found(self, review, program):
        with pytest.raises(NotFoundError):
            _create(review, program, submitter="ghost")

    @pytest.mark.parametrize(
        "week_number,year",
        [(0, 2025), (54, 2025), (True, 2025), ("3", 2025), (10, 1999)],
    )
    def test_invalid_week_or_year(self, review, program, week_number, year):
        with pytest.raises(ValidationError):
            review.create_submission(MENTOR_ID, week_number, year, _IMAGE, [])

    def test_blank_image_locator(self, review, program):
        with pytest.raises(ValidationError):
            review.create_submission(MENTOR_ID, 14, 2025, "  ", [])

    def test_bonus_edit_after_creation_does_not_change_submission(
        self, review, registry, program
    ):
        """ボーナス活動を後から編集しても既存の提出物は変わらないこと"""
        submission = _create(review, program)
        registry.update_bonus_activity(program.bonus_id, ADMIN_ID, points=50)

        assert review.get_submission(submission.id).total_points == 15


class TestApprove:
    """approve() のテスト"""

    def test_scenario_pairing_at_50_gains_15(self, review, ledger, audit_log, program):
        """P=50 に base 10 + bonus 5 の提出物を承認すると 65 になること"""
        # Arrange
        ledger.adjust_points(program.pairing_id, ADMIN_ID, 50, "carry-over")
        submission = _create(review, program)

        # Act
        approved = review.approve(submission.id, ADMIN_ID)

        # Assert
        pairing = ledger.get_pairing(program.pairing_id)
        assert pairing.total_points == 65
        assert pairing.weekly_points == 15
        assert approved.status == SubmissionStatus.APPROVED
        assert approved.reviewer_id == ADMIN_ID
        assert approved.reviewed_at is not None

        approvals = [
            e for e in audit_log.trail_for_pairing(program.pairing_id)
            if e.action == AuditAction.APPROVE
        ]
        assert len(approvals) == 1
        assert approvals[0].changes["previous_points"] == 50
        assert approvals[0].changes["delta"] == 15
        assert approvals[0].changes["new_points"] == 65
        assert approvals[0].actor_id == ADMIN_ID

    def test_second_approve_is_conflict_and_changes_nothing(self, review, ledger, store, program):
        submission = _create(review, program)
        review.approve(submission.id, ADMIN_ID)
        before_submission = store.get(SUBMISSIONS, submission.id)
        before_audit = _audit_count(store)

        with pytest.raises(ConflictError):
            review.approve(submission.id, "admin-2")

        assert store.get(SUBMISSIONS, submission.id) == before_submission
        assert ledger.get_pairing(program.pairing_id).total_points == 15
        assert _audit_count(store) == before_audit

    def test_reject_after_approve_is_conflict(self, review, ledger, program):
        submission = _create(review, program)
        review.approve(submission.id, ADMIN_ID)

        with pytest.raises(ConflictError):
            review.reject(submission.id, ADMIN_ID, "blurry")

        assert review.get_submission(submission.id).status == SubmissionStatus.APPROVED
        assert ledger.get_pairing(program.pairing_id).total_points == 15

    def test_missing_submission_is_not_found_without_audit(self, review, store, program):
        before = _audit_count(store)
        with pytest.raises(NotFoundError):
            review.approve("no-such-submission", ADMIN_ID)
        assert _audit_count(store) == before

    def test_missing_pairing_is_not_found(self, review, store, program):
        submission = _create(review, program)
        store.delete(PAIRINGS, program.pairing_id)

        with pytest.raises(NotFoundError):
            review.approve(submission.id, ADMIN_ID)
        assert review.get_submission(submission.id).status == SubmissionStatus.PENDING

    def test_round_trip_adds_base_plus_active_bonus(self, review, ledger, program):
        """作成 → 承認で total_points が base + アクティブボーナス分だけ増えること"""
        before = ledger.get_pairing(program.pairing_id).total_points
        submission = _create(
            review, program, bonus_ids=[program.bonus_id, program.inactive_bonus_id]
        )
        review.approve(submission.id, ADMIN_ID)
        assert ledger.get_pairing(program.pairing_id).total_points == before + 10 + 5


class _InterleavingStore(InMemoryDocumentStore):
    """最初の 2 回のコミットを Barrier で揃え、同時承認を確実に競合させるストア"""

    def __init__(self) -> None:
        super().__init__()
        self._barrier = threading.Barrier(2, timeout=5)
        self._gate_lock = threading.Lock()
        self._gated = 0
        self._armed = False

    def arm(self) -> None:
        self._armed = True

    def _commit(self, txn):
        with self._gate_lock:
            if not self._armed:
                return super()._commit(txn)
            wait = self._gated < 2
            self._gated += 1
        if wait:
            self._barrier.wait()
        return super()._commit(txn)


class TestConcurrentApprove:
    """同じ提出物への同時承認"""

    def test_exactly_one_approval_wins(self, clock):
        # Arrange
        store = _InterleavingStore()
        audit_log = AuditLog(store, clock=clock)
        ledger = PointsLedger(store, audit_log)
        review = SubmissionReviewService(store, ledger, audit_log, clock=clock)
        registry = Registry(store, audit_log)
        for uid, role in [(ADMIN_ID, "ADMIN"), (MENTOR_ID, "MENTOR"), (MENTEE_ID, "MENTEE")]:
            add_user(store, uid, role)
        family = registry.create_family("Lotus", ADMIN_ID)
        pairing = registry.create_pairing(family.id, MENTOR_ID, [MENTEE_ID], ADMIN_ID)
        bonus = registry.create_bonus_activity("Boba run", 5, ADMIN_ID)
        submission = review.create_submission(MENTOR_ID, 14, 2025, _IMAGE, [bonus.id])

        outcomes: list[object] = []
        outcomes_lock = threading.Lock()

        def _approve(reviewer_id: str) -> None:
            try:
                result: object = review.approve(submission.id, reviewer_id)
            except ConflictError as e:
                result = e
            with outcomes_lock:
                outcomes.append(result)

        # Act
        threads = [
            threading.Thread(target=_approve, args=(reviewer,))
            for reviewer in ("admin-a", "admin-b")
        ]
        store.arm()
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        # Assert
        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(outcomes) == 2
        assert len(conflicts) == 1
        assert ledger.get_pairing(pairing.id).total_points == 15
        approvals = [
            e for e in audit_log.trail_for_pairing(pairing.id)
            if e.action == AuditAction.APPROVE
        ]
        assert len(approvals) == 1
        assert ledger.verify(pairing.id).consistent


class TestReject:
    """reject() のテスト"""

    def test_zeroes_points_and_leaves_ledger(self, review, ledger, audit_log, program):
        submission = _create(review, program)

        rejected = review.reject(submission.id, ADMIN_ID, "  photo is blurry ")

        assert rejected.status == SubmissionStatus.REJECTED
        assert rejected.review_reason == "photo is blurry"
        assert (rejected.base_points, rejected.bonus_points, rejected.total_points) == (0, 0, 0)
        assert ledger.get_pairing(program.pairing_id).total_points == 0

        rejects = [
            e for e in audit_log.trail_for_pairing(program.pairing_id)
            if e.action == AuditAction.REJECT
        ]
        assert len(rejects) == 1
        assert rejects[0].changes["forfeited_points"] == 15
        assert rejects[0].delta == 0

    def test_clears_per_bonus_awards(self, review, store, program):
        submission = _create(review, program)
        assert submission.bonus_points_awarded == {program.bonus_id: 5}

        rejected = review.reject(submission.id, ADMIN_ID, "wrong week")

        assert rejected.bonus_points_awarded == {}
        assert store.get(SUBMISSIONS, submission.id)["bonus_points_awarded"] == {}
        # どのボーナスを申請したかは残す
        assert rejected.bonus_activity_ids == [program.bonus_id]

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_is_validation_error_without_mutation(
        self, review, store, program, reason
    ):
        submission = _create(review, program)
        before = store.get(SUBMISSIONS, submission.id)

        with pytest.raises(ValidationError):
            review.reject(submission.id, ADMIN_ID, reason)

        assert store.get(SUBMISSIONS, submission.id) == before

    def test_second_reject_is_conflict(self, review, program):
        submission = _create(review, program)
        review.reject(submission.id, ADMIN_ID, "blurry")
        with pytest.raises(ConflictError):
            review.reject(submission.id, ADMIN_ID, "again")

    def test_approve_after_reject_is_conflict(self, review, ledger, program):
        submission = _create(review, program)
        review.reject(submission.id, ADMIN_ID, "blurry")
        with pytest.raises(ConflictError):
            review.approve(submission.id, ADMIN_ID)
        assert ledger.get_pairing(program.pairing_id).total_points == 0

    def test_missing_submission(self, review, program):
        with pytest.raises(NotFoundError):
            review.reject("nope", ADMIN_ID, "blurry")


class TestListSubmissions:
    """list_submissions() のテスト"""

    def test_filters_by_status_newest_first(self, review, program):
        first = _create(review, program)
        second = _create(review, program, submitter=MENTEE_ID)
        third = _create(review, program)
        review.approve(first.id, ADMIN_ID)

        pending = review.list_submissions(status=SubmissionStatus.PENDING)

        assert [s.id for s in pending] == [third.id, second.id]

    def test_filters_by_pairing(self, review, program):
        _create(review, program)
        assert len(review.list_submissions(pairing_id=program.pairing_id)) == 1
        assert review.list_submissions(pairing_id="other") == []
