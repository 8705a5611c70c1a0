"""コレクション名とドメインモデル ↔ ドキュメント dict の変換"""

from __future__ import annotations

from typing import Any

from mentorship.domain.models import (
    AuditAction,
    AuditLogEntry,
    BonusActivity,
    Family,
    Pairing,
    Submission,
    SubmissionStatus,
    User,
    UserRole,
    normalize_email,
)

USERS = "users"
FAMILIES = "families"
PAIRINGS = "pairings"
SUBMISSIONS = "submissions"
BONUS_ACTIVITIES = "bonus_activities"
AUDIT_LOGS = "audit_logs"
APPLICATIONS = "applications"


# ── User ────────────────────────────────────────────────────────────────────


def user_from_doc(doc_id: str, data: dict) -> User:
    return User(
        id=doc_id,
        name=data.get("name") or "",
        email=normalize_email(data.get("email")),
        role=UserRole(data.get("role") or UserRole.MENTEE.value),
        family_id=data.get("family_id"),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


# ── Family ──────────────────────────────────────────────────────────────────


def family_from_doc(doc_id: str, data: dict) -> Family:
    return Family(
        id=doc_id,
        name=data.get("name") or "",
        member_ids=list(data.get("member_ids") or []),
        family_head_ids=list(data.get("family_head_ids") or []),
        aunt_uncle_ids=list(data.get("aunt_uncle_ids") or []),
        is_archived=bool(data.get("is_archived", False)),
    )


def family_to_doc(family: Family) -> dict[str, Any]:
    return {
        "name": family.name,
        "member_ids": list(family.member_ids),
        "family_head_ids": list(family.family_head_ids),
        "aunt_uncle_ids": list(family.aunt_uncle_ids),
        "is_archived": family.is_archived,
    }


# ── Pairing ─────────────────────────────────────────────────────────────────


def pairing_from_doc(doc_id: str, data: dict) -> Pairing:
    return Pairing(
        id=doc_id,
        family_id=data.get("family_id"),
        mentor_id=data.get("mentor_id") or "",
        mentee_ids=list(data.get("mentee_ids") or []),
        weekly_points=int(data.get("weekly_points") or 0),
        total_points=int(data.get("total_points") or 0),
    )


def pairing_to_doc(pairing: Pairing) -> dict[str, Any]:
    return {
        "family_id": pairing.family_id,
        "mentor_id": pairing.mentor_id,
        "mentee_ids": list(pairing.mentee_ids),
        "weekly_points": pairing.weekly_points,
        "total_points": pairing.total_points,
    }


# ── Submission ──────────────────────────────────────────────────────────────


def submission_from_doc(doc_id: str, data: dict) -> Submission:
    return Submission(
        id=doc_id,
        pairing_id=data.get("pairing_id") or "",
        submitter_id=data.get("submitter_id") or "",
        week_number=int(data.get("week_number") or 0),
        year=int(data.get("year") or 0),
        image_locator=data.get("image_locator") or "",
        status=SubmissionStatus(data.get("status") or SubmissionStatus.PENDING.value),
        base_points=int(data.get("base_points") or 0),
        bonus_points=int(data.get("bonus_points") or 0),
        total_points=int(data.get("total_points") or 0),
        bonus_activity_ids=list(data.get("bonus_activity_ids") or []),
        bonus_points_awarded={
            k: int(v) for k, v in (data.get("bonus_points_awarded") or {}).items()
        },
        reviewer_id=data.get("reviewer_id"),
        reviewed_at=data.get("reviewed_at"),
        review_reason=data.get("review_reason"),
        created_at=data.get("created_at"),
    )


def submission_to_doc(submission: Submission) -> dict[str, Any]:
    return {
        "pairing_id": submission.pairing_id,
        "submitter_id": submission.submitter_id,
        "week_number": submission.week_number,
        "year": submission.year,
        "image_locator": submission.image_locator,
        "status": submission.status.value,
        "base_points": submission.base_points,
        "bonus_points": submission.bonus_points,
        "total_points": submission.total_points,
        "bonus_activity_ids": list(submission.bonus_activity_ids),
        "bonus_points_awarded": dict(submission.bonus_points_awarded),
        "reviewer_id": submission.reviewer_id,
        "reviewed_at": submission.reviewed_at,
        "review_reason": submission.review_reason,
        "created_at": submission.created_at,
    }


# ── BonusActivity ───────────────────────────────────────────────────────────


def bonus_activity_from_doc(doc_id: str, data: dict) -> BonusActivity:
    return BonusActivity(
        id=doc_id,
        name=data.get("name") or "",
        points=int(data.get("points") or 0),
        is_active=bool(data.get("is_active", False)),
        description=data.get("description") or "",
    )


def bonus_activity_to_doc(activity: BonusActivity) -> dict[str, Any]:
    return {
        "name": activity.name,
        "points": activity.points,
        "is_active": activity.is_active,
        "description": activity.description,
    }


# ── AuditLogEntry ───────────────────────────────────────────────────────────


def audit_entry_from_doc(doc_id: str, data: dict) -> AuditLogEntry:
    return AuditLogEntry(
        id=doc_id,
        action=AuditAction(data["action"]),
        entity_type=data.get("entity_type") or "",
        entity_id=data.get("entity_id") or "",
        actor_id=data.get("actor_id") or "",
        changes=dict(data.get("changes") or {}),
        timestamp=data["timestamp"],
        pairing_id=data.get("pairing_id"),
    )


def audit_entry_to_doc(entry: AuditLogEntry) -> dict[str, Any]:
    return {
        "action": entry.action.value,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "actor_id": entry.actor_id,
        "changes": dict(entry.changes),
        "timestamp": entry.timestamp,
        "pairing_id": entry.pairing_id,
    }
