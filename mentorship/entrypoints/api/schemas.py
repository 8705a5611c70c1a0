"""API レスポンスモデル（複数ルートで共有するもの）"""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel

from mentorship.domain.models import AuditLogEntry, CascadeReport, Pairing, Submission


class SubmissionResponse(BaseModel):
    id: str
    pairing_id: str
    submitter_id: str
    week_number: int
    year: int
    image_locator: str
    status: str
    base_points: int
    bonus_points: int
    total_points: int
    bonus_activity_ids: list[str]
    reviewer_id: str | None
    reviewed_at: datetime.datetime | None
    review_reason: str | None
    created_at: datetime.datetime | None


def submission_response(s: Submission) -> SubmissionResponse:
    return SubmissionResponse(
        id=s.id,
        pairing_id=s.pairing_id,
        submitter_id=s.submitter_id,
        week_number=s.week_number,
        year=s.year,
        image_locator=s.image_locator,
        status=s.status.value,
        base_points=s.base_points,
        bonus_points=s.bonus_points,
        total_points=s.total_points,
        bonus_activity_ids=list(s.bonus_activity_ids),
        reviewer_id=s.reviewer_id,
        reviewed_at=s.reviewed_at,
        review_reason=s.review_reason,
        created_at=s.created_at,
    )


class PairingResponse(BaseModel):
    id: str
    family_id: str | None
    mentor_id: str
    mentee_ids: list[str]
    weekly_points: int
    total_points: int


def pairing_response(p: Pairing) -> PairingResponse:
    return PairingResponse(
        id=p.id,
        family_id=p.family_id,
        mentor_id=p.mentor_id,
        mentee_ids=list(p.mentee_ids),
        weekly_points=p.weekly_points,
        total_points=p.total_points,
    )


class AuditEntryResponse(BaseModel):
    id: str
    action: str
    entity_type: str
    entity_id: str
    actor_id: str
    changes: dict[str, Any]
    timestamp: datetime.datetime
    pairing_id: str | None


def audit_entry_response(e: AuditLogEntry) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=e.id,
        action=e.action.value,
        entity_type=e.entity_type,
        entity_id=e.entity_id,
        actor_id=e.actor_id,
        changes=e.changes,
        timestamp=e.timestamp,
        pairing_id=e.pairing_id,
    )


class CascadeReportResponse(BaseModel):
    target_type: str
    target_id: str
    target_deleted: bool
    applications_deleted: int
    submissions_deleted: int
    submissions_updated: int
    pairings_deleted: int
    pairings_updated: int
    families_deleted: int
    families_updated: int
    users_updated: int
    orphaned_images: list[str]
    identity_deleted: bool


def cascade_report_response(r: CascadeReport) -> CascadeReportResponse:
    return CascadeReportResponse(
        target_type=r.target_type,
        target_id=r.target_id,
        target_deleted=r.target_deleted,
        **r.to_dict(),
    )
