"""ペアリング API ルート（管理者）

POST   /api/pairings                 → 201 Pairing
POST   /api/pairings/{id}/points     → 200 { previous_points, delta, new_points }
GET    /api/pairings/{id}/audit      → 200 [AuditEntry...]
GET    /api/pairings/{id}/ledger     → 200 { stored_total, replayed_total, consistent }
DELETE /api/pairings/{id}            → 204
POST   /api/pairings/{id}/mentees    → 200 Pairing
DELETE /api/pairings/{id}/mentees/{mentee_id} → 200 CascadeReport
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from mentorship.entrypoints.api.deps import (
    AdminContext,
    get_facade,
    require_admin,
    unwrap,
)
from mentorship.entrypoints.api.schemas import (
    AuditEntryResponse,
    CascadeReportResponse,
    PairingResponse,
    audit_entry_response,
    cascade_report_response,
    pairing_response,
)
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/pairings", tags=["pairings"])


class PairingCreateRequest(BaseModel):
    family_id: str
    mentor_id: str
    mentee_ids: list[str]


class AddMenteeRequest(BaseModel):
    mentee_id: str


class PointsAdjustRequest(BaseModel):
    delta: int
    reason: str


class PointsAdjustResponse(BaseModel):
    pairing_id: str
    previous_points: int
    delta: int
    new_points: int


class LedgerCheckResponse(BaseModel):
    pairing_id: str
    stored_total: int
    replayed_total: int
    consistent: bool


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PairingResponse)
async def create_pairing(
    body: PairingCreateRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> PairingResponse:
    pairing = unwrap(
        facade.create_pairing(body.family_id, body.mentor_id, body.mentee_ids, admin.uid)
    )
    return pairing_response(pairing)


@router.post("/{pairing_id}/points", response_model=PointsAdjustResponse)
async def adjust_points(
    pairing_id: str,
    body: PointsAdjustRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> PointsAdjustResponse:
    """ポイントを手動で加算・減算する（理由必須）"""
    result = unwrap(facade.adjust_points(pairing_id, admin.uid, body.delta, body.reason))
    return PointsAdjustResponse(
        pairing_id=result.pairing_id,
        previous_points=result.previous_points,
        delta=result.delta,
        new_points=result.new_points,
    )


@router.get("/{pairing_id}/audit", response_model=list[AuditEntryResponse])
async def get_pairing_audit(
    pairing_id: str,
    _admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> list[AuditEntryResponse]:
    """ペアリングのポイント履歴を古い順で返す"""
    entries = unwrap(facade.get_audit_trail(pairing_id=pairing_id))
    return [audit_entry_response(e) for e in entries]


@router.get("/{pairing_id}/ledger", response_model=LedgerCheckResponse)
async def check_ledger(
    pairing_id: str,
    _admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> LedgerCheckResponse:
    check = unwrap(facade.verify_ledger(pairing_id))
    return LedgerCheckResponse(
        pairing_id=check.pairing_id,
        stored_total=check.stored_total,
        replayed_total=check.replayed_total,
        consistent=check.consistent,
    )


@router.delete("/{pairing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pairing(
    pairing_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> None:
    """ペアリングを提出物ごと削除する"""
    unwrap(facade.delete_pairing(pairing_id, admin.uid))


@router.post("/{pairing_id}/mentees", response_model=PairingResponse)
async def add_mentee(
    pairing_id: str,
    body: AddMenteeRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> PairingResponse:
    return pairing_response(unwrap(facade.add_mentee(pairing_id, body.mentee_id, admin.uid)))


@router.delete(
    "/{pairing_id}/mentees/{mentee_id}", response_model=CascadeReportResponse
)
async def remove_mentee(
    pairing_id: str,
    mentee_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> CascadeReportResponse:
    """メンティーを外す（最後の 1 人ならペアリングを提出物ごと削除）"""
    report = unwrap(facade.remove_mentee(pairing_id, mentee_id, admin.uid))
    return cascade_report_response(report)
