"""ユーザー API ルート（管理者）

DELETE /api/users/{id}         → 200 CascadeReport
GET    /api/users/{id}/audit   → 200 [AuditEntry...]
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from mentorship.entrypoints.api.deps import (
    AdminContext,
    get_facade,
    require_admin,
    unwrap,
)
from mentorship.entrypoints.api.schemas import (
    AuditEntryResponse,
    CascadeReportResponse,
    audit_entry_response,
    cascade_report_response,
)
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.delete("/{user_id}", response_model=CascadeReportResponse)
async def delete_user(
    user_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> CascadeReportResponse:
    """
    ユーザーを削除し、提出物・ペアリング・ファミリーから参照を取り除く。

    再実行しても安全（削除済みなら何もしない）。
    """
    report = unwrap(facade.delete_user(user_id, admin.uid))
    return cascade_report_response(report)


@router.get("/{user_id}/audit", response_model=list[AuditEntryResponse])
async def get_user_audit(
    user_id: str,
    _admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> list[AuditEntryResponse]:
    entries = unwrap(facade.get_audit_trail(user_id=user_id))
    return [audit_entry_response(e) for e in entries]
