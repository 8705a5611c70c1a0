"""ボーナス活動 API ルート

GET   /api/bonus-activities?active_only=   → 200 [BonusActivity...]（認証ユーザー）
POST  /api/bonus-activities                → 201 BonusActivity（管理者）
PATCH /api/bonus-activities/{id}           → 200 BonusActivity（管理者）
DELETE /api/bonus-activities/{id}          → 204（管理者）
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from mentorship.domain.models import BonusActivity
from mentorship.entrypoints.api.deps import (
    AdminContext,
    AuthInfo,
    get_auth_info,
    get_facade,
    require_admin,
    unwrap,
)
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bonus-activities", tags=["bonus-activities"])


class BonusActivityResponse(BaseModel):
    id: str
    name: str
    points: int
    is_active: bool
    description: str


class BonusActivityCreateRequest(BaseModel):
    name: str
    points: int
    description: str = ""


class BonusActivityUpdateRequest(BaseModel):
    name: str | None = None
    points: int | None = None
    is_active: bool | None = None


def _to_response(a: BonusActivity) -> BonusActivityResponse:
    return BonusActivityResponse(
        id=a.id,
        name=a.name,
        points=a.points,
        is_active=a.is_active,
        description=a.description,
    )


@router.get("", response_model=list[BonusActivityResponse])
async def list_bonus_activities(
    active_only: bool = False,
    _auth: AuthInfo = Depends(get_auth_info),
    facade: MentorshipFacade = Depends(get_facade),
) -> list[BonusActivityResponse]:
    activities = unwrap(facade.list_bonus_activities(active_only=active_only))
    return [_to_response(a) for a in activities]


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=BonusActivityResponse
)
async def create_bonus_activity(
    body: BonusActivityCreateRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> BonusActivityResponse:
    activity = unwrap(
        facade.create_bonus_activity(body.name, body.points, admin.uid, body.description)
    )
    return _to_response(activity)


@router.patch("/{bonus_activity_id}", response_model=BonusActivityResponse)
async def update_bonus_activity(
    bonus_activity_id: str,
    body: BonusActivityUpdateRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> BonusActivityResponse:
    """ボーナス活動を部分更新する（既存の提出物のポイントは変わらない）"""
    activity = unwrap(
        facade.update_bonus_activity(
            bonus_activity_id,
            admin.uid,
            name=body.name,
            points=body.points,
            is_active=body.is_active,
        )
    )
    return _to_response(activity)


@router.delete("/{bonus_activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bonus_activity(
    bonus_activity_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> None:
    unwrap(facade.delete_bonus_activity(bonus_activity_id, admin.uid))
