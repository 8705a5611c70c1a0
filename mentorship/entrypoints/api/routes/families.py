"""ファミリー API ルート（管理者）

POST   /api/families        → 201 { id, name }
DELETE /api/families/{id}   → 204
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
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/families", tags=["families"])


class FamilyCreateRequest(BaseModel):
    name: str


class FamilyResponse(BaseModel):
    id: str
    name: str


@router.post("", status_code=status.HTTP_201_CREATED, response_model=FamilyResponse)
async def create_family(
    body: FamilyCreateRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> FamilyResponse:
    family = unwrap(facade.create_family(body.name, admin.uid))
    return FamilyResponse(id=family.id, name=family.name)


@router.delete("/{family_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_family(
    family_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> None:
    """ファミリーを削除し、ペアリング・ユーザーの所属を外す"""
    unwrap(facade.delete_family(family_id, admin.uid))
