"""リーダーボード API ルート（認証不要の読み取りモデル）

GET /api/leaderboard/pairings   → 200 [Pairing...]（total_points 降順）
GET /api/leaderboard/families   → 200 [{ family_id, name, total_points }...]
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mentorship.entrypoints.api.deps import get_facade, unwrap
from mentorship.entrypoints.api.schemas import PairingResponse, pairing_response
from mentorship.services.facade import MentorshipFacade

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


class FamilyStandingResponse(BaseModel):
    family_id: str
    name: str
    total_points: int


@router.get("/pairings", response_model=list[PairingResponse])
async def pairing_leaderboard(
    facade: MentorshipFacade = Depends(get_facade),
) -> list[PairingResponse]:
    return [pairing_response(p) for p in unwrap(facade.pairing_leaderboard())]


@router.get("/families", response_model=list[FamilyStandingResponse])
async def family_leaderboard(
    include_archived: bool = False,
    facade: MentorshipFacade = Depends(get_facade),
) -> list[FamilyStandingResponse]:
    """ファミリー合計はペアリングから読み取り時に集計する"""
    standings = unwrap(facade.family_leaderboard(include_archived=include_archived))
    return [
        FamilyStandingResponse(
            family_id=s.family.id, name=s.family.name, total_points=s.total_points
        )
        for s in standings
    ]
