"""提出物 API ルート

POST /api/submissions                  → 201 { id, status, total_points }
GET  /api/submissions?status=          → 200 [Submission...]（管理者）
POST /api/submissions/{id}/approve     → 200 Submission（管理者）
POST /api/submissions/{id}/reject      → 200 Submission（管理者）
"""

from __future__ import annotations

import logging
import uuid

from fastapi import (
    APIRouter,
    Depends,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from pydantic import BaseModel

from mentorship.domain.errors import StorageError
from mentorship.domain.models import SubmissionStatus
from mentorship.domain.ports import BlobStorage
from mentorship.entrypoints.api.deps import (
    AdminContext,
    AuthInfo,
    get_auth_info,
    get_blob_storage,
    get_facade,
    require_admin,
    unwrap,
)
from mentorship.entrypoints.api.schemas import SubmissionResponse, submission_response
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/submissions", tags=["submissions"])

_MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10 MiB

_EXT_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}


class CreateSubmissionResponse(BaseModel):
    id: str
    status: str
    total_points: int


class RejectRequest(BaseModel):
    reason: str


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=CreateSubmissionResponse
)
async def create_submission(
    file: UploadFile,
    week_number: int = Form(...),
    year: int = Form(...),
    bonus_activity_ids: list[str] = Form(default=[]),
    auth: AuthInfo = Depends(get_auth_info),
    facade: MentorshipFacade = Depends(get_facade),
    storage: BlobStorage = Depends(get_blob_storage),
) -> CreateSubmissionResponse:
    """
    写真をアップロードして提出物を PENDING で作成する。

    - JPEG / PNG / WebP / HEIC のみ、10 MiB まで
    - 作成に失敗した場合はアップロード済みの画像を削除する
    """
    mime_type = file.content_type or ""
    ext = _EXT_BY_MIME.get(mime_type)
    if ext is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION", "message": "Only JPEG, PNG, WebP or HEIC images are accepted"},
        )
    content = await file.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION", "message": "Image file is empty"},
        )
    if len(content) > _MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION", "message": "Image must be 10 MiB or smaller"},
        )

    # ── 画像を保存 ─────────────────────────────────────────────────────────
    storage_path = f"submissions/{auth.uid}/{uuid.uuid4()}.{ext}"
    try:
        locator = storage.upload(storage_path, content, mime_type)
    except StorageError as e:
        logger.warning("Image upload failed: uid=%s, error=%s", auth.uid, e.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": e.code, "message": e.message},
        ) from e

    result = facade.create_submission(
        auth.uid, week_number, year, locator, bonus_activity_ids
    )
    if not result.success:
        # 提出物を作れなかった画像は残さない
        try:
            storage.delete(locator)
        except StorageError as e:
            logger.warning("Orphaned upload: path=%s, error=%s", locator, e.message)
    submission = unwrap(result)
    return CreateSubmissionResponse(
        id=submission.id,
        status=submission.status.value,
        total_points=submission.total_points,
    )


@router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    status_filter: SubmissionStatus | None = Query(default=None, alias="status"),
    pairing_id: str | None = None,
    _admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> list[SubmissionResponse]:
    """提出物一覧を新しい順で返す"""
    submissions = unwrap(facade.list_submissions(status=status_filter, pairing_id=pairing_id))
    return [submission_response(s) for s in submissions]


@router.post("/{submission_id}/approve", response_model=SubmissionResponse)
async def approve_submission(
    submission_id: str,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> SubmissionResponse:
    """提出物を承認しペアリングにポイントを加算する"""
    return submission_response(
        unwrap(facade.approve_submission(submission_id, admin.uid))
    )


@router.post("/{submission_id}/reject", response_model=SubmissionResponse)
async def reject_submission(
    submission_id: str,
    body: RejectRequest,
    admin: AdminContext = Depends(require_admin),
    facade: MentorshipFacade = Depends(get_facade),
) -> SubmissionResponse:
    """提出物を却下する（理由必須）"""
    return submission_response(
        unwrap(facade.reject_submission(submission_id, admin.uid, body.reason))
    )
