"""FastAPI 依存性注入

Firebase Auth JWT 検証、管理者ロールの確認、MentorshipFacade の初期化を担当する。
各ルートは Depends() でこのモジュールの関数を呼び出して認証情報と
Facade インスタンスを受け取る。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import firebase_admin.auth as fb_auth
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mentorship.config import AppConfig
from mentorship.domain.models import OperationResult, UserRole
from mentorship.domain.ports import BlobStorage
from mentorship.entrypoints.factory import (
    create_blob_storage,
    create_facade,
    get_firebase_app,
)
from mentorship.services.facade import MentorshipFacade

logger = logging.getLogger(__name__)

# ── エラーコード → HTTP ステータス ──────────────────────────────────────────

_STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "VALIDATION": status.HTTP_400_BAD_REQUEST,
    "PRECONDITION": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "AUTHZ": status.HTTP_403_FORBIDDEN,
    "STORAGE": status.HTTP_502_BAD_GATEWAY,
    "IDENTITY": status.HTTP_502_BAD_GATEWAY,
}


def unwrap(result: OperationResult) -> Any:
    """
    OperationResult の値を返す。失敗時は error_code に対応する HTTPException を送出する。

    Raises:
        HTTPException: result.success が False の場合
    """
    if result.success:
        return result.value
    raise HTTPException(
        status_code=_STATUS_BY_CODE.get(
            result.error_code or "", status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        detail={"code": result.error_code, "message": result.error},
    )


# ── 設定・Facade（シングルトン） ────────────────────────────────────────────

_config: AppConfig | None = None
_blob_storage: BlobStorage | None = None
_facade: MentorshipFacade | None = None


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def get_blob_storage() -> BlobStorage:
    """BlobStorage を返す依存関数（Facade と同じインスタンス）"""
    global _blob_storage
    if _blob_storage is None:
        _blob_storage = create_blob_storage(get_config())
    return _blob_storage


def get_facade() -> MentorshipFacade:
    """MentorshipFacade を返す依存関数"""
    global _facade
    if _facade is None:
        _facade = create_facade(get_config(), blob_storage=get_blob_storage())
    return _facade


# ── 認証 ────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AuthInfo:
    """Firebase Auth JWT から取得した認証情報"""

    uid: str
    email: str


_bearer = HTTPBearer()


async def get_auth_info(
    creds: HTTPAuthorizationCredentials = Depends(_bearer),
) -> AuthInfo:
    """
    Authorization: Bearer <id_token> ヘッダーを検証して AuthInfo を返す。

    Raises:
        HTTPException(401): トークンが無効な場合
    """
    app = get_firebase_app(get_config().project_id)
    try:
        decoded = fb_auth.verify_id_token(creds.credentials, app=app)
    except Exception as e:
        logger.warning("Invalid Firebase ID token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase ID token",
        ) from e

    return AuthInfo(uid=decoded["uid"], email=decoded.get("email", ""))


# ── 管理者コンテキスト ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AdminContext:
    """管理者として認可済みの呼び出し元"""

    uid: str


async def require_admin(
    auth_info: AuthInfo = Depends(get_auth_info),
    facade: MentorshipFacade = Depends(get_facade),
) -> AdminContext:
    """
    users/{uid} のロールが ADMIN であることを要求する依存関数。

    Raises:
        HTTPException(403): プロフィールが無い、またはロールが ADMIN でない場合
    """
    result = facade.get_user(auth_info.uid)
    if not result.success or result.value.role != UserRole.ADMIN:
        logger.warning("Admin access denied: uid=%s", auth_info.uid)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "AUTHZ", "message": "Administrator role required"},
        )
    return AdminContext(uid=auth_info.uid)
