"""Firebase Auth Identity Adapter

IdentityProvider ABC の Firebase Auth 実装。
ユーザー削除カスケードの最終段（ベストエフォート）で使用する。
"""

from __future__ import annotations

import logging

import firebase_admin
import firebase_admin.auth as fb_auth
from firebase_admin import exceptions as fb_exceptions

from mentorship.domain.errors import IdentityProviderError
from mentorship.domain.ports import IdentityProvider

logger = logging.getLogger(__name__)


class FirebaseIdentityProvider(IdentityProvider):
    """Firebase Admin SDK を使った IdentityProvider 実装"""

    def __init__(self, app: firebase_admin.App | None = None) -> None:
        """
        Args:
            app: 初期化済みの Firebase App（省略時はデフォルト App）
        """
        self._app = app

    def delete_identity(self, uid: str) -> None:
        """
        Firebase Auth のアカウントを削除する。

        Raises:
            IdentityProviderError: UserNotFound 以外の理由で削除に失敗した場合
        """
        try:
            fb_auth.delete_user(uid, app=self._app)
        except fb_auth.UserNotFoundError:
            logger.info("Identity already deleted: uid=%s", uid)
            return
        except fb_exceptions.FirebaseError as e:
            raise IdentityProviderError(f"Failed to delete identity {uid}: {e}") from e
        logger.info("Deleted identity: uid=%s", uid)
