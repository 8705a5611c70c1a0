"""E2E テスト用フィクスチャ

Firestore Emulator に接続し、実際の FirestoreDocumentStore を使ってテストする。
Firebase Auth は dependency_overrides でバイパスし、
画像ストレージと認証基盤は MagicMock で差し替える。

前提: FIRESTORE_EMULATOR_HOST 環境変数が設定されていること
  例: FIRESTORE_EMULATOR_HOST=localhost:8080 pytest tests/e2e/ -m e2e -v
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from google.cloud import firestore

from mentorship.adapters.firestore_store import FirestoreDocumentStore
from mentorship.config import AppConfig
from mentorship.domain.ports import BlobStorage, IdentityProvider
from mentorship.entrypoints.api import deps
from mentorship.entrypoints.api.app import app
from mentorship.entrypoints.api.deps import AuthInfo
from mentorship.entrypoints.factory import create_facade
from mentorship.services.mappers import (
    APPLICATIONS,
    AUDIT_LOGS,
    BONUS_ACTIVITIES,
    FAMILIES,
    PAIRINGS,
    SUBMISSIONS,
    USERS,
)

ADMIN_UID = "e2e-admin"
MENTOR_UID = "e2e-mentor"
MENTEE_UID = "e2e-mentee"

_COLLECTIONS = [
    USERS,
    FAMILIES,
    PAIRINGS,
    SUBMISSIONS,
    BONUS_ACTIVITIES,
    AUDIT_LOGS,
    APPLICATIONS,
]


@pytest.fixture(scope="session")
def firestore_client():
    """Firestore Emulator に接続するクライアント（セッション共有）。

    FIRESTORE_EMULATOR_HOST が未設定の場合は localhost:8080 をデフォルトとして使用する。
    """
    host = os.environ.get("FIRESTORE_EMULATOR_HOST", "localhost:8080")
    os.environ["FIRESTORE_EMULATOR_HOST"] = host
    return firestore.Client(project="test-project")


@pytest.fixture(autouse=True)
def _cleanup_firestore(firestore_client):
    """各テスト後に Emulator のデータをクリーンアップ"""
    yield
    for collection_name in _COLLECTIONS:
        for doc in firestore_client.collection(collection_name).stream():
            doc.reference.delete()


@pytest.fixture
def e2e_store(firestore_client) -> FirestoreDocumentStore:
    return FirestoreDocumentStore(firestore_client)


@pytest.fixture
def e2e_blob_storage() -> MagicMock:
    blobs = MagicMock(spec=BlobStorage)
    blobs.upload.side_effect = lambda path, content, content_type: path
    return blobs


@pytest.fixture
def e2e_facade(e2e_store, e2e_blob_storage):
    config = AppConfig(project_id="test-project", gcs_bucket_name="test-bucket")
    return create_facade(
        config,
        store=e2e_store,
        blob_storage=e2e_blob_storage,
        identity_provider=MagicMock(spec=IdentityProvider),
    )


@pytest.fixture
def caller() -> dict:
    return {"uid": ADMIN_UID}


@pytest.fixture
def e2e_client(e2e_store, e2e_facade, e2e_blob_storage, caller):
    """認証バイパス + 実 Firestore の TestClient。

    - get_auth_info: caller["uid"] の AuthInfo を返却（Firebase Auth をバイパス）
    - get_facade: Emulator 上のストアで組み立てた Facade
    - get_blob_storage: Facade と同じ MagicMock
    - 管理者・メンター・メンティーの users ドキュメントを事前作成
    """
    for uid, role in [
        (ADMIN_UID, "ADMIN"),
        (MENTOR_UID, "MENTOR"),
        (MENTEE_UID, "MENTEE"),
    ]:
        e2e_store.set(
            USERS,
            uid,
            {"name": uid, "email": f"{uid}@example.com", "role": role, "family_id": None},
        )

    app.dependency_overrides[deps.get_auth_info] = lambda: AuthInfo(
        uid=caller["uid"], email=f"{caller['uid']}@example.com"
    )
    app.dependency_overrides[deps.get_facade] = lambda: e2e_facade
    app.dependency_overrides[deps.get_blob_storage] = lambda: e2e_blob_storage

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
