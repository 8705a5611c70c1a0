"""Factory - 依存性注入の組み立て

全 Adapter と Service を組み立て、MentorshipFacade を生成する。
LOCAL_MODE ではプロセス内メモリのストアと Null Object の外部連携を使う。
"""

from __future__ import annotations

import logging

from mentorship.adapters.memory_store import InMemoryDocumentStore
from mentorship.config import AppConfig
from mentorship.domain.ports import BlobStorage, DocumentStore, IdentityProvider
from mentorship.services.audit_log import AuditLog
from mentorship.services.cascade import CascadeEngine
from mentorship.services.facade import MentorshipFacade
from mentorship.services.points_ledger import PointsLedger
from mentorship.services.registry import Registry
from mentorship.services.submission_review import SubmissionReviewService

logger = logging.getLogger(__name__)


def create_facade(
    config: AppConfig | None = None,
    store: DocumentStore | None = None,
    blob_storage: BlobStorage | None = None,
    identity_provider: IdentityProvider | None = None,
) -> MentorshipFacade:
    """
    MentorshipFacade を生成（全依存を組み立て）。

    Args:
        config: アプリケーション設定（None の場合は環境変数から読み込み）
        store / blob_storage / identity_provider: 指定時は設定より優先して使う

    Returns:
        MentorshipFacade

    Raises:
        ValueError: 必須設定が不足している場合
    """
    if config is None:
        config = AppConfig.from_env()

    logger.info(
        "Creating facade: project_id=%s, local_mode=%s",
        config.project_id,
        config.local_mode,
    )

    if store is None:
        store = create_store(config)
    if blob_storage is None:
        blob_storage = create_blob_storage(config)
    if identity_provider is None:
        identity_provider = create_identity_provider(config)

    audit_log = AuditLog(store)
    ledger = PointsLedger(store, audit_log)
    review = SubmissionReviewService(
        store, ledger, audit_log, base_points=config.base_points
    )
    cascade = CascadeEngine(store, blob_storage, identity_provider, audit_log)
    registry = Registry(store, audit_log)

    logger.info("Facade created successfully")
    return MentorshipFacade(
        review=review,
        ledger=ledger,
        cascade=cascade,
        registry=registry,
        audit_log=audit_log,
    )


def create_store(config: AppConfig) -> DocumentStore:
    if config.local_mode:
        logger.warning("LOCAL_MODE: using in-memory document store")
        return InMemoryDocumentStore(max_attempts=config.transaction_max_attempts)

    from google.cloud import firestore

    from mentorship.adapters.firestore_store import FirestoreDocumentStore

    db = firestore.Client(project=config.project_id)
    return FirestoreDocumentStore(db, max_attempts=config.transaction_max_attempts)


def create_blob_storage(config: AppConfig) -> BlobStorage:
    if config.local_mode:
        logger.warning("LOCAL_MODE: images are kept in memory only")
        return _InMemoryBlobStorage()

    from mentorship.adapters.cloud_storage import GCSBlobStorage

    return GCSBlobStorage(bucket_name=config.gcs_bucket_name)


def create_identity_provider(config: AppConfig) -> IdentityProvider:
    if config.local_mode:
        return _NullIdentityProvider()

    from mentorship.adapters.firebase_identity import FirebaseIdentityProvider

    return FirebaseIdentityProvider(get_firebase_app(config.project_id))


def get_firebase_app(project_id: str = ""):
    """Firebase Admin を初期化（プロセス内で 1 回のみ）して App を返す"""
    import firebase_admin
    from firebase_admin import credentials as fb_creds

    try:
        # 既に初期化済み
        return firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(
            fb_creds.ApplicationDefault(),
            options={"projectId": project_id} if project_id else {},
        )
        logger.info("Firebase Admin initialized project=%s", project_id)
        return app


# Null Object Pattern（LOCAL_MODE で外部サービスを使わない場合の代替）


class _NullIdentityProvider(IdentityProvider):
    """IdentityProvider の Null Object（何もしない）"""

    def delete_identity(self, uid: str) -> None:
        logger.debug("NullIdentityProvider: identity deletion skipped uid=%s", uid)


class _InMemoryBlobStorage(BlobStorage):
    """BlobStorage のローカル代替（プロセス終了で消える）"""

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    def upload(self, blob_path: str, content: bytes, content_type: str) -> str:
        self._blobs[blob_path] = (content, content_type)
        return blob_path

    def delete(self, blob_path: str) -> None:
        self._blobs.pop(blob_path, None)
