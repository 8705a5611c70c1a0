"""共通テストフィクスチャ

全テストから利用可能なストア・サービス・サンプルデータを提供。

- 状態遷移・台帳・カスケードのテストは InMemoryDocumentStore を使う
- 外部連携（画像ストレージ・認証基盤）は MagicMock(spec=ABC) で差し替える
"""

from __future__ import annotations

import datetime
import itertools
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from mentorship.adapters.memory_store import InMemoryDocumentStore
from mentorship.domain.ports import BlobStorage, IdentityProvider
from mentorship.services.audit_log import AuditLog
from mentorship.services.cascade import CascadeEngine
from mentorship.services.facade import MentorshipFacade
from mentorship.services.mappers import BONUS_ACTIVITIES, USERS
from mentorship.services.points_ledger import PointsLedger
from mentorship.services.registry import Registry
from mentorship.services.submission_review import SubmissionReviewService

ADMIN_ID = "admin-1"
MENTOR_ID = "mentor-1"
MENTEE_ID = "mentee-1"
MENTEE_2_ID = "mentee-2"
OUTSIDER_ID = "outsider-1"


# ========== ストア・外部連携 ==========


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def clock():
    """1 秒ずつ進む時計（監査ログの並び順を決定的にする）"""
    start = datetime.datetime(2025, 4, 1, 9, 0, tzinfo=datetime.UTC)
    ticks = itertools.count()
    return lambda: start + datetime.timedelta(seconds=next(ticks))


@pytest.fixture
def mock_blob_storage() -> MagicMock:
    blobs = MagicMock(spec=BlobStorage)
    blobs.upload.side_effect = lambda path, content, content_type: path
    return blobs


@pytest.fixture
def mock_identity_provider() -> MagicMock:
    return MagicMock(spec=IdentityProvider)


# ========== サービス ==========


@pytest.fixture
def audit_log(store, clock) -> AuditLog:
    return AuditLog(store, clock=clock)


@pytest.fixture
def ledger(store, audit_log) -> PointsLedger:
    return PointsLedger(store, audit_log)


@pytest.fixture
def review(store, ledger, audit_log, clock) -> SubmissionReviewService:
    return SubmissionReviewService(store, ledger, audit_log, clock=clock)


@pytest.fixture
def cascade(store, mock_blob_storage, mock_identity_provider, audit_log) -> CascadeEngine:
    return CascadeEngine(store, mock_blob_storage, mock_identity_provider, audit_log)


@pytest.fixture
def registry(store, audit_log) -> Registry:
    return Registry(store, audit_log)


@pytest.fixture
def facade(review, ledger, cascade, registry, audit_log) -> MentorshipFacade:
    return MentorshipFacade(
        review=review,
        ledger=ledger,
        cascade=cascade,
        registry=registry,
        audit_log=audit_log,
    )


# ========== サンプルデータ ==========


@dataclass(frozen=True)
class Program:
    """シード済みデータの ID 一覧"""

    family_id: str
    pairing_id: str
    bonus_id: str  # 5 ポイント（アクティブ）
    inactive_bonus_id: str  # 8 ポイント（非アクティブ）


def add_user(store, uid: str, role: str, email: str | None = None) -> None:
    store.set(
        USERS,
        uid,
        {
            "name": uid,
            "email": email or f"{uid}@example.com",
            "role": role,
            "family_id": None,
        },
    )


@pytest.fixture
def program(store, registry) -> Program:
    """
    管理者 1 人、メンター 1 人 + メンティー 2 人のペアリング、
    ファミリー 1 つ、ボーナス活動 2 つ（片方は非アクティブ）。
    """
    add_user(store, ADMIN_ID, "ADMIN")
    add_user(store, MENTOR_ID, "MENTOR")
    add_user(store, MENTEE_ID, "MENTEE", email="Mentee-1@Example.com ")
    add_user(store, MENTEE_2_ID, "MENTEE")
    add_user(store, OUTSIDER_ID, "MENTEE")

    family = registry.create_family("Lotus", ADMIN_ID)
    pairing = registry.create_pairing(
        family.id, MENTOR_ID, [MENTEE_ID, MENTEE_2_ID], ADMIN_ID
    )
    bonus = registry.create_bonus_activity("Boba run", 5, ADMIN_ID)
    inactive = registry.create_bonus_activity("Karaoke", 8, ADMIN_ID)
    store.update(BONUS_ACTIVITIES, inactive.id, {"is_active": False})
    return Program(
        family_id=family.id,
        pairing_id=pairing.id,
        bonus_id=bonus.id,
        inactive_bonus_id=inactive.id,
    )
