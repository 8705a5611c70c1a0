"""ドメインモデル - 外部依存なしのデータ構造"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mentorship.domain.errors import MentorshipError


class UserRole(Enum):
    """ユーザーのロール"""

    ADMIN = "ADMIN"
    MENTOR = "MENTOR"
    MENTEE = "MENTEE"


class SubmissionStatus(Enum):
    """提出物のレビュー状態（PENDING 以外は終端）"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuditAction(Enum):
    """監査ログのアクション種別"""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    POINTS_ADDED = "POINTS_ADDED"
    POINTS_DEDUCTED = "POINTS_DEDUCTED"


# ポイント台帳を動かすアクション（監査ログからの再構築対象）
LEDGER_ACTIONS = frozenset(
    {AuditAction.APPROVE, AuditAction.POINTS_ADDED, AuditAction.POINTS_DEDUCTED}
)


def normalize_email(email: str | None) -> str:
    """メールアドレスを比較用に正規化する（前後空白除去・小文字化）"""
    return (email or "").strip().lower()


@dataclass(frozen=True)
class User:
    """プログラム参加者"""

    id: str  # Firebase Auth UID
    name: str
    email: str  # normalize_email 済み
    role: UserRole
    family_id: str | None = None
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


@dataclass(frozen=True)
class Family:
    """ファミリー（ペアリングをまとめる競争単位）"""

    id: str
    name: str
    member_ids: list[str] = field(default_factory=list)
    family_head_ids: list[str] = field(default_factory=list)
    aunt_uncle_ids: list[str] = field(default_factory=list)
    is_archived: bool = False


@dataclass(frozen=True)
class Pairing:
    """メンター1人 + メンティー1人以上。ポイントを貯める単位"""

    id: str
    family_id: str | None
    mentor_id: str
    mentee_ids: list[str]
    weekly_points: int = 0
    total_points: int = 0


@dataclass(frozen=True)
class Submission:
    """週次の写真提出"""

    id: str
    pairing_id: str
    submitter_id: str
    week_number: int
    year: int
    image_locator: str  # ストレージパス: "submissions/{uid}/{uuid}.jpg"
    status: SubmissionStatus
    base_points: int
    bonus_points: int
    total_points: int  # base_points + bonus_points（REJECTED は 0）
    bonus_activity_ids: list[str] = field(default_factory=list)
    bonus_points_awarded: dict[str, int] = field(default_factory=dict)
    reviewer_id: str | None = None
    reviewed_at: datetime.datetime | None = None
    review_reason: str | None = None
    created_at: datetime.datetime | None = None


@dataclass(frozen=True)
class BonusActivity:
    """ボーナス活動（提出時に選択可能な加点項目）"""

    id: str
    name: str
    points: int
    is_active: bool = True
    description: str = ""


@dataclass(frozen=True)
class AuditLogEntry:
    """監査ログ 1 件（追記のみ）"""

    id: str
    action: AuditAction
    entity_type: str  # "submission" | "pairing" | "family" | "user" | "bonus_activity"
    entity_id: str
    actor_id: str
    changes: dict[str, Any]  # 例: {"previous_points": 50, "delta": 15, "new_points": 65}
    timestamp: datetime.datetime
    pairing_id: str | None = None  # 台帳に関係するエントリの対象ペアリング

    @property
    def delta(self) -> int:
        """台帳アクションならポイント増減、それ以外は 0"""
        if self.action not in LEDGER_ACTIONS:
            return 0
        return int(self.changes.get("delta", 0))


@dataclass(frozen=True)
class StoredDocument:
    """DocumentStore のクエリ結果 1 件"""

    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class PointsAdjustment:
    """手動ポイント調整の結果"""

    pairing_id: str
    previous_points: int
    delta: int
    new_points: int


@dataclass(frozen=True)
class LedgerCheck:
    """保存済み合計と監査ログ再生結果の照合"""

    pairing_id: str
    stored_total: int
    replayed_total: int

    @property
    def consistent(self) -> bool:
        return self.stored_total == self.replayed_total


@dataclass(frozen=True)
class FamilyStanding:
    """ファミリーリーダーボードの 1 行（ペアリング合計から算出）"""

    family: Family
    total_points: int


@dataclass
class CascadeReport:
    """カスケード削除の実行結果サマリー"""

    target_type: str
    target_id: str
    applications_deleted: int = 0
    submissions_deleted: int = 0
    submissions_updated: int = 0
    pairings_deleted: int = 0
    pairings_updated: int = 0
    families_deleted: int = 0
    families_updated: int = 0
    users_updated: int = 0
    orphaned_images: list[str] = field(default_factory=list)
    identity_deleted: bool = False
    target_deleted: bool = False

    @property
    def changed(self) -> bool:
        """何らかのドキュメントを書き換えたか"""
        return bool(
            self.target_deleted
            or self.applications_deleted
            or self.submissions_deleted
            or self.submissions_updated
            or self.pairings_deleted
            or self.pairings_updated
            or self.families_deleted
            or self.families_updated
            or self.users_updated
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "applications_deleted": self.applications_deleted,
            "submissions_deleted": self.submissions_deleted,
            "submissions_updated": self.submissions_updated,
            "pairings_deleted": self.pairings_deleted,
            "pairings_updated": self.pairings_updated,
            "families_deleted": self.families_deleted,
            "families_updated": self.families_updated,
            "users_updated": self.users_updated,
            "orphaned_images": list(self.orphaned_images),
            "identity_deleted": self.identity_deleted,
        }


@dataclass(frozen=True)
class OperationResult:
    """コア境界の戻り値（成功 or エラー）。例外はこの境界を越えない"""

    success: bool
    value: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: Any = None) -> OperationResult:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: MentorshipError) -> OperationResult:
        return cls(success=False, error=error.message, error_code=error.code)
