"""CascadeEngine - 参照整合性を保つカスケード削除

ストアには外部キー制約がないため、User / Pairing / Family の削除時に
依存コレクションを順番に辿って補償的な削除・更新を行う。

各ステップは独立してコミットされ、対象が既に無ければ何もしない（再実行可能）。
途中で例外が発生した場合、それ以前のステップはロールバックされない。
全体を 1 トランザクションにしないのは、件数がトランザクションの上限を
超えうるため。

画像 → ドキュメントの順で削除する。途中でクラッシュしても
「画像の無いドキュメント」（検出・再削除できる）が残るだけで、
「削除済み画像を指すドキュメント」が残ることはない。
"""

from __future__ import annotations

import logging

from mentorship.domain.errors import IdentityProviderError, NotFoundError, StorageError
from mentorship.domain.models import AuditAction, CascadeReport, normalize_email
from mentorship.domain.ports import BlobStorage, DocumentStore, IdentityProvider
from mentorship.services.audit_log import AuditLog
from mentorship.services.mappers import (
    APPLICATIONS,
    FAMILIES,
    PAIRINGS,
    SUBMISSIONS,
    USERS,
)

logger = logging.getLogger(__name__)

_FAMILY_ROLE_FIELDS = ("member_ids", "family_head_ids", "aunt_uncle_ids")


class CascadeEngine:
    """User / Pairing / Family の削除と依存ドキュメントの後始末"""

    def __init__(
        self,
        store: DocumentStore,
        blob_storage: BlobStorage,
        identity_provider: IdentityProvider,
        audit_log: AuditLog,
    ) -> None:
        self._store = store
        self._blobs = blob_storage
        self._identity = identity_provider
        self._audit = audit_log

    # ── User ────────────────────────────────────────────────────────────────

    def delete_user(self, user_id: str, actor_id: str) -> CascadeReport:
        """
        ユーザーを削除し、全コレクションからそのユーザーへの参照を取り除く。

        処理順:
          1. メールアドレスに紐づく応募レコードを削除
          2. 本人の提出物を削除（画像 → ドキュメント）、レビュー担当の参照を外す
          3. メンターとして所属するペアリングを提出物ごと削除
          4. メンティーとして所属するペアリングから除外（空になれば削除）
          5. ファミリーの member/head/aunt_uncle から除外（空になれば削除）
          6. 認証基盤のアカウントを削除（ベストエフォート）
          7. users/{uid} を削除
          8. 監査ログを追記（何か変更した場合のみ）

        Returns:
            CascadeReport: 削除・更新件数のサマリー
        """
        report = CascadeReport(target_type="user", target_id=user_id)
        user = self._store.get(USERS, user_id)
        email = normalize_email((user or {}).get("email"))
        logger.info("Cascade delete user started: user_id=%s", user_id)

        # 1. 応募レコード
        if email:
            for doc in self._store.query(APPLICATIONS, [("email", "==", email)]):
                self._store.delete(APPLICATIONS, doc.id)
                report.applications_deleted += 1

        # 2. 本人の提出物
        for doc in self._store.query(SUBMISSIONS, [("submitter_id", "==", user_id)]):
            self._delete_submission(doc.id, doc.data, report)

        # 2'. レビュー担当として記録された提出物（誰がレビューしたかは監査ログに残る）
        for doc in self._store.query(SUBMISSIONS, [("reviewer_id", "==", user_id)]):
            self._store.update(SUBMISSIONS, doc.id, {"reviewer_id": None})
            report.submissions_updated += 1

        # 3. メンターとしてのペアリング（メンター不在のペアリングは成立しない）
        for doc in self._store.query(PAIRINGS, [("mentor_id", "==", user_id)]):
            self._delete_pairing_documents(doc.id, report)

        # 4. メンティーとしてのペアリング
        for doc in self._store.query(
            PAIRINGS, [("mentee_ids", "array_contains", user_id)]
        ):
            self._drop_mentee(doc.id, doc.data, user_id, report)

        # 5. ファミリー
        for family_id, data in self._families_referencing(user_id).items():
            updated = {
                field_name: [m for m in data.get(field_name) or [] if m != user_id]
                for field_name in _FAMILY_ROLE_FIELDS
            }
            if updated["member_ids"]:
                self._store.update(FAMILIES, family_id, updated)
                report.families_updated += 1
            else:
                self._delete_family_documents(family_id, report)
                report.families_deleted += 1

        # 6. 認証基盤（失敗してもドメインデータの後始末は戻さない）
        try:
            self._identity.delete_identity(user_id)
            report.identity_deleted = True
        except IdentityProviderError as e:
            logger.warning(
                "Identity deletion failed (continuing): user_id=%s, error=%s",
                user_id,
                e.message,
            )

        # 7. ユーザー本体
        if user is not None:
            self._store.delete(USERS, user_id)
            report.target_deleted = True

        # 8. 監査ログ
        if report.changed:
            self._audit.record(
                AuditAction.DELETE,
                entity_type="user",
                entity_id=user_id,
                actor_id=actor_id,
                changes={"email": email, **report.to_dict()},
            )
        logger.info(
            "Cascade delete user finished: user_id=%s, submissions=%d, "
            "pairings_deleted=%d, pairings_updated=%d, families_deleted=%d, "
            "families_updated=%d",
            user_id,
            report.submissions_deleted,
            report.pairings_deleted,
            report.pairings_updated,
            report.families_deleted,
            report.families_updated,
        )
        return report

    # ── Pairing ─────────────────────────────────────────────────────────────

    def delete_pairing(self, pairing_id: str, actor_id: str) -> CascadeReport:
        """ペアリングを所属する提出物ごと削除する"""
        report = CascadeReport(target_type="pairing", target_id=pairing_id)
        existed = self._store.get(PAIRINGS, pairing_id) is not None
        self._delete_pairing_documents(pairing_id, report)
        report.target_deleted = existed

        if report.changed:
            self._audit.record(
                AuditAction.DELETE,
                entity_type="pairing",
                entity_id=pairing_id,
                actor_id=actor_id,
                changes=report.to_dict(),
                pairing_id=pairing_id,
            )
        logger.info(
            "Cascade delete pairing finished: pairing_id=%s, submissions=%d",
            pairing_id,
            report.submissions_deleted,
        )
        return report

    def remove_mentee(
        self, pairing_id: str, mentee_id: str, actor_id: str
    ) -> CascadeReport:
        """
        ペアリングからメンティーを外す。

        最後のメンティーが外れたペアリングは提出物ごと削除する。
        同じファミリーの他のペアリングや役割に残っていなければ、
        ユーザーの family_id とファミリーの member_ids からも外す。
        既に外れている場合は何もしない。

        Raises:
            NotFoundError: ペアリングが存在しない場合
        """
        data = self._store.get(PAIRINGS, pairing_id) if pairing_id else None
        if data is None:
            raise NotFoundError("Pairing not found")

        report = CascadeReport(target_type="pairing", target_id=pairing_id)
        if mentee_id in (data.get("mentee_ids") or []):
            self._drop_mentee(pairing_id, data, mentee_id, report)
            report.target_deleted = report.pairings_deleted > 0
            self._leave_family(mentee_id, data.get("family_id"), report)

        if report.changed:
            self._audit.record(
                AuditAction.DELETE if report.target_deleted else AuditAction.UPDATE,
                entity_type="pairing",
                entity_id=pairing_id,
                actor_id=actor_id,
                changes={"removed_mentee": mentee_id, **report.to_dict()},
                pairing_id=pairing_id,
            )
        logger.info(
            "Removed mentee: pairing_id=%s, mentee_id=%s, pairing_deleted=%s",
            pairing_id,
            mentee_id,
            report.target_deleted,
        )
        return report

    # ── Family ──────────────────────────────────────────────────────────────

    def delete_family(self, family_id: str, actor_id: str) -> CascadeReport:
        """
        ファミリーを削除し、参照しているペアリング・ユーザーの family_id を外す。

        ペアリングは削除しない（ポイント履歴を残す）。
        """
        report = CascadeReport(target_type="family", target_id=family_id)
        existed = self._store.get(FAMILIES, family_id) is not None
        self._delete_family_documents(family_id, report)
        report.target_deleted = existed

        if report.changed:
            self._audit.record(
                AuditAction.DELETE,
                entity_type="family",
                entity_id=family_id,
                actor_id=actor_id,
                changes=report.to_dict(),
            )
        logger.info(
            "Cascade delete family finished: family_id=%s, pairings_updated=%d, "
            "users_updated=%d",
            family_id,
            report.pairings_updated,
            report.users_updated,
        )
        return report

    # ── 共通ステップ ────────────────────────────────────────────────────────

    def _delete_submission(
        self, submission_id: str, data: dict, report: CascadeReport
    ) -> None:
        """画像 → ドキュメントの順に削除する"""
        locator = data.get("image_locator")
        if locator:
            try:
                self._blobs.delete(locator)
            except StorageError as e:
                # ストレージ障害では止めない。孤立した画像は監査ログに残す
                logger.warning(
                    "Image deletion failed (continuing): submission_id=%s, path=%s, error=%s",
                    submission_id,
                    locator,
                    e.message,
                )
                report.orphaned_images.append(locator)
        self._store.delete(SUBMISSIONS, submission_id)
        report.submissions_deleted += 1

    def _drop_mentee(
        self, pairing_id: str, data: dict, mentee_id: str, report: CascadeReport
    ) -> None:
        """メンティーを外し、誰も残らなければペアリングを削除する"""
        mentee_ids = [m for m in data.get("mentee_ids") or [] if m != mentee_id]
        if mentee_ids:
            self._store.update(PAIRINGS, pairing_id, {"mentee_ids": mentee_ids})
            report.pairings_updated += 1
        else:
            self._delete_pairing_documents(pairing_id, report)

    def _leave_family(
        self, user_id: str, family_id: str | None, report: CascadeReport
    ) -> None:
        if not family_id:
            return
        user = self._store.get(USERS, user_id)
        if user is None or user.get("family_id") != family_id:
            return
        family = self._store.get(FAMILIES, family_id) or {}
        if any(user_id in (family.get(f) or []) for f in _FAMILY_ROLE_FIELDS[1:]):
            return
        for filters in (
            [("mentor_id", "==", user_id)],
            [("mentee_ids", "array_contains", user_id)],
        ):
            for doc in self._store.query(PAIRINGS, filters):
                if doc.data.get("family_id") == family_id:
                    return

        self._store.update(USERS, user_id, {"family_id": None})
        report.users_updated += 1
        member_ids = family.get("member_ids") or []
        if user_id in member_ids:
            self._store.update(
                FAMILIES,
                family_id,
                {"member_ids": [m for m in member_ids if m != user_id]},
            )
            report.families_updated += 1

    def _delete_pairing_documents(self, pairing_id: str, report: CascadeReport) -> None:
        for doc in self._store.query(SUBMISSIONS, [("pairing_id", "==", pairing_id)]):
            self._delete_submission(doc.id, doc.data, report)
        if self._store.get(PAIRINGS, pairing_id) is not None:
            self._store.delete(PAIRINGS, pairing_id)
            report.pairings_deleted += 1

    def _delete_family_documents(self, family_id: str, report: CascadeReport) -> None:
        for doc in self._store.query(PAIRINGS, [("family_id", "==", family_id)]):
            self._store.update(PAIRINGS, doc.id, {"family_id": None})
            report.pairings_updated += 1
        for doc in self._store.query(USERS, [("family_id", "==", family_id)]):
            self._store.update(USERS, doc.id, {"family_id": None})
            report.users_updated += 1
        self._store.delete(FAMILIES, family_id)

    def _families_referencing(self, user_id: str) -> dict[str, dict]:
        families: dict[str, dict] = {}
        for field_name in _FAMILY_ROLE_FIELDS:
            for doc in self._store.query(
                FAMILIES, [(field_name, "array_contains", user_id)]
            ):
                families.setdefault(doc.id, doc.data)
        return families
