"""Registry - ファミリー・ペアリング・ボーナス活動の登録

ペアリングは 0 ポイントで作成するため、監査ログの delta を 0 から
積み上げれば total_points を再構築できる。
"""

from __future__ import annotations

import logging
import uuid

from mentorship.domain.errors import ConflictError, NotFoundError, ValidationError
from mentorship.domain.models import AuditAction, BonusActivity, Family, Pairing, User
from mentorship.domain.ports import DocumentStore, Transaction
from mentorship.services.audit_log import AuditLog
from mentorship.services.mappers import (
    BONUS_ACTIVITIES,
    FAMILIES,
    PAIRINGS,
    USERS,
    bonus_activity_from_doc,
    bonus_activity_to_doc,
    family_to_doc,
    pairing_from_doc,
    pairing_to_doc,
    user_from_doc,
)

logger = logging.getLogger(__name__)


class Registry:
    """管理者によるマスタ登録"""

    def __init__(self, store: DocumentStore, audit_log: AuditLog) -> None:
        self._store = store
        self._audit = audit_log

    # ── User ────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> User:
        data = self._store.get(USERS, user_id) if user_id else None
        if data is None:
            raise NotFoundError("User not found")
        return user_from_doc(user_id, data)

    # ── Family ──────────────────────────────────────────────────────────────

    def create_family(self, name: str, actor_id: str) -> Family:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Family name is required")
        family = Family(id=str(uuid.uuid4()), name=name)
        self._store.set(FAMILIES, family.id, family_to_doc(family))
        self._audit.record(
            AuditAction.CREATE, "family", family.id, actor_id, {"name": name}
        )
        logger.info("Created family: family_id=%s, name=%s", family.id, name)
        return family

    # ── Pairing ─────────────────────────────────────────────────────────────

    def create_pairing(
        self,
        family_id: str,
        mentor_id: str,
        mentee_ids: list[str],
        actor_id: str,
    ) -> Pairing:
        """
        ペアリングを作成し、メンバーの family_id とファミリーの member_ids を揃える。

        ファミリーの読み取りから member_ids の書き込みまでを 1 トランザクションで行う。
        同じファミリーへの同時作成でもメンバーは失われない。

        Raises:
            ValidationError: メンティーが 0 人、またはメンターがメンティーに含まれる場合
            NotFoundError: ファミリーまたはユーザーが存在しない場合
        """
        mentee_ids = list(dict.fromkeys(m for m in mentee_ids or [] if m))
        if not mentor_id:
            raise ValidationError("Mentor ID is required")
        if not mentee_ids:
            raise ValidationError("A pairing needs at least one mentee")
        if mentor_id in mentee_ids:
            raise ValidationError("Mentor cannot also be a mentee")
        if not family_id:
            raise NotFoundError("Family not found")

        members = [mentor_id, *mentee_ids]

        def _create(txn: Transaction) -> Pairing:
            family = txn.get(FAMILIES, family_id)
            if family is None:
                raise NotFoundError("Family not found")
            for uid in members:
                if txn.get(USERS, uid) is None:
                    raise NotFoundError(f"User not found: {uid}")

            pairing = Pairing(
                id=str(uuid.uuid4()),
                family_id=family_id,
                mentor_id=mentor_id,
                mentee_ids=mentee_ids,
            )
            txn.set(PAIRINGS, pairing.id, pairing_to_doc(pairing))
            self._join_family(txn, family_id, family, members)

            entry = self._audit.build_entry(
                AuditAction.CREATE,
                entity_type="pairing",
                entity_id=pairing.id,
                actor_id=actor_id,
                changes={
                    "family_id": family_id,
                    "mentor_id": mentor_id,
                    "mentee_ids": mentee_ids,
                },
                pairing_id=pairing.id,
            )
            self._audit.append(entry, txn)
            return pairing

        pairing = self._store.run_transaction(_create)
        logger.info(
            "Created pairing: pairing_id=%s, family_id=%s, mentees=%d",
            pairing.id,
            family_id,
            len(mentee_ids),
        )
        return pairing

    def add_mentee(self, pairing_id: str, mentee_id: str, actor_id: str) -> Pairing:
        """
        既存のペアリングにメンティーを追加する。

        メンティーの family_id とファミリーの member_ids も同じトランザクションで揃える。

        Raises:
            ValidationError: メンティーIDが空、またはメンター本人の場合
            NotFoundError: ペアリングまたはユーザーが存在しない場合
            ConflictError: 既にペアリングのメンティーである場合
        """
        if not mentee_id:
            raise ValidationError("Mentee ID is required")

        def _add(txn: Transaction) -> Pairing:
            data = txn.get(PAIRINGS, pairing_id) if pairing_id else None
            if data is None:
                raise NotFoundError("Pairing not found")
            if txn.get(USERS, mentee_id) is None:
                raise NotFoundError(f"User not found: {mentee_id}")
            family_id = data.get("family_id")
            family = txn.get(FAMILIES, family_id) if family_id else None

            if data.get("mentor_id") == mentee_id:
                raise ValidationError("Mentor cannot also be a mentee")
            mentee_ids = list(data.get("mentee_ids") or [])
            if mentee_id in mentee_ids:
                raise ConflictError("Mentee already in pairing")
            mentee_ids.append(mentee_id)

            txn.update(PAIRINGS, pairing_id, {"mentee_ids": mentee_ids})
            if family is not None:
                self._join_family(txn, family_id, family, [mentee_id])

            entry = self._audit.build_entry(
                AuditAction.UPDATE,
                entity_type="pairing",
                entity_id=pairing_id,
                actor_id=actor_id,
                changes={"added_mentee": mentee_id, "mentee_ids": mentee_ids},
                pairing_id=pairing_id,
            )
            self._audit.append(entry, txn)
            return pairing_from_doc(pairing_id, {**data, "mentee_ids": mentee_ids})

        pairing = self._store.run_transaction(_add)
        logger.info("Added mentee: pairing_id=%s, mentee_id=%s", pairing_id, mentee_id)
        return pairing

    @staticmethod
    def _join_family(
        txn: Transaction, family_id: str, family: dict, user_ids: list[str]
    ) -> None:
        """users の family_id を設定し、ファミリーの member_ids に追加する"""
        member_ids = list(family.get("member_ids") or [])
        for uid in user_ids:
            txn.update(USERS, uid, {"family_id": family_id})
            if uid not in member_ids:
                member_ids.append(uid)
        txn.update(FAMILIES, family_id, {"member_ids": member_ids})

    # ── BonusActivity ───────────────────────────────────────────────────────

    def create_bonus_activity(
        self, name: str, points: int, actor_id: str, description: str = ""
    ) -> BonusActivity:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Bonus activity name is required")
        _validate_points(points)
        activity = BonusActivity(
            id=str(uuid.uuid4()), name=name, points=points, description=description
        )
        self._store.set(BONUS_ACTIVITIES, activity.id, bonus_activity_to_doc(activity))
        self._audit.record(
            AuditAction.CREATE,
            "bonus_activity",
            activity.id,
            actor_id,
            {"name": name, "points": points},
        )
        logger.info("Created bonus activity: id=%s, points=%d", activity.id, points)
        return activity

    def update_bonus_activity(
        self,
        bonus_activity_id: str,
        actor_id: str,
        name: str | None = None,
        points: int | None = None,
        is_active: bool | None = None,
    ) -> BonusActivity:
        """
        ボーナス活動を更新する。

        既存の提出物は作成時のスナップショットを保持しているため影響を受けない。
        """
        data = self._store.get(BONUS_ACTIVITIES, bonus_activity_id)
        if data is None:
            raise NotFoundError("Bonus activity not found")

        updates: dict = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Bonus activity name is required")
            updates["name"] = name.strip()
        if points is not None:
            _validate_points(points)
            updates["points"] = points
        if is_active is not None:
            updates["is_active"] = bool(is_active)
        if not updates:
            raise ValidationError("Nothing to update")

        self._store.update(BONUS_ACTIVITIES, bonus_activity_id, updates)
        self._audit.record(
            AuditAction.UPDATE,
            "bonus_activity",
            bonus_activity_id,
            actor_id,
            {"before": {k: data.get(k) for k in updates}, "after": updates},
        )
        logger.info("Updated bonus activity: id=%s, fields=%s", bonus_activity_id, list(updates))
        return bonus_activity_from_doc(bonus_activity_id, {**data, **updates})

    def delete_bonus_activity(self, bonus_activity_id: str, actor_id: str) -> None:
        """
        ボーナス活動を削除する。

        既存の提出物は bonus_points_awarded のスナップショットを持つため、
        承認時に付与されるポイントは変わらない。

        Raises:
            NotFoundError: ボーナス活動が存在しない場合
        """
        data = self._store.get(BONUS_ACTIVITIES, bonus_activity_id) if bonus_activity_id else None
        if data is None:
            raise NotFoundError("Bonus activity not found")

        self._store.delete(BONUS_ACTIVITIES, bonus_activity_id)
        self._audit.record(
            AuditAction.DELETE,
            "bonus_activity",
            bonus_activity_id,
            actor_id,
            {"name": data.get("name"), "points": data.get("points")},
        )
        logger.info("Deleted bonus activity: id=%s", bonus_activity_id)

    def list_bonus_activities(self, active_only: bool = False) -> list[BonusActivity]:
        filters = [("is_active", "==", True)] if active_only else []
        return [
            bonus_activity_from_doc(d.id, d.data)
            for d in self._store.query(BONUS_ACTIVITIES, filters)
        ]


def _validate_points(points: int) -> None:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("Bonus points must be a positive integer")
