"""FastAPI ルートのユニットテスト

dependency_overrides で認証をバイパスし、InMemoryDocumentStore 上の
実際の MentorshipFacade を通してエンドポイントを検証する。
呼び出し元の UID は caller フィクスチャを書き換えて切り替える。
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from mentorship.entrypoints.api.app import app
from mentorship.entrypoints.api.deps import (
    AuthInfo,
    get_auth_info,
    get_blob_storage,
    get_facade,
)
from mentorship.services.mappers import SUBMISSIONS
from tests.conftest import ADMIN_ID, MENTEE_ID, MENTOR_ID, OUTSIDER_ID

_JPEG = ("photo.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")


@pytest.fixture
def caller() -> dict:
    """リクエスト元の UID（デフォルトは管理者）"""
    return {"uid": ADMIN_ID}


@pytest.fixture
def client(facade, mock_blob_storage, program, caller):
    app.dependency_overrides[get_auth_info] = lambda: AuthInfo(
        uid=caller["uid"], email=f"{caller['uid']}@example.com"
    )
    app.dependency_overrides[get_facade] = lambda: facade
    app.dependency_overrides[get_blob_storage] = lambda: mock_blob_storage

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def _submit(client, caller, program, uid=MENTOR_ID):
    """uid として写真を提出し、呼び出し元を管理者に戻す"""
    caller["uid"] = uid
    try:
        return client.post(
            "/api/submissions",
            files={"file": _JPEG},
            data={
                "week_number": "14",
                "year": "2025",
                "bonus_activity_ids": [program.bonus_id],
            },
        )
    finally:
        caller["uid"] = ADMIN_ID


class TestCreateSubmission:
    def test_upload_creates_pending_submission(self, client, caller, mock_blob_storage, program):
        # Act
        response = _submit(client, caller, program)

        # Assert
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["total_points"] == 15
        path = mock_blob_storage.upload.call_args.args[0]
        assert path.startswith(f"submissions/{MENTOR_ID}/")
        assert path.endswith(".jpg")

    def test_rejects_unsupported_type(self, client, caller, mock_blob_storage):
        caller["uid"] = MENTOR_ID
        response = client.post(
            "/api/submissions",
            files={"file": ("doc.pdf", b"%PDF", "application/pdf")},
            data={"week_number": "14", "year": "2025"},
        )
        assert response.status_code == 400
        mock_blob_storage.upload.assert_not_called()

    def test_rejects_oversized_image(self, client, caller, mock_blob_storage):
        caller["uid"] = MENTOR_ID
        big = ("big.png", b"0" * (10 * 1024 * 1024 + 1), "image/png")
        response = client.post(
            "/api/submissions", files={"file": big}, data={"week_number": "1", "year": "2025"}
        )
        assert response.status_code == 400
        mock_blob_storage.upload.assert_not_called()

    def test_failed_creation_removes_uploaded_image(
        self, client, caller, mock_blob_storage, program
    ):
        response = _submit(client, caller, program, uid=OUTSIDER_ID)

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "PRECONDITION"
        uploaded = mock_blob_storage.upload.call_args.args[0]
        mock_blob_storage.delete.assert_called_once_with(uploaded)


class TestReview:
    def test_approve_then_conflict(self, client, caller, program):
        submission_id = _submit(client, caller, program).json()["id"]

        first = client.post(f"/api/submissions/{submission_id}/approve")
        second = client.post(f"/api/submissions/{submission_id}/approve")

        assert first.status_code == 200
        assert first.json()["status"] == "APPROVED"
        assert first.json()["reviewer_id"] == ADMIN_ID
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "CONFLICT"

    def test_approve_missing_is_404(self, client):
        assert client.post("/api/submissions/nope/approve").status_code == 404

    def test_reject_requires_reason(self, client, caller, store, program):
        submission_id = _submit(client, caller, program).json()["id"]

        response = client.post(
            f"/api/submissions/{submission_id}/reject", json={"reason": "  "}
        )

        assert response.status_code == 400
        assert store.get(SUBMISSIONS, submission_id)["status"] == "PENDING"

    def test_reject(self, client, caller, program):
        submission_id = _submit(client, caller, program).json()["id"]
        response = client.post(
            f"/api/submissions/{submission_id}/reject", json={"reason": "blurry"}
        )
        assert response.status_code == 200
        assert response.json()["total_points"] == 0

    def test_non_admin_cannot_review(self, client, caller, program):
        submission_id = _submit(client, caller, program).json()["id"]
        caller["uid"] = MENTOR_ID

        response = client.post(f"/api/submissions/{submission_id}/approve")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "AUTHZ"

    def test_unknown_caller_is_forbidden(self, client, caller):
        caller["uid"] = "ghost"
        assert client.get("/api/submissions").status_code == 403

    def test_list_pending(self, client, caller, program):
        _submit(client, caller, program)
        response = client.get("/api/submissions", params={"status": "PENDING"})
        assert response.status_code == 200
        assert len(response.json()) == 1


class TestPairings:
    def test_adjust_points_and_ledger_check(self, client, program):
        response = client.post(
            f"/api/pairings/{program.pairing_id}/points",
            json={"delta": 20, "reason": "kickoff"},
        )
        assert response.status_code == 200
        assert response.json()["new_points"] == 20

        ledger = client.get(f"/api/pairings/{program.pairing_id}/ledger").json()
        assert ledger == {
            "pairing_id": program.pairing_id,
            "stored_total": 20,
            "replayed_total": 20,
            "consistent": True,
        }

        audit = client.get(f"/api/pairings/{program.pairing_id}/audit").json()
        assert [e["action"] for e in audit] == ["CREATE", "POINTS_ADDED"]

    def test_negative_total_is_422(self, client, program):
        response = client.post(
            f"/api/pairings/{program.pairing_id}/points",
            json={"delta": -1, "reason": "oops"},
        )
        assert response.status_code == 422

    def test_zero_delta_is_400(self, client, program):
        response = client.post(
            f"/api/pairings/{program.pairing_id}/points",
            json={"delta": 0, "reason": "noop"},
        )
        assert response.status_code == 400

    def test_create_pairing(self, client, program):
        response = client.post(
            "/api/pairings",
            json={"family_id": program.family_id, "mentor_id": OUTSIDER_ID, "mentee_ids": [ADMIN_ID]},
        )
        assert response.status_code == 201
        assert response.json()["total_points"] == 0

    def test_delete_pairing(self, client, program):
        assert client.delete(f"/api/pairings/{program.pairing_id}").status_code == 204
        response = client.get(f"/api/pairings/{program.pairing_id}/ledger")
        assert response.status_code == 404

    def test_add_and_remove_mentee(self, client, program):
        added = client.post(
            f"/api/pairings/{program.pairing_id}/mentees", json={"mentee_id": OUTSIDER_ID}
        )
        assert added.status_code == 200
        assert added.json()["mentee_ids"][-1] == OUTSIDER_ID

        duplicate = client.post(
            f"/api/pairings/{program.pairing_id}/mentees", json={"mentee_id": OUTSIDER_ID}
        )
        assert duplicate.status_code == 409

        removed = client.delete(f"/api/pairings/{program.pairing_id}/mentees/{MENTEE_ID}")
        assert removed.status_code == 200
        assert removed.json()["pairings_updated"] == 1
        assert removed.json()["target_deleted"] is False

    def test_remove_mentee_from_missing_pairing_is_404(self, client):
        assert client.delete(f"/api/pairings/nope/mentees/{MENTEE_ID}").status_code == 404


class TestUsersAndFamilies:
    def test_delete_user_reports_cascade(self, client, program):
        response = client.delete(f"/api/users/{MENTEE_ID}")

        assert response.status_code == 200
        body = response.json()
        assert body["target_deleted"] is True
        assert body["pairings_updated"] == 1

        audit = client.get(f"/api/users/{MENTEE_ID}/audit").json()
        assert audit[-1]["action"] == "DELETE"

    def test_delete_user_twice_is_ok(self, client, program):
        client.delete(f"/api/users/{MENTEE_ID}")
        second = client.delete(f"/api/users/{MENTEE_ID}")
        assert second.status_code == 200
        assert second.json()["target_deleted"] is False

    def test_create_and_delete_family(self, client):
        created = client.post("/api/families", json={"name": "Orchid"})
        assert created.status_code == 201
        assert client.delete(f"/api/families/{created.json()['id']}").status_code == 204


class TestPublicAndBonus:
    def test_leaderboards(self, client, program):
        client.post(
            f"/api/pairings/{program.pairing_id}/points", json={"delta": 9, "reason": "seed"}
        )
        pairings = client.get("/api/leaderboard/pairings").json()
        families = client.get("/api/leaderboard/families").json()

        assert pairings[0]["total_points"] == 9
        assert families == [{"family_id": program.family_id, "name": "Lotus", "total_points": 9}]

    def test_bonus_activity_crud(self, client, caller, program):
        created = client.post("/api/bonus-activities", json={"name": "Hike", "points": 3})
        assert created.status_code == 201

        updated = client.patch(
            f"/api/bonus-activities/{created.json()['id']}", json={"is_active": False}
        )
        assert updated.json()["is_active"] is False

        caller["uid"] = MENTOR_ID
        active = client.get("/api/bonus-activities", params={"active_only": True}).json()
        assert [a["id"] for a in active] == [program.bonus_id]

    def test_delete_bonus_activity(self, client, caller, program):
        caller["uid"] = MENTOR_ID
        assert client.delete(f"/api/bonus-activities/{program.bonus_id}").status_code == 403

        caller["uid"] = ADMIN_ID
        assert client.delete(f"/api/bonus-activities/{program.bonus_id}").status_code == 204
        assert client.delete(f"/api/bonus-activities/{program.bonus_id}").status_code == 404
        remaining = client.get("/api/bonus-activities").json()
        assert program.bonus_id not in [a["id"] for a in remaining]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
