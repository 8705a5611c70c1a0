"""FastAPI アプリケーション

メンタープログラムの提出物レビュー・ポイント台帳 API。
Cloud Run Service として動作し、Firebase Auth で認証する。

エンドポイント一覧:
  POST   /api/submissions
  GET    /api/submissions
  POST   /api/submissions/{id}/approve
  POST   /api/submissions/{id}/reject
  POST   /api/pairings
  POST   /api/pairings/{id}/points
  GET    /api/pairings/{id}/audit
  GET    /api/pairings/{id}/ledger
  DELETE /api/pairings/{id}
  POST   /api/pairings/{id}/mentees
  DELETE /api/pairings/{id}/mentees/{mentee_id}
  POST   /api/families
  DELETE /api/families/{id}
  DELETE /api/users/{id}
  GET    /api/users/{id}/audit
  GET    /api/bonus-activities
  POST   /api/bonus-activities
  PATCH  /api/bonus-activities/{id}
  DELETE /api/bonus-activities/{id}
  GET    /api/leaderboard/pairings   ← 認証不要
  GET    /api/leaderboard/families   ← 認証不要
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

from mentorship.entrypoints.api.routes import (
    bonus_activities,
    families,
    leaderboard,
    pairings,
    submissions,
    users,
)
from mentorship.logging_config import setup_logging

# ── ロギング初期化 ───────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

# ── FastAPI アプリ ───────────────────────────────────────────────────────────
app = FastAPI(
    title="Mentorship API",
    description="メンタープログラムの提出物レビューとポイント管理 API",
    version="1.0.0",
)

# ── グローバル例外ミドルウェア ──────────────────────────────────────────────────
# CORSMiddleware より先に登録して内側に置く（500 にも CORS ヘッダーが付く）


@app.middleware("http")
async def _catch_unhandled_exceptions(
    request: Request, call_next: Callable[[Request], Response]
) -> Response:
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(
            "Unhandled exception: %s %s - %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": {"code": "INTERNAL", "message": "Internal server error"}},
        )


# ── CORS ─────────────────────────────────────────────────────────────────────
# CORS_ORIGINS 環境変数でカンマ区切りのオリジンを指定可能
_origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# ── ルーター登録 ─────────────────────────────────────────────────────────────
_PREFIX = "/api"

app.include_router(submissions.router, prefix=_PREFIX)
app.include_router(pairings.router, prefix=_PREFIX)
app.include_router(families.router, prefix=_PREFIX)
app.include_router(users.router, prefix=_PREFIX)
app.include_router(bonus_activities.router, prefix=_PREFIX)
app.include_router(leaderboard.router, prefix=_PREFIX)


@app.get("/health")
async def health() -> dict:
    """ヘルスチェックエンドポイント（Cloud Run の起動確認用）"""
    return {"status": "ok"}


logger.info("Mentorship API started")
