"""設定管理 - 環境変数の型安全な読み込み"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class AppConfig:
    """アプリケーション設定"""
    project_id: str
    gcs_bucket_name: str
    local_mode: bool = False
    base_points: int = 10
    transaction_max_attempts: int = 5
    cors_origins: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "AppConfig":
        """環境変数から設定を読み込む"""
        load_dotenv()

        local_mode = bool(os.getenv("LOCAL_MODE"))

        project_id = os.getenv("PROJECT_ID", "")
        if not project_id and not local_mode:
            raise ValueError("PROJECT_ID is not set in environment")

        gcs_bucket_name = os.getenv("GCS_BUCKET_NAME", "")
        if not gcs_bucket_name and not local_mode:
            raise ValueError("GCS_BUCKET_NAME is not set in environment")

        cors_origins = tuple(
            o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
        )

        return cls(
            project_id=project_id,
            gcs_bucket_name=gcs_bucket_name,
            local_mode=local_mode,
            base_points=_int_env("BASE_POINTS", 10),
            transaction_max_attempts=_int_env("TRANSACTION_MAX_ATTEMPTS", 5),
            cors_origins=cors_origins,
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer: {raw!r}") from e
