"""ロギング設定モジュール

Cloud Run 上では Cloud Logging 互換の JSON、ローカルではテキスト形式で出力する。

使い方:
    from mentorship.logging_config import setup_logging
    setup_logging()

環境変数:
    LOG_LEVEL: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL) デフォルト: INFO
    K_SERVICE / CLOUD_RUN_JOB: Cloud Run 環境判定（自動設定される）
"""

import json
import logging
import os

# google-cloud / urllib3 の DEBUG ログは量が多いので WARNING 以上に絞る
_NOISY_LOGGERS = ("google.auth", "google.api_core", "urllib3")


class CloudLoggingFormatter(logging.Formatter):
    """Cloud Logging 互換の JSON フォーマッタ

    `severity` フィールドを含めることで Cloud Logging のログレベルに
    正しくマッピングされる。`extra={"extra_fields": {...}}` で渡した値は
    トップレベルのキーとして出力する。
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "severity": record.levelname
            if record.levelname in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
            else "DEFAULT",
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_entry.update(extra_fields)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str | None = None) -> None:
    """ログ設定を初期化する

    Args:
        level: ログレベル（省略時は LOG_LEVEL 環境変数、未設定なら INFO）
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    is_cloud = bool(os.getenv("K_SERVICE") or os.getenv("CLOUD_RUN_JOB"))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    handler = logging.StreamHandler()
    if is_cloud:
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
