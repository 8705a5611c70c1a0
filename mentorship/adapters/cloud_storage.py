"""Cloud Storage Adapter

BlobStorage ABC の Google Cloud Storage 実装。
提出写真の保存・削除を行う。
"""

from __future__ import annotations

import logging

import requests
from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from mentorship.domain.errors import StorageError
from mentorship.domain.ports import BlobStorage

logger = logging.getLogger(__name__)

# API エラーに加え、認証・通信レイヤーの失敗も StorageError に変換する
_STORAGE_FAILURES = (
    api_exceptions.GoogleAPIError,
    auth_exceptions.TransportError,
    requests.exceptions.RequestException,
)


class GCSBlobStorage(BlobStorage):
    """
    Google Cloud Storage を使った BlobStorage 実装。

    全ファイルは単一バケット内の blob_path で管理する。
    パス規約: submissions/{uid}/{uuid}{ext}
    """

    def __init__(self, bucket_name: str, client: storage.Client | None = None) -> None:
        """
        Args:
            bucket_name: GCS バケット名
            client: 初期化済みの GCS クライアント（省略時は ADC で自動初期化）
        """
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)
        self._bucket_name = bucket_name

    def upload(self, blob_path: str, content: bytes, content_type: str) -> str:
        """
        ファイルを GCS にアップロード。

        Args:
            blob_path: GCS 上のパス（例: "submissions/uid123/abc.jpg"）
            content: バイナリ内容
            content_type: MIME タイプ（例: "image/jpeg"）

        Returns:
            ストレージパス（blob_path と同一）

        Raises:
            StorageError: アップロードに失敗した場合
        """
        blob = self._bucket.blob(blob_path)
        try:
            blob.upload_from_string(content, content_type=content_type)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Failed to upload {blob_path}") from e
        logger.info(
            "Uploaded: bucket=%s, path=%s, size=%d bytes",
            self._bucket_name,
            blob_path,
            len(content),
        )
        return blob_path

    def delete(self, blob_path: str) -> None:
        """
        GCS からファイルを削除。

        Note:
            ファイルが存在しない場合は削除済みとみなしてスキップする（再実行可能）。

        Raises:
            StorageError: NotFound 以外の理由で削除に失敗した場合
        """
        blob = self._bucket.blob(blob_path)
        try:
            blob.delete()
        except api_exceptions.NotFound:
            logger.info(
                "Already deleted: bucket=%s, path=%s", self._bucket_name, blob_path
            )
            return
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Failed to delete {blob_path}") from e
        logger.info("Deleted: bucket=%s, path=%s", self._bucket_name, blob_path)
