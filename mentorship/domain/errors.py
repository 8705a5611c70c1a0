"""ドメイン固有の例外クラス

各例外は `code` を持ち、MentorshipFacade が OperationResult.error_code に、
API 層が HTTP ステータスに変換する。
"""


class MentorshipError(Exception):
    """メンターシップコアの基底例外"""

    code = "ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(MentorshipError):
    """参照先エンティティが存在しない"""

    code = "NOT_FOUND"


class ConflictError(MentorshipError):
    """コミット時に前提条件が崩れていた（レビュー済み・同時更新に負けた等）"""

    code = "CONFLICT"


class ValidationError(MentorshipError):
    """入力不正（理由未入力、0ポイント調整、形式不正など）"""

    code = "VALIDATION"


class PreconditionError(MentorshipError):
    """状態に依存する前提条件違反（ペアリング未所属など）"""

    code = "PRECONDITION"


class StorageError(MentorshipError):
    """ファイルストレージ操作の失敗"""

    code = "STORAGE"


class AuthzError(MentorshipError):
    """呼び出し元に必要なロールがない"""

    code = "AUTHZ"


class IdentityProviderError(MentorshipError):
    """認証基盤（Firebase Auth等）の操作失敗"""

    code = "IDENTITY"
