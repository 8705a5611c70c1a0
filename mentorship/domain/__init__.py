"""Domain layer - 外部依存なしのドメインモデルとインターフェース定義"""

from mentorship.domain.errors import (
    AuthzError,
    ConflictError,
    IdentityProviderError,
    MentorshipError,
    NotFoundError,
    PreconditionError,
    StorageError,
    ValidationError,
)
from mentorship.domain.models import (
    AuditAction,
    AuditLogEntry,
    BonusActivity,
    CascadeReport,
    Family,
    FamilyStanding,
    LedgerCheck,
    OperationResult,
    Pairing,
    PointsAdjustment,
    StoredDocument,
    Submission,
    SubmissionStatus,
    User,
    UserRole,
)
from mentorship.domain.ports import (
    BlobStorage,
    DocumentStore,
    IdentityProvider,
    Transaction,
)

__all__ = [
    # Models
    "UserRole",
    "SubmissionStatus",
    "AuditAction",
    "User",
    "Family",
    "Pairing",
    "Submission",
    "BonusActivity",
    "AuditLogEntry",
    "StoredDocument",
    "PointsAdjustment",
    "LedgerCheck",
    "FamilyStanding",
    "CascadeReport",
    "OperationResult",
    # Errors
    "MentorshipError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "PreconditionError",
    "StorageError",
    "AuthzError",
    "IdentityProviderError",
    # Ports
    "DocumentStore",
    "Transaction",
    "BlobStorage",
    "IdentityProvider",
]
