"""Services layer - ビジネスロジック"""

from mentorship.services.audit_log import AuditLog
from mentorship.services.cascade import CascadeEngine
from mentorship.services.facade import MentorshipFacade
from mentorship.services.points_ledger import PointsLedger
from mentorship.services.registry import Registry
from mentorship.services.submission_review import BASE_POINTS, SubmissionReviewService

__all__ = [
    "AuditLog",
    "BASE_POINTS",
    "CascadeEngine",
    "MentorshipFacade",
    "PointsLedger",
    "Registry",
    "SubmissionReviewService",
]
