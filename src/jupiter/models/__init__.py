"""Model exports.

Import from here: `from src.jupiter.models import User, ReimbursementRequest`
"""

from src.jupiter.models.audit import AuditAction, AuditLog, AuditStatus
from src.jupiter.models.enums import (
    ChallengeType,
    ExpenseCategory,
    OAuthProvider,
    RequestAction,
    RequestEventType,
    RequestPriority,
    RequestStatus,
    RequestType,
    Role,
)
from src.jupiter.models.oauth import CloudflareChallenge, OAuthToken
from src.jupiter.models.reimbursement import (
    ReimbursementRequest,
    RequestEvent,
    RequestNumberSequence,
)
from src.jupiter.models.user import User, UserRole

__all__ = [
    # Enums
    "AuditAction",
    "AuditStatus",
    "ChallengeType",
    "ExpenseCategory",
    "OAuthProvider",
    "RequestAction",
    "RequestEventType",
    "RequestPriority",
    "RequestStatus",
    "RequestType",
    "Role",
    # Models
    "AuditLog",
    "CloudflareChallenge",
    "OAuthToken",
    "ReimbursementRequest",
    "RequestEvent",
    "RequestNumberSequence",
    "User",
    "UserRole",
]
