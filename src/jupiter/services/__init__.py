from src.jupiter.services.audit_service import AuditService
from src.jupiter.services.challenge_service import ChallengeService
from src.jupiter.services.nationbuilder_auth_service import LoginResult, NationBuilderAuthService
from src.jupiter.services.oauth_token_service import (
    MaintenanceCounts,
    OAuthTokenService,
    RefreshResult,
)
from src.jupiter.services.reimbursement_service import (
    BulkApproveError,
    BulkApproveResult,
    ReimbursementService,
)

__all__ = [
    "AuditService",
    "BulkApproveError",
    "BulkApproveResult",
    "ChallengeService",
    "LoginResult",
    "MaintenanceCounts",
    "NationBuilderAuthService",
    "OAuthTokenService",
    "RefreshResult",
    "ReimbursementService",
]
