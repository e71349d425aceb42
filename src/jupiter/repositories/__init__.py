"""Repository layer - data access abstraction."""

from src.jupiter.repositories.audit import AuditLogRepository
from src.jupiter.repositories.base import BaseRepository
from src.jupiter.repositories.challenge import CloudflareChallengeRepository
from src.jupiter.repositories.oauth_token import OAuthTokenRepository
from src.jupiter.repositories.reimbursement import (
    ReimbursementRequestRepository,
    RequestEventRepository,
)
from src.jupiter.repositories.user import UserRepository

__all__ = [
    "AuditLogRepository",
    "BaseRepository",
    "CloudflareChallengeRepository",
    "OAuthTokenRepository",
    "ReimbursementRequestRepository",
    "RequestEventRepository",
    "UserRepository",
]
