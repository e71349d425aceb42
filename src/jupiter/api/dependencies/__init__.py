"""FastAPI dependency injection definitions."""

from src.jupiter.api.dependencies.auth import (
    CurrentPrincipal,
    CurrentUser,
    get_current_principal,
    get_current_user,
)
from src.jupiter.api.dependencies.db import DBSession, get_db_session
from src.jupiter.api.dependencies.repositories import (
    ChallengeRepo,
    EventRepo,
    OAuthTokenRepo,
    RequestRepo,
    UserRepo,
)
from src.jupiter.api.dependencies.services import (
    AuditServiceDep,
    ChallengeServiceDep,
    NationBuilderAuthServiceDep,
    ReimbursementServiceDep,
    TokenServiceDep,
    get_audit_service,
    get_challenge_service,
    get_nationbuilder_auth_service,
    get_nationbuilder_config,
    get_oauth_client,
    get_reimbursement_service,
    get_token_service,
    get_turnstile_verifier,
)

__all__ = [
    # Database
    "DBSession",
    "get_db_session",
    # Auth
    "CurrentPrincipal",
    "CurrentUser",
    "get_current_principal",
    "get_current_user",
    # Repositories
    "ChallengeRepo",
    "EventRepo",
    "OAuthTokenRepo",
    "RequestRepo",
    "UserRepo",
    # Services
    "AuditServiceDep",
    "ChallengeServiceDep",
    "NationBuilderAuthServiceDep",
    "ReimbursementServiceDep",
    "TokenServiceDep",
    "get_audit_service",
    "get_challenge_service",
    "get_nationbuilder_auth_service",
    "get_nationbuilder_config",
    "get_oauth_client",
    "get_reimbursement_service",
    "get_token_service",
    "get_turnstile_verifier",
]
