"""Service factory dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends

from src.jupiter.api.dependencies.db import DBSession
from src.jupiter.api.dependencies.repositories import (
    ChallengeRepo,
    EventRepo,
    OAuthTokenRepo,
    RequestRepo,
    UserRepo,
)
from src.jupiter.core.config import get_settings
from src.jupiter.core.db import get_session
from src.jupiter.integrations.cloudflare import TurnstileVerifier
from src.jupiter.integrations.nationbuilder import NationBuilderConfig, NationBuilderOAuthClient
from src.jupiter.repositories import AuditLogRepository
from src.jupiter.services import (
    AuditService,
    ChallengeService,
    NationBuilderAuthService,
    OAuthTokenService,
    ReimbursementService,
)


async def get_audit_service() -> AsyncGenerator[AuditService]:
    """Get audit service with its own isolated session.

    Audit rows commit independently, so they survive a rolled-back business
    transaction.
    """
    async with get_session() as session:
        yield AuditService(AuditLogRepository(session), session)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


def get_nationbuilder_config() -> NationBuilderConfig:
    """Raises ConfigurationError when NationBuilder credentials are missing."""
    return NationBuilderConfig.from_settings(get_settings())


NationBuilderConfigDep = Annotated[NationBuilderConfig, Depends(get_nationbuilder_config)]


async def get_oauth_client(
    config: NationBuilderConfigDep,
) -> AsyncGenerator[NationBuilderOAuthClient]:
    client = NationBuilderOAuthClient(config)
    try:
        yield client
    finally:
        await client.aclose()


OAuthClientDep = Annotated[NationBuilderOAuthClient, Depends(get_oauth_client)]


def get_turnstile_verifier() -> TurnstileVerifier:
    return TurnstileVerifier(get_settings().cloudflare_turnstile_secret_key)


def get_reimbursement_service(
    request_repo: RequestRepo,
    event_repo: EventRepo,
    user_repo: UserRepo,
    session: DBSession,
    audit_service: AuditServiceDep,
) -> ReimbursementService:
    return ReimbursementService(request_repo, event_repo, user_repo, session, audit_service)


def get_token_service(
    token_repo: OAuthTokenRepo,
    session: DBSession,
    oauth_client: OAuthClientDep,
    audit_service: AuditServiceDep,
) -> OAuthTokenService:
    return OAuthTokenService(token_repo, session, oauth_client, audit_service)


def get_challenge_service(
    challenge_repo: ChallengeRepo,
    session: DBSession,
    verifier: Annotated[TurnstileVerifier, Depends(get_turnstile_verifier)],
    audit_service: AuditServiceDep,
) -> ChallengeService:
    return ChallengeService(challenge_repo, session, verifier, audit_service)


ReimbursementServiceDep = Annotated[ReimbursementService, Depends(get_reimbursement_service)]
TokenServiceDep = Annotated[OAuthTokenService, Depends(get_token_service)]
ChallengeServiceDep = Annotated[ChallengeService, Depends(get_challenge_service)]


def get_nationbuilder_auth_service(
    user_repo: UserRepo,
    session: DBSession,
    oauth_client: OAuthClientDep,
    token_service: TokenServiceDep,
    challenge_service: ChallengeServiceDep,
    audit_service: AuditServiceDep,
) -> NationBuilderAuthService:
    return NationBuilderAuthService(
        user_repo, session, oauth_client, token_service, challenge_service, audit_service
    )


NationBuilderAuthServiceDep = Annotated[
    NationBuilderAuthService, Depends(get_nationbuilder_auth_service)
]
