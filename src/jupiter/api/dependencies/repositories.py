"""Repository factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.jupiter.api.dependencies.db import DBSession
from src.jupiter.repositories import (
    CloudflareChallengeRepository,
    OAuthTokenRepository,
    ReimbursementRequestRepository,
    RequestEventRepository,
    UserRepository,
)


def get_user_repository(session: DBSession) -> UserRepository:
    return UserRepository(session)


def get_request_repository(session: DBSession) -> ReimbursementRequestRepository:
    return ReimbursementRequestRepository(session)


def get_event_repository(session: DBSession) -> RequestEventRepository:
    return RequestEventRepository(session)


def get_oauth_token_repository(session: DBSession) -> OAuthTokenRepository:
    return OAuthTokenRepository(session)


def get_challenge_repository(session: DBSession) -> CloudflareChallengeRepository:
    return CloudflareChallengeRepository(session)


UserRepo = Annotated[UserRepository, Depends(get_user_repository)]
RequestRepo = Annotated[ReimbursementRequestRepository, Depends(get_request_repository)]
EventRepo = Annotated[RequestEventRepository, Depends(get_event_repository)]
OAuthTokenRepo = Annotated[OAuthTokenRepository, Depends(get_oauth_token_repository)]
ChallengeRepo = Annotated[CloudflareChallengeRepository, Depends(get_challenge_repository)]
