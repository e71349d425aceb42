"""Cloudflare challenge endpoints used to resume a blocked sign-in."""

from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, HTTPException, status

from src.jupiter.api.dependencies import ChallengeServiceDep
from src.jupiter.api.v1.nationbuilder import SESSION_COOKIE, STATE_COOKIE
from src.jupiter.core.config import get_settings
from src.jupiter.schemas import (
    ChallengeCompleteResponse,
    ChallengeRead,
    ChallengeVerifyRequest,
    ChallengeVerifyResponse,
)

router = APIRouter(prefix="/challenges", tags=["challenges"])

SessionCookie = Annotated[str | None, Cookie(alias=SESSION_COOKIE)]


def _require_session(session_id: str | None) -> str:
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign-in session not found; start sign-in again",
        )
    return session_id


@router.get("/{challenge_id}", response_model=ChallengeRead)
async def get_challenge(
    challenge_id: str,
    service: ChallengeServiceDep,
    session_id: SessionCookie = None,
) -> ChallengeRead:
    record = await service.get_challenge(challenge_id, _require_session(session_id))
    return ChallengeRead.model_validate(record)


@router.post(
    "/{challenge_id}/verify",
    response_model=ChallengeVerifyResponse,
    responses={
        400: {"description": "Turnstile token rejected or challenge already used"},
        404: {"description": "Challenge not found"},
        410: {"description": "Challenge expired"},
    },
)
async def verify_challenge(
    challenge_id: str,
    data: ChallengeVerifyRequest,
    service: ChallengeServiceDep,
    session_id: SessionCookie = None,
) -> ChallengeVerifyResponse:
    record = await service.verify(
        challenge_id, _require_session(session_id), turnstile_token=data.turnstile_token
    )
    return ChallengeVerifyResponse(verified=record.is_verified, challenge_id=record.challenge_id)


@router.post("/{challenge_id}/complete", response_model=ChallengeCompleteResponse)
async def complete_challenge(
    challenge_id: str,
    service: ChallengeServiceDep,
    session_id: SessionCookie = None,
    oauth_state: Annotated[str | None, Cookie(alias=STATE_COOKIE)] = None,
) -> ChallengeCompleteResponse:
    """Consume the challenge and hand back the callback URL to retry the exchange."""
    params = await service.complete(
        challenge_id, _require_session(session_id), oauth_state or ""
    )
    query = urlencode(
        {k: ("true" if v is True else v) for k, v in params.items() if v is not None}
    )
    return ChallengeCompleteResponse(
        callback_url=f"{get_settings().nationbuilder_redirect_uri}?{query}"
    )
