"""NationBuilder sign-in endpoints."""

from typing import Annotated

from fastapi import APIRouter, Cookie, Query, Response, status

from src.jupiter.api.dependencies import CurrentUser, NationBuilderAuthServiceDep
from src.jupiter.core.config import get_settings
from src.jupiter.core.security import generate_opaque_token
from src.jupiter.schemas import LoginResponse, LoginStartResponse, UserRead

router = APIRouter(prefix="/auth/nationbuilder", tags=["auth"])

STATE_COOKIE = "jupiter_oauth_state"
SESSION_COOKIE = "jupiter_session_id"
COOKIE_MAX_AGE = 60 * 60


def _set_cookie(response: Response, key: str, value: str) -> None:
    response.set_cookie(
        key,
        value,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=get_settings().app_env == "production",
        samesite="lax",
    )


@router.get("/login", response_model=LoginStartResponse)
async def start_login(
    response: Response,
    service: NationBuilderAuthServiceDep,
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> LoginStartResponse:
    """Begin sign-in. The browser is sent to `authorization_url` next."""
    url, state = service.start_login()
    _set_cookie(response, STATE_COOKIE, state)
    _set_cookie(response, SESSION_COOKIE, session_id or generate_opaque_token())
    return LoginStartResponse(authorization_url=url, state=state)


@router.get(
    "/callback",
    response_model=LoginResponse,
    responses={
        400: {"description": "OAuth state mismatch or rejected code"},
        401: {"description": "NationBuilder requires re-authentication"},
        428: {
            "description": "Cloudflare challenge must be resolved first",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Additional verification is required to complete sign-in",
                        "error": {
                            "code": "challenge_required",
                            "challenge_id": "Xr2...",
                            "challenge_type": "turnstile",
                        },
                    }
                }
            },
        },
    },
)
async def callback(
    service: NationBuilderAuthServiceDep,
    code: Annotated[str, Query(min_length=1)],
    state: Annotated[str, Query(min_length=1)],
    challenge_completed: bool = False,
    expected_state: Annotated[str | None, Cookie(alias=STATE_COOKIE)] = None,
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> LoginResponse:
    result = await service.handle_callback(
        code=code,
        state=state,
        expected_state=expected_state,
        session_id=session_id or generate_opaque_token(),
        challenge_completed=challenge_completed,
    )
    return LoginResponse(
        access_token=result.access_token,
        user=UserRead.model_validate(result.user),
        roles=sorted(result.roles),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    response: Response,
    current_user: CurrentUser,
    service: NationBuilderAuthServiceDep,
) -> None:
    """Revoke stored NationBuilder tokens for the current user."""
    await service.logout(current_user.id)
    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(SESSION_COOKIE)
