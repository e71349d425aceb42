"""NationBuilder sign-in - authorization redirect and callback handling."""

import hmac
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.config import Settings, get_settings
from src.jupiter.core.errors import (
    ChallengeRequiredError,
    NotAuthorizedError,
    OAuthStateMismatchError,
)
from src.jupiter.core.logging import get_logger
from src.jupiter.core.security import create_access_token, generate_opaque_token
from src.jupiter.integrations.nationbuilder import (
    ApiClientError,
    NationBuilderOAuthClient,
    TokenExchangeError,
    fetch_profile,
)
from src.jupiter.models import AuditAction, Role, User
from src.jupiter.models.base import utc_now
from src.jupiter.repositories import UserRepository
from src.jupiter.services.audit_service import AuditService
from src.jupiter.services.challenge_service import ChallengeService
from src.jupiter.services.oauth_token_service import OAuthTokenService

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    user: User
    access_token: str
    roles: frozenset[str]


class NationBuilderAuthService:
    def __init__(
        self,
        user_repo: UserRepository,
        session: AsyncSession,
        oauth_client: NationBuilderOAuthClient,
        token_service: OAuthTokenService,
        challenge_service: ChallengeService,
        audit_service: AuditService | None = None,
        settings: Settings | None = None,
    ):
        self.user_repo = user_repo
        self.session = session
        self.oauth_client = oauth_client
        self.token_service = token_service
        self.challenge_service = challenge_service
        self.audit_service = audit_service
        self.settings = settings or get_settings()

    def start_login(self) -> tuple[str, str]:
        """Returns (authorization_url, state). The caller keeps `state` for the callback."""
        state = generate_opaque_token()
        return self.oauth_client.authorization_url(state), state

    async def handle_callback(
        self,
        code: str,
        state: str,
        expected_state: str | None,
        session_id: str,
        challenge_completed: bool = False,
    ) -> LoginResult:
        """Finish sign-in: exchange the code, link the user, store the token.

        Raises:
            OAuthStateMismatchError: `state` is not the one issued at login.
            ChallengeRequiredError: Cloudflare blocked the exchange; the user
                must resolve the recorded challenge, then retry once.
            TokenExchangeError: NationBuilder refused the code.
        """
        if not expected_state or not hmac.compare_digest(state, expected_state):
            raise OAuthStateMismatchError("OAuth state mismatch; start sign-in again")

        try:
            token_response = await self.oauth_client.exchange_code_for_token(code)
        except TokenExchangeError as e:
            if (
                e.is_challenge
                and e.challenge is not None
                and self.settings.cloudflare_challenge_handling_enabled
                and not challenge_completed
            ):
                record = await self.challenge_service.create_challenge(
                    e.challenge,
                    oauth_state=state,
                    original_params={"code": code, "state": state},
                    session_id=session_id,
                )
                raise ChallengeRequiredError(record.challenge_id, record.challenge_type) from e
            logger.warning(
                "Token exchange failed",
                error_code=e.error_code,
                error_kind=e.kind.value,
                challenge_completed=challenge_completed,
            )
            raise

        person = await fetch_profile(self.oauth_client.config, token_response.access_token)
        user = await self._find_or_create_user(person)
        if not user.is_active:
            raise NotAuthorizedError("sign in", "This account is disabled")

        await self.token_service.store_exchanged_token(user.id, token_response)
        roles = await self.user_repo.get_roles(user.id)

        logger.info("User signed in via NationBuilder", user_id=str(user.id))
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.USER_LOGIN,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                changes={"provider": "nationbuilder", "challenge_completed": challenge_completed},
            )
        return LoginResult(user=user, access_token=create_access_token(user.id), roles=roles)

    async def logout(self, user_id: UUID) -> None:
        await self.token_service.revoke(user_id)
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.USER_LOGOUT,
                entity_type="user",
                entity_id=user_id,
                user_id=user_id,
            )

    async def _find_or_create_user(self, person: dict[str, Any]) -> User:
        """Match by NationBuilder id, then by email; otherwise create a submitter."""
        nationbuilder_uid = str(person.get("id") or "") or None
        email = (person.get("email") or "").strip().lower() or None
        full_name = self._full_name(person, email)

        try:
            user = None
            if nationbuilder_uid:
                user = await self.user_repo.get_by_nationbuilder_uid(nationbuilder_uid)
            if user is None and email:
                user = await self.user_repo.get_by_email(email)
                if user is not None and nationbuilder_uid:
                    user.nationbuilder_uid = nationbuilder_uid
            if user is None:
                if not email:
                    raise ApiClientError(
                        "NationBuilder profile has no email address",
                        error_code="missing_email",
                    )
                user = User(email=email, full_name=full_name, nationbuilder_uid=nationbuilder_uid)
                self.user_repo.add(user)
                await self.session.flush()
                self.user_repo.add_role(user.id, Role.SUBMITTER.value)
                logger.info("User created from NationBuilder profile", user_id=str(user.id))

            now = utc_now()
            user.last_sign_in_at = now
            user.updated_at = now
            self.user_repo.add(user)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return user

    @staticmethod
    def _full_name(person: dict[str, Any], email: str | None) -> str:
        name = " ".join(
            part for part in (person.get("first_name"), person.get("last_name")) if part
        ).strip()
        return name or person.get("full_name") or email or "NationBuilder user"
