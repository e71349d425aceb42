"""Cloudflare challenge recovery for a blocked NationBuilder sign-in.

A challenge record is bound to the browser session (and user, when known)
that hit the block. It must be verified, then completed exactly once,
before the token exchange is attempted again.
"""

import hmac
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.audit_context import get_audit_context
from src.jupiter.core.config import Settings, get_settings
from src.jupiter.core.errors import (
    ChallengeAlreadyConsumedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeNotVerifiedError,
    ChallengeSessionMismatchError,
    ChallengeStateMismatchError,
    ChallengeVerificationFailedError,
)
from src.jupiter.core.logging import get_logger
from src.jupiter.core.security import generate_opaque_token
from src.jupiter.integrations.cloudflare import TurnstileVerifier
from src.jupiter.integrations.nationbuilder.challenge import Challenge
from src.jupiter.models import AuditAction, ChallengeType, CloudflareChallenge
from src.jupiter.models.base import utc_now
from src.jupiter.repositories import CloudflareChallengeRepository
from src.jupiter.services.audit_service import AuditService

logger = get_logger(__name__)


class ChallengeService:
    def __init__(
        self,
        challenge_repo: CloudflareChallengeRepository,
        session: AsyncSession,
        verifier: TurnstileVerifier,
        audit_service: AuditService | None = None,
        settings: Settings | None = None,
    ):
        self.challenge_repo = challenge_repo
        self.session = session
        self.verifier = verifier
        self.audit_service = audit_service
        self.settings = settings or get_settings()

    async def create_challenge(
        self,
        challenge: Challenge,
        oauth_state: str,
        original_params: dict[str, Any],
        session_id: str,
        user_id: UUID | None = None,
    ) -> CloudflareChallenge:
        ttl = timedelta(minutes=self.settings.cloudflare_challenge_ttl_minutes)
        record = CloudflareChallenge(
            challenge_id=generate_opaque_token(),
            challenge_type=challenge.challenge_type.value,
            challenge_data={**challenge.data, "site_key": challenge.site_key},
            oauth_state=oauth_state,
            original_params=original_params,
            session_id=session_id,
            user_id=user_id,
            expires_at=utc_now() + ttl,
        )
        try:
            self.challenge_repo.add(record)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Cloudflare challenge created",
            challenge_id=record.challenge_id,
            challenge_type=record.challenge_type,
        )
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.CHALLENGE_CREATE,
                entity_type="cloudflare_challenge",
                entity_id=record.id,
                user_id=user_id,
                changes={"challenge_type": record.challenge_type},
            )
        return record

    async def get_challenge(
        self, challenge_id: str, session_id: str, user_id: UUID | None = None
    ) -> CloudflareChallenge:
        """Load a challenge owned by this session and not yet expired."""
        record = await self.challenge_repo.get_by_challenge_id(challenge_id)
        if record is None:
            raise ChallengeNotFoundError("Challenge not found")
        if not hmac.compare_digest(record.session_id, session_id):
            raise ChallengeSessionMismatchError("Challenge belongs to a different session")
        if record.user_id is not None and user_id is not None and record.user_id != user_id:
            raise ChallengeSessionMismatchError("Challenge belongs to a different user")
        if record.is_expired():
            raise ChallengeExpiredError("Challenge has expired; start sign-in again")
        return record

    async def verify(
        self,
        challenge_id: str,
        session_id: str,
        turnstile_token: str | None = None,
        remote_ip: str | None = None,
    ) -> CloudflareChallenge:
        """Record that the user resolved the challenge.

        Turnstile challenges need a token accepted by Cloudflare; browser and
        rate-limit challenges are confirmed manually by the user.
        """
        record = await self.get_challenge(challenge_id, session_id)
        if record.is_consumed:
            raise ChallengeAlreadyConsumedError("Challenge was already completed")

        if record.challenge_type == ChallengeType.TURNSTILE:
            if remote_ip is None:
                ctx = get_audit_context()
                remote_ip = ctx.ip_address if ctx else None
            result = await self.verifier.verify(turnstile_token, remote_ip)
            if not result.success:
                if self.audit_service:
                    await self.audit_service.log_failure(
                        action=AuditAction.CHALLENGE_VERIFY,
                        entity_type="cloudflare_challenge",
                        entity_id=record.id,
                        user_id=record.user_id,
                        error_message=", ".join(result.error_codes) or "verification failed",
                    )
                raise ChallengeVerificationFailedError(
                    "Verification failed; please try again", result.error_codes
                )

        try:
            record.verified_at = utc_now()
            self.challenge_repo.add(record)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Cloudflare challenge verified", challenge_id=challenge_id)
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.CHALLENGE_VERIFY,
                entity_type="cloudflare_challenge",
                entity_id=record.id,
                user_id=record.user_id,
                changes={"challenge_type": record.challenge_type},
            )
        return record

    async def complete(
        self, challenge_id: str, session_id: str, oauth_state: str
    ) -> dict[str, Any]:
        """Consume a verified challenge and return the params to resume OAuth with.

        Succeeds at most once per challenge.
        """
        record = await self.get_challenge(challenge_id, session_id)
        if not hmac.compare_digest(record.oauth_state, oauth_state):
            raise ChallengeStateMismatchError("OAuth state does not match the challenge")
        if not record.is_verified:
            raise ChallengeNotVerifiedError("Challenge has not been verified yet")
        if record.is_consumed:
            raise ChallengeAlreadyConsumedError("Challenge was already completed")

        try:
            if not await self.challenge_repo.consume(challenge_id):
                raise ChallengeAlreadyConsumedError("Challenge was already completed")
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Cloudflare challenge completed", challenge_id=challenge_id)
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.CHALLENGE_COMPLETE,
                entity_type="cloudflare_challenge",
                entity_id=record.id,
                user_id=record.user_id,
            )
        return {**(record.original_params or {}), "challenge_completed": True}

    async def cleanup_expired(self) -> int:
        deleted = await self.challenge_repo.cleanup_expired()
        logger.info("Expired challenges cleaned up", deleted=deleted)
        return deleted
