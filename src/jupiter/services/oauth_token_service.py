"""NationBuilder token lifecycle - storage, refresh, rotation and cleanup.

Refresh is serialized per user: callers take the refresh lock, re-read the
token row FOR UPDATE and only refresh if it still needs it, so concurrent
callers share one refresh instead of spending the refresh token twice.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.config import Settings, get_settings
from src.jupiter.core.locks import RefreshLockTimeout, refresh_lock
from src.jupiter.core.logging import get_logger
from src.jupiter.core.security import generate_opaque_token
from src.jupiter.integrations.nationbuilder.errors import (
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    NationBuilderError,
    NetworkError,
    ServerError,
    TokenExchangeError,
)
from src.jupiter.integrations.nationbuilder.oauth_client import (
    NationBuilderOAuthClient,
    TokenResponse,
)
from src.jupiter.models import AuditAction, OAuthProvider, OAuthToken
from src.jupiter.models.base import utc_now
from src.jupiter.repositories import OAuthTokenRepository
from src.jupiter.services.audit_service import AuditService

logger = get_logger(__name__)

_SECRET_KEYS = frozenset({"access_token", "refresh_token", "id_token"})


def backoff_delay(
    attempt: int,
    base: float = 1.0,
    max_delay: float = 16.0,
    jitter: float = 0.3,
) -> float:
    """Delay before retry number `attempt` (1-based).

    min(base * 2**(attempt-1), max_delay), scaled by a random factor in
    [1 - jitter, 1 + jitter].
    """
    delay = min(base * 2 ** (attempt - 1), max_delay)
    return delay * (1 + random.uniform(-jitter, jitter))


def sanitize_token_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Provider response without credentials, for raw_response."""
    return {key: value for key, value in payload.items() if key not in _SECRET_KEYS}


@dataclass(frozen=True)
class RefreshResult:
    ok: bool
    token: OAuthToken
    error: NationBuilderError | None = None
    attempts: int = 0


@dataclass(frozen=True)
class MaintenanceCounts:
    checked: int = 0
    refreshed: int = 0
    failed: int = 0
    skipped: int = 0


class OAuthTokenService:
    def __init__(
        self,
        token_repo: OAuthTokenRepository,
        session: AsyncSession,
        oauth_client: NationBuilderOAuthClient | None = None,
        audit_service: AuditService | None = None,
        settings: Settings | None = None,
        provider: str = OAuthProvider.NATIONBUILDER.value,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.token_repo = token_repo
        self.session = session
        self.oauth_client = oauth_client
        self.audit_service = audit_service
        self.settings = settings or get_settings()
        self.provider = provider
        self._sleep = sleep

    # --- Predicates ---

    @property
    def default_buffer(self) -> timedelta:
        return timedelta(minutes=self.settings.token_refresh_buffer_minutes)

    def needs_refresh(self, token: OAuthToken, buffer: timedelta | None = None) -> bool:
        return token.needs_refresh(buffer if buffer is not None else self.default_buffer)

    # --- Exchange ---

    async def store_exchanged_token(self, user_id: UUID, response: TokenResponse) -> OAuthToken:
        """Persist tokens from an authorization-code exchange.

        Updates the active row in place when the user already has one.
        """
        try:
            token = await self.token_repo.get_active_for_user(
                user_id, self.provider, for_update=True
            )
            if token is None:
                if not response.refresh_token:
                    raise TokenExchangeError(
                        "Token endpoint response has no refresh token",
                        error_code="invalid_response",
                        kind=ErrorKind.INVALID_RESPONSE,
                    )
                token = OAuthToken(
                    user_id=user_id,
                    provider=self.provider,
                    access_token=response.access_token,
                    refresh_token=response.refresh_token,
                    expires_at=response.expires_at(),
                    scope=response.scope,
                    raw_response=sanitize_token_payload(response.raw),
                )
            else:
                self._apply_response(token, response)
            self.token_repo.add(token)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("OAuth token stored", user_id=str(user_id), version=token.version)
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.TOKEN_EXCHANGE,
                entity_type="oauth_token",
                entity_id=token.id,
                user_id=user_id,
                changes={"expires_at": token.expires_at.isoformat(), "scope": token.scope},
            )
        return token

    # --- Refresh ---

    async def refresh(self, token: OAuthToken) -> RefreshResult:
        """Refresh `token` in place, retrying transient failures with backoff.

        Network and 5xx errors are retried token_refresh_max_retries times.
        Anything else (401/403/invalid_grant, 429) fails immediately. The
        token is left untouched on failure.
        """
        if self.oauth_client is None:
            return await self._refresh_failed(
                token, ConfigurationError("NationBuilder OAuth client is not configured"), 0
            )
        max_attempts = 1 + self.settings.token_refresh_max_retries
        attempts = 0
        while True:
            attempts += 1
            try:
                response = await self.oauth_client.refresh_access_token(token.refresh_token)
                break
            except (NetworkError, ServerError) as e:
                if attempts >= max_attempts:
                    return await self._refresh_failed(token, e, attempts)
                delay = backoff_delay(
                    attempts,
                    base=self.settings.token_refresh_base_delay_seconds,
                    max_delay=self.settings.token_refresh_max_delay_seconds,
                    jitter=self.settings.token_refresh_jitter,
                )
                logger.warning(
                    "Token refresh failed, retrying",
                    user_id=str(token.user_id),
                    attempt=attempts,
                    delay=round(delay, 3),
                    error_kind=e.kind.value,
                )
                await self._sleep(delay)
            except NationBuilderError as e:
                return await self._refresh_failed(token, e, attempts)

        try:
            self._apply_response(token, response)
            self.token_repo.add(token)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Token refreshed",
            user_id=str(token.user_id),
            attempts=attempts,
            expires_at=token.expires_at.isoformat(),
        )
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.TOKEN_REFRESH,
                entity_type="oauth_token",
                entity_id=token.id,
                user_id=token.user_id,
                changes={"attempts": attempts, "expires_at": token.expires_at.isoformat()},
            )
        return RefreshResult(ok=True, token=token, attempts=attempts)

    async def ensure_fresh_token(self, user_id: UUID) -> OAuthToken:
        """Active token that does not need refresh, refreshing it if required.

        Raises:
            AuthenticationError: No active token; the user must sign in again.
            NationBuilderError: The refresh failed (classified).
            RefreshLockTimeout: Another refresh held the lock for too long.
        """
        token = await self.token_repo.get_active_for_user(user_id, self.provider)
        if token is None:
            raise AuthenticationError("No NationBuilder token on file; sign in again")
        if not self.needs_refresh(token):
            return token
        token, _ = await self._refresh_locked(user_id)
        return token

    async def get_valid_access_token(self, user_id: UUID) -> str:
        token = await self.ensure_fresh_token(user_id)
        return token.access_token

    async def force_refresh(
        self, user_id: UUID, stale_access_token: str | None = None
    ) -> OAuthToken:
        """Refresh regardless of expiry, e.g. after the API rejected the token.

        If `stale_access_token` is given and the stored token already differs
        from it, another caller refreshed first and that token is returned.
        """
        token, _ = await self._refresh_locked(
            user_id, force=True, stale_access_token=stale_access_token
        )
        return token

    async def _refresh_locked(
        self,
        user_id: UUID,
        force: bool = False,
        stale_access_token: str | None = None,
        buffer: timedelta | None = None,
    ) -> tuple[OAuthToken, bool]:
        """Refresh under the per-user lock. Returns (token, refreshed_here).

        The row lock taken by the FOR UPDATE read is released before
        returning or raising, whether or not a refresh happened.
        """
        result: RefreshResult | None = None
        async with refresh_lock(user_id, self.provider):
            try:
                token = await self.token_repo.get_active_for_user(
                    user_id, self.provider, for_update=True
                )
                if token is not None and self._refreshed_elsewhere(
                    token, force, stale_access_token, buffer
                ):
                    logger.debug("Token already refreshed by another caller", user_id=str(user_id))
                elif token is not None:
                    result = await self.refresh(token)
            except Exception:
                await self.session.rollback()
                raise
            # Nothing is pending here: a successful refresh committed already
            await self.session.commit()

        if token is None:
            raise AuthenticationError("No NationBuilder token on file; sign in again")
        if result is None:
            return token, False
        if not result.ok and result.error is not None:
            raise result.error
        return result.token, True

    def _refreshed_elsewhere(
        self,
        token: OAuthToken,
        force: bool,
        stale_access_token: str | None,
        buffer: timedelta | None,
    ) -> bool:
        if force:
            return bool(stale_access_token) and token.access_token != stale_access_token
        return not self.needs_refresh(token, buffer)

    async def _refresh_failed(
        self, token: OAuthToken, error: NationBuilderError, attempts: int
    ) -> RefreshResult:
        logger.error(
            "Token refresh failed",
            user_id=str(token.user_id),
            attempts=attempts,
            error_kind=error.kind.value,
            error_code=error.error_code,
            http_status=error.http_status,
        )
        if self.audit_service:
            await self.audit_service.log_failure(
                action=AuditAction.TOKEN_REFRESH_FAILED,
                entity_type="oauth_token",
                entity_id=token.id,
                user_id=token.user_id,
                error_message=error.message,
                changes={"attempts": attempts, "kind": error.kind.value},
            )
        return RefreshResult(ok=False, token=token, error=error, attempts=attempts)

    @staticmethod
    def _apply_response(token: OAuthToken, response: TokenResponse) -> None:
        now = utc_now()
        token.access_token = response.access_token
        if response.refresh_token:
            token.refresh_token = response.refresh_token
        token.expires_at = response.expires_at(now)
        if response.scope is not None:
            token.scope = response.scope
        token.raw_response = sanitize_token_payload(response.raw)
        token.updated_at = now

    # --- Rotation and cleanup ---

    async def rotate(
        self,
        user_id: UUID,
        new_refresh_token: str | None = None,
        new_access_token: str | None = None,
    ) -> OAuthToken:
        """Retire the active token and insert its successor in one transaction."""
        try:
            current = await self.token_repo.get_active_for_user(
                user_id, self.provider, for_update=True
            )
            if current is None:
                raise AuthenticationError("No NationBuilder token on file; sign in again")

            now = utc_now()
            current.rotated_at = now
            current.updated_at = now
            self.token_repo.add(current)
            # The active-token index allows the successor only after this update
            await self.session.flush()

            successor = OAuthToken(
                user_id=user_id,
                provider=self.provider,
                access_token=new_access_token or current.access_token,
                refresh_token=new_refresh_token or generate_opaque_token(),
                expires_at=current.expires_at,
                scope=current.scope,
                version=current.version + 1,
            )
            self.token_repo.add(successor)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Token rotated", user_id=str(user_id), version=successor.version)
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.TOKEN_ROTATE,
                entity_type="oauth_token",
                entity_id=successor.id,
                user_id=user_id,
                changes={"previous_token_id": str(current.id), "version": successor.version},
            )
        return successor

    async def cleanup_rotated_tokens(self, older_than_days: int | None = None) -> int:
        """Delete rotated tokens past retention. Active tokens are never touched."""
        days = (
            older_than_days
            if older_than_days is not None
            else self.settings.rotated_token_retention_days
        )
        deleted = await self.token_repo.cleanup_rotated(days)
        logger.info("Rotated tokens cleaned up", deleted=deleted, older_than_days=days)
        if deleted and self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.TOKEN_CLEANUP,
                entity_type="oauth_token",
                changes={"deleted": deleted, "older_than_days": days},
            )
        return deleted

    async def refresh_expiring_tokens(self, window_minutes: int | None = None) -> MaintenanceCounts:
        """Proactively refresh active tokens expiring within the window."""
        minutes = (
            window_minutes
            if window_minutes is not None
            else self.settings.proactive_refresh_window_minutes
        )
        window = timedelta(minutes=minutes)
        now = utc_now()
        tokens = await self.token_repo.list_expiring(now + window, now, self.provider)
        user_ids = [token.user_id for token in tokens]

        refreshed = failed = skipped = 0
        for user_id in user_ids:
            try:
                _, did_refresh = await self._refresh_locked(user_id, buffer=window)
            except RefreshLockTimeout:
                skipped += 1
                continue
            except NationBuilderError as e:
                failed += 1
                logger.warning(
                    "Proactive refresh failed",
                    user_id=str(user_id),
                    error_kind=e.kind.value,
                )
                continue
            if did_refresh:
                refreshed += 1
            else:
                skipped += 1

        counts = MaintenanceCounts(
            checked=len(user_ids), refreshed=refreshed, failed=failed, skipped=skipped
        )
        logger.info(
            "Proactive token refresh finished",
            checked=counts.checked,
            refreshed=counts.refreshed,
            failed=counts.failed,
            skipped=counts.skipped,
        )
        return counts

    async def revoke(self, user_id: UUID) -> int:
        """Retire every active token of a user (sign-out)."""
        try:
            count = await self.token_repo.mark_rotated_for_user(user_id, self.provider)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Tokens revoked", user_id=str(user_id), count=count)
        if count and self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.TOKEN_REVOKE,
                entity_type="oauth_token",
                user_id=user_id,
                changes={"revoked": count},
            )
        return count
