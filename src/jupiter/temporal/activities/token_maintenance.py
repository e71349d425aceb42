"""OAuth token and Cloudflare challenge maintenance activities.

Each activity opens its own session; the API's request-scoped sessions are
never shared with the worker.
"""

from dataclasses import asdict

from temporalio import activity

from src.jupiter.core.db import get_session
from src.jupiter.integrations.cloudflare import TurnstileVerifier
from src.jupiter.integrations.nationbuilder import NationBuilderConfig, NationBuilderOAuthClient
from src.jupiter.repositories import (
    AuditLogRepository,
    CloudflareChallengeRepository,
    OAuthTokenRepository,
)
from src.jupiter.services import AuditService, ChallengeService, OAuthTokenService


@activity.defn
async def cleanup_rotated_tokens(retention_days: int) -> int:
    """
    Delete rotated OAuth tokens older than retention_days.

    Idempotent: a second run finds nothing to delete. Active tokens are never
    matched.
    """
    activity.logger.info(f"Cleaning up rotated OAuth tokens older than {retention_days} days")

    async with get_session() as session, get_session() as audit_session:
        service = OAuthTokenService(
            OAuthTokenRepository(session),
            session,
            audit_service=AuditService(AuditLogRepository(audit_session), audit_session),
        )
        count = await service.cleanup_rotated_tokens(retention_days)

    activity.logger.info(f"Deleted {count} rotated OAuth tokens")
    return count


@activity.defn
async def cleanup_expired_challenges() -> int:
    """Delete Cloudflare challenges past their expiry."""
    async with get_session() as session:
        service = ChallengeService(
            CloudflareChallengeRepository(session), session, TurnstileVerifier(None)
        )
        count = await service.cleanup_expired()

    activity.logger.info(f"Deleted {count} expired Cloudflare challenges")
    return count


@activity.defn
async def refresh_expiring_tokens(window_minutes: int) -> dict[str, int]:
    """
    Proactively refresh active tokens expiring within window_minutes.

    Tokens whose refresh lock is held elsewhere are skipped; the holder is
    already refreshing them.

    Returns:
        dict with checked, refreshed, failed and skipped counts
    """
    config = NationBuilderConfig.from_settings()
    oauth_client = NationBuilderOAuthClient(config)
    try:
        async with get_session() as session, get_session() as audit_session:
            service = OAuthTokenService(
                OAuthTokenRepository(session),
                session,
                oauth_client,
                audit_service=AuditService(AuditLogRepository(audit_session), audit_session),
            )
            counts = await service.refresh_expiring_tokens(window_minutes)
    finally:
        await oauth_client.aclose()

    activity.logger.info(
        f"Proactive refresh: {counts.refreshed} refreshed, {counts.failed} failed, "
        f"{counts.skipped} skipped of {counts.checked}"
    )
    return asdict(counts)
