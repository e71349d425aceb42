"""Repository for OAuthToken entity."""

from datetime import datetime, timedelta
from typing import Any, cast
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.jupiter.models import OAuthProvider, OAuthToken
from src.jupiter.models.base import utc_now
from src.jupiter.repositories.base import BaseRepository


class OAuthTokenRepository(BaseRepository[OAuthToken]):
    model = OAuthToken

    async def get_active_for_user(
        self,
        user_id: UUID,
        provider: str = OAuthProvider.NATIONBUILDER.value,
        for_update: bool = False,
    ) -> OAuthToken | None:
        """Get the active (non-rotated) token for a user.

        Args:
            for_update: Lock the row for the rest of the transaction. Used by
                refresh so a second process re-reads the refreshed row instead
                of spending the same refresh token twice.
        """
        query = select(OAuthToken).where(
            OAuthToken.user_id == user_id,
            OAuthToken.provider == provider,
            OAuthToken.rotated_at == None,  # noqa: E711
        )
        if for_update:
            # Re-read column values even if the row is already in the identity map
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: UUID, provider: str = OAuthProvider.NATIONBUILDER.value
    ) -> list[OAuthToken]:
        """All tokens for a user, active and rotated, oldest generation first."""
        result = await self.session.execute(
            select(OAuthToken)
            .where(OAuthToken.user_id == user_id, OAuthToken.provider == provider)
            .order_by(OAuthToken.version)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def list_expiring(
        self,
        window_end: datetime,
        now: datetime | None = None,
        provider: str = OAuthProvider.NATIONBUILDER.value,
    ) -> list[OAuthToken]:
        """Active tokens that are still valid but expire before window_end."""
        now = now or utc_now()
        result = await self.session.execute(
            select(OAuthToken).where(
                OAuthToken.provider == provider,
                OAuthToken.rotated_at == None,  # noqa: E711
                OAuthToken.expires_at > now,
                OAuthToken.expires_at <= window_end,
            )
        )
        return list(result.scalars().all())

    async def mark_rotated_for_user(
        self, user_id: UUID, provider: str = OAuthProvider.NATIONBUILDER.value
    ) -> int:
        """Mark every active token of a user as rotated. Returns rows updated."""
        stmt = (
            update(OAuthToken)
            .where(OAuthToken.user_id == user_id)  # type: ignore[arg-type]
            .where(OAuthToken.provider == provider)  # type: ignore[arg-type]
            .where(OAuthToken.rotated_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(rotated_at=utc_now(), updated_at=utc_now())
        )
        result = await self.session.execute(stmt)
        return cast(CursorResult[Any], result).rowcount or 0

    async def cleanup_rotated(self, retention_days: int) -> int:
        """Delete tokens rotated more than retention_days ago.

        Active tokens (rotated_at IS NULL) never match. Idempotent.

        Returns:
            Number of tokens deleted
        """
        cutoff = utc_now() - timedelta(days=retention_days)
        stmt = delete(OAuthToken).where(
            OAuthToken.rotated_at != None,  # type: ignore[arg-type]  # noqa: E711
            OAuthToken.rotated_at < cutoff,  # type: ignore[arg-type,operator]
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return cast(CursorResult[Any], result).rowcount or 0
