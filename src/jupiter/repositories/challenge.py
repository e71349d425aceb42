"""Repository for CloudflareChallenge entity."""

from typing import Any, cast

from sqlalchemy import delete, update
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.jupiter.models import CloudflareChallenge
from src.jupiter.models.base import utc_now
from src.jupiter.repositories.base import BaseRepository


class CloudflareChallengeRepository(BaseRepository[CloudflareChallenge]):
    model = CloudflareChallenge

    async def get_by_challenge_id(self, challenge_id: str) -> CloudflareChallenge | None:
        result = await self.session.execute(
            select(CloudflareChallenge).where(CloudflareChallenge.challenge_id == challenge_id)
        )
        return result.scalar_one_or_none()

    async def consume(self, challenge_id: str) -> bool:
        """Atomically mark a challenge consumed.

        Returns False if it was already consumed, so two racing completions
        cannot both resume the OAuth flow.
        """
        now = utc_now()
        stmt = (
            update(CloudflareChallenge)
            .where(CloudflareChallenge.challenge_id == challenge_id)  # type: ignore[arg-type]
            .where(CloudflareChallenge.consumed_at == None)  # type: ignore[arg-type]  # noqa: E711
            .values(consumed_at=now)
        )
        result = await self.session.execute(stmt)
        return (cast(CursorResult[Any], result).rowcount or 0) == 1

    async def cleanup_expired(self) -> int:
        """Delete expired challenges. Idempotent.

        Returns:
            Number of challenges deleted
        """
        stmt = delete(CloudflareChallenge).where(
            CloudflareChallenge.expires_at <= utc_now()  # type: ignore[arg-type,operator]
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return cast(CursorResult[Any], result).rowcount or 0
