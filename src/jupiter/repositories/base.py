"""Base repository with common CRUD operations."""

from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from src.jupiter.core.errors import RequestValidationError
from src.jupiter.schemas.pagination import decode_cursor, encode_cursor


class BaseRepository[ModelType: SQLModel]:
    """Base repository providing common database operations.

    Repositories handle data access only. Transaction control (commit)
    should be done in the service layer.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Get a record by its primary key."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> None:
        """Add entity to session (no flush/commit)."""
        self.session.add(entity)

    async def delete(self, entity: ModelType) -> None:
        """Mark entity for deletion (no commit)."""
        await self.session.delete(entity)

    async def paginate(
        self,
        query: Any,  # SelectOfScalar or Select - SQLModel/SQLAlchemy query
        cursor: str | None,
        limit: int,
    ) -> tuple[list[ModelType], str | None, bool]:
        """Keyset pagination over (created_at, id), newest first.

        Rows sharing a created_at are ordered by id, so a page boundary
        inside a burst of same-instant rows neither skips nor repeats rows.

        Returns:
            Tuple of (items, next_cursor, has_more)

        Raises:
            RequestValidationError: If the cursor is malformed.
        """
        created_at = self.model.created_at  # type: ignore[attr-defined]
        id = self.model.id  # type: ignore[attr-defined]

        if cursor:
            try:
                last_created_at, last_id = decode_cursor(cursor)
            except ValueError as e:
                raise RequestValidationError("Invalid pagination cursor") from e
            query = query.where(
                or_(
                    created_at < last_created_at,
                    and_(created_at == last_created_at, id < last_id),
                )
            )

        # limit + 1 tells us whether another page exists
        query = query.order_by(created_at.desc(), id.desc()).limit(limit + 1)
        result = await self.session.execute(query)
        items = list(result.scalars().all())

        has_more = len(items) > limit
        if has_more:
            items = items[:limit]

        next_cursor = None
        if has_more and items:
            last = items[-1]
            next_cursor = encode_cursor(last.created_at, last.id)  # type: ignore[attr-defined]

        return items, next_cursor, has_more
