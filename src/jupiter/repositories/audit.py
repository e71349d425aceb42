"""Repository for AuditLog entity."""

from uuid import UUID

from sqlmodel import select

from src.jupiter.models import AuditLog
from src.jupiter.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    model = AuditLog

    async def list_by_user(
        self,
        user_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
        action: str | None = None,
    ) -> tuple[list[AuditLog], str | None, bool]:
        """List audit logs for a user, newest first.

        Returns:
            Tuple of (logs, next_cursor, has_more)
        """
        query = select(AuditLog).where(AuditLog.user_id == user_id)
        if action:
            query = query.where(AuditLog.action == action)
        return await self.paginate(query, cursor, limit)

    async def list_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[AuditLog], str | None, bool]:
        query = select(AuditLog).where(
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == entity_id,
        )
        return await self.paginate(query, cursor, limit)

