"""Repository for User and UserRole entities."""

from uuid import UUID

from sqlmodel import select

from src.jupiter.models import User, UserRole
from src.jupiter.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_nationbuilder_uid(self, nationbuilder_uid: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.nationbuilder_uid == nationbuilder_uid)
        )
        return result.scalar_one_or_none()

    async def get_roles(self, user_id: UUID) -> frozenset[str]:
        """Role values held by a user."""
        result = await self.session.execute(
            select(UserRole.role).where(UserRole.user_id == user_id)
        )
        return frozenset(result.scalars().all())

    def add_role(self, user_id: UUID, role: str) -> None:
        self.session.add(UserRole(user_id=user_id, role=role))
