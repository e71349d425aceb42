"""Test helper functions for common data creation patterns."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.security import create_access_token
from src.jupiter.models import ReimbursementRequest, Role, User
from src.jupiter.policies import Principal
from tests.factories import ReimbursementRequestFactory, UserFactory, UserRoleFactory


async def create_user(session: AsyncSession, *roles: Role, **user_kwargs) -> User:
    """Create a user holding the given roles.

    Args:
        session: Database session
        *roles: Roles to grant
        **user_kwargs: Additional args passed to UserFactory
    """
    user = UserFactory.build(**user_kwargs)
    session.add(user)
    for role in roles:
        session.add(UserRoleFactory.build(user_id=user.id, role=role.value))
    await session.commit()
    return user


def principal_for(user: User, *roles: Role) -> Principal:
    return Principal(user_id=user.id, roles=frozenset(role.value for role in roles))


async def create_request(
    session: AsyncSession, user: User, **request_kwargs
) -> ReimbursementRequest:
    """Persist a draft request owned by `user`, bypassing numbering."""
    request = ReimbursementRequestFactory.build(user_id=user.id, **request_kwargs)
    session.add(request)
    await session.commit()
    return request


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
