"""User and role models."""

from datetime import datetime
from uuid import UUID, uuid7

from sqlmodel import Field, SQLModel

from src.jupiter.models.base import utc_now
from src.jupiter.models.enums import Role


class User(SQLModel, table=True):
    """Portal user, linked to a NationBuilder person after OAuth sign-in."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    full_name: str = Field(max_length=255)
    nationbuilder_uid: str | None = Field(default=None, max_length=64, unique=True, index=True)
    is_active: bool = Field(default=True)
    last_sign_in_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UserRole(SQLModel, table=True):
    """Junction table for user roles."""

    __tablename__ = "user_roles"

    user_id: UUID = Field(foreign_key="users.id", primary_key=True)
    role: str = Field(default=Role.SUBMITTER.value, max_length=50, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
