"""Audit log model for token lifecycle and workflow batch actions."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid7

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from src.jupiter.models.base import utc_now


class AuditAction(str, Enum):
    """Audit action types for type-safe logging."""

    # Auth
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"

    # OAuth tokens
    TOKEN_EXCHANGE = "token.exchange"
    TOKEN_REFRESH = "token.refresh"
    TOKEN_REFRESH_FAILED = "token.refresh_failed"
    TOKEN_ROTATE = "token.rotate"
    TOKEN_REVOKE = "token.revoke"
    TOKEN_CLEANUP = "token.cleanup"

    # Cloudflare challenges
    CHALLENGE_CREATE = "challenge.create"
    CHALLENGE_VERIFY = "challenge.verify"
    CHALLENGE_COMPLETE = "challenge.complete"

    # Requests
    REQUEST_BULK_APPROVE = "request.bulk_approve"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class AuditLog(SQLModel, table=True):
    """Audit log entry. Written fire-and-forget by AuditService."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_user_created", "user_id", "created_at"),
        Index("ix_audit_logs_action_created", "action", "created_at"),
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    user_id: UUID | None = Field(foreign_key="users.id", index=True, default=None)

    action: str = Field(max_length=50)  # AuditAction value
    entity_type: str = Field(max_length=50)  # "oauth_token", "challenge", "request"
    entity_id: UUID | None = Field(default=None)

    changes: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    # Request metadata
    ip_address: str | None = Field(max_length=45, default=None)
    user_agent: str | None = Field(max_length=500, default=None)
    request_id: str | None = Field(max_length=36, default=None)

    status: str = Field(default=AuditStatus.SUCCESS.value, max_length=20)
    error_message: str | None = Field(max_length=1000, default=None)

    created_at: datetime = Field(default_factory=utc_now)
