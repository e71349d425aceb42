"""OAuth token storage and Cloudflare challenge records."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid7

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field, SQLModel

from src.jupiter.models.base import utc_now
from src.jupiter.models.enums import ChallengeType, OAuthProvider

DEFAULT_REFRESH_BUFFER = timedelta(minutes=5)


class OAuthToken(SQLModel, table=True):
    """Third-party OAuth credentials for one user.

    A row with rotated_at = NULL is the active token. Rotation marks the
    active row and inserts its successor; refresh updates the active row in
    place.
    """

    __tablename__ = "oauth_tokens"
    __table_args__ = (
        # At most one active token per user/provider
        Index(
            "uq_oauth_tokens_active_per_user",
            "user_id",
            "provider",
            unique=True,
            postgresql_where=text("rotated_at IS NULL"),
            sqlite_where=text("rotated_at IS NULL"),
        ),
        Index("ix_oauth_tokens_expires_at", "expires_at"),
        Index("ix_oauth_tokens_rotated_at", "rotated_at"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    provider: str = Field(default=OAuthProvider.NATIONBUILDER.value, max_length=30)
    access_token: str = Field(max_length=2048)
    refresh_token: str = Field(max_length=2048)
    expires_at: datetime
    scope: str | None = Field(default=None, max_length=500)
    version: int = Field(default=1)
    rotated_at: datetime | None = Field(default=None)
    raw_response: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.rotated_at is None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utc_now())

    def needs_refresh(
        self, buffer: timedelta = DEFAULT_REFRESH_BUFFER, now: datetime | None = None
    ) -> bool:
        """True iff the token expires within `buffer` (boundary inclusive)."""
        return self.expires_at <= (now or utc_now()) + buffer

    def expiring_soon(self, minutes: int = 5, now: datetime | None = None) -> bool:
        return self.needs_refresh(timedelta(minutes=minutes), now)

    def is_valid_for_api_use(self, now: datetime | None = None) -> bool:
        return self.is_active and bool(self.access_token) and not self.is_expired(now)

    def seconds_until_expiry(self, now: datetime | None = None) -> int:
        remaining = (self.expires_at - (now or utc_now())).total_seconds()
        return max(int(remaining), 0)


class CloudflareChallenge(SQLModel, table=True):
    """A token exchange blocked by Cloudflare, waiting for the user to resolve it.

    Bound to the session (and user, if known) that hit the block. Expires
    after a short TTL and resumes the OAuth flow at most once.
    """

    __tablename__ = "cloudflare_challenges"
    __table_args__ = (
        Index("ix_cloudflare_challenges_session", "session_id"),
        Index("ix_cloudflare_challenges_expires_at", "expires_at"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    challenge_id: str = Field(max_length=64, unique=True, index=True)
    challenge_type: str = Field(max_length=30)
    challenge_data: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    oauth_state: str = Field(max_length=255)
    original_params: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    session_id: str = Field(max_length=255)
    user_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    expires_at: datetime
    verified_at: datetime | None = Field(default=None)
    consumed_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utc_now())

    @property
    def requires_manual_verification(self) -> bool:
        return self.challenge_type != ChallengeType.TURNSTILE

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    @property
    def site_key(self) -> str | None:
        if not self.challenge_data:
            return None
        return self.challenge_data.get("site_key")
