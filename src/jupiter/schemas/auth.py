"""NationBuilder sign-in and Cloudflare challenge schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class UserRead(BaseModel):
    id: UUID
    email: str
    full_name: str
    nationbuilder_uid: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginStartResponse(BaseModel):
    authorization_url: str
    state: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
    roles: list[str]


class ChallengeRead(BaseModel):
    challenge_id: str
    challenge_type: str
    site_key: str | None
    requires_manual_verification: bool
    is_verified: bool
    expires_at: datetime

    model_config = {"from_attributes": True}


class ChallengeVerifyRequest(BaseModel):
    turnstile_token: str | None = Field(default=None, max_length=4096)


class ChallengeVerifyResponse(BaseModel):
    verified: bool
    challenge_id: str


class ChallengeCompleteResponse(BaseModel):
    callback_url: str
