"""OAuth token and Cloudflare challenge factories."""

import secrets
from datetime import timedelta

from polyfactory import Use

from src.jupiter.models import ChallengeType, CloudflareChallenge, OAuthProvider, OAuthToken
from tests.factories.base import BaseFactory, generate_uuid7, utc_now


class OAuthTokenFactory(BaseFactory):
    """Active NationBuilder token valid for one more hour."""

    __model__ = OAuthToken

    id = Use(generate_uuid7)
    user_id = None  # Required FK - must be set explicitly
    provider = OAuthProvider.NATIONBUILDER.value
    access_token = Use(lambda: f"access-{secrets.token_hex(8)}")
    refresh_token = Use(lambda: f"refresh-{secrets.token_hex(8)}")
    expires_at = Use(lambda: utc_now() + timedelta(hours=1))
    scope = "default"
    version = 1
    rotated_at = None
    raw_response = None
    created_at = Use(utc_now)
    updated_at = Use(utc_now)

    @classmethod
    def expiring(cls, minutes: int = 2, **kwargs):
        """Create a token inside the default refresh buffer."""
        return cls.build(expires_at=utc_now() + timedelta(minutes=minutes), **kwargs)

    @classmethod
    def rotated(cls, days_ago: int, **kwargs):
        return cls.build(rotated_at=utc_now() - timedelta(days=days_ago), **kwargs)


class CloudflareChallengeFactory(BaseFactory):
    __model__ = CloudflareChallenge

    id = Use(generate_uuid7)
    challenge_id = Use(lambda: secrets.token_urlsafe(16))
    challenge_type = ChallengeType.TURNSTILE.value
    challenge_data = Use(lambda: {"turnstile_present": True, "site_key": "0x4AAA"})
    oauth_state = "state-abc"
    original_params = Use(lambda: {"code": "auth-code", "state": "state-abc"})
    session_id = "session-1"
    user_id = None
    expires_at = Use(lambda: utc_now() + timedelta(minutes=15))
    verified_at = None
    consumed_at = None
    created_at = Use(utc_now)

    @classmethod
    def browser(cls, **kwargs):
        return cls.build(
            challenge_type=ChallengeType.BROWSER_CHALLENGE.value,
            challenge_data={"challenge_stage_present": True, "site_key": None},
            **kwargs,
        )

    @classmethod
    def expired(cls, **kwargs):
        return cls.build(expires_at=utc_now() - timedelta(minutes=1), **kwargs)
