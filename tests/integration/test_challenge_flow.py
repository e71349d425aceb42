"""Cloudflare challenge recovery: create, verify, complete once, clean up."""

import httpx
import pytest
import respx
from sqlmodel import select

from src.jupiter.core.errors import (
    ChallengeAlreadyConsumedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeNotVerifiedError,
    ChallengeSessionMismatchError,
    ChallengeStateMismatchError,
    ChallengeVerificationFailedError,
)
from src.jupiter.integrations.cloudflare import TurnstileVerifier
from src.jupiter.integrations.cloudflare.turnstile import SITEVERIFY_URL
from src.jupiter.integrations.nationbuilder.challenge import Challenge
from src.jupiter.models import AuditLog, ChallengeType, CloudflareChallenge
from src.jupiter.repositories import CloudflareChallengeRepository
from src.jupiter.services import ChallengeService
from tests.factories import CloudflareChallengeFactory

pytestmark = pytest.mark.integration


@pytest.fixture
def challenge_service(session, audit_service) -> ChallengeService:
    return ChallengeService(
        CloudflareChallengeRepository(session),
        session,
        TurnstileVerifier("turnstile-secret"),
        audit_service,
    )


async def add_challenge(session, record: CloudflareChallenge) -> CloudflareChallenge:
    session.add(record)
    await session.commit()
    return record


class TestCreateChallenge:
    async def test_record_is_bound_to_session_and_state(self, challenge_service, submitter):
        record = await challenge_service.create_challenge(
            Challenge(ChallengeType.TURNSTILE, site_key="0x4AAA", data={"turnstile_present": True}),
            oauth_state="state-xyz",
            original_params={"code": "c-1", "state": "state-xyz"},
            session_id="browser-1",
            user_id=submitter.id,
        )

        assert len(record.challenge_id) >= 20
        assert record.site_key == "0x4AAA"
        assert not record.is_verified
        assert not record.is_consumed
        assert not record.is_expired()

        loaded = await challenge_service.get_challenge(
            record.challenge_id, "browser-1", submitter.id
        )
        assert loaded.id == record.id


class TestGetChallenge:
    async def test_unknown_challenge(self, challenge_service):
        with pytest.raises(ChallengeNotFoundError):
            await challenge_service.get_challenge("missing", "session-1")

    async def test_other_session_is_rejected(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.build())

        with pytest.raises(ChallengeSessionMismatchError):
            await challenge_service.get_challenge(record.challenge_id, "session-2")

    async def test_other_user_is_rejected(self, challenge_service, session, submitter, treasurer):
        record = await add_challenge(
            session, CloudflareChallengeFactory.build(user_id=submitter.id)
        )

        with pytest.raises(ChallengeSessionMismatchError):
            await challenge_service.get_challenge(record.challenge_id, "session-1", treasurer.id)

    async def test_expired_challenge(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.expired())

        with pytest.raises(ChallengeExpiredError):
            await challenge_service.get_challenge(record.challenge_id, "session-1")


class TestVerify:
    @respx.mock
    async def test_turnstile_token_accepted(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.build())
        route = respx.post(SITEVERIFY_URL).mock(
            return_value=httpx.Response(200, json={"success": True})
        )

        verified = await challenge_service.verify(
            record.challenge_id, "session-1", turnstile_token="widget-token", remote_ip="10.0.0.1"
        )

        assert verified.is_verified
        body = route.calls.last.request.content.decode()
        assert "response=widget-token" in body
        assert "remoteip=10.0.0.1" in body

    @respx.mock
    async def test_turnstile_token_rejected(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.build())
        respx.post(SITEVERIFY_URL).mock(
            return_value=httpx.Response(
                200, json={"success": False, "error-codes": ["invalid-input-response"]}
            )
        )

        with pytest.raises(ChallengeVerificationFailedError) as exc_info:
            await challenge_service.verify(record.challenge_id, "session-1", "bad-token")

        assert exc_info.value.error_codes == ["invalid-input-response"]
        reloaded = await challenge_service.get_challenge(record.challenge_id, "session-1")
        assert not reloaded.is_verified
        failures = (
            await session.execute(select(AuditLog).where(AuditLog.status == "failure"))
        ).scalars().all()
        assert [f.error_message for f in failures] == ["invalid-input-response"]

    async def test_missing_turnstile_token(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.build())

        with pytest.raises(ChallengeVerificationFailedError) as exc_info:
            await challenge_service.verify(record.challenge_id, "session-1")

        assert exc_info.value.error_codes == ["missing-input-response"]

    @respx.mock
    async def test_browser_challenge_is_confirmed_manually(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.browser())
        route = respx.post(SITEVERIFY_URL)

        verified = await challenge_service.verify(record.challenge_id, "session-1")

        assert verified.is_verified
        assert not route.called

    async def test_consumed_challenge_cannot_be_verified_again(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.browser())
        await challenge_service.verify(record.challenge_id, "session-1")
        await challenge_service.complete(record.challenge_id, "session-1", "state-abc")

        with pytest.raises(ChallengeAlreadyConsumedError):
            await challenge_service.verify(record.challenge_id, "session-1")


class TestComplete:
    async def test_returns_original_params_once(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.browser())
        await challenge_service.verify(record.challenge_id, "session-1")

        params = await challenge_service.complete(record.challenge_id, "session-1", "state-abc")

        assert params == {"code": "auth-code", "state": "state-abc", "challenge_completed": True}
        with pytest.raises(ChallengeAlreadyConsumedError):
            await challenge_service.complete(record.challenge_id, "session-1", "state-abc")

    async def test_unverified_challenge(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.build())

        with pytest.raises(ChallengeNotVerifiedError):
            await challenge_service.complete(record.challenge_id, "session-1", "state-abc")

    async def test_state_must_match(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.browser())
        await challenge_service.verify(record.challenge_id, "session-1")

        with pytest.raises(ChallengeStateMismatchError):
            await challenge_service.complete(record.challenge_id, "session-1", "state-other")

    async def test_completion_is_audited(self, challenge_service, session):
        record = await add_challenge(session, CloudflareChallengeFactory.browser())
        await challenge_service.verify(record.challenge_id, "session-1")
        await challenge_service.complete(record.challenge_id, "session-1", "state-abc")

        result = await session.execute(select(AuditLog.action).order_by(AuditLog.id))
        actions = result.scalars().all()
        assert actions == ["challenge.verify", "challenge.complete"]


class TestCleanupExpired:
    async def test_deletes_only_expired(self, challenge_service, session):
        live = CloudflareChallengeFactory.build()
        session.add(live)
        session.add_all([CloudflareChallengeFactory.expired() for _ in range(2)])
        await session.commit()

        assert await challenge_service.cleanup_expired() == 2
        remaining = (await session.execute(select(CloudflareChallenge.id))).scalars().all()
        assert remaining == [live.id]
        assert await challenge_service.cleanup_expired() == 0
