"""Cloudflare challenge detection on token endpoint responses."""

import pytest

from src.jupiter.integrations.nationbuilder import detect_challenge
from src.jupiter.integrations.nationbuilder.challenge import extract_site_key
from src.jupiter.models import ChallengeType

pytestmark = pytest.mark.unit

TURNSTILE_PAGE = """
<html><body>
  <div class="cf-turnstile" data-sitekey="0x4AAAAAAA-site"></div>
</body></html>
"""
CHALLENGE_STAGE_PAGE = '<div id="challenge-stage"></div>'
LEGACY_PAGE = "<title>Just a moment...</title>"


class TestDetectChallenge:
    def test_turnstile(self):
        challenge = detect_challenge(403, TURNSTILE_PAGE)

        assert challenge is not None
        assert challenge.challenge_type == ChallengeType.TURNSTILE
        assert challenge.site_key == "0x4AAAAAAA-site"
        assert challenge.data == {"turnstile_present": True}

    def test_turnstile_without_site_key(self):
        challenge = detect_challenge(403, '<div class="cf-turnstile"></div>')

        assert challenge.challenge_type == ChallengeType.TURNSTILE
        assert challenge.site_key is None

    @pytest.mark.parametrize(
        "body", [CHALLENGE_STAGE_PAGE, "<script>cf-challenge-running</script>"]
    )
    def test_browser_challenge(self, body):
        challenge = detect_challenge(403, body)

        assert challenge.challenge_type == ChallengeType.BROWSER_CHALLENGE
        assert challenge.data == {"challenge_stage_present": True}

    def test_legacy_page(self):
        challenge = detect_challenge(403, LEGACY_PAGE)

        assert challenge.challenge_type == ChallengeType.BROWSER_CHALLENGE
        assert challenge.data == {"legacy_detection": True}

    def test_rate_limit_with_retry_after(self):
        challenge = detect_challenge(429, '{"error": "slow down"}', retry_after="30")

        assert challenge.challenge_type == ChallengeType.RATE_LIMIT
        assert challenge.data == {"rate_limited": True, "retry_after": 30}

    def test_rate_limit_ignores_unparseable_retry_after(self):
        challenge = detect_challenge(429, None, retry_after="Wed, 21 Oct 2015 07:28:00 GMT")

        assert challenge.data == {"rate_limited": True}

    def test_turnstile_wins_over_rate_limit(self):
        challenge = detect_challenge(429, TURNSTILE_PAGE)

        assert challenge.challenge_type == ChallengeType.TURNSTILE

    def test_turnstile_wins_over_legacy_marker(self):
        challenge = detect_challenge(403, LEGACY_PAGE + TURNSTILE_PAGE)

        assert challenge.challenge_type == ChallengeType.TURNSTILE

    @pytest.mark.parametrize(
        ("status", "body"),
        [
            (403, '{"error": "access_denied"}'),
            (403, None),
            (400, TURNSTILE_PAGE),
            (401, LEGACY_PAGE),
            (503, CHALLENGE_STAGE_PAGE),
            (200, TURNSTILE_PAGE),
        ],
    )
    def test_not_a_challenge(self, status, body):
        assert detect_challenge(status, body) is None

    def test_to_dict(self):
        challenge = detect_challenge(403, TURNSTILE_PAGE)

        assert challenge.to_dict() == {
            "type": "turnstile",
            "site_key": "0x4AAAAAAA-site",
            "challenge_data": {"turnstile_present": True},
        }


def test_extract_site_key_single_quotes():
    assert extract_site_key("<div data-sitekey='abc'></div>") == "abc"
