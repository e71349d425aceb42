"""Cloudflare challenge detection on NationBuilder token responses."""

import re
from dataclasses import dataclass, field
from typing import Any

from src.jupiter.integrations.nationbuilder.errors import parse_retry_after
from src.jupiter.models import ChallengeType

TURNSTILE_MARKER = "cf-turnstile"
CHALLENGE_STAGE_MARKERS = ("challenge-stage", "cf-challenge-running")
LEGACY_MARKER = "Just a moment..."

_SITE_KEY_RE = re.compile(r"""data-sitekey=["']([^"']+)["']""")


@dataclass(frozen=True)
class Challenge:
    """An anti-bot interstitial returned instead of a token."""

    challenge_type: ChallengeType
    site_key: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.challenge_type.value,
            "site_key": self.site_key,
            "challenge_data": dict(self.data),
        }


def _has_marker(body: str) -> bool:
    return (
        TURNSTILE_MARKER in body
        or LEGACY_MARKER in body
        or any(marker in body for marker in CHALLENGE_STAGE_MARKERS)
    )


def extract_site_key(body: str) -> str | None:
    match = _SITE_KEY_RE.search(body)
    return match.group(1) if match else None


def detect_challenge(
    status_code: int,
    body: str | None,
    retry_after: str | None = None,
) -> Challenge | None:
    """Classify a non-success token response as a Cloudflare challenge.

    Only 403 responses carrying challenge markup, or any 429, count. The
    first matching rule wins: turnstile markup, challenge-stage markup,
    rate limit, then the bare "Just a moment..." page.
    """
    body = body or ""
    if not ((status_code == 403 and _has_marker(body)) or status_code == 429):
        return None

    if TURNSTILE_MARKER in body:
        return Challenge(
            ChallengeType.TURNSTILE,
            site_key=extract_site_key(body),
            data={"turnstile_present": True},
        )
    if any(marker in body for marker in CHALLENGE_STAGE_MARKERS):
        return Challenge(ChallengeType.BROWSER_CHALLENGE, data={"challenge_stage_present": True})
    if status_code == 429:
        data: dict[str, Any] = {"rate_limited": True}
        seconds = parse_retry_after(retry_after)
        if seconds is not None:
            data["retry_after"] = seconds
        return Challenge(ChallengeType.RATE_LIMIT, data=data)
    return Challenge(ChallengeType.BROWSER_CHALLENGE, data={"legacy_detection": True})
