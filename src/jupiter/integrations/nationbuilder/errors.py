"""NationBuilder OAuth and API error taxonomy.

Every error has a `kind` so callers can tell a dead credential apart from a
transient outage or an anti-bot challenge without inspecting messages.
"""

import json
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

if TYPE_CHECKING:
    from src.jupiter.integrations.nationbuilder.challenge import Challenge


class ErrorKind(str, Enum):
    REAUTHENTICATION_REQUIRED = "reauthentication_required"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    CHALLENGE_REQUIRED = "challenge_required"
    CONFIGURATION = "configuration"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"


class RecoveryAction(str, Enum):
    REAUTHENTICATE = "reauthenticate"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    WAIT_AND_RETRY = "wait_and_retry"
    COMPLETE_CHALLENGE = "complete_challenge"
    ADMIN_INTERVENTION = "admin_intervention"
    FAIL = "fail"


CLOUDFLARE_CHALLENGE = "cloudflare_challenge"

OAUTH_ERROR_KINDS: dict[str, ErrorKind] = {
    "invalid_request": ErrorKind.CLIENT_ERROR,
    "invalid_client": ErrorKind.CONFIGURATION,
    "invalid_grant": ErrorKind.REAUTHENTICATION_REQUIRED,
    "unauthorized_client": ErrorKind.CONFIGURATION,
    "unsupported_grant_type": ErrorKind.CONFIGURATION,
    "redirect_uri_mismatch": ErrorKind.CONFIGURATION,
    "invalid_scope": ErrorKind.CLIENT_ERROR,
    "insufficient_scope": ErrorKind.CLIENT_ERROR,
    "access_denied": ErrorKind.REAUTHENTICATION_REQUIRED,
    "revoked_token": ErrorKind.REAUTHENTICATION_REQUIRED,
    "invalid_token": ErrorKind.REAUTHENTICATION_REQUIRED,
    "expired_token": ErrorKind.REAUTHENTICATION_REQUIRED,
}

# Actionable messages shown to the person signing in
USER_MESSAGES: dict[str, str] = {
    "invalid_grant": "The sign-in link has expired or was already used. Please sign in again.",
    "invalid_client": (
        "The NationBuilder application credentials are misconfigured. Contact an administrator."
    ),
    "redirect_uri_mismatch": (
        "The NationBuilder redirect URI does not match this portal. Contact an administrator."
    ),
    "access_denied": "Access to NationBuilder was denied. Please sign in again.",
    CLOUDFLARE_CHALLENGE: "NationBuilder needs you to complete a quick verification step.",
}


class NationBuilderError(Exception):
    """Base class for NationBuilder OAuth/API failures."""

    kind: ErrorKind = ErrorKind.CLIENT_ERROR

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        error_description: str | None = None,
        http_status: int | None = None,
        kind: ErrorKind | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.error_description = error_description
        self.http_status = http_status
        if kind is not None:
            self.kind = kind

    @property
    def requires_reauthentication(self) -> bool:
        return self.kind == ErrorKind.REAUTHENTICATION_REQUIRED

    @property
    def is_transient(self) -> bool:
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.SERVER_ERROR)

    @property
    def user_message(self) -> str:
        if self.error_code and self.error_code in USER_MESSAGES:
            return USER_MESSAGES[self.error_code]
        return self.error_description or self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "error_code": self.error_code,
            "error_description": self.error_description,
            "http_status": self.http_status,
        }


class ConfigurationError(NationBuilderError):
    kind = ErrorKind.CONFIGURATION


class NetworkError(NationBuilderError):
    """Timeout or connection failure. Always transient."""

    kind = ErrorKind.TRANSIENT


class ServerError(NationBuilderError):
    kind = ErrorKind.SERVER_ERROR


class RateLimitError(NationBuilderError):
    kind = ErrorKind.RATE_LIMITED

    DEFAULT_RETRY_AFTER = 60

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after

    @property
    def retry_delay(self) -> int:
        return self.retry_after or self.DEFAULT_RETRY_AFTER

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retry_after": self.retry_delay}


class TokenExchangeError(NationBuilderError):
    """Authorization-code exchange failed.

    With error_code == "cloudflare_challenge" this is not terminal: the
    attached Challenge describes what the user must resolve before the
    exchange can be retried.
    """

    def __init__(self, message: str, *, challenge: "Challenge | None" = None, **kwargs: Any):
        if challenge is not None:
            kwargs.setdefault("error_code", CLOUDFLARE_CHALLENGE)
            kwargs.setdefault("kind", ErrorKind.CHALLENGE_REQUIRED)
        super().__init__(message, **kwargs)
        self.challenge = challenge

    @property
    def is_challenge(self) -> bool:
        return self.challenge is not None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.challenge is not None:
            data["challenge"] = self.challenge.to_dict()
        return data


class TokenRefreshError(NationBuilderError):
    """Refresh failed. Check requires_reauthentication for a dead credential."""


class AuthenticationError(NationBuilderError):
    """No usable credential; the user must go through OAuth again."""

    kind = ErrorKind.REAUTHENTICATION_REQUIRED


class ApiClientError(NationBuilderError):
    kind = ErrorKind.CLIENT_ERROR


class ApiServerError(NationBuilderError):
    kind = ErrorKind.SERVER_ERROR


def parse_oauth_error(body: str | None) -> dict[str, str] | None:
    """Extract {error, error_description} from a JSON or form-encoded body."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        parsed = parse_qs(body)
        if "error" not in parsed:
            return None
        return {key: values[0] for key, values in parsed.items()}
    if not isinstance(data, dict) or "error" not in data:
        return None
    return {
        "error": str(data["error"]),
        "error_description": str(data.get("error_description") or ""),
    }


def classify_oauth_error(
    http_status: int | None,
    error_code: str | None = None,
    error_description: str | None = None,
) -> ErrorKind:
    """Map an OAuth error code (preferred) or HTTP status to an ErrorKind."""
    # Some providers report a dead refresh token as invalid_request
    if error_code == "invalid_request" and error_description:
        if "refresh token" in error_description.lower():
            return ErrorKind.REAUTHENTICATION_REQUIRED
    if error_code and error_code in OAUTH_ERROR_KINDS:
        return OAUTH_ERROR_KINDS[error_code]
    if http_status is None:
        return ErrorKind.TRANSIENT
    if http_status in (401, 403):
        return ErrorKind.REAUTHENTICATION_REQUIRED
    if http_status == 429:
        return ErrorKind.RATE_LIMITED
    if http_status >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.CLIENT_ERROR


def parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return max(int(value), 0)
    except ValueError:
        return None


def recovery_action(error: NationBuilderError) -> RecoveryAction:
    """What a caller should do next about an error."""
    match error.kind:
        case ErrorKind.REAUTHENTICATION_REQUIRED:
            return RecoveryAction.REAUTHENTICATE
        case ErrorKind.RATE_LIMITED:
            return RecoveryAction.WAIT_AND_RETRY
        case ErrorKind.TRANSIENT | ErrorKind.SERVER_ERROR:
            return RecoveryAction.RETRY_WITH_BACKOFF
        case ErrorKind.CHALLENGE_REQUIRED:
            return RecoveryAction.COMPLETE_CHALLENGE
        case ErrorKind.CONFIGURATION:
            return RecoveryAction.ADMIN_INTERVENTION
        case _:
            return RecoveryAction.FAIL
