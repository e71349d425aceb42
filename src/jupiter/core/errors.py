"""Domain exceptions for the request workflow and challenge recovery.

Each exception carries a stable `code` so callers (and the HTTP layer) can
tell error kinds apart without matching on messages.
"""

from typing import Any


class JupiterError(Exception):
    """Base class for domain errors."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFoundError(JupiterError):
    code = "not_found"


class NotAuthorizedError(JupiterError):
    code = "not_authorized"

    def __init__(self, action: str, message: str | None = None):
        self.action = action
        super().__init__(message or f"Not authorized to {action} this request")


class RequestValidationError(JupiterError):
    """Request data or transition arguments are invalid."""

    code = "validation_error"

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "errors": self.errors}


class InvalidTransition(JupiterError):
    """A transition was attempted from a status that does not allow it."""

    code = "invalid_transition"

    def __init__(self, current_status: str, action: str):
        self.current_status = str(current_status)
        self.action = action
        super().__init__(f"Cannot {action} request from {self.current_status} status")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "current_status": self.current_status,
            "action": self.action,
        }


class RequestNumberConflict(JupiterError):
    """No free request number was found within the retry budget."""

    code = "request_number_conflict"


class OAuthStateMismatchError(JupiterError):
    """The OAuth callback state does not match the one issued at login."""

    code = "oauth_state_mismatch"


# --- Cloudflare challenge recovery ---


class ChallengeError(JupiterError):
    code = "challenge_error"


class ChallengeNotFoundError(ChallengeError):
    code = "challenge_not_found"


class ChallengeExpiredError(ChallengeError):
    code = "challenge_expired"


class ChallengeSessionMismatchError(ChallengeError):
    code = "challenge_session_mismatch"


class ChallengeStateMismatchError(ChallengeError):
    code = "challenge_state_mismatch"


class ChallengeNotVerifiedError(ChallengeError):
    code = "challenge_not_verified"


class ChallengeAlreadyConsumedError(ChallengeError):
    code = "challenge_already_consumed"


class ChallengeVerificationFailedError(ChallengeError):
    code = "challenge_verification_failed"

    def __init__(self, message: str, error_codes: list[str] | None = None):
        self.error_codes = error_codes or []
        super().__init__(message)


class ChallengeRequiredError(ChallengeError):
    """Token exchange was blocked; the user must resolve a challenge first."""

    code = "challenge_required"

    def __init__(self, challenge_id: str, challenge_type: str):
        self.challenge_id = challenge_id
        self.challenge_type = challenge_type
        super().__init__("Additional verification is required to complete sign-in")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "challenge_id": self.challenge_id,
            "challenge_type": self.challenge_type,
        }
