"""Server-side verification of Cloudflare Turnstile tokens."""

from dataclasses import dataclass, field

import httpx

from src.jupiter.core.logging import get_logger

logger = get_logger(__name__)

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


@dataclass(frozen=True)
class TurnstileResult:
    success: bool
    error_codes: list[str] = field(default_factory=list)


class TurnstileVerifier:
    def __init__(
        self,
        secret_key: str | None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.secret_key = secret_key
        self._client = http_client
        self._timeout = timeout

    async def verify(self, token: str | None, remote_ip: str | None = None) -> TurnstileResult:
        """Check a widget response token with Cloudflare. Never raises."""
        if not self.secret_key:
            logger.error("Turnstile secret key is not configured")
            return TurnstileResult(False, ["missing-input-secret"])
        if not token:
            return TurnstileResult(False, ["missing-input-response"])

        payload = {"secret": self.secret_key, "response": token}
        if remote_ip:
            payload["remoteip"] = remote_ip

        try:
            if self._client is not None:
                response = await self._client.post(SITEVERIFY_URL, data=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(SITEVERIFY_URL, data=payload)
        except httpx.HTTPError as e:
            logger.error("Turnstile verification request failed", error=str(e))
            return TurnstileResult(False, ["internal-error"])

        if response.status_code != 200:
            logger.error("Turnstile verification failed", status=response.status_code)
            return TurnstileResult(False, ["internal-error"])

        try:
            data = response.json()
        except ValueError:
            logger.error("Turnstile returned a non-JSON body")
            return TurnstileResult(False, ["invalid-response"])

        success = data.get("success") is True
        error_codes = list(data.get("error-codes") or [])
        if not success:
            logger.info("Turnstile token rejected", error_codes=error_codes)
        return TurnstileResult(success, error_codes)
