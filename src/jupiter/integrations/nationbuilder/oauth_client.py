"""NationBuilder OAuth 2.0 endpoints: authorize, code exchange, refresh.

Each call is a single HTTP attempt. Retry policy lives in OAuthTokenService.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from src.jupiter.core.logging import get_logger
from src.jupiter.integrations.nationbuilder.challenge import detect_challenge
from src.jupiter.integrations.nationbuilder.config import USER_AGENT, NationBuilderConfig
from src.jupiter.integrations.nationbuilder.errors import (
    USER_MESSAGES,
    ErrorKind,
    NationBuilderError,
    NetworkError,
    RateLimitError,
    ServerError,
    TokenExchangeError,
    TokenRefreshError,
    classify_oauth_error,
    parse_oauth_error,
    parse_retry_after,
)
from src.jupiter.models.base import utc_now

logger = get_logger(__name__)

AUTHORIZE_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"

# NationBuilder access tokens last 24h when expires_in is omitted
DEFAULT_EXPIRES_IN = 86400


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    refresh_token: str | None
    expires_in: int
    scope: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def expires_at(self, now: datetime | None = None) -> datetime:
        return (now or utc_now()) + timedelta(seconds=self.expires_in)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenResponse":
        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
            scope=payload.get("scope"),
            raw=payload,
        )


class NationBuilderOAuthClient:
    def __init__(
        self,
        config: NationBuilderConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.config.scope,
            "state": state,
        }
        return f"{self.config.base_url}{AUTHORIZE_PATH}?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> TokenResponse:
        """Trade an authorization code for tokens.

        Raises:
            TokenExchangeError: Provider refused, or a Cloudflare challenge
                blocked the request (see `is_challenge`).
            NetworkError: Timeout or connection failure.
        """
        logger.info("Exchanging authorization code", nation=self.config.nation_slug)
        response = await self._post_token(
            {
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_uri,
                "code": code,
                "grant_type": "authorization_code",
            }
        )

        if response.status_code == 200:
            return self._parse_token_response(response, TokenExchangeError)

        logger.warning(
            "Token exchange failed",
            status=response.status_code,
            body=response.text[:500],
        )
        challenge = detect_challenge(
            response.status_code, response.text, response.headers.get("retry-after")
        )
        if challenge is not None:
            raise TokenExchangeError(
                USER_MESSAGES["cloudflare_challenge"],
                challenge=challenge,
                http_status=response.status_code,
            )

        oauth_error = parse_oauth_error(response.text) or {}
        error_code = oauth_error.get("error")
        description = oauth_error.get("error_description") or None
        kind = classify_oauth_error(response.status_code, error_code, description)
        message = USER_MESSAGES.get(error_code or "") or description or error_code
        raise TokenExchangeError(
            message or f"Token exchange failed with HTTP {response.status_code}",
            error_code=error_code,
            error_description=description,
            http_status=response.status_code,
            kind=kind,
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """One refresh attempt.

        Raises:
            TokenRefreshError: Refused by the provider; `requires_reauthentication`
                is set for 401/403/invalid_grant.
            RateLimitError: HTTP 429.
            ServerError: HTTP 5xx.
            NetworkError: Timeout or connection failure.
        """
        response = await self._post_token(
            {
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        status = response.status_code
        if status == 200:
            return self._parse_token_response(response, TokenRefreshError)

        oauth_error = parse_oauth_error(response.text) or {}
        error_code = oauth_error.get("error")
        description = oauth_error.get("error_description") or None

        if status == 429:
            raise RateLimitError(
                retry_after=parse_retry_after(
                    response.headers.get("retry-after") or response.headers.get("x-ratelimit-reset")
                ),
                http_status=status,
            )
        if status >= 500:
            raise ServerError(
                f"NationBuilder returned HTTP {status}",
                error_code=error_code,
                error_description=description,
                http_status=status,
            )
        raise TokenRefreshError(
            description or error_code or f"Token refresh failed with HTTP {status}",
            error_code=error_code,
            error_description=description,
            http_status=status,
            kind=classify_oauth_error(status, error_code, description),
        )

    async def _post_token(self, form: dict[str, str]) -> httpx.Response:
        try:
            return await self._client.post(
                f"{self.config.base_url}{TOKEN_PATH}",
                data=form,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Connection error: {e}") from e

    @staticmethod
    def _parse_token_response(
        response: httpx.Response, error_cls: type[NationBuilderError]
    ) -> TokenResponse:
        try:
            payload = response.json()
        except ValueError as e:
            raise error_cls(
                "Token endpoint returned a non-JSON body",
                http_status=response.status_code,
                kind=ErrorKind.INVALID_RESPONSE,
            ) from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise error_cls(
                "Token endpoint response has no access token",
                error_code="invalid_response",
                http_status=response.status_code,
                kind=ErrorKind.INVALID_RESPONSE,
            )
        return TokenResponse.from_payload(payload)
