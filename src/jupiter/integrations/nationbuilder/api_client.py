"""Authenticated NationBuilder API calls on behalf of one user."""

from typing import TYPE_CHECKING, Any
from uuid import UUID

import httpx

from src.jupiter.core.logging import get_logger
from src.jupiter.integrations.nationbuilder.config import USER_AGENT, NationBuilderConfig
from src.jupiter.integrations.nationbuilder.errors import (
    ApiClientError,
    ApiServerError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    parse_retry_after,
)

if TYPE_CHECKING:
    from src.jupiter.services.oauth_token_service import OAuthTokenService

logger = get_logger(__name__)

PROFILE_PATH = "/api/v1/people/me"


async def send_authorized(
    client: httpx.AsyncClient,
    config: NationBuilderConfig,
    method: str,
    path: str,
    access_token: str,
    **kwargs: Any,
) -> httpx.Response:
    headers = {
        **kwargs.pop("headers", {}),
        "Authorization": f"Bearer {access_token}",
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }
    try:
        return await client.request(method, f"{config.base_url}{path}", headers=headers, **kwargs)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Request timeout: {e}") from e
    except httpx.TransportError as e:
        raise NetworkError(f"Connection error: {e}") from e


def handle_api_response(response: httpx.Response) -> Any:
    """Decode a successful response or raise the matching API error."""
    status = response.status_code
    if status == 401:
        raise AuthenticationError("NationBuilder rejected the access token", http_status=401)
    if status == 429:
        raise RateLimitError(
            retry_after=parse_retry_after(response.headers.get("retry-after")),
            http_status=status,
        )
    if status >= 500:
        raise ApiServerError(f"NationBuilder API returned HTTP {status}", http_status=status)
    if status >= 400:
        raise ApiClientError(
            f"NationBuilder API returned HTTP {status}",
            error_description=response.text[:500] or None,
            http_status=status,
        )
    if status == 204 or not response.content:
        return None
    return response.json()


def extract_person(data: Any) -> dict[str, Any]:
    person = data.get("person") if isinstance(data, dict) else None
    if not isinstance(person, dict):
        raise ApiClientError(
            "Profile response has no person payload", error_code="invalid_response"
        )
    return person


async def fetch_profile(
    config: NationBuilderConfig,
    access_token: str,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Profile of the token owner, for sign-in before a local user exists."""
    if http_client is not None:
        response = await send_authorized(http_client, config, "GET", PROFILE_PATH, access_token)
    else:
        async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
            response = await send_authorized(client, config, "GET", PROFILE_PATH, access_token)
    return extract_person(handle_api_response(response))


class NationBuilderApiClient:
    """Sends requests with a fresh bearer token.

    A 401 triggers exactly one forced refresh and one retry. Nothing else is
    retried here.
    """

    def __init__(
        self,
        user_id: UUID,
        token_service: "OAuthTokenService",
        config: NationBuilderConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.user_id = user_id
        self.token_service = token_service
        self.config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        access_token = await self.token_service.get_valid_access_token(self.user_id)
        response = await send_authorized(
            self._client, self.config, method, path, access_token, **kwargs
        )

        if response.status_code == 401:
            logger.info("API returned 401, forcing token refresh", user_id=str(self.user_id))
            token = await self.token_service.force_refresh(
                self.user_id, stale_access_token=access_token
            )
            response = await send_authorized(
                self._client, self.config, method, path, token.access_token, **kwargs
            )

        return handle_api_response(response)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def get_profile(self) -> dict[str, Any]:
        return extract_person(await self.get(PROFILE_PATH))
