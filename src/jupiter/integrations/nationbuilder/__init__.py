"""NationBuilder OAuth and API integration.

Import from here: `from src.jupiter.integrations.nationbuilder import NationBuilderOAuthClient`
"""

from src.jupiter.integrations.nationbuilder.api_client import (
    NationBuilderApiClient,
    fetch_profile,
)
from src.jupiter.integrations.nationbuilder.challenge import Challenge, detect_challenge
from src.jupiter.integrations.nationbuilder.config import NationBuilderConfig
from src.jupiter.integrations.nationbuilder.errors import (
    ApiClientError,
    ApiServerError,
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    NationBuilderError,
    NetworkError,
    RateLimitError,
    RecoveryAction,
    ServerError,
    TokenExchangeError,
    TokenRefreshError,
    classify_oauth_error,
    recovery_action,
)
from src.jupiter.integrations.nationbuilder.oauth_client import (
    NationBuilderOAuthClient,
    TokenResponse,
)

__all__ = [
    "ApiClientError",
    "ApiServerError",
    "AuthenticationError",
    "Challenge",
    "ConfigurationError",
    "ErrorKind",
    "NationBuilderApiClient",
    "NationBuilderConfig",
    "NationBuilderError",
    "NationBuilderOAuthClient",
    "NetworkError",
    "RateLimitError",
    "RecoveryAction",
    "ServerError",
    "TokenExchangeError",
    "TokenRefreshError",
    "TokenResponse",
    "classify_oauth_error",
    "detect_challenge",
    "fetch_profile",
    "recovery_action",
]
