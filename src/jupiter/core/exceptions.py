"""Exception handlers with request_id in responses."""

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.jupiter.core.errors import (
    ChallengeError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeRequiredError,
    InvalidTransition,
    JupiterError,
    NotAuthorizedError,
    NotFoundError,
    OAuthStateMismatchError,
    RequestNumberConflict,
    RequestValidationError,
)
from src.jupiter.core.locks import RefreshLockTimeout
from src.jupiter.core.logging import get_logger
from src.jupiter.integrations.nationbuilder.errors import (
    ErrorKind,
    NationBuilderError,
    RateLimitError,
)

logger = get_logger(__name__)

# Most specific first
DOMAIN_STATUS: list[tuple[type[JupiterError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NotAuthorizedError, status.HTTP_403_FORBIDDEN),
    (RequestValidationError, 422),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (RequestNumberConflict, status.HTTP_409_CONFLICT),
    (OAuthStateMismatchError, status.HTTP_400_BAD_REQUEST),
    (ChallengeRequiredError, status.HTTP_428_PRECONDITION_REQUIRED),
    (ChallengeNotFoundError, status.HTTP_404_NOT_FOUND),
    (ChallengeExpiredError, status.HTTP_410_GONE),
    (ChallengeError, status.HTTP_400_BAD_REQUEST),
]

KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.REAUTHENTICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.SERVER_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CONFIGURATION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CHALLENGE_REQUIRED: status.HTTP_428_PRECONDITION_REQUIRED,
    ErrorKind.CLIENT_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_RESPONSE: status.HTTP_502_BAD_GATEWAY,
}


def domain_status_code(exc: JupiterError) -> int:
    for exc_type, code in DOMAIN_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(JupiterError)
    async def domain_exception_handler(request: Request, exc: JupiterError) -> JSONResponse:
        return JSONResponse(
            status_code=domain_status_code(exc),
            content={
                "detail": exc.message,
                "error": exc.to_dict(),
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(NationBuilderError)
    async def nationbuilder_exception_handler(
        request: Request, exc: NationBuilderError
    ) -> JSONResponse:
        status_code = KIND_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY)
        logger.warning(
            "NationBuilder error",
            kind=exc.kind.value,
            error_code=exc.error_code,
            http_status=exc.http_status,
            path=request.url.path,
        )
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_delay)}
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": exc.user_message,
                "error": exc.to_dict(),
                "request_id": correlation_id.get(),
            },
            headers=headers,
        )

    @app.exception_handler(RefreshLockTimeout)
    async def lock_timeout_handler(request: Request, exc: RefreshLockTimeout) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Token refresh is in progress; try again shortly",
                "request_id": correlation_id.get(),
            },
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )
