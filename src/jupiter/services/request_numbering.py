"""Human-readable request numbers: {PREFIX}-{YEAR}-{SEQ}, e.g. RB-2025-001."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.errors import RequestNumberConflict
from src.jupiter.core.logging import get_logger
from src.jupiter.models import ReimbursementRequest, RequestType
from src.jupiter.models.base import utc_now
from src.jupiter.repositories import ReimbursementRequestRepository

logger = get_logger(__name__)

TYPE_PREFIXES: dict[str, str] = {
    RequestType.REIMBURSEMENT.value: "RB",
    RequestType.VENDOR.value: "VP",
    RequestType.INKIND.value: "IK",
}
DEFAULT_PREFIX = "REQ"
MAX_NUMBERING_ATTEMPTS = 5


def number_prefix(request_type: str, year: int) -> str:
    return f"{TYPE_PREFIXES.get(request_type, DEFAULT_PREFIX)}-{year}"


def format_request_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:03d}"


async def insert_with_request_number(
    session: AsyncSession,
    repo: ReimbursementRequestRepository,
    request: ReimbursementRequest,
    year: int | None = None,
    max_attempts: int = MAX_NUMBERING_ATTEMPTS,
) -> str:
    """Assign the next free number to `request` and flush it.

    The sequence comes from a per-prefix high-water mark, so numbers of
    deleted requests are never reissued. Each attempt runs in a savepoint;
    a unique violation from a concurrent creator rolls it back and the next
    attempt reserves again. The caller commits.

    Raises:
        RequestNumberConflict: No free number after max_attempts.
    """
    prefix = number_prefix(request.request_type, year or utc_now().year)

    for attempt in range(1, max_attempts + 1):
        try:
            async with session.begin_nested():
                sequence = await repo.reserve_sequence(prefix)
                request.request_number = format_request_number(prefix, sequence)
                repo.add(request)
                await session.flush()
            return request.request_number
        except IntegrityError:
            logger.info(
                "Request number taken, retrying",
                request_number=request.request_number,
                attempt=attempt,
            )

    raise RequestNumberConflict(
        f"Could not allocate a request number for {prefix} after {max_attempts} attempts"
    )
