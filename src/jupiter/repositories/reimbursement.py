"""Repositories for ReimbursementRequest and RequestEvent."""

from uuid import UUID

from sqlalchemy import Integer, cast, func
from sqlmodel import select

from src.jupiter.models import ReimbursementRequest, RequestEvent, RequestNumberSequence
from src.jupiter.models.base import utc_now
from src.jupiter.repositories.base import BaseRepository


class ReimbursementRequestRepository(BaseRepository[ReimbursementRequest]):
    model = ReimbursementRequest

    async def get_by_id(
        self, id: UUID, for_update: bool = False
    ) -> ReimbursementRequest | None:
        """Get a request by id.

        Args:
            for_update: Lock the row so concurrent transitions on the same
                request serialize.
        """
        query = select(ReimbursementRequest).where(ReimbursementRequest.id == id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_number(self, request_number: str) -> ReimbursementRequest | None:
        result = await self.session.execute(
            select(ReimbursementRequest).where(
                ReimbursementRequest.request_number == request_number
            )
        )
        return result.scalar_one_or_none()

    async def max_sequence_with_prefix(self, prefix: str) -> int:
        """Highest numeric suffix among numbers starting with `{prefix}-`, or 0.

        Compared as integers so RB-2025-1000 sorts after RB-2025-999.
        """
        number = ReimbursementRequest.request_number
        suffix = func.substr(number, len(prefix) + 2)
        result = await self.session.execute(
            select(func.max(cast(suffix, Integer))).where(
                number.like(f"{prefix}-%")  # type: ignore[attr-defined]
            )
        )
        return int(result.scalar_one() or 0)

    async def reserve_sequence(self, prefix: str) -> int:
        """Advance the high-water mark for `prefix` and return the new sequence.

        The counter row is locked until the caller's transaction ends. Existing
        numbers are consulted too, so a counter behind the table (or missing)
        never yields a taken number. Raises IntegrityError when a concurrent
        creator seeds the same prefix first.
        """
        counter = await self.session.get(
            RequestNumberSequence, prefix, with_for_update=True, populate_existing=True
        )
        issued = await self.max_sequence_with_prefix(prefix)
        if counter is None:
            counter = RequestNumberSequence(prefix=prefix, last_sequence=issued)
            self.session.add(counter)
        sequence = max(counter.last_sequence, issued) + 1
        counter.last_sequence = sequence
        counter.updated_at = utc_now()
        await self.session.flush()
        return sequence

    async def list_requests(
        self,
        owner_id: UUID | None = None,
        status: str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ReimbursementRequest], str | None, bool]:
        """List requests newest first.

        Args:
            owner_id: Restrict to one owner; None lists every request.
            status: Optional status filter.
        """
        query = select(ReimbursementRequest)
        if owner_id is not None:
            query = query.where(ReimbursementRequest.user_id == owner_id)
        if status:
            query = query.where(ReimbursementRequest.status == status)
        return await self.paginate(query, cursor, limit)


class RequestEventRepository(BaseRepository[RequestEvent]):
    model = RequestEvent

    async def list_for_request(self, request_id: UUID) -> list[RequestEvent]:
        """Events for a request in the order they happened."""
        result = await self.session.execute(
            select(RequestEvent)
            .where(RequestEvent.request_id == request_id)
            .order_by(RequestEvent.created_at, RequestEvent.id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def count_for_request(self, request_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RequestEvent)
            .where(RequestEvent.request_id == request_id)
        )
        return int(result.scalar_one())
