"""Reimbursement request endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.jupiter.api.dependencies import CurrentPrincipal, ReimbursementServiceDep
from src.jupiter.models import RequestStatus
from src.jupiter.schemas import (
    ApproveRequest,
    BulkApproveItemError,
    BulkApproveRequest,
    BulkApproveResponse,
    PaginatedResponse,
    RejectRequest,
    RequestCreate,
    RequestEventRead,
    RequestInfoRequest,
    RequestRead,
    RequestUpdate,
)

router = APIRouter(prefix="/requests", tags=["requests"])


@router.get(
    "",
    response_model=PaginatedResponse[RequestRead],
    summary="List requests",
    description="Own requests for submitters; all requests for reviewers and admins.",
)
async def list_requests(
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[RequestRead]:
    requests, next_cursor, has_more = await service.list_requests(
        principal, status=status_filter, cursor=cursor, limit=limit
    )
    return PaginatedResponse(
        items=[RequestRead.model_validate(r) for r in requests],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post(
    "",
    response_model=RequestRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Draft request created"},
        401: {"description": "Not authenticated"},
        422: {"description": "Validation error"},
    },
)
async def create_request(
    data: RequestCreate,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    """Create a draft request numbered for the current year."""
    request = await service.create_request(principal, data)
    return RequestRead.model_validate(request)


# Declared before /{request_id} routes so "bulk-approve" is not parsed as an id
@router.post(
    "/bulk-approve",
    response_model=BulkApproveResponse,
    responses={
        200: {"description": "Per-request outcome; failures do not abort the batch"},
        403: {"description": "Caller may not approve requests"},
    },
)
async def bulk_approve(
    data: BulkApproveRequest,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> BulkApproveResponse:
    result = await service.bulk_approve(principal, data.request_ids, notes=data.notes)
    return BulkApproveResponse(
        approved_count=result.approved_count,
        error_count=result.error_count,
        approved_ids=result.approved_ids,
        errors=[
            BulkApproveItemError(request_id=e.request_id, message=e.message)
            for e in result.errors
        ],
    )


@router.get("/{request_id}", response_model=RequestRead)
async def get_request(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    request = await service.get_request(principal, request_id)
    return RequestRead.model_validate(request)


@router.patch(
    "/{request_id}",
    response_model=RequestRead,
    responses={409: {"description": "Request is no longer editable"}},
)
async def update_request(
    request_id: UUID,
    data: RequestUpdate,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    request = await service.update_request(principal, request_id, data)
    return RequestRead.model_validate(request)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> None:
    await service.delete_request(principal, request_id)


@router.get("/{request_id}/events", response_model=list[RequestEventRead])
async def list_request_events(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> list[RequestEventRead]:
    """Transition history, oldest first."""
    events = await service.list_events(principal, request_id)
    return [RequestEventRead.model_validate(e) for e in events]


@router.post("/{request_id}/submit", response_model=RequestRead)
async def submit_request(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    return RequestRead.model_validate(await service.submit(principal, request_id))


@router.post("/{request_id}/approve", response_model=RequestRead)
async def approve_request(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
    data: ApproveRequest | None = None,
) -> RequestRead:
    data = data or ApproveRequest()
    request = await service.approve(
        principal, request_id, amount_cents=data.amount_cents, notes=data.notes
    )
    return RequestRead.model_validate(request)


@router.post("/{request_id}/reject", response_model=RequestRead)
async def reject_request(
    request_id: UUID,
    data: RejectRequest,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    return RequestRead.model_validate(await service.reject(principal, request_id, data.reason))


@router.post("/{request_id}/request-info", response_model=RequestRead)
async def request_more_info(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
    data: RequestInfoRequest | None = None,
) -> RequestRead:
    notes = data.notes if data else None
    return RequestRead.model_validate(
        await service.request_more_info(principal, request_id, notes)
    )


@router.post("/{request_id}/mark-paid", response_model=RequestRead)
async def mark_paid(
    request_id: UUID,
    principal: CurrentPrincipal,
    service: ReimbursementServiceDep,
) -> RequestRead:
    return RequestRead.model_validate(await service.mark_paid(principal, request_id))
