"""Reimbursement request workflow - creation, transitions and bulk approval.

Every transition runs the policy check, then the state machine check, then
updates the row and appends one RequestEvent in a single transaction.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.jupiter.core.errors import (
    InvalidTransition,
    JupiterError,
    NotAuthorizedError,
    NotFoundError,
    RequestValidationError,
)
from src.jupiter.core.logging import get_logger
from src.jupiter.core.notifications import send_request_status_email
from src.jupiter.models import (
    AuditAction,
    ReimbursementRequest,
    RequestAction,
    RequestEvent,
    RequestStatus,
)
from src.jupiter.models.base import utc_now
from src.jupiter.models.reimbursement import EVENT_TYPE, TARGET_STATUS
from src.jupiter.policies import Principal, ReimbursementRequestPolicy
from src.jupiter.repositories import (
    ReimbursementRequestRepository,
    RequestEventRepository,
    UserRepository,
)
from src.jupiter.schemas.reimbursement import RequestCreate, RequestUpdate
from src.jupiter.services.audit_service import AuditService
from src.jupiter.services.request_numbering import insert_with_request_number

logger = get_logger(__name__)

# Columns an update may change but never clear
_REQUIRED_FIELDS = frozenset(
    {"title", "amount_cents", "currency", "expense_date", "category", "priority"}
)


@dataclass(frozen=True)
class BulkApproveError:
    request_id: UUID
    message: str


@dataclass
class BulkApproveResult:
    approved_ids: list[UUID] = field(default_factory=list)
    errors: list[BulkApproveError] = field(default_factory=list)

    @property
    def approved_count(self) -> int:
        return len(self.approved_ids)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class ReimbursementService:
    def __init__(
        self,
        request_repo: ReimbursementRequestRepository,
        event_repo: RequestEventRepository,
        user_repo: UserRepository,
        session: AsyncSession,
        audit_service: AuditService | None = None,
        notify: bool = True,
    ):
        self.request_repo = request_repo
        self.event_repo = event_repo
        self.user_repo = user_repo
        self.session = session
        self.audit_service = audit_service
        self.notify = notify

    # --- Queries ---

    async def get_request(self, principal: Principal, request_id: UUID) -> ReimbursementRequest:
        request = await self._load(request_id)
        if not ReimbursementRequestPolicy(principal, request).show():
            raise NotAuthorizedError("view")
        return request

    async def list_requests(
        self,
        principal: Principal,
        status: RequestStatus | str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ReimbursementRequest], str | None, bool]:
        """Requests visible to the principal, newest first."""
        return await self.request_repo.list_requests(
            owner_id=ReimbursementRequestPolicy.scope_owner_id(principal),
            status=status.value if isinstance(status, RequestStatus) else status,
            cursor=cursor,
            limit=limit,
        )

    async def list_events(self, principal: Principal, request_id: UUID) -> list[RequestEvent]:
        request = await self._load(request_id)
        if not ReimbursementRequestPolicy(principal, request).view_events():
            raise NotAuthorizedError("view events of")
        return await self.event_repo.list_for_request(request_id)

    # --- Draft management ---

    async def create_request(
        self, principal: Principal, data: RequestCreate
    ) -> ReimbursementRequest:
        """Create a draft owned by the principal and assign its number."""
        if not ReimbursementRequestPolicy(principal).create():
            raise NotAuthorizedError("create", "Not authorized to create requests")

        request = ReimbursementRequest(
            user_id=principal.user_id,
            request_type=data.request_type.value,
            request_number="",
            title=data.title,
            description=data.description,
            amount_cents=data.amount_cents,
            currency=data.currency,
            expense_date=data.expense_date,
            category=data.category.value,
            priority=data.priority.value,
            status=RequestStatus.DRAFT.value,
            form_data=data.form_data,
        )
        errors = request.validation_errors()
        if errors:
            raise RequestValidationError(errors)

        try:
            await insert_with_request_number(self.session, self.request_repo, request)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Request created",
            request_id=str(request.id),
            request_number=request.request_number,
            user_id=str(principal.user_id),
        )
        return request

    async def update_request(
        self, principal: Principal, request_id: UUID, data: RequestUpdate
    ) -> ReimbursementRequest:
        try:
            request = await self._load(request_id, for_update=True)
            if not ReimbursementRequestPolicy(principal, request).update():
                raise NotAuthorizedError("update")

            for key, value in data.model_dump(exclude_unset=True).items():
                if value is None and key in _REQUIRED_FIELDS:
                    continue
                setattr(request, key, getattr(value, "value", value))
            request.updated_at = utc_now()

            errors = request.validation_errors()
            if errors:
                raise RequestValidationError(errors)

            self.request_repo.add(request)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return request

    async def delete_request(self, principal: Principal, request_id: UUID) -> None:
        """Delete a request and its event log."""
        try:
            request = await self._load(request_id, for_update=True)
            if not ReimbursementRequestPolicy(principal, request).destroy():
                raise NotAuthorizedError("delete")

            for event in await self.event_repo.list_for_request(request_id):
                await self.event_repo.delete(event)
            await self.session.flush()
            await self.request_repo.delete(request)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Request deleted",
            request_id=str(request_id),
            request_number=request.request_number,
            deleted_by=str(principal.user_id),
        )

    # --- Transitions ---

    async def submit(self, principal: Principal, request_id: UUID) -> ReimbursementRequest:
        return await self._transition(principal, request_id, RequestAction.SUBMIT)

    async def approve(
        self,
        principal: Principal,
        request_id: UUID,
        amount_cents: int | None = None,
        notes: str | None = None,
    ) -> ReimbursementRequest:
        """Approve for the requested amount, or for exactly `amount_cents`."""
        return await self._transition(
            principal,
            request_id,
            RequestAction.APPROVE,
            amount_cents=amount_cents,
            notes=notes,
        )

    async def reject(
        self, principal: Principal, request_id: UUID, reason: str | None
    ) -> ReimbursementRequest:
        return await self._transition(principal, request_id, RequestAction.REJECT, reason=reason)

    async def request_more_info(
        self, principal: Principal, request_id: UUID, notes: str | None = None
    ) -> ReimbursementRequest:
        return await self._transition(
            principal, request_id, RequestAction.REQUEST_INFO, notes=notes
        )

    async def mark_paid(self, principal: Principal, request_id: UUID) -> ReimbursementRequest:
        return await self._transition(principal, request_id, RequestAction.MARK_PAID)

    async def bulk_approve(
        self,
        principal: Principal,
        request_ids: list[UUID],
        notes: str | None = None,
    ) -> BulkApproveResult:
        """Approve each request independently; one failure never undoes another.

        Raises:
            NotAuthorizedError: The principal may not approve at all.
        """
        if not ReimbursementRequestPolicy(principal).bulk_approve():
            raise NotAuthorizedError("bulk approve", "Not authorized to approve requests")

        result = BulkApproveResult()
        for request_id in request_ids:
            try:
                await self.approve(principal, request_id, notes=notes)
                result.approved_ids.append(request_id)
            except JupiterError as e:
                message = await self._bulk_error_message(request_id, e)
                result.errors.append(BulkApproveError(request_id, message))

        logger.info(
            "Bulk approval finished",
            user_id=str(principal.user_id),
            approved=result.approved_count,
            failed=result.error_count,
        )
        if self.audit_service:
            await self.audit_service.log_success(
                action=AuditAction.REQUEST_BULK_APPROVE,
                entity_type="reimbursement_request",
                user_id=principal.user_id,
                changes={
                    "approved_ids": [str(i) for i in result.approved_ids],
                    "errors": [
                        {"request_id": str(e.request_id), "message": e.message}
                        for e in result.errors
                    ],
                },
            )
        return result

    async def _bulk_error_message(self, request_id: UUID, error: JupiterError) -> str:
        request = await self.request_repo.get_by_id(request_id)
        label = request.request_number if request else str(request_id)
        if isinstance(error, InvalidTransition):
            return f"Request {label} cannot be approved from {error.current_status} status"
        if isinstance(error, NotFoundError):
            return f"Request {label} not found"
        if isinstance(error, NotAuthorizedError):
            return f"Not authorized to approve request {label}"
        return f"Request {label}: {error.message}"

    async def _transition(
        self,
        principal: Principal,
        request_id: UUID,
        action: RequestAction,
        *,
        amount_cents: int | None = None,
        notes: str | None = None,
        reason: str | None = None,
    ) -> ReimbursementRequest:
        try:
            request = await self._load(request_id, for_update=True)
            if not ReimbursementRequestPolicy(principal, request).allows(action):
                raise NotAuthorizedError(action.value.replace("_", " "))

            if action == RequestAction.REJECT and (not reason or not reason.strip()):
                raise RequestValidationError("Rejection reason can't be blank")

            if not request.can(action):
                raise InvalidTransition(request.status, action.value)

            from_status = request.status
            event_data = self._apply(request, action, principal, amount_cents, notes, reason)

            errors = request.validation_errors()
            if errors:
                raise RequestValidationError(errors)

            self.request_repo.add(request)
            self.event_repo.add(
                RequestEvent(
                    request_id=request.id,
                    user_id=principal.user_id,
                    event_type=EVENT_TYPE[action].value,
                    from_status=from_status,
                    to_status=request.status,
                    event_data=event_data,
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Request transitioned",
            request_id=str(request.id),
            request_number=request.request_number,
            action=action.value,
            from_status=from_status,
            to_status=request.status,
            user_id=str(principal.user_id),
        )
        await self._notify_owner(request, detail=notes or reason)
        return request

    @staticmethod
    def _apply(
        request: ReimbursementRequest,
        action: RequestAction,
        principal: Principal,
        amount_cents: int | None,
        notes: str | None,
        reason: str | None,
    ) -> dict[str, Any] | None:
        """Set the target status and its timestamp/detail columns. Returns event data."""
        now = utc_now()
        request.status = TARGET_STATUS[action].value
        request.updated_at = now

        match action:
            case RequestAction.SUBMIT:
                request.submitted_at = now
                return None
            case RequestAction.APPROVE:
                approved_amount = request.amount_cents if amount_cents is None else amount_cents
                request.approved_at = now
                request.approved_by_id = principal.user_id
                request.approved_amount_cents = approved_amount
                request.approval_notes = notes
                return {"notes": notes, "amount_cents": approved_amount}
            case RequestAction.REJECT:
                request.rejected_at = now
                request.rejection_reason = reason.strip() if reason else reason
                return {"reason": request.rejection_reason}
            case RequestAction.REQUEST_INFO:
                request.reviewed_at = now
                return {"notes": notes}
            case RequestAction.MARK_PAID:
                request.paid_at = now
                return None

    async def _notify_owner(self, request: ReimbursementRequest, detail: str | None) -> None:
        if not self.notify or request.status == RequestStatus.SUBMITTED:
            return
        owner = await self.user_repo.get_by_id(request.user_id)
        if owner is None:
            return
        sent = await asyncio.to_thread(
            send_request_status_email,
            owner.email,
            owner.full_name,
            request.request_number,
            request.status,
            detail,
        )
        if not sent:
            logger.warning(
                "Request status email not sent",
                request_number=request.request_number,
                status=request.status,
            )

    async def _load(self, request_id: UUID, for_update: bool = False) -> ReimbursementRequest:
        request = await self.request_repo.get_by_id(request_id, for_update=for_update)
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return request
