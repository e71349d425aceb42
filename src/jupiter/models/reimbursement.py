"""Reimbursement request and its append-only event log."""

import re
from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid7

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from src.jupiter.models.base import utc_now
from src.jupiter.models.enums import (
    ExpenseCategory,
    RequestAction,
    RequestEventType,
    RequestPriority,
    RequestStatus,
    RequestType,
)

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 2000

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

# Statuses each action may start from
ALLOWED_FROM: dict[RequestAction, frozenset[RequestStatus]] = {
    RequestAction.SUBMIT: frozenset({RequestStatus.DRAFT}),
    RequestAction.APPROVE: frozenset({RequestStatus.SUBMITTED, RequestStatus.UNDER_REVIEW}),
    RequestAction.REJECT: frozenset({RequestStatus.SUBMITTED, RequestStatus.UNDER_REVIEW}),
    RequestAction.REQUEST_INFO: frozenset({RequestStatus.SUBMITTED}),
    RequestAction.MARK_PAID: frozenset({RequestStatus.APPROVED}),
}

TARGET_STATUS: dict[RequestAction, RequestStatus] = {
    RequestAction.SUBMIT: RequestStatus.SUBMITTED,
    RequestAction.APPROVE: RequestStatus.APPROVED,
    RequestAction.REJECT: RequestStatus.REJECTED,
    RequestAction.REQUEST_INFO: RequestStatus.UNDER_REVIEW,
    RequestAction.MARK_PAID: RequestStatus.PAID,
}

EVENT_TYPE: dict[RequestAction, RequestEventType] = {
    RequestAction.SUBMIT: RequestEventType.SUBMITTED,
    RequestAction.APPROVE: RequestEventType.APPROVED,
    RequestAction.REJECT: RequestEventType.REJECTED,
    RequestAction.REQUEST_INFO: RequestEventType.INFO_REQUESTED,
    RequestAction.MARK_PAID: RequestEventType.PAID,
}

TERMINAL_STATUSES = frozenset({RequestStatus.REJECTED.value, RequestStatus.PAID.value})

_SUBMITTED_OR_LATER = frozenset(
    s.value for s in RequestStatus if s is not RequestStatus.DRAFT
)


def can_transition(status: str, action: RequestAction) -> bool:
    """Whether `action` is legal from `status`. Pure function of the status."""
    try:
        current = RequestStatus(status)
    except ValueError:
        return False
    return current in ALLOWED_FROM[action]


def format_money(cents: int, currency: str) -> str:
    return f"{cents / 100:,.2f} {currency}"


class ReimbursementRequest(SQLModel, table=True):
    """Expense request moving through the approval workflow.

    Status is only changed by ReimbursementService transitions.
    """

    __tablename__ = "reimbursement_requests"
    __table_args__ = (
        Index("ix_reimbursement_requests_user_created", "user_id", "created_at"),
        Index("ix_reimbursement_requests_status_created", "status", "created_at"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    request_type: str = Field(default=RequestType.REIMBURSEMENT.value, max_length=20)
    request_number: str = Field(max_length=32, unique=True, index=True)

    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    amount_cents: int
    currency: str = Field(default="USD", max_length=3)
    expense_date: date
    category: str = Field(max_length=30)
    priority: str = Field(default=RequestPriority.NORMAL.value, max_length=20)
    status: str = Field(default=RequestStatus.DRAFT.value, max_length=20)
    form_data: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    # Transition timestamps
    submitted_at: datetime | None = Field(default=None)
    reviewed_at: datetime | None = Field(default=None)
    approved_at: datetime | None = Field(default=None)
    rejected_at: datetime | None = Field(default=None)
    paid_at: datetime | None = Field(default=None)

    # Decision details
    approved_by_id: UUID | None = Field(default=None, foreign_key="users.id")
    approved_amount_cents: int | None = Field(default=None)
    approval_notes: str | None = Field(default=None, max_length=2000)
    rejection_reason: str | None = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # --- Transition predicates ---

    def can(self, action: RequestAction) -> bool:
        return can_transition(self.status, action)

    @property
    def can_submit(self) -> bool:
        return self.can(RequestAction.SUBMIT)

    @property
    def can_approve(self) -> bool:
        return self.can(RequestAction.APPROVE)

    @property
    def can_reject(self) -> bool:
        return self.can(RequestAction.REJECT)

    @property
    def can_request_info(self) -> bool:
        return self.can(RequestAction.REQUEST_INFO)

    @property
    def can_mark_paid(self) -> bool:
        return self.can(RequestAction.MARK_PAID)

    @property
    def is_editable(self) -> bool:
        return self.status == RequestStatus.DRAFT

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def display_amount(self) -> str:
        return format_money(self.amount_cents, self.currency)

    @property
    def approved_display_amount(self) -> str | None:
        if self.approved_amount_cents is None:
            return None
        return format_money(self.approved_amount_cents, self.currency)

    def validation_errors(self, today: date | None = None) -> list[str]:
        """Check field and status/timestamp invariants.

        Returns a list of human-readable problems; empty when valid.
        """
        errors: list[str] = []
        today = today or utc_now().date()

        if not self.title or not self.title.strip():
            errors.append("Title can't be blank")
        elif len(self.title) > TITLE_MAX_LENGTH:
            errors.append(f"Title is too long (maximum is {TITLE_MAX_LENGTH} characters)")
        if self.description and len(self.description) > DESCRIPTION_MAX_LENGTH:
            errors.append(
                f"Description is too long (maximum is {DESCRIPTION_MAX_LENGTH} characters)"
            )
        if self.amount_cents is None or self.amount_cents <= 0:
            errors.append("Amount must be greater than 0")
        if not self.currency or not _CURRENCY_RE.match(self.currency):
            errors.append("Currency must be a 3-letter ISO code")
        if self.expense_date is None:
            errors.append("Expense date can't be blank")
        elif self.expense_date > today:
            errors.append("Expense date cannot be in the future")

        for field, value, enum in (
            ("Status", self.status, RequestStatus),
            ("Category", self.category, ExpenseCategory),
            ("Priority", self.priority, RequestPriority),
            ("Request type", self.request_type, RequestType),
        ):
            if value not in {member.value for member in enum}:
                errors.append(f"{field} '{value}' is not valid")

        status = self.status
        if status in _SUBMITTED_OR_LATER and self.submitted_at is None:
            errors.append(f"Submitted at must be set when status is {status}")
        if status in (RequestStatus.APPROVED, RequestStatus.PAID):
            if self.approved_at is None:
                errors.append(f"Approved at must be set when status is {status}")
            if self.approved_by_id is None:
                errors.append(f"Approver must be set when status is {status}")
            if self.approved_amount_cents is None:
                errors.append(f"Approved amount must be set when status is {status}")
        if self.approved_amount_cents is not None and self.approved_amount_cents <= 0:
            errors.append("Approved amount must be greater than 0")
        if status == RequestStatus.REJECTED:
            if self.rejected_at is None:
                errors.append("Rejected at must be set when status is rejected")
            if not self.rejection_reason or not self.rejection_reason.strip():
                errors.append("Rejection reason must be set when status is rejected")
        if status == RequestStatus.PAID and self.paid_at is None:
            errors.append("Paid at must be set when status is paid")

        return errors


class RequestEvent(SQLModel, table=True):
    """Append-only audit record, one per successful transition."""

    __tablename__ = "request_events"
    __table_args__ = (Index("ix_request_events_request_created", "request_id", "created_at"),)

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    request_id: UUID = Field(foreign_key="reimbursement_requests.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    event_type: str = Field(max_length=30)
    from_status: str = Field(max_length=20)
    to_status: str = Field(max_length=20)
    event_data: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    created_at: datetime = Field(default_factory=utc_now)


class RequestNumberSequence(SQLModel, table=True):
    """Highest sequence ever issued for a number prefix such as RB-2025.

    Outlives deleted requests, so a number is never issued twice.
    """

    __tablename__ = "request_number_sequences"

    prefix: str = Field(primary_key=True, max_length=24)
    last_sequence: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utc_now)
