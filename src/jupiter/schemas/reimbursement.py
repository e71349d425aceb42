"""Reimbursement request schemas for API request/response."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.jupiter.models.enums import ExpenseCategory, RequestPriority, RequestType
from src.jupiter.models.reimbursement import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH


def _strip_or_none(v: str | None) -> str | None:
    if v is not None:
        v = v.strip()
        if not v:
            return None
    return v


class RequestCreate(BaseModel):
    """Schema for creating a draft request."""

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    amount_cents: int = Field(gt=0, description="Requested amount in minor units")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    expense_date: date
    category: ExpenseCategory
    priority: RequestPriority = RequestPriority.NORMAL
    request_type: RequestType = RequestType.REIMBURSEMENT
    form_data: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty or whitespace only")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _strip_or_none(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.upper()
        if not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v


class RequestUpdate(BaseModel):
    """Schema for editing a draft request. Only provided fields change."""

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    amount_cents: int | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    expense_date: date | None = None
    category: ExpenseCategory | None = None
    priority: RequestPriority | None = None
    form_data: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Title cannot be empty or whitespace only")
        return v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str | None) -> str | None:
        return v.upper() if v is not None else None


class RequestRead(BaseModel):
    """Schema for reading a request."""

    id: UUID
    user_id: UUID
    request_type: str
    request_number: str
    title: str
    description: str | None
    amount_cents: int
    currency: str
    display_amount: str
    expense_date: date
    category: str
    priority: str
    status: str
    form_data: dict[str, Any] | None
    submitted_at: datetime | None
    reviewed_at: datetime | None
    approved_at: datetime | None
    rejected_at: datetime | None
    paid_at: datetime | None
    approved_by_id: UUID | None
    approved_amount_cents: int | None
    approval_notes: str | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RequestEventRead(BaseModel):
    id: UUID
    request_id: UUID
    user_id: UUID
    event_type: str
    from_status: str
    to_status: str
    event_data: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApproveRequest(BaseModel):
    amount_cents: int | None = Field(
        default=None, gt=0, description="Approved amount; defaults to the requested amount"
    )
    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    # Blank reasons are rejected by the service before any state change
    reason: str | None = Field(default=None, max_length=2000)


class RequestInfoRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class BulkApproveRequest(BaseModel):
    request_ids: list[UUID] = Field(min_length=1, max_length=100)
    notes: str | None = Field(default=None, max_length=2000)


class BulkApproveItemError(BaseModel):
    request_id: UUID
    message: str


class BulkApproveResponse(BaseModel):
    approved_count: int
    error_count: int
    approved_ids: list[UUID]
    errors: list[BulkApproveItemError]
