"""Shared enums for models.

Every enum is persisted as its string value.
"""

from enum import Enum


class RequestStatus(str, Enum):
    """Reimbursement request lifecycle status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class RequestType(str, Enum):
    """Kind of expense request. Drives the request number prefix."""

    REIMBURSEMENT = "reimbursement"
    VENDOR = "vendor"
    INKIND = "inkind"


class ExpenseCategory(str, Enum):
    TRAVEL = "travel"
    ACCOMMODATION = "accommodation"
    MEALS = "meals"
    SUPPLIES = "supplies"
    COMMUNICATIONS = "communications"
    EVENTS = "events"
    OTHER = "other"


class RequestPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RequestAction(str, Enum):
    """Workflow actions that move a request between statuses."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_INFO = "request_info"
    MARK_PAID = "mark_paid"


class RequestEventType(str, Enum):
    """Event recorded for each successful transition."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    INFO_REQUESTED = "info_requested"


class Role(str, Enum):
    """Portal roles."""

    SUBMITTER = "submitter"
    VIEWER = "viewer"
    COUNTRY_CHAPTER_ADMIN = "country_chapter_admin"
    TREASURY_TEAM_ADMIN = "treasury_team_admin"
    SUPER_ADMIN = "super_admin"
    SYSTEM_ADMINISTRATOR = "system_administrator"


class OAuthProvider(str, Enum):
    NATIONBUILDER = "nationbuilder"


class ChallengeType(str, Enum):
    """Cloudflare anti-bot challenge kinds."""

    TURNSTILE = "turnstile"
    BROWSER_CHALLENGE = "browser_challenge"
    RATE_LIMIT = "rate_limit"
