"""Authorization rules for reimbursement requests.

A policy answers "may this principal do X to this request?" and never
mutates anything. Status eligibility for workflow actions is folded in so
that callers can hide actions that would fail anyway.
"""

from dataclasses import dataclass, field
from uuid import UUID

from src.jupiter.models import ReimbursementRequest, RequestAction, RequestStatus, Role

ADMIN_ROLES = frozenset(
    {
        Role.COUNTRY_CHAPTER_ADMIN,
        Role.TREASURY_TEAM_ADMIN,
        Role.SUPER_ADMIN,
        Role.SYSTEM_ADMINISTRATOR,
    }
)
APPROVER_ROLES = ADMIN_ROLES
PAYMENT_ROLES = frozenset({Role.TREASURY_TEAM_ADMIN, Role.SUPER_ADMIN, Role.SYSTEM_ADMINISTRATOR})
SYSTEM_ROLES = frozenset({Role.SUPER_ADMIN, Role.SYSTEM_ADMINISTRATOR})
SUBMITTER_ROLES = frozenset({Role.SUBMITTER}) | ADMIN_ROLES


@dataclass(frozen=True)
class Principal:
    """The acting user and their role values."""

    user_id: UUID
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_any(self, roles: frozenset[Role]) -> bool:
        return any(role.value in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_any(ADMIN_ROLES)

    @property
    def can_approve(self) -> bool:
        return self.has_any(APPROVER_ROLES)

    @property
    def can_process_payments(self) -> bool:
        return self.has_any(PAYMENT_ROLES)

    @property
    def is_system_admin(self) -> bool:
        return self.has_any(SYSTEM_ROLES)

    @property
    def can_submit_requests(self) -> bool:
        return self.has_any(SUBMITTER_ROLES)


class ReimbursementRequestPolicy:
    """Per-request permissions for one principal."""

    def __init__(self, principal: Principal, request: ReimbursementRequest | None = None):
        self.principal = principal
        self.request = request

    @property
    def _is_owner(self) -> bool:
        return self.request is not None and self.request.user_id == self.principal.user_id

    @property
    def _is_draft(self) -> bool:
        return self.request is not None and self.request.status == RequestStatus.DRAFT

    def show(self) -> bool:
        return self._is_owner or self.principal.is_admin

    def view_events(self) -> bool:
        return self.show()

    def create(self) -> bool:
        return self.principal.can_submit_requests

    def update(self) -> bool:
        return self._is_owner and self._is_draft

    def destroy(self) -> bool:
        return (self._is_owner and self._is_draft) or self.principal.is_system_admin

    def submit(self) -> bool:
        return self._is_owner and self._is_draft

    def approve(self) -> bool:
        return self._reviewer_may(RequestAction.APPROVE)

    def reject(self) -> bool:
        return self._reviewer_may(RequestAction.REJECT)

    def request_info(self) -> bool:
        return self._reviewer_may(RequestAction.REQUEST_INFO)

    def mark_paid(self) -> bool:
        return (
            self.request is not None
            and self.principal.can_process_payments
            and self.request.can_mark_paid
        )

    def bulk_approve(self) -> bool:
        return self.principal.can_approve

    def allows(self, action: RequestAction) -> bool:
        """Role check for a workflow action, ignoring status."""
        if action == RequestAction.SUBMIT:
            return self._is_owner
        if action == RequestAction.MARK_PAID:
            return self.principal.can_process_payments
        return self.principal.can_approve

    def _reviewer_may(self, action: RequestAction) -> bool:
        return (
            self.request is not None
            and self.principal.can_approve
            and self.request.can(action)
        )

    @staticmethod
    def scope_owner_id(principal: Principal) -> UUID | None:
        """Owner filter for list queries; None means unrestricted."""
        return None if principal.is_admin else principal.user_id
