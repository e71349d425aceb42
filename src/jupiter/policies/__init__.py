from src.jupiter.policies.reimbursement import (
    ADMIN_ROLES,
    APPROVER_ROLES,
    PAYMENT_ROLES,
    Principal,
    ReimbursementRequestPolicy,
)

__all__ = [
    "ADMIN_ROLES",
    "APPROVER_ROLES",
    "PAYMENT_ROLES",
    "Principal",
    "ReimbursementRequestPolicy",
]
