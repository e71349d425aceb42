from src.jupiter.schemas.auth import (
    ChallengeCompleteResponse,
    ChallengeRead,
    ChallengeVerifyRequest,
    ChallengeVerifyResponse,
    LoginResponse,
    LoginStartResponse,
    UserRead,
)
from src.jupiter.schemas.pagination import PaginatedResponse
from src.jupiter.schemas.reimbursement import (
    ApproveRequest,
    BulkApproveItemError,
    BulkApproveRequest,
    BulkApproveResponse,
    RejectRequest,
    RequestCreate,
    RequestEventRead,
    RequestInfoRequest,
    RequestRead,
    RequestUpdate,
)

__all__ = [
    # Auth
    "ChallengeCompleteResponse",
    "ChallengeRead",
    "ChallengeVerifyRequest",
    "ChallengeVerifyResponse",
    "LoginResponse",
    "LoginStartResponse",
    "UserRead",
    # Pagination
    "PaginatedResponse",
    # Requests
    "ApproveRequest",
    "BulkApproveItemError",
    "BulkApproveRequest",
    "BulkApproveResponse",
    "RejectRequest",
    "RequestCreate",
    "RequestEventRead",
    "RequestInfoRequest",
    "RequestRead",
    "RequestUpdate",
]
