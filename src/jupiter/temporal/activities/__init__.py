"""Temporal Activities - Re-exports for worker registration."""

from src.jupiter.temporal.activities.token_maintenance import (
    cleanup_expired_challenges,
    cleanup_rotated_tokens,
    refresh_expiring_tokens,
)

__all__ = [
    "cleanup_expired_challenges",
    "cleanup_rotated_tokens",
    "refresh_expiring_tokens",
]
