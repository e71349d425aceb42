"""Notification utilities - email."""

from src.jupiter.core.notifications.email import send_request_status_email

__all__ = [
    "send_request_status_email",
]
