"""Email client using Resend API."""

import html
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

import resend

from src.jupiter.core.config import get_settings
from src.jupiter.core.logging import get_logger

logger = get_logger(__name__)

_email_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="email_sender")

_BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
    "line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
)
_BUTTON_STYLE = (
    "background-color: #2563eb; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block; font-weight: 500;"
)
_MUTED_STYLE = "color: #666; font-size: 14px;"

_SUBJECTS = {
    "approved": "Your request {number} was approved",
    "rejected": "Your request {number} was rejected",
    "paid": "Your request {number} has been paid",
    "under_review": "More information needed for request {number}",
}


def send_request_status_email(
    to: str,
    user_name: str,
    request_number: str,
    status: str,
    detail: str | None = None,
) -> bool:
    """Notify a request owner that their request changed status.

    Args:
        to: Recipient email address
        user_name: Owner's name for personalization
        request_number: Human-readable request number (e.g. RB-2025-001)
        status: New request status value
        detail: Approval notes, rejection reason or reviewer notes

    Returns:
        True if email was sent (or logged in dev mode), False on error
    """
    settings = get_settings()
    subject_template = _SUBJECTS.get(status)
    if subject_template is None:
        return False
    subject = subject_template.format(number=request_number)

    if not settings.resend_api_key:
        logger.warning(
            "RESEND_API_KEY not set - email not sent",
            to=to,
            email_type="request_status",
            request_number=request_number,
            status=status,
        )
        return True

    resend.api_key = settings.resend_api_key
    request_url = f"{settings.app_url}/requests/{request_number}"

    def _send() -> None:
        resend.Emails.send(
            {
                "from": settings.email_from,
                "to": [to],
                "subject": subject,
                "html": _get_status_email_html(user_name, subject, request_url, detail),
            }
        )

    try:
        future = _email_executor.submit(_send)
        future.result(timeout=settings.email_send_timeout_seconds)
        logger.info("Request status email sent", to=to, status=status)
        return True
    except FuturesTimeoutError:
        logger.error("Email send timed out", to=to, timeout=settings.email_send_timeout_seconds)
        return False
    except Exception as e:
        logger.error("Failed to send request status email", to=to, error=str(e))
        return False


def _get_status_email_html(
    user_name: str, headline: str, request_url: str, detail: str | None
) -> str:
    safe_name = html.escape(user_name)
    safe_headline = html.escape(headline)
    detail_block = (
        f'<p style="{_MUTED_STYLE}">{html.escape(detail)}</p>' if detail else ""
    )
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="{_BODY_STYLE}">
        <h2>{safe_headline}</h2>
        <p>Hi {safe_name},</p>
        {detail_block}
        <p><a href="{html.escape(request_url)}" style="{_BUTTON_STYLE}">View request</a></p>
    </body>
    </html>
    """
