"""Email sending via Resend API.

Plain-text emails carrying one-time codes. Delivery is fire-and-forget:
failures are logged and never surface to the flow that triggered them.
"""

import logging
from collections.abc import Callable
from functools import partial

import httpx
from fastapi import BackgroundTasks

from remaster_auth.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

# Schedules an email; called as dispatch(to_email=..., subject=..., body=...)
EmailDispatcher = Callable[..., None]


async def send_email(*, to_email: str, subject: str, body: str) -> None:
    """Send a plain-text email via Resend.

    Never raises: any transport or API failure is logged at WARNING.

    Args:
        to_email: Recipient email address.
        subject: Subject line.
        body: Plain-text body.
    """
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": subject,
                    "text": body,
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning("Failed to send email", exc_info=True)


def background_dispatcher(background_tasks: BackgroundTasks) -> EmailDispatcher:
    """Return a dispatcher that sends email after the response is written."""
    return partial(background_tasks.add_task, send_email)


def code_email_body(code: str) -> str:
    """Body text for verification and password reset emails."""
    return f"Your Token is: {code}"


def subject(kind: str) -> str:
    """Prefix a subject line, e.g. ``"REMASTER - VERIFY EMAIL"``."""
    return f"{settings.email_subject_prefix} - {kind}"
