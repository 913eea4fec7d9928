"""Alert email delivery via the Resend HTTP API."""

import httpx

from coldchain.config import settings
from coldchain.logging_config import get_logger

logger = get_logger(__name__)


async def send_alert_email(to: str, subject: str, html_body: str) -> bool:
    """Send an alert email.

    When no Resend API key is configured the email is only logged and
    treated as sent, so development setups escalate end-to-end.

    Args:
        to: Recipient address.
        subject: Email subject.
        html_body: HTML body.

    Returns:
        True if the email was accepted (or logged), False on failure.
    """
    if not settings.resend_api_key:
        logger.warning("Resend API not configured, email logged but not sent")
        logger.info("Alert email (not sent)", to=to, subject=subject)
        return True

    try:
        async with httpx.AsyncClient(timeout=settings.channel_timeout_seconds) as client:
            response = await client.post(
                settings.resend_api_url,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
                json={
                    "from": f"IntelliFrost <{settings.resend_from_email}>",
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                },
            )
    except httpx.HTTPError as e:
        logger.error("Error sending alert email", to=to, error=str(e))
        return False

    if response.status_code >= 400:
        logger.error(
            "Resend API error",
            to=to,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return False

    logger.info("Alert email sent", to=to, subject=subject)
    return True
