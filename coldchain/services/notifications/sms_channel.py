"""SMS delivery via the Twilio Messages REST API."""

import re

import httpx

from coldchain.config import settings
from coldchain.logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_phone_number(raw: str) -> str:
    """Normalize a phone number to E.164-ish form.

    Whitespace is removed; numbers already starting with ``+`` are kept,
    national numbers lose their leading 0 and get the default country code.

    >>> normalize_phone_number("0470 12 34 56")
    '+32470123456'
    """
    number = _WHITESPACE.sub("", raw)
    if number.startswith("+"):
        return number
    return f"{settings.default_country_code}{number.removeprefix('0')}"


def twilio_configured() -> bool:
    """Check whether Twilio credentials and a sender number are set."""
    return bool(
        settings.twilio_account_sid
        and settings.twilio_auth_token
        and settings.twilio_phone_number
    )


def twilio_url(resource: str) -> str:
    """Build a Twilio REST URL for the configured account."""
    return (
        f"{settings.twilio_api_base}/Accounts/"
        f"{settings.twilio_account_sid}/{resource}.json"
    )


def twilio_auth() -> httpx.BasicAuth:
    return httpx.BasicAuth(settings.twilio_account_sid, settings.twilio_auth_token)


async def send_sms(to: str, body: str) -> bool:
    """Send an SMS.

    When Twilio is not configured the message is only logged and treated
    as sent.

    Returns:
        True if the message was accepted (or logged), False on failure.
    """
    if not twilio_configured():
        logger.warning("Twilio not configured, SMS logged but not sent")
        logger.info("SMS (not sent)", to=to, body=body[:50])
        return True

    destination = normalize_phone_number(to)
    try:
        async with httpx.AsyncClient(timeout=settings.channel_timeout_seconds) as client:
            response = await client.post(
                twilio_url("Messages"),
                auth=twilio_auth(),
                data={
                    "To": destination,
                    "From": settings.twilio_phone_number,
                    "Body": body,
                },
            )
    except httpx.HTTPError as e:
        logger.error("Error sending SMS", to=destination, error=str(e))
        return False

    if response.status_code >= 400:
        logger.error(
            "Twilio SMS error",
            to=destination,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return False

    logger.info("SMS sent", to=destination)
    return True
