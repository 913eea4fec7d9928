"""Outbound voice calls via the Twilio Calls REST API.

The call plays the TwiML served at ``voice_url``; generating that TwiML
and handling the keypad response happen outside this service.
"""

import httpx

from coldchain.config import settings
from coldchain.logging_config import get_logger
from coldchain.services.notifications.sms_channel import (
    normalize_phone_number,
    twilio_auth,
    twilio_configured,
    twilio_url,
)

logger = get_logger(__name__)


async def initiate_phone_call(to: str, voice_url: str) -> str | None:
    """Start an outbound phone call.

    Args:
        to: Number to call.
        voice_url: URL returning the TwiML for the call.

    Returns:
        The Twilio call SID, or None if the call could not be started
        (including when Twilio is not configured).
    """
    if not twilio_configured():
        logger.warning("Twilio not configured, phone call skipped", to=to)
        return None

    destination = normalize_phone_number(to)
    try:
        async with httpx.AsyncClient(timeout=settings.channel_timeout_seconds) as client:
            response = await client.post(
                twilio_url("Calls"),
                auth=twilio_auth(),
                data={
                    "To": destination,
                    "From": settings.twilio_phone_number,
                    "Url": voice_url,
                    "Timeout": str(settings.twilio_call_timeout_seconds),
                },
            )
    except httpx.HTTPError as e:
        logger.error("Error starting phone call", to=destination, error=str(e))
        return None

    if response.status_code >= 400:
        logger.error(
            "Twilio call error",
            to=destination,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return None

    call_sid = response.json().get("sid")
    logger.info("Phone call started", to=destination, call_sid=call_sid)
    return call_sid
