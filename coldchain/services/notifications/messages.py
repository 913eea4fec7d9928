"""Notification message builders.

Pure functions producing the email, SMS and voice-callback content for
each layer of the dispatch plan.
"""

import html
import uuid
from dataclasses import dataclass

from coldchain.config import settings
from coldchain.models.alert import AlertType

BRAND = "IntelliFrost"

ALERT_TYPE_LABEL: dict[AlertType, str] = {
    AlertType.HIGH_TEMP: "too high",
    AlertType.LOW_TEMP: "too low",
    AlertType.POWER_LOSS: "power loss",
    AlertType.DOOR_OPEN: "door open",
    AlertType.SENSOR_ERROR: "sensor error",
}


@dataclass(frozen=True)
class AlertMessageContext:
    """Everything the message builders need about an alert."""

    alarm_id: uuid.UUID
    alert_type: AlertType
    cold_cell_name: str
    company_name: str
    value: float | None = None
    threshold: float | None = None


def format_reading(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:g}°C"


def alarm_code(alarm_id: uuid.UUID) -> str:
    """Short code technicians can quote over the phone."""
    return alarm_id.hex[-6:]


def voice_url(alarm_id: uuid.UUID, recipient: str | None = None) -> str:
    """TwiML callback URL for a voice call about an alert.

    Args:
        alarm_id: Alert being called about.
        recipient: None for the customer, "backup" or "technician" otherwise.
    """
    base = f"{settings.api_url.rstrip('/')}/api/twilio/voice/{alarm_id}"
    if recipient is None:
        return base
    return f"{base}?{recipient}=1"


def _email_wrapper(color: str, heading: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; '
        'margin: 0 auto; line-height: 1.6; color: #333;">'
        f'<h2 style="color: {color};">{heading}</h2>'
        f"{body}"
        "</div>"
    )


def layer1_client_email(ctx: AlertMessageContext) -> tuple[str, str]:
    """First notice to the customer, with dashboard link."""
    cell = html.escape(ctx.cold_cell_name)
    dashboard = f"{settings.frontend_url.rstrip('/')}/dashboard"
    body = (
        f"<p>Your cold cell <strong>{cell}</strong> has raised an alarm.</p>"
        f"<p><strong>Type:</strong> {ALERT_TYPE_LABEL[ctx.alert_type]}<br>"
        f"<strong>Current value:</strong> {format_reading(ctx.value)}<br>"
        f"<strong>Threshold:</strong> {format_reading(ctx.threshold)}</p>"
        f'<p><a href="{dashboard}">Open dashboard</a></p>'
        '<p style="color: #666; font-size: 12px;">Acknowledge the alarm in the '
        "dashboard to stop further escalation.</p>"
    )
    subject = f"{BRAND} - Temperature alarm: {ctx.cold_cell_name}"
    return subject, _email_wrapper("#00c8ff", f"{BRAND} - Alarm", body)


def layer1_technician_email(ctx: AlertMessageContext) -> tuple[str, str]:
    """App alert to the linked technician."""
    cell = html.escape(ctx.cold_cell_name)
    company = html.escape(ctx.company_name)
    dashboard = f"{settings.frontend_url.rstrip('/')}/technician"
    body = (
        f"<p>Customer <strong>{company}</strong> - cold cell "
        f"<strong>{cell}</strong>.</p>"
        f"<p><strong>Type:</strong> {ALERT_TYPE_LABEL[ctx.alert_type]}<br>"
        f"<strong>Value:</strong> {format_reading(ctx.value)}</p>"
        f'<p><a href="{dashboard}">Technician dashboard</a></p>'
    )
    subject = f"{BRAND} - Alarm: {ctx.cold_cell_name} ({ctx.company_name})"
    return subject, _email_wrapper("#ff9500", f"{BRAND} - Alarm (priority raised)", body)


def layer2_client_email(ctx: AlertMessageContext) -> tuple[str, str]:
    """Repeat email sent when the alert escalates to layer 2."""
    cell = html.escape(ctx.cold_cell_name)
    dashboard = f"{settings.frontend_url.rstrip('/')}/dashboard"
    body = (
        f"<p>The alarm for <strong>{cell}</strong> has been escalated. "
        "Please acknowledge as soon as possible.</p>"
        f"<p><strong>Type:</strong> {ALERT_TYPE_LABEL[ctx.alert_type]} - "
        f"<strong>Value:</strong> {format_reading(ctx.value)}</p>"
        f'<p><a href="{dashboard}">Open dashboard</a></p>'
    )
    subject = f"[Escalation] {BRAND} - {ctx.cold_cell_name}"
    return subject, _email_wrapper("#ff9500", f"{BRAND} - Escalated alarm", body)


def layer2_client_sms(ctx: AlertMessageContext) -> str:
    return (
        f"{BRAND}: Alarm {ctx.cold_cell_name} - "
        f"{ALERT_TYPE_LABEL[ctx.alert_type]} ({format_reading(ctx.value)}). "
        "Acknowledge in the app."
    )


def backup_contact_sms(ctx: AlertMessageContext) -> str:
    return (
        f"{BRAND}: {ctx.company_name} - Alarm {ctx.cold_cell_name}. "
        "Please get in touch."
    )


def layer2_technician_sms(ctx: AlertMessageContext) -> str:
    return (
        f"{BRAND} alarm: {ctx.company_name} - {ctx.cold_cell_name} "
        f"({ALERT_TYPE_LABEL[ctx.alert_type]}). Code: {alarm_code(ctx.alarm_id)}"
    )


def layer3_technician_sms(ctx: AlertMessageContext) -> str:
    return (
        f"{BRAND} URGENT: {ctx.company_name} - {ctx.cold_cell_name}. "
        f"Reading {format_reading(ctx.value)}. You are being dispatched."
    )
