"""Per-layer notification fan-out.

    Layer  Client               Backup contacts    Technician
    1      email + push (app)   -                  email (app alert)
    2      SMS + repeat email   SMS each           SMS
    3      voice call           voice call each    SMS + voice call

Every attempt is independent: a failing or raising channel never stops
the remaining attempts. Each attempt is followed by one escalation log
row, written whether or not the send succeeded. Recipients without the
required address are skipped and not logged.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from coldchain.logging_config import get_logger
from coldchain.models.alert import AlarmLayer, Alert
from coldchain.models.escalation_log import (
    EscalationChannel,
    EscalationLog,
    EscalationRecipient,
)
from coldchain.services.escalation_log import log_escalation
from coldchain.services.notifications import messages
from coldchain.services.notifications.email_channel import send_alert_email
from coldchain.services.notifications.messages import AlertMessageContext
from coldchain.services.notifications.phone_channel import initiate_phone_call
from coldchain.services.notifications.sms_channel import send_sms

logger = get_logger(__name__)


@dataclass(frozen=True)
class EscalationRecipients:
    """Addresses to notify for one alert, detached from the ORM session."""

    context: AlertMessageContext
    customer_email: str | None = None
    customer_phone: str | None = None
    backup_phones: list[str] = field(default_factory=list)
    technician_email: str | None = None
    technician_phone: str | None = None


def backup_phones_for(customer) -> list[str]:
    """Backup numbers in position order, else the legacy single number."""
    phones = [c.phone for c in customer.backup_contacts if c.phone]
    if phones:
        return phones
    return [customer.backup_phone] if customer.backup_phone else []


def build_recipients(alert: Alert, customer) -> EscalationRecipients:
    """Collect recipients from an alert whose customer graph is loaded."""
    technician = customer.linked_technician
    return EscalationRecipients(
        context=AlertMessageContext(
            alarm_id=alert.id,
            alert_type=alert.alert_type,
            cold_cell_name=alert.cold_cell.name if alert.cold_cell else "Unknown cell",
            company_name=customer.company_name,
            value=alert.value,
            threshold=alert.threshold,
        ),
        customer_email=customer.email,
        customer_phone=customer.phone,
        backup_phones=backup_phones_for(customer),
        technician_email=technician.email if technician else None,
        technician_phone=technician.phone if technician else None,
    )


class _LayerDispatch:
    """Runs the attempts of one layer and collects their log rows."""

    def __init__(
        self,
        db: AsyncSession,
        layer: AlarmLayer,
        recipients: EscalationRecipients,
    ):
        self.db = db
        self.layer = layer
        self.recipients = recipients
        self.logs: list[EscalationLog] = []

    @property
    def ctx(self) -> AlertMessageContext:
        return self.recipients.context

    async def attempt(
        self,
        action: str,
        recipient_type: EscalationRecipient,
        channel: EscalationChannel,
        send: Callable[[], Awaitable[bool]],
    ) -> None:
        try:
            succeeded = await send()
        except Exception:
            logger.error(
                "Notification attempt raised",
                alarm_id=str(self.ctx.alarm_id),
                layer=self.layer.value,
                action=action,
                exc_info=True,
            )
            succeeded = False

        entry = await log_escalation(
            self.db,
            self.ctx.alarm_id,
            self.layer,
            action,
            recipient_type,
            channel,
            succeeded=succeeded,
        )
        self.logs.append(entry)

    async def email(
        self,
        to: str,
        content: tuple[str, str],
        action: str,
        recipient_type: EscalationRecipient,
    ) -> None:
        subject, html_body = content
        await self.attempt(
            action,
            recipient_type,
            EscalationChannel.EMAIL,
            lambda: send_alert_email(to, subject, html_body),
        )

    async def sms(
        self,
        to: str,
        body: str,
        action: str,
        recipient_type: EscalationRecipient,
    ) -> None:
        await self.attempt(
            action,
            recipient_type,
            EscalationChannel.SMS,
            lambda: send_sms(to, body),
        )

    async def call(
        self,
        to: str,
        url: str,
        action: str,
        recipient_type: EscalationRecipient,
    ) -> None:
        async def place_call() -> bool:
            return await initiate_phone_call(to, url) is not None

        await self.attempt(action, recipient_type, EscalationChannel.PHONE, place_call)


async def _push_app_alert() -> bool:
    # No push transport yet: the app picks alerts up from the dashboard feed
    return True


async def _dispatch_layer1(d: _LayerDispatch) -> None:
    r = d.recipients
    client = EscalationRecipient.CLIENT
    technician = EscalationRecipient.TECHNICIAN

    if r.customer_email:
        await d.email(
            r.customer_email,
            messages.layer1_client_email(d.ctx),
            "Email sent to customer",
            client,
        )

    logger.info("Layer 1 push notification (app alert)", alarm_id=str(d.ctx.alarm_id))
    await d.attempt(
        "App alert to customer", client, EscalationChannel.PUSH, _push_app_alert
    )

    if r.technician_email:
        await d.email(
            r.technician_email,
            messages.layer1_technician_email(d.ctx),
            "Email sent to technician",
            technician,
        )


async def _dispatch_layer2(d: _LayerDispatch) -> None:
    r = d.recipients
    client = EscalationRecipient.CLIENT

    if r.customer_phone:
        await d.sms(
            r.customer_phone,
            messages.layer2_client_sms(d.ctx),
            "SMS sent to customer",
            client,
        )

    if r.customer_email:
        await d.email(
            r.customer_email,
            messages.layer2_client_email(d.ctx),
            "Repeat email sent to customer",
            client,
        )

    for phone in r.backup_phones:
        await d.sms(
            phone,
            messages.backup_contact_sms(d.ctx),
            "SMS sent to backup contact",
            client,
        )

    if r.technician_phone:
        await d.sms(
            r.technician_phone,
            messages.layer2_technician_sms(d.ctx),
            "SMS sent to technician",
            EscalationRecipient.TECHNICIAN,
        )


async def _dispatch_layer3(d: _LayerDispatch) -> None:
    r = d.recipients
    client = EscalationRecipient.CLIENT
    technician = EscalationRecipient.TECHNICIAN
    alarm_id = d.ctx.alarm_id

    if r.customer_phone:
        await d.call(
            r.customer_phone,
            messages.voice_url(alarm_id),
            "Voice call to customer",
            client,
        )

    for phone in r.backup_phones:
        await d.call(
            phone,
            messages.voice_url(alarm_id, "backup"),
            "Voice call to backup contact",
            client,
        )

    if r.technician_phone:
        await d.sms(
            r.technician_phone,
            messages.layer3_technician_sms(d.ctx),
            "SMS sent to technician",
            technician,
        )
        await d.call(
            r.technician_phone,
            messages.voice_url(alarm_id, "technician"),
            "Voice call to technician",
            technician,
        )


LAYER_PLANS: dict[AlarmLayer, Callable[[_LayerDispatch], Awaitable[None]]] = {
    AlarmLayer.LAYER_1: _dispatch_layer1,
    AlarmLayer.LAYER_2: _dispatch_layer2,
    AlarmLayer.LAYER_3: _dispatch_layer3,
}


async def dispatch_layer(
    db: AsyncSession,
    layer: AlarmLayer,
    recipients: EscalationRecipients,
) -> list[EscalationLog]:
    """Notify every recipient of a layer's plan and log each attempt.

    Args:
        db: Database session used for the log rows.
        layer: Layer being entered.
        recipients: Addresses and message context for the alert.

    Returns:
        The escalation log rows written, in dispatch order.
    """
    dispatch = _LayerDispatch(db, layer, recipients)
    await LAYER_PLANS[layer](dispatch)

    failed = sum(1 for entry in dispatch.logs if not entry.succeeded)
    logger.info(
        "Layer notifications dispatched",
        alarm_id=str(recipients.context.alarm_id),
        layer=layer.value,
        attempts=len(dispatch.logs),
        failed=failed,
    )
    return dispatch.logs
