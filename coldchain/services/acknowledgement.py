"""Alert acknowledgement.

Acknowledging an alert resolves it and freezes escalation: the engine
only ever picks up alerts whose ``acknowledged_at`` is unset.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldchain.logging_config import get_logger
from coldchain.models.alert import Alert, AlertStatus
from coldchain.services.errors import EscalationError

logger = get_logger(__name__)


class AlertNotFoundError(EscalationError):
    """No alert exists with the given id."""


async def acknowledge_alert(
    db: AsyncSession,
    alert_id: uuid.UUID,
    acknowledged_by: str,
    note: str | None = None,
) -> Alert:
    """Acknowledge and resolve an alert.

    Acknowledging an alert twice is a no-op; the first acknowledgement
    is kept.

    Args:
        db: Database session.
        alert_id: Alert to acknowledge.
        acknowledged_by: Who acknowledged it (user name, phone, "phone-call").
        note: Optional resolution note.

    Returns:
        The acknowledged alert.

    Raises:
        AlertNotFoundError: If the alert does not exist.
    """
    result = await db.execute(select(Alert).where(Alert.id == alert_id))
    alert = result.scalar_one_or_none()

    if alert is None:
        raise AlertNotFoundError(f"Alert {alert_id} not found")

    if alert.acknowledged_at is not None:
        logger.info(
            "Alert already acknowledged",
            alert_id=str(alert_id),
            acknowledged_by=alert.acknowledged_by,
        )
        return alert

    now = datetime.now(UTC)
    alert.acknowledged_at = now
    alert.acknowledged_by = acknowledged_by
    alert.status = AlertStatus.RESOLVED
    alert.resolved_at = now
    if note is not None:
        alert.resolution_note = note

    await db.commit()
    await db.refresh(alert)

    logger.info(
        "Alert acknowledged",
        alert_id=str(alert_id),
        acknowledged_by=acknowledged_by,
        layer=alert.layer.value,
    )
    return alert
