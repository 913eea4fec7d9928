"""Escalation log service.

Append-only access to the escalation log and the per-layer entry
claims that make layer dispatch idempotent across overlapping ticks.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coldchain.logging_config import get_logger
from coldchain.models.alert import AlarmLayer
from coldchain.models.escalation_log import (
    EscalationChannel,
    EscalationLayerEntry,
    EscalationLog,
    EscalationRecipient,
)

logger = get_logger(__name__)


async def log_escalation(
    db: AsyncSession,
    alarm_id: uuid.UUID,
    layer: AlarmLayer,
    action: str,
    recipient_type: EscalationRecipient,
    channel: EscalationChannel,
    succeeded: bool = True,
    response_at: datetime | None = None,
) -> EscalationLog:
    """Append one dispatch attempt to the log and commit it.

    Args:
        db: Database session.
        alarm_id: Alert the attempt belongs to.
        layer: Layer being dispatched.
        action: Human-readable description of what was done.
        recipient_type: CLIENT or TECHNICIAN.
        channel: Channel used.
        succeeded: Whether the channel reported success.
        response_at: When the recipient responded, if known.

    Returns:
        The persisted EscalationLog row.
    """
    entry = EscalationLog(
        alarm_id=alarm_id,
        layer=layer,
        action=action,
        recipient_type=recipient_type,
        channel=channel,
        succeeded=succeeded,
        sent_at=datetime.now(UTC),
        response_at=response_at,
    )
    db.add(entry)
    await db.commit()
    return entry


async def has_log_for_layer(
    db: AsyncSession,
    alarm_id: uuid.UUID,
    layer: AlarmLayer,
) -> bool:
    """Check whether any dispatch was logged for (alarm_id, layer)."""
    result = await db.execute(
        select(
            exists().where(
                EscalationLog.alarm_id == alarm_id,
                EscalationLog.layer == layer,
            )
        )
    )
    return bool(result.scalar())


async def layer_already_entered(
    db: AsyncSession,
    alarm_id: uuid.UUID,
    layer: AlarmLayer,
) -> bool:
    """Check whether a layer was already entered for an alert.

    True when a log row or an entry claim exists for (alarm_id, layer).
    """
    if await has_log_for_layer(db, alarm_id, layer):
        return True

    result = await db.execute(
        select(
            exists().where(
                EscalationLayerEntry.alarm_id == alarm_id,
                EscalationLayerEntry.layer == layer,
            )
        )
    )
    return bool(result.scalar())


async def claim_layer(
    db: AsyncSession,
    alarm_id: uuid.UUID,
    layer: AlarmLayer,
    dispatched: bool = True,
    commit: bool = True,
) -> EscalationLayerEntry | None:
    """Claim the right to enter a layer for an alert.

    Relies on the unique (alarm_id, layer) constraint: only one claim
    can ever be committed per pair. With ``commit=False`` the claim is
    only flushed, so the caller can commit it together with the alert
    update and a failure in between rolls both back.

    Returns:
        The claim, or None if another worker already holds it.
    """
    claim = EscalationLayerEntry(
        alarm_id=alarm_id,
        layer=layer,
        entered_at=datetime.now(UTC),
        dispatched=dispatched,
    )
    db.add(claim)

    try:
        if commit:
            await db.commit()
        else:
            await db.flush()
        return claim
    except IntegrityError:
        # Unique constraint violation: another tick already entered this layer
        await db.rollback()
        logger.debug(
            "Layer already claimed (race condition)",
            alarm_id=str(alarm_id),
            layer=layer.value,
        )
        return None


async def get_escalation_logs_for_alert(
    db: AsyncSession,
    alarm_id: uuid.UUID,
) -> list[EscalationLog]:
    """Get all log rows for an alert, oldest first."""
    result = await db.execute(
        select(EscalationLog)
        .where(EscalationLog.alarm_id == alarm_id)
        .order_by(EscalationLog.sent_at)
    )
    return list(result.scalars().all())
