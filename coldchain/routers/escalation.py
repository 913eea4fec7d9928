"""Escalation router.

Cron endpoint for the escalation tick, alarm acknowledgement, the list
of open alarms and the escalation timeline of a single alarm.

All endpoints are guarded by the shared cron secret when one is
configured; it is accepted as ``X-Cron-Secret`` header or ``?secret=``.
"""

import math
import secrets
import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coldchain.config import settings
from coldchain.database import get_db
from coldchain.models.alert import Alert
from coldchain.schemas.escalation import (
    ActiveAlarmResponse,
    ActiveAlarmsResponse,
    AlarmAcknowledgeRequest,
    AlarmAcknowledgeResponse,
    EscalationLogResponse,
    EscalationTickResponse,
    EscalationTimelineResponse,
)
from coldchain.services.acknowledgement import AlertNotFoundError, acknowledge_alert
from coldchain.services.escalation_engine import get_active_alerts, run_escalation_tick
from coldchain.services.escalation_log import get_escalation_logs_for_alert
from coldchain.services.time_slot import as_utc


async def verify_cron_secret(
    x_cron_secret: str | None = Header(default=None),
    secret: str | None = Query(default=None),
) -> None:
    """Reject the request unless it carries the configured cron secret."""
    if not settings.cron_secret:
        return

    provided = x_cron_secret or secret or ""
    if not secrets.compare_digest(provided, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


router = APIRouter(
    prefix="/api",
    tags=["escalation"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/escalate", response_model=EscalationTickResponse)
async def escalate() -> EscalationTickResponse:
    """Run one escalation tick.

    Meant to be called every minute by an external cron when the
    in-process scheduler is disabled. Safe to call concurrently with the
    scheduler: each layer is still dispatched at most once.
    """
    summary = await run_escalation_tick()
    return EscalationTickResponse(
        alerts_checked=summary.alerts_checked,
        transitions=summary.transitions,
        entry_dispatches=summary.entry_dispatches,
        skipped=summary.skipped,
        errors=summary.errors,
    )


@router.post("/alarm/acknowledge", response_model=AlarmAcknowledgeResponse)
async def acknowledge(
    request: AlarmAcknowledgeRequest,
    db: AsyncSession = Depends(get_db),
) -> AlarmAcknowledgeResponse:
    """Acknowledge an alarm, stopping all further escalation."""
    try:
        alert = await acknowledge_alert(
            db,
            request.alarm_id,
            request.acknowledged_by or "unknown",
            note=request.note,
        )
    except AlertNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alarm not found",
        ) from None

    return AlarmAcknowledgeResponse(
        alarm_id=alert.id,
        acknowledged_at=alert.acknowledged_at,
        acknowledged_by=alert.acknowledged_by,
    )


def _active_alarm(alert: Alert, now: datetime) -> ActiveAlarmResponse:
    cold_cell = alert.cold_cell
    location = cold_cell.location if cold_cell else None
    customer = location.customer if location else None
    elapsed = (now - as_utc(alert.triggered_at)).total_seconds() / 60

    return ActiveAlarmResponse(
        id=alert.id,
        cold_cell_id=alert.cold_cell_id,
        cold_cell_name=cold_cell.name if cold_cell else None,
        company_name=customer.company_name if customer else None,
        alert_type=alert.alert_type.value,
        status=alert.status.value,
        layer=alert.layer.value,
        time_slot=alert.time_slot.value if alert.time_slot else None,
        value=alert.value,
        threshold=alert.threshold,
        triggered_at=alert.triggered_at,
        layer2_at=alert.layer2_at,
        layer3_at=alert.layer3_at,
        time_elapsed_minutes=max(0, math.floor(elapsed)),
    )


@router.get("/alarms/active", response_model=ActiveAlarmsResponse)
async def list_active_alarms(
    db: AsyncSession = Depends(get_db),
) -> ActiveAlarmsResponse:
    """All unacknowledged alarms with their layer and elapsed time."""
    alerts = await get_active_alerts(db)
    now = datetime.now(UTC)
    return ActiveAlarmsResponse(
        alarms=[_active_alarm(alert, now) for alert in alerts],
        count=len(alerts),
    )


@router.get(
    "/escalation/alerts/{alert_id}/timeline",
    response_model=EscalationTimelineResponse,
)
async def get_alert_escalation_timeline(
    alert_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> EscalationTimelineResponse:
    """Get the escalation timeline for a specific alert.

    Returns every dispatch attempt, oldest first, showing the progression
    through the escalation layers and which sends failed.
    """
    alert = await db.get(Alert, alert_id)

    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )

    logs = await get_escalation_logs_for_alert(db, alert_id)

    return EscalationTimelineResponse(
        alert_id=alert_id,
        events=[
            EscalationLogResponse(
                id=entry.id,
                alarm_id=entry.alarm_id,
                layer=entry.layer.value,
                action=entry.action,
                recipient_type=entry.recipient_type.value,
                channel=entry.channel.value,
                succeeded=entry.succeeded,
                sent_at=entry.sent_at,
                response_at=entry.response_at,
            )
            for entry in logs
        ],
        count=len(logs),
    )
