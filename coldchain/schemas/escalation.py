"""Escalation and alarm API schemas."""

import uuid
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EscalationTickResponse(BaseModel):
    """Result of one escalation tick triggered through the cron endpoint."""

    success: bool = True
    alerts_checked: int
    transitions: int
    entry_dispatches: int
    skipped: int
    errors: int


class AlarmAcknowledgeRequest(BaseModel):
    """Acknowledge request; accepts snake_case and camelCase field names."""

    alarm_id: uuid.UUID = Field(
        validation_alias=AliasChoices("alarm_id", "alarmId"),
    )
    acknowledged_by: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("acknowledged_by", "acknowledgedBy"),
    )
    note: str | None = Field(default=None, max_length=1000)


class AlarmAcknowledgeResponse(BaseModel):
    """Response after acknowledging an alarm."""

    success: bool = True
    alarm_id: uuid.UUID
    acknowledged_at: datetime
    acknowledged_by: str | None
    message: str = "Alarm acknowledged"


class ActiveAlarmResponse(BaseModel):
    """Open alarm with its current layer and age."""

    id: uuid.UUID
    cold_cell_id: uuid.UUID
    cold_cell_name: str | None
    company_name: str | None
    alert_type: str
    status: str
    layer: str
    time_slot: str | None
    value: float | None
    threshold: float | None
    triggered_at: datetime
    layer2_at: datetime | None
    layer3_at: datetime | None
    time_elapsed_minutes: int


class ActiveAlarmsResponse(BaseModel):
    """List of open alarms, oldest first."""

    alarms: list[ActiveAlarmResponse]
    count: int


class EscalationLogResponse(BaseModel):
    """Single escalation log row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    alarm_id: uuid.UUID
    layer: str
    action: str
    recipient_type: str
    channel: str
    succeeded: bool
    sent_at: datetime
    response_at: datetime | None


class EscalationTimelineResponse(BaseModel):
    """Escalation timeline for an alert."""

    alert_id: uuid.UUID
    events: list[EscalationLogResponse]
    count: int
