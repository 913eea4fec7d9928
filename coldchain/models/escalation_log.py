"""Escalation log models.

Every dispatch attempt made while escalating an alert is recorded as an
immutable ``EscalationLog`` row. The rows double as the idempotency guard:
a layer counts as entered once a row exists for (alarm_id, layer).

``EscalationLayerEntry`` is the storage-level claim for the same fact.
The unique constraint on (alarm_id, layer) lets only one worker enter a
layer even when two ticks race past the log pre-check.
"""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.alert import AlarmLayer
from coldchain.models.base import Base


class EscalationRecipient(str, enum.Enum):
    """Who was notified."""

    CLIENT = "client"
    TECHNICIAN = "technician"


class EscalationChannel(str, enum.Enum):
    """How they were notified."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    PHONE = "phone"


class EscalationLog(Base):
    """Append-only record of one dispatch attempt.

    Written whether or not the channel reported success; ``succeeded``
    keeps the channel's answer for auditing.
    """

    __tablename__ = "escalation_logs"
    __table_args__ = (
        Index("ix_escalation_logs_alarm_layer", "alarm_id", "layer"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    alarm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("alerts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    layer: Mapped[AlarmLayer] = mapped_column(
        Enum(
            AlarmLayer,
            name="alarmlayer",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    # Free-text description, e.g. "SMS to backup contact"
    action: Mapped[str] = mapped_column(String(255), nullable=False)

    recipient_type: Mapped[EscalationRecipient] = mapped_column(
        Enum(
            EscalationRecipient,
            name="escalationrecipient",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    channel: Mapped[EscalationChannel] = mapped_column(
        Enum(
            EscalationChannel,
            name="escalationchannel",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    succeeded: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    response_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    alert = relationship("Alert", back_populates="escalation_logs")

    def __repr__(self) -> str:
        return (
            f"<EscalationLog(alarm={self.alarm_id}, layer={self.layer.value}, "
            f"{self.recipient_type.value}/{self.channel.value})>"
        )


class EscalationLayerEntry(Base):
    """Claim marking that an alert has entered a layer.

    One row per (alarm_id, layer); inserting a duplicate raises
    IntegrityError, which the engine treats as "already dispatched".
    """

    __tablename__ = "escalation_layer_entries"
    __table_args__ = (
        UniqueConstraint(
            "alarm_id", "layer", name="uq_escalation_layer_entries_alarm_layer"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    alarm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("alerts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    layer: Mapped[AlarmLayer] = mapped_column(
        Enum(
            AlarmLayer,
            name="alarmlayer",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # False when the layer was entered for bookkeeping only (disabled by policy)
    dispatched: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return (
            f"<EscalationLayerEntry(alarm={self.alarm_id}, "
            f"layer={self.layer.value}, dispatched={self.dispatched})>"
        )
