"""Cold cell alert model.

Alerts are created upstream when a telemetry reading crosses a cold cell
threshold (or power/door/sensor faults are reported) and are advanced
through the three escalation layers until someone acknowledges them.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.base import Base


class AlertType(str, enum.Enum):
    """Condition that raised the alert."""

    HIGH_TEMP = "high_temp"
    LOW_TEMP = "low_temp"
    POWER_LOSS = "power_loss"
    DOOR_OPEN = "door_open"
    SENSOR_ERROR = "sensor_error"


class AlertStatus(str, enum.Enum):
    """Lifecycle status of an alert."""

    ACTIVE = "active"
    ESCALATING = "escalating"
    RESOLVED = "resolved"


class AlarmLayer(str, enum.Enum):
    """Escalation tier. Ordered: LAYER_1 < LAYER_2 < LAYER_3."""

    LAYER_1 = "layer_1"
    LAYER_2 = "layer_2"
    LAYER_3 = "layer_3"

    @property
    def number(self) -> int:
        return int(self.value.rsplit("_", 1)[1])


class TimeSlot(str, enum.Enum):
    """Customer-specific period of the day."""

    OPEN_HOURS = "open_hours"
    AFTER_HOURS = "after_hours"
    NIGHT = "night"


class Alert(Base):
    """An abnormal condition on a cold cell, pending acknowledgement."""

    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    cold_cell_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("cold_cells.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    alert_type: Mapped[AlertType] = mapped_column(
        Enum(
            AlertType,
            name="alerttype",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    status: Mapped[AlertStatus] = mapped_column(
        Enum(
            AlertStatus,
            name="alertstatus",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=AlertStatus.ACTIVE,
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
        default=AlarmLayer.LAYER_1,
    )

    # Captured at creation; null on legacy rows (recomputed by the engine)
    time_slot: Mapped[TimeSlot | None] = mapped_column(
        Enum(
            TimeSlot,
            name="timeslot",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=True,
    )

    # Reading and the threshold it crossed; null for power/door/sensor alerts
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    threshold: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Start of the LAYER_1 timer
    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    last_triggered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    layer2_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    layer3_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Acknowledgement freezes all further escalation
    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    acknowledged_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    cold_cell = relationship("ColdCell", back_populates="alerts")
    escalation_logs = relationship(
        "EscalationLog",
        back_populates="alert",
        order_by="EscalationLog.sent_at",
    )

    def __repr__(self) -> str:
        return (
            f"<Alert(id={self.id}, type={self.alert_type.value}, "
            f"status={self.status.value}, layer={self.layer.value})>"
        )
