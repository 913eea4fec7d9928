# Database Models
from coldchain.models.alert import Alert, AlarmLayer, AlertStatus, AlertType, TimeSlot
from coldchain.models.backup_contact import BackupContact
from coldchain.models.base import Base, TimestampMixin
from coldchain.models.customer import ColdCell, Customer, Location
from coldchain.models.escalation_config import EscalationConfig
from coldchain.models.escalation_log import (
    EscalationChannel,
    EscalationLayerEntry,
    EscalationLog,
    EscalationRecipient,
)
from coldchain.models.technician import Technician

__all__ = [
    "AlarmLayer",
    "Alert",
    "AlertStatus",
    "AlertType",
    "BackupContact",
    "Base",
    "ColdCell",
    "Customer",
    "EscalationChannel",
    "EscalationConfig",
    "EscalationLayerEntry",
    "EscalationLog",
    "EscalationRecipient",
    "Location",
    "Technician",
    "TimeSlot",
    "TimestampMixin",
]
