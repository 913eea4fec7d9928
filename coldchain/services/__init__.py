# Business Logic Services
from coldchain.services.acknowledgement import AlertNotFoundError, acknowledge_alert
from coldchain.services.errors import EscalationError
from coldchain.services.escalation_engine import (
    TickSummary,
    determine_next_layer,
    run_escalation_tick,
)
from coldchain.services.scheduler import (
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)
from coldchain.services.time_slot import TimeSettingsError, resolve_time_slot

__all__ = [
    "AlertNotFoundError",
    "EscalationError",
    "TickSummary",
    "TimeSettingsError",
    "acknowledge_alert",
    "determine_next_layer",
    "get_scheduler",
    "resolve_time_slot",
    "run_escalation_tick",
    "start_scheduler",
    "stop_scheduler",
]
