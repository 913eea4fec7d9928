"""Time slot resolution.

Maps a customer's opening/closing/night-start times to one of three
time slots at a given instant. All customer times are wall-clock times
in the deployment time zone (``settings.timezone``).
"""

import zoneinfo
from dataclasses import dataclass
from datetime import UTC, datetime

from coldchain.config import settings
from coldchain.models.alert import TimeSlot
from coldchain.services.errors import EscalationError

MINUTES_PER_DAY = 24 * 60


class TimeSettingsError(EscalationError, ValueError):
    """Customer time settings are missing or malformed."""


@dataclass(frozen=True)
class CustomerTimeSettings:
    """Opening, closing and night-start times as "HH:MM" strings."""

    opening_time: str
    closing_time: str
    night_start: str

    @classmethod
    def from_customer(cls, customer) -> "CustomerTimeSettings":
        """Build settings from a Customer row.

        Raises:
            TimeSettingsError: If any of the three times is missing.
        """
        opening = getattr(customer, "opening_time", None)
        closing = getattr(customer, "closing_time", None)
        night = getattr(customer, "night_start", None)
        if not opening or not closing or not night:
            raise TimeSettingsError("Customer has incomplete time settings")
        return cls(opening_time=opening, closing_time=closing, night_start=night)


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC.

    SQLite hands back naive datetimes even for timezone-aware columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_time_to_minutes(time_str: str) -> int:
    """Parse "HH:MM" into minutes since midnight.

    A missing minute part counts as zero ("7" -> 420).

    Raises:
        TimeSettingsError: If the text is not a valid time of day.
    """
    parts = time_str.strip().split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        raise TimeSettingsError(f"Invalid time of day: {time_str!r}") from None

    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        raise TimeSettingsError(f"Invalid time of day: {time_str!r}")

    return min(hours * 60 + minutes, MINUTES_PER_DAY)


def local_minutes(now: datetime, tz_name: str | None = None) -> int:
    """Minutes since local midnight of ``now`` in the deployment zone."""
    local = as_utc(now).astimezone(zoneinfo.ZoneInfo(tz_name or settings.timezone))
    return local.hour * 60 + local.minute


def resolve_time_slot(
    time_settings: CustomerTimeSettings,
    now: datetime,
    tz_name: str | None = None,
) -> TimeSlot:
    """Determine which time slot ``now`` falls in for a customer.

    - OPEN_HOURS: opening <= now < closing
    - AFTER_HOURS: closing <= now < night_start
    - NIGHT: everything else (night_start..24:00 and 00:00..opening)

    Args:
        time_settings: The customer's configured times.
        now: Instant to evaluate (naive values are treated as UTC).
        tz_name: Override of the deployment time zone.

    Returns:
        The resolved TimeSlot.
    """
    opening = parse_time_to_minutes(time_settings.opening_time)
    closing = parse_time_to_minutes(time_settings.closing_time)
    night = parse_time_to_minutes(time_settings.night_start)

    minutes = local_minutes(now, tz_name)

    if opening <= minutes < closing:
        return TimeSlot.OPEN_HOURS

    if closing <= minutes < night:
        return TimeSlot.AFTER_HOURS

    return TimeSlot.NIGHT
