"""Alert escalation engine.

Walks every open alert once per tick, decides which layer it belongs in
given the customer's time slot policy and the elapsed timers, advances
it, and fans out the notifications for each newly entered layer.

Dispatch is exactly-once per (alert, layer): a layer is only dispatched
after the escalation log shows no earlier entry for it and the
worker has won the unique (alarm_id, layer) claim. Overlapping ticks
therefore never notify twice, even without row locks on alerts.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from coldchain.database import get_session_maker
from coldchain.logging_config import escalation_context, get_logger
from coldchain.models.alert import AlarmLayer, Alert, AlertStatus, TimeSlot
from coldchain.models.customer import ColdCell, Customer, Location
from coldchain.services.escalation_log import claim_layer, layer_already_entered
from coldchain.services.layer_policy import (
    LayerOverrides,
    initial_layer_for,
    is_layer_enabled,
)
from coldchain.services.notifications.dispatch import (
    EscalationRecipients,
    build_recipients,
    dispatch_layer,
)
from coldchain.services.time_slot import (
    CustomerTimeSettings,
    TimeSettingsError,
    as_utc,
    resolve_time_slot,
)

logger = get_logger(__name__)

# Fixed business policy
LAYER_1_TO_2_WAIT = timedelta(minutes=20)  # OPEN_HOURS only
LAYER_2_TO_3_WAIT = timedelta(minutes=15)

OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ESCALATING)


@dataclass
class EscalationDecision:
    """Decision about whether to move an alert to the next layer."""

    should_escalate: bool
    target_layer: AlarmLayer | None
    reason: str


@dataclass(frozen=True)
class AlertSnapshot:
    """Plain copy of the alert fields the engine decides on.

    Decouples decisions from ORM instances, which are expired whenever
    a lost layer claim rolls the session back.
    """

    id: uuid.UUID
    layer: AlarmLayer
    status: AlertStatus
    time_slot: TimeSlot | None
    triggered_at: datetime
    layer2_at: datetime | None
    layer3_at: datetime | None

    @classmethod
    def of(cls, alert: Alert) -> "AlertSnapshot":
        return cls(
            id=alert.id,
            layer=alert.layer,
            status=alert.status,
            time_slot=alert.time_slot,
            triggered_at=as_utc(alert.triggered_at),
            layer2_at=as_utc(alert.layer2_at) if alert.layer2_at else None,
            layer3_at=as_utc(alert.layer3_at) if alert.layer3_at else None,
        )


@dataclass
class AlertOutcome:
    """What happened to one alert during a tick."""

    entered: bool = False
    transitioned: bool = False
    skipped: bool = False


@dataclass
class TickSummary:
    """Counters reported at the end of a tick."""

    alerts_checked: int = 0
    transitions: int = 0
    entry_dispatches: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: AlertOutcome) -> None:
        self.entry_dispatches += int(outcome.entered)
        self.transitions += int(outcome.transitioned)
        self.skipped += int(outcome.skipped)


def _elapsed_minutes(now: datetime, since: datetime) -> float:
    return (as_utc(now) - as_utc(since)).total_seconds() / 60


def determine_next_layer(
    alert: Alert | AlertSnapshot,
    slot: TimeSlot,
    overrides: LayerOverrides | None,
    now: datetime,
) -> EscalationDecision:
    """Decide whether an alert moves to the next layer at ``now``.

    - LAYER_1 -> LAYER_2 when layer 2 is enabled for the slot: after 20
      minutes during open hours, immediately in the other slots.
    - LAYER_2 -> LAYER_3 when layer 3 is enabled: 15 minutes after
      layer 2 was entered (or after the trigger if that is unknown).
    - LAYER_3 is terminal.

    Args:
        alert: Alert or AlertSnapshot.
        slot: Resolved time slot for the alert.
        overrides: Customer layer overrides, if any.
        now: Current instant.

    Returns:
        EscalationDecision with target layer and reason.
    """
    if alert.layer == AlarmLayer.LAYER_1 and is_layer_enabled(
        slot, AlarmLayer.LAYER_2, overrides
    ):
        if slot != TimeSlot.OPEN_HOURS:
            return EscalationDecision(
                should_escalate=True,
                target_layer=AlarmLayer.LAYER_2,
                reason=f"Slot {slot.value}: no layer 1 wait outside open hours",
            )

        elapsed = _elapsed_minutes(now, alert.triggered_at)
        wait = LAYER_1_TO_2_WAIT.total_seconds() / 60
        if elapsed >= wait:
            return EscalationDecision(
                should_escalate=True,
                target_layer=AlarmLayer.LAYER_2,
                reason=f"Layer 1 age ({elapsed:.1f}m) >= wait ({wait:.0f}m)",
            )
        return EscalationDecision(
            should_escalate=False,
            target_layer=None,
            reason=f"Layer 1 age ({elapsed:.1f}m) < wait ({wait:.0f}m)",
        )

    if alert.layer == AlarmLayer.LAYER_2 and is_layer_enabled(
        slot, AlarmLayer.LAYER_3, overrides
    ):
        elapsed = _elapsed_minutes(now, alert.layer2_at or alert.triggered_at)
        wait = LAYER_2_TO_3_WAIT.total_seconds() / 60
        if elapsed >= wait:
            return EscalationDecision(
                should_escalate=True,
                target_layer=AlarmLayer.LAYER_3,
                reason=f"Layer 2 age ({elapsed:.1f}m) >= wait ({wait:.0f}m)",
            )
        return EscalationDecision(
            should_escalate=False,
            target_layer=None,
            reason=f"Layer 2 age ({elapsed:.1f}m) < wait ({wait:.0f}m)",
        )

    if alert.layer == AlarmLayer.LAYER_3:
        return EscalationDecision(
            should_escalate=False,
            target_layer=None,
            reason="Layer 3 is terminal",
        )

    return EscalationDecision(
        should_escalate=False,
        target_layer=None,
        reason=f"Next layer disabled for slot {slot.value}",
    )


def resolve_alert_slot(
    alert: Alert | AlertSnapshot,
    customer: Customer,
) -> TimeSlot:
    """Stored time slot, or the slot at trigger time for legacy alerts.

    Recomputing from ``triggered_at`` yields exactly what the creation
    path would have stored, so repeated ticks agree with each other.

    Raises:
        TimeSettingsError: If the slot must be recomputed and the
            customer's time settings are missing or malformed.
    """
    if alert.time_slot is not None:
        return alert.time_slot
    return resolve_time_slot(
        CustomerTimeSettings.from_customer(customer),
        alert.triggered_at,
    )


async def get_open_alert_ids(db: AsyncSession) -> list[uuid.UUID]:
    """Ids of all unacknowledged ACTIVE/ESCALATING alerts, oldest first."""
    result = await db.execute(
        select(Alert.id)
        .where(
            Alert.status.in_(OPEN_STATUSES),
            Alert.acknowledged_at.is_(None),
        )
        .order_by(Alert.triggered_at)
    )
    return list(result.scalars().all())


async def get_active_alerts(db: AsyncSession) -> list[Alert]:
    """Open alerts with cold cell, location and customer loaded, oldest first."""
    result = await db.execute(
        select(Alert)
        .options(
            selectinload(Alert.cold_cell)
            .selectinload(ColdCell.location)
            .selectinload(Location.customer)
        )
        .where(
            Alert.status.in_(OPEN_STATUSES),
            Alert.acknowledged_at.is_(None),
        )
        .order_by(Alert.triggered_at)
    )
    return list(result.scalars().all())


async def load_alert_for_escalation(
    db: AsyncSession,
    alert_id: uuid.UUID,
) -> Alert | None:
    """Load an open alert with its cold cell, location and customer graph.

    Returns None if the alert was acknowledged or resolved in the meantime.
    """
    customer_path = (
        selectinload(Alert.cold_cell)
        .selectinload(ColdCell.location)
        .selectinload(Location.customer)
    )
    result = await db.execute(
        select(Alert)
        .options(
            customer_path.selectinload(Customer.linked_technician),
            customer_path.selectinload(Customer.backup_contacts),
            customer_path.selectinload(Customer.escalation_config),
        )
        .where(
            Alert.id == alert_id,
            Alert.status.in_(OPEN_STATUSES),
            Alert.acknowledged_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


def _customer_of(alert: Alert) -> Customer | None:
    cold_cell = alert.cold_cell
    if cold_cell is None or cold_cell.location is None:
        return None
    return cold_cell.location.customer


async def apply_layer(
    db: AsyncSession,
    alert: AlertSnapshot,
    target: AlarmLayer,
    now: datetime,
    commit: bool = True,
) -> bool:
    """Persist the move to ``target`` unless already applied.

    Never moves the layer backwards and never overwrites an existing
    layer timestamp. The update only matches unacknowledged alerts.
    With ``commit=False`` the update joins the caller's transaction.

    Returns:
        False if the alert was acknowledged concurrently, else True.
    """
    values: dict = {}
    if alert.layer.number < target.number:
        values["layer"] = target
    if alert.status != AlertStatus.ESCALATING:
        values["status"] = AlertStatus.ESCALATING
    if target == AlarmLayer.LAYER_2 and alert.layer2_at is None:
        values["layer2_at"] = now
    if target == AlarmLayer.LAYER_3 and alert.layer3_at is None:
        values["layer3_at"] = now

    if not values:
        return True

    result = await db.execute(
        update(Alert)
        .where(Alert.id == alert.id, Alert.acknowledged_at.is_(None))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if commit:
        await db.commit()
    return result.rowcount > 0


async def enter_current_layer(
    db: AsyncSession,
    alert: AlertSnapshot,
    slot: TimeSlot,
    overrides: LayerOverrides | None,
    now: datetime,
    recipients: EscalationRecipients,
) -> bool:
    """Dispatch the alert's current layer if it was never entered.

    Covers alerts created directly at their initial layer (e.g. a night
    alert starting at LAYER_3). Entering layer 2 or 3 also marks the
    alert ESCALATING and fills a missing layer timestamp, in the same
    transaction as the claim. A layer disabled by policy is claimed for
    bookkeeping without notifying anyone.

    Returns:
        True if this call dispatched notifications.
    """
    layer = alert.layer
    if await layer_already_entered(db, alert.id, layer):
        return False

    # The fallback layer still notifies when every layer is disabled
    enabled = is_layer_enabled(slot, layer, overrides) or (
        layer == initial_layer_for(slot, overrides)
    )
    if not enabled:
        await claim_layer(db, alert.id, layer, dispatched=False)
        return False

    if await claim_layer(db, alert.id, layer, commit=False) is None:
        return False

    if layer != AlarmLayer.LAYER_1 and not await apply_layer(
        db, alert, layer, now, commit=False
    ):
        await db.rollback()
        return False
    await db.commit()

    logger.info(
        "Entering initial layer",
        alert_id=str(alert.id),
        layer=layer.value,
        slot=slot.value,
    )
    await dispatch_layer(db, layer, recipients)
    return True


async def escalate_to_layer(
    db: AsyncSession,
    alert: AlertSnapshot,
    target: AlarmLayer,
    now: datetime,
    recipients: EscalationRecipients,
) -> bool:
    """Move an alert to ``target`` and dispatch that layer exactly once.

    The layer claim and the alert update commit together. If either
    fails nothing is recorded, and the next tick retries the transition.

    Returns:
        True if this call performed the transition and dispatch.
    """
    if await layer_already_entered(db, alert.id, target):
        # Handled by an earlier or concurrent tick; only catch up the row
        await apply_layer(db, alert, target, now)
        logger.debug(
            "Layer already dispatched for alert",
            alert_id=str(alert.id),
            layer=target.value,
        )
        return False

    if await claim_layer(db, alert.id, target, commit=False) is None:
        return False

    if not await apply_layer(db, alert, target, now, commit=False):
        await db.rollback()
        logger.info(
            "Alert acknowledged during escalation, dispatch cancelled",
            alert_id=str(alert.id),
            layer=target.value,
        )
        return False
    await db.commit()

    await dispatch_layer(db, target, recipients)
    logger.info(
        "Alert escalated",
        alert_id=str(alert.id),
        from_layer=alert.layer.value,
        to_layer=target.value,
    )
    return True


async def process_alert(
    db: AsyncSession,
    alert_id: uuid.UUID,
    now: datetime,
) -> AlertOutcome:
    """Run one tick's worth of escalation for a single alert."""
    alert = await load_alert_for_escalation(db, alert_id)
    if alert is None:
        return AlertOutcome(skipped=True)

    customer = _customer_of(alert)
    if customer is None:
        logger.warning("Alert has no customer, skipping", alert_id=str(alert_id))
        return AlertOutcome(skipped=True)

    try:
        slot = resolve_alert_slot(alert, customer)
    except TimeSettingsError as e:
        logger.warning(
            "Customer time settings unusable, skipping alert",
            alert_id=str(alert_id),
            customer_id=str(customer.id),
            error=str(e),
        )
        return AlertOutcome(skipped=True)

    overrides = LayerOverrides.from_config(customer.escalation_config)
    recipients = build_recipients(alert, customer)
    snapshot = AlertSnapshot.of(alert)

    outcome = AlertOutcome()
    outcome.entered = await enter_current_layer(
        db, snapshot, slot, overrides, now, recipients
    )

    # Alerts are created at LAYER_1; lift them to the slot's first enabled layer
    initial = initial_layer_for(slot, overrides)
    if snapshot.layer.number < initial.number:
        logger.info(
            "Escalating alert to initial layer",
            alert_id=str(alert_id),
            layer=initial.value,
            slot=slot.value,
        )
        outcome.transitioned = await escalate_to_layer(
            db, snapshot, initial, now, recipients
        )
        return outcome

    decision = determine_next_layer(snapshot, slot, overrides, now)
    if not decision.should_escalate:
        logger.debug(
            "No escalation needed",
            alert_id=str(alert_id),
            reason=decision.reason,
        )
        return outcome

    logger.info(
        "Escalating alert",
        alert_id=str(alert_id),
        layer=decision.target_layer.value,
        reason=decision.reason,
    )
    outcome.transitioned = await escalate_to_layer(
        db, snapshot, decision.target_layer, now, recipients
    )
    return outcome


async def run_escalation_tick(
    now: datetime | None = None,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> TickSummary:
    """Process every open alert once.

    Each alert runs in its own session; any error is logged and counted
    and the tick moves on to the next alert.

    Args:
        now: Tick instant (defaults to the current UTC time).
        session_maker: Session factory (defaults to the application's).

    Returns:
        TickSummary with per-tick counters.
    """
    now = as_utc(now) if now is not None else datetime.now(UTC)
    maker = session_maker or get_session_maker()
    summary = TickSummary()

    with escalation_context(tick_id=uuid.uuid4().hex[:12]):
        logger.info("Starting escalation tick", now=now.isoformat())

        try:
            async with maker() as db:
                alert_ids = await get_open_alert_ids(db)
        except SQLAlchemyError as e:
            logger.error("Could not load open alerts", error=str(e))
            summary.errors += 1
            return summary

        summary.alerts_checked = len(alert_ids)

        for alert_id in alert_ids:
            with escalation_context(alert_id=str(alert_id)):
                try:
                    async with maker() as db:
                        outcome = await process_alert(db, alert_id, now)
                    summary.record(outcome)
                except Exception:
                    logger.exception(
                        "Escalation failed for alert",
                        alert_id=str(alert_id),
                    )
                    summary.errors += 1

        logger.info("Escalation tick completed", **asdict(summary))

    return summary
