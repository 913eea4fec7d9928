"""Layer policy table.

Decides which escalation layers are enabled in each time slot, and at
which layer a new alert starts.

Default policy:

    Slot          Layer1  Layer2  Layer3
    OPEN_HOURS    on      on      on
    AFTER_HOURS   off     on      on
    NIGHT         off     off     on

A customer override is sparse: for each slot, any flag left unset falls
back to the table above. Set flags win, so a customer can also turn a
normally-off layer back on.
"""

from dataclasses import dataclass
from datetime import datetime

from coldchain.models.alert import AlarmLayer, TimeSlot
from coldchain.services.time_slot import CustomerTimeSettings, resolve_time_slot

LAYER_ORDER = (AlarmLayer.LAYER_1, AlarmLayer.LAYER_2, AlarmLayer.LAYER_3)


@dataclass(frozen=True)
class LayerFlags:
    """Enable flags for the three layers within one slot. None = default."""

    layer1: bool | None = None
    layer2: bool | None = None
    layer3: bool | None = None

    def get(self, layer: AlarmLayer) -> bool | None:
        return getattr(self, f"layer{layer.number}")


@dataclass(frozen=True)
class LayerOverrides:
    """Per-slot overrides for one customer. None = no override for the slot."""

    open_hours: LayerFlags | None = None
    after_hours: LayerFlags | None = None
    night: LayerFlags | None = None

    def for_slot(self, slot: TimeSlot) -> LayerFlags | None:
        return getattr(self, slot.value)

    @classmethod
    def from_config(cls, config) -> "LayerOverrides | None":
        """Build overrides from an EscalationConfig row (or None)."""
        if config is None:
            return None

        def flags(prefix: str) -> LayerFlags | None:
            values = [getattr(config, f"{prefix}_layer{n}") for n in (1, 2, 3)]
            if all(v is None for v in values):
                return None
            return LayerFlags(*values)

        return cls(
            open_hours=flags("open_hours"),
            after_hours=flags("after_hours"),
            night=flags("night"),
        )


DEFAULT_POLICY: dict[TimeSlot, dict[AlarmLayer, bool]] = {
    TimeSlot.OPEN_HOURS: {
        AlarmLayer.LAYER_1: True,
        AlarmLayer.LAYER_2: True,
        AlarmLayer.LAYER_3: True,
    },
    TimeSlot.AFTER_HOURS: {
        AlarmLayer.LAYER_1: False,
        AlarmLayer.LAYER_2: True,
        AlarmLayer.LAYER_3: True,
    },
    TimeSlot.NIGHT: {
        AlarmLayer.LAYER_1: False,
        AlarmLayer.LAYER_2: False,
        AlarmLayer.LAYER_3: True,
    },
}


def is_layer_enabled(
    slot: TimeSlot,
    layer: AlarmLayer,
    overrides: LayerOverrides | None = None,
) -> bool:
    """Check whether a layer is enabled for a slot."""
    if overrides is not None:
        flags = overrides.for_slot(slot)
        if flags is not None:
            value = flags.get(layer)
            if value is not None:
                return value
    return DEFAULT_POLICY[slot][layer]


def initial_layer_for(
    slot: TimeSlot,
    overrides: LayerOverrides | None = None,
) -> AlarmLayer:
    """First enabled layer in order 1 -> 2 -> 3.

    Falls back to LAYER_3 when a customer has disabled every layer for
    the slot, so an alert never goes completely unnoticed.
    """
    for layer in LAYER_ORDER:
        if is_layer_enabled(slot, layer, overrides):
            return layer
    return AlarmLayer.LAYER_3


def get_initial_escalation_state(
    customer,
    now: datetime,
    overrides: LayerOverrides | None = None,
) -> tuple[TimeSlot, AlarmLayer]:
    """Time slot and starting layer for an alert created at ``now``.

    Used by the alert-creation path so the stored ``time_slot`` matches
    what the engine would recompute for a legacy row.
    """
    slot = resolve_time_slot(CustomerTimeSettings.from_customer(customer), now)
    return slot, initial_layer_for(slot, overrides)
