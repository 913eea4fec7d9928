"""Create cold-chain escalation tables.

Revision ID: 001_escalation_tables
Revises:
Create Date: 2026-10-19

Creates the customer ownership chain (technicians, customers, locations,
cold cells, backup contacts), per-customer escalation overrides, alerts,
the append-only escalation log and the unique per-layer entry claims.
"""

import sqlalchemy as sa
from alembic import op

revision = "001_escalation_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


ALARM_LAYER = sa.Enum(
    "layer_1", "layer_2", "layer_3", name="alarmlayer", native_enum=False
)


def upgrade() -> None:
    op.create_table(
        "technicians",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("backup_phone", sa.String(50), nullable=True),
        sa.Column("opening_time", sa.String(5), nullable=False, server_default="07:00"),
        sa.Column("closing_time", sa.String(5), nullable=False, server_default="17:00"),
        sa.Column("night_start", sa.String(5), nullable=False, server_default="23:00"),
        sa.Column(
            "linked_technician_id",
            sa.Uuid(),
            sa.ForeignKey("technicians.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "customer_id",
            sa.Uuid(),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_locations_customer_id", "locations", ["customer_id"])

    op.create_table(
        "cold_cells",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "location_id",
            sa.Uuid(),
            sa.ForeignKey("locations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_cold_cells_location_id", "cold_cells", ["location_id"])

    op.create_table(
        "backup_contacts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "customer_id",
            sa.Uuid(),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index(
        "ix_backup_contacts_customer_id", "backup_contacts", ["customer_id"]
    )

    op.create_table(
        "escalation_configs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "customer_id",
            sa.Uuid(),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *[
            sa.Column(f"{slot}_layer{n}", sa.Boolean(), nullable=True)
            for slot in ("open_hours", "after_hours", "night")
            for n in (1, 2, 3)
        ],
        *_timestamps(),
    )
    op.create_index(
        "ix_escalation_configs_customer_id",
        "escalation_configs",
        ["customer_id"],
        unique=True,
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "cold_cell_id",
            sa.Uuid(),
            sa.ForeignKey("cold_cells.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "alert_type",
            sa.Enum(
                "high_temp",
                "low_temp",
                "power_loss",
                "door_open",
                "sensor_error",
                name="alerttype",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "active", "escalating", "resolved", name="alertstatus", native_enum=False
            ),
            nullable=False,
            server_default="active",
        ),
        sa.Column("layer", ALARM_LAYER, nullable=False, server_default="layer_1"),
        sa.Column(
            "time_slot",
            sa.Enum(
                "open_hours", "after_hours", "night", name="timeslot", native_enum=False
            ),
            nullable=True,
        ),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("threshold", sa.Float(), nullable=True),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("layer2_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("layer3_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by", sa.String(255), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
    )
    op.create_index("ix_alerts_cold_cell_id", "alerts", ["cold_cell_id"])
    op.create_index("ix_alerts_status", "alerts", ["status"])

    op.create_table(
        "escalation_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "alarm_id",
            sa.Uuid(),
            sa.ForeignKey("alerts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("layer", ALARM_LAYER, nullable=False),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column(
            "recipient_type",
            sa.Enum(
                "client", "technician", name="escalationrecipient", native_enum=False
            ),
            nullable=False,
        ),
        sa.Column(
            "channel",
            sa.Enum(
                "email", "sms", "push", "phone", name="escalationchannel", native_enum=False
            ),
            nullable=False,
        ),
        sa.Column("succeeded", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "sent_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("response_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_escalation_logs_alarm_id", "escalation_logs", ["alarm_id"])
    op.create_index(
        "ix_escalation_logs_alarm_layer",
        "escalation_logs",
        ["alarm_id", "layer"],
    )

    op.create_table(
        "escalation_layer_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "alarm_id",
            sa.Uuid(),
            sa.ForeignKey("alerts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("layer", ALARM_LAYER, nullable=False),
        sa.Column(
            "entered_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("dispatched", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint(
            "alarm_id", "layer", name="uq_escalation_layer_entries_alarm_layer"
        ),
    )
    op.create_index(
        "ix_escalation_layer_entries_alarm_id",
        "escalation_layer_entries",
        ["alarm_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_escalation_layer_entries_alarm_id")
    op.drop_table("escalation_layer_entries")
    op.drop_index("ix_escalation_logs_alarm_layer")
    op.drop_index("ix_escalation_logs_alarm_id")
    op.drop_table("escalation_logs")
    op.drop_index("ix_alerts_status")
    op.drop_index("ix_alerts_cold_cell_id")
    op.drop_table("alerts")
    op.drop_index("ix_escalation_configs_customer_id")
    op.drop_table("escalation_configs")
    op.drop_index("ix_backup_contacts_customer_id")
    op.drop_table("backup_contacts")
    op.drop_index("ix_cold_cells_location_id")
    op.drop_table("cold_cells")
    op.drop_index("ix_locations_customer_id")
    op.drop_table("locations")
    op.drop_table("customers")
    op.drop_table("technicians")
