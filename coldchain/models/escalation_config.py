"""Per-customer escalation layer overrides.

Stores, for each time slot, which of the three layers are enabled.
Every flag is nullable: NULL means "use the default policy table",
True/False overrides it for that customer.
"""

import uuid

from sqlalchemy import Boolean, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.base import Base, TimestampMixin


class EscalationConfig(Base, TimestampMixin):
    """Customer-specific layer enable flags. One-to-one with Customer."""

    __tablename__ = "escalation_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    open_hours_layer1: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    open_hours_layer2: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    open_hours_layer3: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    after_hours_layer1: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    after_hours_layer2: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    after_hours_layer3: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    night_layer1: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    night_layer2: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    night_layer3: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    customer = relationship("Customer", back_populates="escalation_config")

    def __repr__(self) -> str:
        return f"<EscalationConfig(customer_id={self.customer_id})>"
