"""Customer, location and cold cell models.

Only the fields the escalation engine reads are modelled here; the
rest of the customer record is managed by the CRUD side of the system.
"""

import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.base import Base, TimestampMixin


class Customer(Base, TimestampMixin):
    """A customer owning one or more locations with cold cells.

    Opening, closing and night-start times are "HH:MM" strings in the
    deployment time zone and drive time slot resolution.
    """

    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    company_name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Legacy single backup number, used when no BackupContact rows exist
    backup_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    opening_time: Mapped[str] = mapped_column(
        String(5), nullable=False, default="07:00"
    )
    closing_time: Mapped[str] = mapped_column(
        String(5), nullable=False, default="17:00"
    )
    night_start: Mapped[str] = mapped_column(
        String(5), nullable=False, default="23:00"
    )

    linked_technician_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("technicians.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    linked_technician = relationship("Technician", back_populates="customers")
    backup_contacts = relationship(
        "BackupContact",
        back_populates="customer",
        order_by="BackupContact.position",
    )
    escalation_config = relationship(
        "EscalationConfig",
        back_populates="customer",
        uselist=False,
    )
    locations = relationship("Location", back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer(company={self.company_name!r})>"


class Location(Base, TimestampMixin):
    """A site belonging to a customer."""

    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    customer = relationship("Customer", back_populates="locations")
    cold_cells = relationship("ColdCell", back_populates="location")


class ColdCell(Base, TimestampMixin):
    """A monitored refrigerated room or freezer."""

    __tablename__ = "cold_cells"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    location = relationship("Location", back_populates="cold_cells")
    alerts = relationship("Alert", back_populates="cold_cell")

    def __repr__(self) -> str:
        return f"<ColdCell(name={self.name!r})>"
