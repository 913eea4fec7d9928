"""Service technician model."""

import uuid

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.base import Base, TimestampMixin


class Technician(Base, TimestampMixin):
    """Technician linked to customers; notified from layer 1 onwards."""

    __tablename__ = "technicians"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    customers = relationship("Customer", back_populates="linked_technician")

    def __repr__(self) -> str:
        return f"<Technician(name={self.name!r})>"
