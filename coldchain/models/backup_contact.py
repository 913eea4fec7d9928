"""Backup contact model.

Secondary phone numbers for a customer. From layer 2 onwards every
backup contact is notified independently of the primary contact.
"""

import uuid

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldchain.models.base import Base, TimestampMixin


class BackupContact(Base, TimestampMixin):
    """Backup phone contact, ordered by position."""

    __tablename__ = "backup_contacts"

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

    name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    phone: Mapped[str] = mapped_column(String(50), nullable=False)

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    customer = relationship("Customer", back_populates="backup_contacts")

    def __repr__(self) -> str:
        return f"<BackupContact(name={self.name!r}, position={self.position})>"
