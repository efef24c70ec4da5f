"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA module.

These are the database representations of escalation records.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from civictrack.infrastructure.database import Base, UTCDateTime


class SLAAlertModel(Base):
    """
    Database model for an SLA escalation.

    Maps to the 'sla_alerts' table. One row per (ticket, level), so a
    ticket is escalated at most once as critical and once as overdue.
    """
    __tablename__ = "sla_alerts"
    __table_args__ = (UniqueConstraint("ticket_id", "sla_status", name="uq_alert_ticket_level"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    ticket_id: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    sla_status: Mapped[str] = mapped_column(String(16), nullable=False)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # External notification tracking
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
