"""
Ticket Infrastructure Models
=============================

SQLAlchemy ORM models for the tickets module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import (
    Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from civictrack.config import Category, Criticality, FeedbackStatus, TicketStatus
from civictrack.infrastructure.database import Base, UTCDateTime
from civictrack.tickets.domain import CitizenFeedback, Location, Resolution, Ticket


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. `version` guards every status write;
    `upvotes` is only ever changed by an in-database increment.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    author_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # Report content
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Location
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ward: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # SLA attributes (fixed at creation)
    criticality: Mapped[str] = mapped_column(String(16), nullable=False)
    sla_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    feedback_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def to_domain(
        self,
        resolutions: Iterable["ResolutionModel"] = (),
        feedback: Iterable["FeedbackModel"] = ()
    ) -> Ticket:
        """Build the entity; history rows must already be in position order."""
        return Ticket(
            id=self.id,
            author_id=self.author_id,
            category=Category(self.category),
            description=self.description,
            location=Location(lat=self.lat, lng=self.lng, ward=self.ward, address=self.address),
            image_url=self.image_url,
            criticality=Criticality(self.criticality),
            sla_deadline=self.sla_deadline,
            status=TicketStatus(self.status),
            assigned_to=self.assigned_to,
            feedback_status=FeedbackStatus(self.feedback_status) if self.feedback_status else None,
            upvotes=self.upvotes,
            resolutions=[r.to_domain() for r in resolutions],
            feedback=[f.to_domain() for f in feedback],
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketModel":
        return cls(
            id=ticket.id,
            author_id=ticket.author_id,
            category=ticket.category.value,
            description=ticket.description,
            image_url=ticket.image_url,
            lat=ticket.location.lat,
            lng=ticket.location.lng,
            ward=ticket.location.ward,
            address=ticket.location.address,
            criticality=ticket.criticality.value,
            sla_deadline=ticket.sla_deadline,
            status=ticket.status.value,
            assigned_to=ticket.assigned_to,
            feedback_status=ticket.feedback_status.value if ticket.feedback_status else None,
            upvotes=ticket.upvotes,
            version=ticket.version,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class ResolutionModel(Base):
    """
    Append-only resolution history.

    Maps to the 'ticket_resolutions' table.
    """
    __tablename__ = "ticket_resolutions"
    __table_args__ = (UniqueConstraint("ticket_id", "position", name="uq_resolution_position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id"), index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    proof_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[str] = mapped_column(String(64), nullable=False)
    resolved_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def to_domain(self) -> Resolution:
        return Resolution(
            notes=self.notes,
            proof_image_url=self.proof_image_url,
            resolved_by=self.resolved_by,
            resolved_at=self.resolved_at,
        )


class FeedbackModel(Base):
    """
    Append-only citizen feedback history.

    Maps to the 'ticket_feedback' table.
    """
    __tablename__ = "ticket_feedback"
    __table_args__ = (UniqueConstraint("ticket_id", "position", name="uq_feedback_position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id"), index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    citizen_id: Mapped[str] = mapped_column(String(64), nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def to_domain(self) -> CitizenFeedback:
        return CitizenFeedback(
            citizen_id=self.citizen_id,
            approved=self.approved,
            comments=self.comments,
            submitted_at=self.submitted_at,
        )


class UpvoteModel(Base):
    """
    One row per (ticket, user) vote.

    The composite primary key is what makes a second vote fail.
    """
    __tablename__ = "ticket_upvotes"

    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
