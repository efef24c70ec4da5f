"""
Ticket Domain Entities
=======================

Pure Python domain entities for the civic ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from civictrack.config import (
    Category, Criticality, TicketStatus, FeedbackStatus, OPEN_STATUSES
)


@dataclass(frozen=True)
class Location:
    """Where the issue was reported. Every field is optional."""
    lat: Optional[float] = None
    lng: Optional[float] = None
    ward: Optional[str] = None
    address: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class Resolution:
    """An authority's proposal that the issue is fixed."""
    notes: str
    proof_image_url: Optional[str]
    resolved_by: str
    resolved_at: datetime


@dataclass(frozen=True)
class CitizenFeedback:
    """The ticket owner's verdict on a proposed resolution."""
    citizen_id: str
    approved: bool
    comments: str
    submitted_at: datetime


@dataclass(frozen=True)
class TicketTransition:
    """A committed status change, handed to the notification dispatcher."""
    ticket_id: str
    previous_status: Optional[TicketStatus]
    new_status: TicketStatus
    actor_id: str
    occurred_at: datetime


@dataclass
class Ticket:
    """
    Ticket entity representing a citizen's civic issue report.

    `criticality` and `sla_deadline` are fixed at creation. Resolution and
    feedback history are append-only.
    """

    # Core attributes
    id: str
    author_id: str
    category: Category
    description: str
    location: Location
    criticality: Criticality
    sla_deadline: datetime
    status: TicketStatus

    # Timestamps
    created_at: datetime
    updated_at: datetime

    image_url: Optional[str] = None
    assigned_to: Optional[str] = None
    feedback_status: Optional[FeedbackStatus] = None
    upvotes: int = 0
    resolutions: List[Resolution] = field(default_factory=list)
    feedback: List[CitizenFeedback] = field(default_factory=list)

    # Optimistic concurrency counter
    version: int = 0

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        if self.sla_deadline <= self.created_at:
            raise ValueError("sla_deadline must be after created_at")
        if self.upvotes < 0:
            raise ValueError("upvotes cannot be negative")

    @property
    def resolution(self) -> Optional[Resolution]:
        """Latest proposed resolution, if any."""
        return self.resolutions[-1] if self.resolutions else None

    @property
    def latest_feedback(self) -> Optional[CitizenFeedback]:
        return self.feedback[-1] if self.feedback else None

    @property
    def is_open(self) -> bool:
        """Check if ticket still needs authority attention or a verdict."""
        return self.status in OPEN_STATUSES

    def is_owned_by(self, user_id: str) -> bool:
        return self.author_id == user_id
