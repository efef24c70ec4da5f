"""
SLA Value Objects
==================

Immutable value objects and pure calculators for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from civictrack.config import (
    Category, Criticality, SLAStatus, TicketStatus,
    SLA_TRACKED_STATUSES, VALID_CRITICALITIES,
)
from civictrack.core import ValidationException


DEFAULT_CRITICAL_KEYWORDS = [
    "emergency", "urgent", "danger", "critical",
    "immediate", "burst", "overflow", "accident",
]
DEFAULT_HIGH_KEYWORDS = [
    "major", "serious", "important", "significant", "blockage", "leakage",
]
DEFAULT_ESSENTIAL_CATEGORIES = ["water-supply", "electricity", "sewage"]
DEFAULT_DEADLINES = {
    "critical": {"hours": 6},
    "high": {"hours": 24},
    "medium": {"days": 3},
    "low": {"days": 7},
}

OVERDUE_SCORE = 1000.0


class SLAPolicy(BaseModel):
    """
    SLA policy loaded from YAML.

    Holds the classifier keyword sets, the deadline offset for each
    criticality tier and the live-status thresholds. Changing the policy
    only affects tickets created afterwards.
    """
    critical_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CRITICAL_KEYWORDS),
        description="Description keywords that force the critical tier"
    )
    high_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_HIGH_KEYWORDS),
        description="Description keywords that force the high tier"
    )
    essential_categories: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ESSENTIAL_CATEGORIES),
        description="Categories that are at least medium"
    )
    deadlines: Dict[str, Dict[str, int]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_DEADLINES.items()},
        description="timedelta keyword arguments per criticality tier"
    )
    critical_threshold_hours: float = Field(default=2.0, gt=0)
    warning_threshold_hours: float = Field(default=24.0, gt=0)
    notification_feed_cap: int = Field(default=50, ge=1)
    upvote_milestones: List[int] = Field(default_factory=lambda: [15])

    @field_validator("critical_keywords", "high_keywords")
    @classmethod
    def normalize_keywords(cls, v: List[str]) -> List[str]:
        """Keywords are matched against a lower-cased description."""
        return [k.strip().lower() for k in v if k and k.strip()]

    @field_validator("deadlines")
    @classmethod
    def validate_deadlines(cls, v: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """Fill missing tiers with defaults and reject unusable offsets."""
        for tier in VALID_CRITICALITIES:
            if tier not in v:
                v[tier] = dict(DEFAULT_DEADLINES[tier])
        for tier, offset in v.items():
            if tier not in VALID_CRITICALITIES:
                raise ValueError(f"unknown criticality tier in deadlines: {tier}")
            try:
                delta = timedelta(**offset)
            except TypeError as e:
                raise ValueError(f"invalid deadline offset for {tier}: {offset}") from e
            if delta <= timedelta(0):
                raise ValueError(f"deadline offset for {tier} must be positive")
        return v

    def deadline_offset(self, criticality: Criticality) -> timedelta:
        """Get the resolution window for a tier."""
        return timedelta(**self.deadlines[Criticality(criticality).value])


class CriticalityClassifier:
    """
    Derives an urgency tier from category and free-text description.

    First match wins: critical keyword, high keyword, essential category,
    otherwise low.
    """

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    def classify(self, category: Category | str, description: Optional[str]) -> Criticality:
        try:
            category = Category(category)
        except ValueError as e:
            raise ValidationException(
                f"Unknown category: {category}",
                {"category": str(category)}
            ) from e

        text = (description or "").lower()

        if any(keyword in text for keyword in self._policy.critical_keywords):
            return Criticality.CRITICAL
        if any(keyword in text for keyword in self._policy.high_keywords):
            return Criticality.HIGH
        if category.value in self._policy.essential_categories:
            return Criticality.MEDIUM
        return Criticality.LOW


@dataclass(frozen=True)
class SLAReading:
    """Live SLA urgency for a ticket at a given instant. Never persisted."""
    status: SLAStatus
    score: float
    hours_left: Optional[float]
    deadline: Optional[datetime]

    @property
    def is_overdue(self) -> bool:
        return self.status == SLAStatus.OVERDUE

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "status": self.status.value,
            "score": self.score,
            "hours_left": self.hours_left,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all deadline and urgency arithmetic in one place.
    """

    @staticmethod
    def calculate_deadline(
        criticality: Criticality | str,
        created_at: datetime,
        policy: Optional[SLAPolicy] = None
    ) -> datetime:
        """
        Calculate the resolution deadline for a new ticket.

        Args:
            criticality: Tier assigned by the classifier
            created_at: Ticket creation instant (UTC, tz-aware)
            policy: SLA policy; defaults apply when omitted

        Returns:
            The absolute SLA deadline
        """
        try:
            tier = Criticality(criticality)
        except ValueError as e:
            raise ValidationException(
                f"Unknown criticality: {criticality}",
                {"criticality": str(criticality)}
            ) from e
        if created_at.tzinfo is None:
            raise ValidationException("created_at must be timezone-aware")

        policy = policy or SLAPolicy()
        return created_at + policy.deadline_offset(tier)

    @staticmethod
    def evaluate(
        sla_deadline: Optional[datetime],
        status: TicketStatus | str,
        now: datetime,
        policy: Optional[SLAPolicy] = None
    ) -> SLAReading:
        """
        Derive live SLA status and urgency score.

        Scores are bucketed so a plain descending sort yields overdue
        first, then the nearest critical deadlines.

        Args:
            sla_deadline: Stored deadline
            status: Current ticket status
            now: Evaluation instant

        Returns:
            SLAReading
        """
        if sla_deadline is None or TicketStatus(status) not in SLA_TRACKED_STATUSES:
            return SLAReading(SLAStatus.NORMAL, 0.0, None, sla_deadline)

        policy = policy or SLAPolicy()
        time_left = (sla_deadline - now).total_seconds()
        hours_left = time_left / 3600

        if time_left <= 0:
            return SLAReading(SLAStatus.OVERDUE, OVERDUE_SCORE, hours_left, sla_deadline)
        if hours_left <= policy.critical_threshold_hours:
            score = 100 + max(0.0, 100 - hours_left)
            return SLAReading(SLAStatus.CRITICAL, score, hours_left, sla_deadline)
        if hours_left <= policy.warning_threshold_hours:
            score = 50 + max(0.0, 50 - hours_left / 2)
            return SLAReading(SLAStatus.WARNING, score, hours_left, sla_deadline)
        score = max(0.0, 25 - hours_left / 24)
        return SLAReading(SLAStatus.NORMAL, score, hours_left, sla_deadline)

