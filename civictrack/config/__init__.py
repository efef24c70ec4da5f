"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="civictrack", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/civictrack",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    db_pool_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for a pooled connection",
        gt=0
    )
    db_command_timeout: float = Field(
        default=15.0,
        description="Per-statement timeout in seconds (asyncpg only)",
        gt=0
    )

    # ========== SLA Policy ==========
    sla_policy_path: Path = Field(
        default=Path("sla_policy.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_sweep_interval: int = Field(
        default=300,
        description="Seconds between SLA sweeps (0 disables the sweep)",
        ge=0
    )

    # ========== User Directory ==========
    users_fixture_path: Path = Field(
        default=Path("fixtures/users.yaml"),
        description="YAML fixture with citizens and authorities loaded at startup"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for overdue escalations"
    )
    slack_channel: str = Field(
        default="#civic-escalations",
        description="Slack channel for SLA escalations"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Category(str, Enum):
    """Municipal categories a ticket can be filed against."""
    POTHOLE = "pothole"
    WATER_SUPPLY = "water-supply"
    DRAINAGE = "drainage"
    STREETLIGHT = "streetlight"
    GARBAGE_MANAGEMENT = "garbage-management"
    TRAFFIC = "traffic"
    NOISE_POLLUTION = "noise-pollution"
    ELECTRICITY = "electricity"
    SEWAGE = "sewage"
    OTHER = "other"


class Criticality(str, Enum):
    """Urgency tier assigned once at ticket creation."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    SUBMITTED = "submitted"
    IN_PROGRESS = "in-progress"
    PENDING_FEEDBACK = "pending_feedback"
    COMPLETED = "completed"
    REOPENED = "reopened"
    CLOSED = "closed"


class FeedbackStatus(str, Enum):
    """Citizen-verification sub-state."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SLAStatus(str, Enum):
    """Live SLA urgency, recomputed on every read."""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    OVERDUE = "overdue"


class NotificationType(str, Enum):
    """Notification kinds shown in a user's feed."""
    NEW_TICKET = "new_ticket"
    TICKET_UPDATE = "ticket_update"
    TICKET_UPVOTE = "ticket_upvote"
    USER_FEEDBACK = "user_feedback"
    RESOLUTION = "resolution"


class UserRole(str, Enum):
    """Roles known to the user directory."""
    CITIZEN = "citizen"
    AUTHORITY = "authority"


# ========== Lists for validation ==========

VALID_CATEGORIES = [c.value for c in Category]
VALID_CRITICALITIES = [c.value for c in Criticality]

# Statuses for which the SLA clock is running
SLA_TRACKED_STATUSES = (
    TicketStatus.SUBMITTED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.PENDING_FEEDBACK,
)
OPEN_STATUSES = (
    TicketStatus.SUBMITTED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.PENDING_FEEDBACK,
    TicketStatus.REOPENED,
)
CRITICALITY_ORDER = {
    Criticality.CRITICAL: 4,
    Criticality.HIGH: 3,
    Criticality.MEDIUM: 2,
    Criticality.LOW: 1,
}
