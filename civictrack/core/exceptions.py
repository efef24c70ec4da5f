"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ForbiddenException(DomainException):
    """Actor lacks the role or ownership the operation requires."""


class InvalidTransitionException(DomainException):
    """Requested status is not reachable from the ticket's current status."""

    def __init__(
        self,
        ticket_id: str,
        current_status: str,
        requested_status: str,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Ticket {ticket_id} cannot move from '{current_status}' to '{requested_status}'",
            details or {
                "ticket_id": ticket_id,
                "current_status": current_status,
                "requested_status": requested_status,
            }
        )


class ProofRequiredException(DomainException):
    """Proposing completion without a proof-of-resolution image."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(
            f"Proof of resolution image is required to complete ticket {ticket_id}",
            {"ticket_id": ticket_id}
        )


class NotAwaitingFeedbackException(DomainException):
    """Citizen feedback submitted while the ticket is not awaiting it."""

    def __init__(self, ticket_id: str, feedback_status: Optional[str]):
        self.ticket_id = ticket_id
        self.feedback_status = feedback_status
        super().__init__(
            f"Ticket {ticket_id} is not awaiting feedback",
            {"ticket_id": ticket_id, "feedback_status": feedback_status}
        )


class AlreadyUpvotedException(DomainException):
    """The user already upvoted this ticket."""

    def __init__(self, ticket_id: str, user_id: str):
        self.ticket_id = ticket_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} already upvoted ticket {ticket_id}",
            {"ticket_id": ticket_id, "user_id": user_id}
        )


class ConcurrentUpdateException(DomainException):
    """Another transition committed first; the caller may reload and retry."""

    def __init__(self, ticket_id: str, expected_version: int):
        self.ticket_id = ticket_id
        self.expected_version = expected_version
        super().__init__(
            f"Ticket {ticket_id} was modified concurrently",
            {"ticket_id": ticket_id, "expected_version": expected_version}
        )


class TransientStorageError(RepositoryException):
    """Retryable storage failure (timeout, dropped connection)."""

