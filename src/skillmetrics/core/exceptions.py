from __future__ import annotations

from datetime import date
from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found with id: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateTransition(DomainError):
    """Raised when a pending update is no longer PENDING."""

    def __init__(self, update_id: int, current_status, action: str):
        status = getattr(current_status, "value", current_status)
        super().__init__(f"Cannot {action} skill update {update_id}: status is already {status}")
        self.update_id = update_id
        self.current_status = current_status
        self.action = action


class DuplicatePendingRequest(DomainError):
    status_code = 409


class DuplicateAssignment(DomainError):
    status_code = 409


class AllocationExceeded(DomainError):
    """Raised when a user's combined allocation would go over the cap."""

    status_code = 409

    def __init__(self, *, user_id: int, current_total: int, requested: int, limit: int, as_of: Optional[date] = None):
        self.user_id = user_id
        self.current_total = current_total
        self.requested = requested
        self.resulting_total = current_total + requested
        self.limit = limit
        self.as_of = as_of
        when = f" on {as_of.isoformat()}" if as_of else ""
        super().__init__(
            f"Allocation exceeds {limit}% for user {user_id}{when}: "
            f"current total {current_total}% + requested {requested}% = {self.resulting_total}%"
        )


class NotificationDispatchFailure(DomainError):
    """Labels a failed notification delivery in logs. Never raised to workflow callers."""
