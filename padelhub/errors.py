"""Custom exception classes for the application."""

from __future__ import annotations

from enum import Enum


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class RejectReason(str, Enum):
    """Reason codes for rejected roster operations."""

    SELF_INVITE = "self_invite"
    NOT_TEAM_EVENT = "not_team_event"
    EVENT_CLOSED = "event_closed"
    ALREADY_REGISTERED = "already_registered"
    ALREADY_PAIRED = "already_paired"
    PARTNER_UNAVAILABLE = "partner_unavailable"
    DUPLICATE_INVITE = "duplicate_invite"
    NOT_TEAM_MEMBER = "not_team_member"
    NOTHING_TO_ACCEPT = "nothing_to_accept"
    NOTHING_TO_DECLINE = "nothing_to_decline"
    NOTHING_TO_CANCEL = "nothing_to_cancel"
    NOT_REGISTRATION_OWNER = "not_registration_owner"
    REGISTRATION_MISSING = "registration_missing"


REJECT_MESSAGES = {
    RejectReason.SELF_INVITE: "You cannot invite yourself.",
    RejectReason.NOT_TEAM_EVENT: "This event does not take team registrations.",
    RejectReason.EVENT_CLOSED: "This event is no longer open for registration.",
    RejectReason.ALREADY_REGISTERED: "You are already registered for this event.",
    RejectReason.ALREADY_PAIRED: "You are already on a team for this event.",
    RejectReason.PARTNER_UNAVAILABLE: "Your partner is already registered in this event.",
    RejectReason.DUPLICATE_INVITE: "You already have a pending invite with this player.",
    RejectReason.NOT_TEAM_MEMBER: "You are not a member of this team.",
    RejectReason.NOTHING_TO_ACCEPT: "There is no pending invite for you on this team.",
    RejectReason.NOTHING_TO_DECLINE: "There is no pending invite for you to decline.",
    RejectReason.NOTHING_TO_CANCEL: "There is no pending invite for you to cancel.",
    RejectReason.NOT_REGISTRATION_OWNER: "Only the registered player can withdraw this registration.",
    RejectReason.REGISTRATION_MISSING: "No registration was found for this team.",
}


class PreconditionError(AppError):
    """Raised when a roster operation is not allowed in the current state."""

    def __init__(self, reason, message=None):
        """Initialize the error."""
        reason = RejectReason(reason)
        status_code = 400 if reason is RejectReason.SELF_INVITE else 409
        super().__init__(message or REJECT_MESSAGES[reason], status_code)
        self.reason = reason


class ConcurrencyConflictError(AppError):
    """Raised when a roster operation kept colliding with concurrent updates."""

    def __init__(self, operation, attempts):
        """Initialize the error."""
        super().__init__(
            "This event was updated by someone else at the same time. "
            "Please try again.",
            409,
        )
        self.operation = operation
        self.attempts = attempts


class StaleReadError(Exception):
    """Raised inside a commit when pre-fetched data no longer holds."""
