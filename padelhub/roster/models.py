"""Data models for the roster blueprint."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from padelhub.core.types import FirestoreDocument


class RegistrationStatus(str, Enum):
    """Lifecycle of a single registration."""

    CONFIRMED = "CONFIRMED"
    WAITLIST = "WAITLIST"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class PartnerStatus(str, Enum):
    """State of the secondary slot on a registration."""

    NONE = "NONE"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DENIED = "DENIED"


class TeamStatus(str, Enum):
    """Lifecycle of a pairing."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    WAITLIST = "WAITLIST"


class NotificationType(str, Enum):
    """Notification type tags consumed by the notification feed."""

    PARTNER_INVITE = "partner_invite"
    PARTNER_ACCEPTED = "partner_accepted"
    PARTNER_DECLINED = "partner_declined"
    PARTNER_JOINED_OTHER = "partner_joined_other"
    INVITE_CANCELLED = "invite_cancelled"
    PARTNER_LEFT = "partner_left"
    TEAM_WITHDRAWN = "team_withdrawn"
    WAITLIST_PROMOTED = "waitlist_promoted"


LIVE_REGISTRATION_STATUSES = [
    RegistrationStatus.CONFIRMED.value,
    RegistrationStatus.WAITLIST.value,
    RegistrationStatus.PENDING.value,
]
SEAT_STATUSES = (RegistrationStatus.CONFIRMED.value, RegistrationStatus.WAITLIST.value)
FINAL_TEAM_STATUSES = (TeamStatus.CONFIRMED.value, TeamStatus.WAITLIST.value)


class Event(FirestoreDocument, total=False):
    """An event document in Firestore."""

    eventId: str
    eventName: str
    slotsAvailable: int
    unitType: str
    registrationsCount: int
    waitlistCount: int
    dateTime: Any
    status: str
    rosterVersion: int


class Registration(FirestoreDocument, total=False):
    """A registration document in Firestore."""

    registrationId: str
    eventId: str
    playerId: str
    player2Id: Optional[str]
    status: str
    partnerStatus: str
    teamId: Optional[str]
    lookingForPartner: bool
    waitlistPosition: int
    isPrimary: bool
    holdsSeat: bool
    registeredAt: Any
    waitlistedAt: Any
    fullNameP1: str
    fullNameP2: Optional[str]


class Team(FirestoreDocument, total=False):
    """A team document in Firestore."""

    teamId: str
    eventId: str
    player1Id: str
    player2Id: str
    player1Confirmed: bool
    player2Confirmed: bool
    status: str
    fullNameP1: str
    fullNameP2: str
    invite: str


class Notification(FirestoreDocument, total=False):
    """A notification document in Firestore."""

    notificationId: str
    userId: str
    type: str
    title: str
    message: str
    eventId: str
    teamId: Optional[str]
    fromUserId: Optional[str]
    read: bool


@dataclass(frozen=True)
class Doc:
    """A document id paired with the data read for it."""

    id: str
    data: dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        """Return a field of the document."""
        return self.data.get(key, default)

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> Optional[Doc]:
        """Build a Doc from a snapshot, or None if it does not exist."""
        if snapshot is None or not snapshot.exists:
            return None
        return cls(id=snapshot.id, data=snapshot.to_dict() or {})


@dataclass(frozen=True)
class Counters:
    """The occupancy counters of an event."""

    registrations_count: int
    waitlist_count: int
    slots_available: int

    @classmethod
    def from_event(cls, event_data: Event) -> Counters:
        """Read the counters from an event document, defaulting to zero."""
        return cls(
            registrations_count=int(event_data.get("registrationsCount") or 0),
            waitlist_count=int(event_data.get("waitlistCount") or 0),
            slots_available=int(event_data.get("slotsAvailable") or 0),
        )

    def as_update(self) -> dict[str, int]:
        """Return the counters as an event update payload."""
        return {
            "registrationsCount": self.registrations_count,
            "waitlistCount": self.waitlist_count,
        }

    @property
    def open_seats(self) -> int:
        return max(self.slots_available - self.registrations_count, 0)


@dataclass
class RegistrationResult:
    """Result of registering for an event."""

    registration_id: str
    status: str
    waitlist_position: int = 0
    holds_seat: bool = True


@dataclass
class InviteResult:
    """Result of sending a partner invite."""

    team_id: str
    registration_id: str
    mode: str
    target_user_id: str


@dataclass
class AcceptResult:
    """Result of accepting a partner invite."""

    team_id: str
    status: Optional[str]
    changed: bool = True
    dissolved_team_ids: list[str] = field(default_factory=list)
    promoted_registration_ids: list[str] = field(default_factory=list)


@dataclass
class DissolveResult:
    """Result of declining, cancelling or leaving a team."""

    team_id: str
    action: str
    survivor_id: Optional[str] = None
    disposition: Optional[str] = None
    changed: bool = True
    promoted_registration_ids: list[str] = field(default_factory=list)


@dataclass
class WithdrawResult:
    """Result of withdrawing a registration."""

    registration_id: str
    released_status: Optional[str] = None
    changed: bool = True
    promoted_registration_ids: list[str] = field(default_factory=list)


def team_flags_consistent(team: Team) -> bool:
    """Check the confirmation flags against the team status.

    A finalized team must have both players confirmed; a pending team must
    still be waiting on at least one of them.
    """
    both = bool(team.get("player1Confirmed")) and bool(team.get("player2Confirmed"))
    if team.get("status") in FINAL_TEAM_STATUSES:
        return both
    return not both


def holds_seat(registration: Registration) -> bool:
    """Return True if the registration occupies capacity on its event."""
    return bool(registration.get("holdsSeat")) and (
        registration.get("status") in SEAT_STATUSES
    )


def is_open_seat(registration: Registration) -> bool:
    """Return True if the registration is unpaired and looking for a partner."""
    return (
        registration.get("status") in LIVE_REGISTRATION_STATUSES
        and bool(registration.get("lookingForPartner"))
        and not registration.get("teamId")
    )


def other_member(team: Team, user_id: str) -> Optional[str]:
    """Return the teammate of user_id, or None if user_id is not on the team."""
    if team.get("player1Id") == user_id:
        return team.get("player2Id")
    if team.get("player2Id") == user_id:
        return team.get("player1Id")
    return None


def confirmation_field(team: Team, user_id: str) -> Optional[str]:
    """Return the name of user_id's confirmation flag on the team."""
    if team.get("player1Id") == user_id:
        return "player1Confirmed"
    if team.get("player2Id") == user_id:
        return "player2Confirmed"
    return None
