"""Classification of partner invites and team dissolutions.

Every roster operation that pairs or unpairs players first reads the state of
both players for the event (their footprints), then classifies the situation
into one of a small set of modes. The classification is computed once from the
pre-fetched reads and handed, unchanged, to the commit phase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from padelhub.errors import PreconditionError, RejectReason

from .models import (
    FINAL_TEAM_STATUSES,
    Doc,
    PartnerStatus,
    RegistrationStatus,
    TeamStatus,
    confirmation_field,
    holds_seat,
    is_open_seat,
    other_member,
)


class InviteMode(str, Enum):
    """How an invite attaches to the existing registrations of the event."""

    MERGE_P1 = "MERGE_P1"
    FILL_P2 = "FILL_P2"
    MERGE_P2 = "MERGE_P2"
    FRESH = "FRESH"


class DissolveAction(str, Enum):
    """What the actor asked for when breaking up a team."""

    DECLINE = "DECLINE"
    LEAVE = "LEAVE"
    CANCEL = "CANCEL"


class SeatDisposition(str, Enum):
    """What happens to the shared registration when a team is deleted."""

    REVERT_TO_OWNER = "REVERT_TO_OWNER"
    CANCEL_SHARED = "CANCEL_SHARED"
    HAND_OVER = "HAND_OVER"
    DELETE_ONLY = "DELETE_ONLY"
    PROMOTE_SURVIVOR = "PROMOTE_SURVIVOR"
    RELEASE_WAITLIST = "RELEASE_WAITLIST"


@dataclass(frozen=True)
class Footprint:
    """Everything one player has going on in one event."""

    user_id: str
    primary: tuple[Doc, ...] = ()
    secondary: tuple[Doc, ...] = ()
    teams: tuple[Doc, ...] = ()

    def finalized_teams(self, exclude: Optional[str] = None) -> list[Doc]:
        return [
            t
            for t in self.teams
            if t.id != exclude and t.get("status") in FINAL_TEAM_STATUSES
        ]

    def pending_teams(self, exclude: Optional[str] = None) -> list[Doc]:
        return [
            t
            for t in self.teams
            if t.id != exclude and t.get("status") == TeamStatus.PENDING.value
        ]

    def open_seat(self) -> Optional[Doc]:
        """Return the player's own registration that is looking for a partner."""
        seats = [r for r in self.primary if is_open_seat(r.data)]
        # A seat that already counts toward capacity is the better one to pair on
        seats.sort(key=lambda r: not holds_seat(r.data))
        return seats[0] if seats else None

    def is_paired(self) -> bool:
        """Return True if the player already completed a pairing in this event."""
        if self.finalized_teams():
            return True
        return any(
            r.get("partnerStatus") == PartnerStatus.CONFIRMED.value
            for r in self.primary + self.secondary
        )

    def pending_team_with(self, other_id: str) -> Optional[Doc]:
        for team in self.pending_teams():
            if other_member(team.data, self.user_id) == other_id:
                return team
        return None

    def registrations(self) -> list[Doc]:
        """Return the player's registrations, own ones first, without duplicates."""
        seen: dict[str, Doc] = {}
        for reg in self.primary + self.secondary:
            seen.setdefault(reg.id, reg)
        return list(seen.values())


@dataclass(frozen=True)
class InvitePlan:
    """An invite classified against the footprints of both players."""

    mode: InviteMode
    inviter_id: str
    invitee_id: str
    registration: Optional[Doc] = None

    @property
    def target_id(self) -> str:
        """The player whose confirmation completes the pairing."""
        return self.invitee_id

    def still_holds(self, current: Optional[Doc]) -> bool:
        """Check a freshly read copy of the reused registration."""
        if self.registration is None:
            return True
        if current is None or not is_open_seat(current.data):
            return False
        if self.mode is InviteMode.MERGE_P1:
            return current.get("playerId") == self.invitee_id
        if self.mode is InviteMode.FILL_P2:
            return current.get("playerId") == self.inviter_id
        return current.get("player2Id") == self.invitee_id


@dataclass(frozen=True)
class DissolvePlan:
    """A dissolution classified against the team and its registration."""

    team: Doc
    actor_id: str
    survivor_id: Optional[str]
    requested: DissolveAction
    action: DissolveAction
    disposition: SeatDisposition
    registration: Optional[Doc] = None
    survivor_seat: Optional[Doc] = None

    @property
    def partner_status(self) -> str:
        if self.action is DissolveAction.DECLINE:
            return PartnerStatus.DENIED.value
        return PartnerStatus.NONE.value

    @property
    def frees_confirmed_seat(self) -> bool:
        """True when the dissolution leaves a confirmed seat with nobody in it."""
        return (
            self.disposition is SeatDisposition.CANCEL_SHARED
            and self.registration is not None
            and holds_seat(self.registration.data)
            and self.registration.get("status") == RegistrationStatus.CONFIRMED.value
        )


@dataclass(frozen=True)
class Orphan:
    """A pending team invalidated because one of its players paired elsewhere."""

    team: Doc
    member_id: str
    third_party_id: Optional[str]
    registrations: tuple[Doc, ...] = field(default_factory=tuple)


def classify_invite(inviter: Footprint, invitee: Footprint) -> InvitePlan:
    """Decide how an invite from one player to another attaches to the event.

    Raises PreconditionError when the invite is not allowed at all.
    """
    if inviter.user_id == invitee.user_id:
        raise PreconditionError(RejectReason.SELF_INVITE)
    if inviter.is_paired():
        raise PreconditionError(RejectReason.ALREADY_PAIRED)
    if inviter.pending_team_with(invitee.user_id) or invitee.pending_team_with(
        inviter.user_id
    ):
        raise PreconditionError(RejectReason.DUPLICATE_INVITE)
    if invitee.is_paired():
        raise PreconditionError(RejectReason.PARTNER_UNAVAILABLE)

    seat = invitee.open_seat()
    if seat is not None:
        return InvitePlan(InviteMode.MERGE_P1, inviter.user_id, invitee.user_id, seat)

    seat = inviter.open_seat()
    if seat is not None:
        return InvitePlan(InviteMode.FILL_P2, inviter.user_id, invitee.user_id, seat)

    for reg in invitee.secondary:
        if is_open_seat(reg.data) and reg.get("playerId") not in (
            inviter.user_id,
            invitee.user_id,
        ):
            return InvitePlan(
                InviteMode.MERGE_P2, inviter.user_id, invitee.user_id, reg
            )

    return InvitePlan(InviteMode.FRESH, inviter.user_id, invitee.user_id)


def classify_dissolution(
    team: Doc,
    actor_id: str,
    requested: DissolveAction,
    registration: Optional[Doc],
    survivor: Optional[Footprint],
) -> DissolvePlan:
    """Decide what a decline, cancel or leave does to the team's seat."""
    flag = confirmation_field(team.data, actor_id)
    if flag is None:
        raise PreconditionError(RejectReason.NOT_TEAM_MEMBER)
    survivor_id = other_member(team.data, actor_id)
    status = team.get("status")

    def plan(action, disposition, survivor_seat=None):
        return DissolvePlan(
            team=team,
            actor_id=actor_id,
            survivor_id=survivor_id,
            requested=requested,
            action=action,
            disposition=disposition,
            registration=registration,
            survivor_seat=survivor_seat,
        )

    if status in FINAL_TEAM_STATUSES:
        if requested is DissolveAction.DECLINE:
            raise PreconditionError(RejectReason.NOTHING_TO_DECLINE)
        if requested is DissolveAction.CANCEL:
            raise PreconditionError(RejectReason.NOTHING_TO_CANCEL)
        if registration is None:
            return plan(DissolveAction.LEAVE, SeatDisposition.DELETE_ONLY)
        if status == TeamStatus.WAITLIST.value:
            return plan(DissolveAction.LEAVE, SeatDisposition.RELEASE_WAITLIST)
        return plan(DissolveAction.LEAVE, SeatDisposition.PROMOTE_SURVIVOR)

    actor_confirmed = bool(team.get(flag))
    if requested is DissolveAction.DECLINE and actor_confirmed:
        raise PreconditionError(RejectReason.NOTHING_TO_DECLINE)
    if requested is DissolveAction.CANCEL and not actor_confirmed:
        raise PreconditionError(RejectReason.NOTHING_TO_CANCEL)

    if not actor_confirmed:
        action = DissolveAction.DECLINE
    elif requested is DissolveAction.LEAVE and registration is not None and (
        registration.get("playerId") == actor_id
    ):
        action = DissolveAction.LEAVE
    else:
        action = DissolveAction.CANCEL

    if registration is None:
        return plan(action, SeatDisposition.DELETE_ONLY)
    if action is not DissolveAction.LEAVE:
        return plan(action, SeatDisposition.REVERT_TO_OWNER)

    own_seat = None
    if survivor is not None:
        own_seats = [
            r
            for r in survivor.primary
            if r.id != registration.id
            and r.get("status")
            in (RegistrationStatus.CONFIRMED.value, RegistrationStatus.WAITLIST.value)
        ]
        own_seats.sort(key=lambda r: not holds_seat(r.data))
        own_seat = own_seats[0] if own_seats else None
    if own_seat is not None:
        return plan(action, SeatDisposition.CANCEL_SHARED, own_seat)
    if survivor_id:
        return plan(action, SeatDisposition.HAND_OVER)
    return plan(action, SeatDisposition.DELETE_ONLY)


def find_orphans(team_id: str, members: tuple[Footprint, ...]) -> list[Orphan]:
    """Collect the other pending teams of the given players in the event."""
    orphans: dict[str, Orphan] = {}
    for member in members:
        for team in member.pending_teams(exclude=team_id):
            if team.id in orphans:
                continue
            linked = tuple(
                reg
                for fp in members
                for reg in fp.registrations()
                if reg.get("teamId") == team.id
            )
            # A registration shared by both members appears in both footprints
            unique = tuple({reg.id: reg for reg in linked}.values())
            third_party = other_member(team.data, member.user_id)
            member_ids = {fp.user_id for fp in members}
            orphans[team.id] = Orphan(
                team=team,
                member_id=member.user_id,
                third_party_id=third_party if third_party not in member_ids else None,
                registrations=unique,
            )
    return list(orphans.values())
