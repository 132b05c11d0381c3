"""Registering for and withdrawing from events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from firebase_admin import firestore

from padelhub.constants import REGISTRATIONS_COLLECTION, TEAMS_COLLECTION, UNIT_TEAMS
from padelhub.errors import PreconditionError, RejectReason, StaleReadError

from ..models import (
    LIVE_REGISTRATION_STATUSES,
    Doc,
    NotificationType,
    PartnerStatus,
    RegistrationResult,
    RegistrationStatus,
    WithdrawResult,
    holds_seat,
    other_member,
)
from ..orchestrator import Settled, run_roster_operation
from .common import (
    RosterCommit,
    ensure_open,
    get_document,
    get_event,
    load_footprint,
    player_names,
    roster_version,
    utc_now,
    waitlist_candidates,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def registration_id_for(event_id: str, user_id: str) -> str:
    """Deterministic id of a player's own registration for an event."""
    return f"{event_id}_{user_id}"


@dataclass(frozen=True)
class RegisterPlan:
    event_id: str
    user_id: str
    version: int
    registration_id: str
    teams_mode: bool
    player_name: str


@dataclass(frozen=True)
class WithdrawPlan:
    event_id: str
    user_id: str
    version: int
    registration: Doc
    team: Optional[Doc]
    partner_id: Optional[str]
    candidates: tuple[Doc, ...]
    names: dict[str, str]


class RegistrationService:
    """Service class for registration-related operations."""

    @staticmethod
    def register(
        user_id: str, event_id: str, db: Client | None = None
    ) -> RegistrationResult:
        """Register a player for an event on their own.

        In a players event the player takes a confirmed seat or joins the
        waitlist. In a teams event they become a free agent who is looking for
        a partner; seats are only taken once a pairing is accepted.
        """
        if db is None:
            db = firestore.client()

        def prefetch() -> RegisterPlan:
            event = get_event(db, event_id)
            ensure_open(event)
            footprint = load_footprint(db, event_id, user_id)
            if footprint.primary or any(
                r.get("partnerStatus") == PartnerStatus.CONFIRMED.value
                for r in footprint.secondary
            ):
                raise PreconditionError(RejectReason.ALREADY_REGISTERED)
            return RegisterPlan(
                event_id=event_id,
                user_id=user_id,
                version=roster_version(event),
                registration_id=registration_id_for(event_id, user_id),
                teams_mode=event.get("unitType") == UNIT_TEAMS,
                player_name=player_names(db, user_id)[user_id],
            )

        def commit(transaction: Transaction, plan: RegisterPlan) -> RegistrationResult:
            roster = RosterCommit(db, transaction, plan.event_id, plan.version)
            existing = roster.read(REGISTRATIONS_COLLECTION, plan.registration_id)
            if existing is not None and existing.get("status") in (
                LIVE_REGISTRATION_STATUSES
            ):
                raise StaleReadError(f"registration {existing.id} is already live")

            now = utc_now()
            data = {
                "registrationId": plan.registration_id,
                "eventId": plan.event_id,
                "playerId": plan.user_id,
                "player2Id": None,
                "fullNameP1": plan.player_name,
                "fullNameP2": None,
                "teamId": None,
                "partnerStatus": PartnerStatus.NONE.value,
                "isPrimary": True,
                "registeredAt": now,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
            if plan.teams_mode:
                data.update(
                    status=RegistrationStatus.CONFIRMED.value,
                    waitlistPosition=0,
                    lookingForPartner=True,
                    holdsSeat=False,
                )
            else:
                allocation = roster.allocate()
                data.update(
                    status=allocation.status,
                    waitlistPosition=allocation.waitlist_position,
                    waitlistedAt=(
                        now
                        if allocation.status == RegistrationStatus.WAITLIST.value
                        else None
                    ),
                    lookingForPartner=False,
                    holdsSeat=True,
                )
            # A cancelled registration at the same id is recycled in place
            roster.set(REGISTRATIONS_COLLECTION, plan.registration_id, data)
            roster.finish()
            return RegistrationResult(
                registration_id=plan.registration_id,
                status=data["status"],
                waitlist_position=data["waitlistPosition"],
                holds_seat=data["holdsSeat"],
            )

        return run_roster_operation(db, "register", prefetch, commit)

    @staticmethod
    def withdraw(
        user_id: str, registration_id: str, db: Client | None = None
    ) -> WithdrawResult:
        """Withdraw a registration, releasing its seat and any team on it."""
        if db is None:
            db = firestore.client()

        def prefetch() -> WithdrawPlan | Settled:
            registration = get_document(db, REGISTRATIONS_COLLECTION, registration_id)
            if registration is None or (
                registration.get("status") == RegistrationStatus.CANCELLED.value
            ):
                return Settled(WithdrawResult(registration_id, changed=False))
            if registration.get("playerId") != user_id:
                raise PreconditionError(RejectReason.NOT_REGISTRATION_OWNER)

            event_id = registration.get("eventId")
            event = get_event(db, event_id)
            team = get_document(db, TEAMS_COLLECTION, registration.get("teamId"))
            partner_id = (
                other_member(team.data, user_id)
                if team is not None
                else registration.get("player2Id")
            )
            candidates: tuple[Doc, ...] = ()
            if (
                holds_seat(registration.data)
                and registration.get("status") == RegistrationStatus.CONFIRMED.value
            ):
                candidates = waitlist_candidates(db, event_id, exclude=[registration.id])
            return WithdrawPlan(
                event_id=event_id,
                user_id=user_id,
                version=roster_version(event),
                registration=registration,
                team=team,
                partner_id=partner_id,
                candidates=candidates,
                names=player_names(db, user_id),
            )

        def commit(transaction: Transaction, plan: WithdrawPlan) -> WithdrawResult:
            roster = RosterCommit(db, transaction, plan.event_id, plan.version)
            registration = roster.read_existing(
                REGISTRATIONS_COLLECTION, plan.registration.id
            )
            if registration.get("status") != plan.registration.get("status"):
                raise StaleReadError(f"registration {registration.id} changed status")
            team = None
            if plan.team is not None:
                team = roster.read(TEAMS_COLLECTION, plan.team.id)
            roster.read_candidates(plan.candidates)

            released = None
            if holds_seat(registration.data):
                released = registration.get("status")
                roster.release(released)
            roster.update(
                REGISTRATIONS_COLLECTION,
                registration.id,
                {
                    "status": RegistrationStatus.CANCELLED.value,
                    "holdsSeat": False,
                    "lookingForPartner": False,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            if team is not None:
                roster.delete(TEAMS_COLLECTION, team.id)
            if plan.partner_id:
                roster.notifications.notify(
                    plan.partner_id,
                    NotificationType.TEAM_WITHDRAWN,
                    plan.team.id if plan.team else None,
                    plan.user_id,
                    from_name=plan.names[plan.user_id],
                )
            promoted = roster.finish()
            return WithdrawResult(
                registration_id=registration.id,
                released_status=released,
                promoted_registration_ids=promoted,
            )

        return run_roster_operation(db, "withdraw", prefetch, commit)
