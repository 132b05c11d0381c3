"""Sending partner invites."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from padelhub.constants import REGISTRATIONS_COLLECTION, TEAMS_COLLECTION, UNIT_TEAMS
from padelhub.errors import PreconditionError, RejectReason, StaleReadError

from ..models import (
    InviteResult,
    NotificationType,
    PartnerStatus,
    RegistrationStatus,
    TeamStatus,
)
from ..orchestrator import run_roster_operation
from ..pairing import InviteMode, InvitePlan, classify_invite
from .common import (
    RosterCommit,
    ensure_open,
    get_event,
    load_footprint,
    player_names,
    roster_version,
    utc_now,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


@dataclass(frozen=True)
class SendInvitePlan:
    event_id: str
    version: int
    invite: InvitePlan
    names: dict[str, str]


class InviteService:
    """Service class for partner invites."""

    @staticmethod
    def send_invite(
        inviter_id: str, event_id: str, invitee_id: str, db: Client | None = None
    ) -> InviteResult:
        """Invite another player to form a team for an event.

        The invite attaches to whichever registration already exists for the
        pair, or creates a new pending one, and the invitee is notified.
        """
        if inviter_id == invitee_id:
            raise PreconditionError(RejectReason.SELF_INVITE)
        if db is None:
            db = firestore.client()

        def prefetch() -> SendInvitePlan:
            event = get_event(db, event_id)
            if event.get("unitType") != UNIT_TEAMS:
                raise PreconditionError(RejectReason.NOT_TEAM_EVENT)
            ensure_open(event)
            invite = classify_invite(
                load_footprint(db, event_id, inviter_id),
                load_footprint(db, event_id, invitee_id),
            )
            return SendInvitePlan(
                event_id=event_id,
                version=roster_version(event),
                invite=invite,
                names=player_names(db, inviter_id, invitee_id),
            )

        def commit(transaction: Transaction, plan: SendInvitePlan) -> InviteResult:
            roster = RosterCommit(db, transaction, plan.event_id, plan.version)
            invite = plan.invite
            current = None
            if invite.registration is not None:
                current = roster.read(REGISTRATIONS_COLLECTION, invite.registration.id)
            if not invite.still_holds(current):
                raise StaleReadError(f"{invite.mode.value} seat is no longer open")

            team_ref = db.collection(TEAMS_COLLECTION).document()
            inviter_name = plan.names[invite.inviter_id]
            invitee_name = plan.names[invite.invitee_id]

            if invite.mode is InviteMode.MERGE_P1:
                player1, player2 = invite.invitee_id, invite.inviter_id
            else:
                player1, player2 = invite.inviter_id, invite.invitee_id
            roster.set(
                TEAMS_COLLECTION,
                team_ref.id,
                {
                    "teamId": team_ref.id,
                    "eventId": plan.event_id,
                    "player1Id": player1,
                    "player2Id": player2,
                    "player1Confirmed": player1 == invite.inviter_id,
                    "player2Confirmed": player2 == invite.inviter_id,
                    "status": TeamStatus.PENDING.value,
                    "fullNameP1": plan.names[player1],
                    "fullNameP2": plan.names[player2],
                    "invite": invite.mode.value,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                },
            )

            link: dict[str, Any] = {
                "teamId": team_ref.id,
                "partnerStatus": PartnerStatus.PENDING.value,
                "lookingForPartner": False,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
            if invite.mode is InviteMode.MERGE_P1:
                registration_id = current.id
                link.update(player2Id=invite.inviter_id, fullNameP2=inviter_name)
                roster.update(REGISTRATIONS_COLLECTION, registration_id, link)
            elif invite.mode is InviteMode.FILL_P2:
                registration_id = current.id
                link.update(player2Id=invite.invitee_id, fullNameP2=invitee_name)
                roster.update(REGISTRATIONS_COLLECTION, registration_id, link)
            elif invite.mode is InviteMode.MERGE_P2:
                registration_id = current.id
                link.update(playerId=invite.inviter_id, fullNameP1=inviter_name)
                roster.update(REGISTRATIONS_COLLECTION, registration_id, link)
            else:
                registration_ref = db.collection(REGISTRATIONS_COLLECTION).document()
                registration_id = registration_ref.id
                roster.set(
                    REGISTRATIONS_COLLECTION,
                    registration_id,
                    {
                        **link,
                        "registrationId": registration_id,
                        "eventId": plan.event_id,
                        "playerId": invite.inviter_id,
                        "player2Id": invite.invitee_id,
                        "fullNameP1": inviter_name,
                        "fullNameP2": invitee_name,
                        "status": RegistrationStatus.PENDING.value,
                        "waitlistPosition": 0,
                        "isPrimary": True,
                        "holdsSeat": False,
                        "registeredAt": utc_now(),
                        "createdAt": firestore.SERVER_TIMESTAMP,
                    },
                )

            roster.notifications.notify(
                invite.target_id,
                NotificationType.PARTNER_INVITE,
                team_ref.id,
                invite.inviter_id,
                from_name=inviter_name,
            )
            roster.finish()
            return InviteResult(
                team_id=team_ref.id,
                registration_id=registration_id,
                mode=invite.mode.value,
                target_user_id=invite.target_id,
            )

        return run_roster_operation(db, "send_invite", prefetch, commit)
