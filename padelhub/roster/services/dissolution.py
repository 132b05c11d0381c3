"""Declining, cancelling and leaving teams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from firebase_admin import firestore

from padelhub.constants import REGISTRATIONS_COLLECTION, TEAMS_COLLECTION
from padelhub.errors import StaleReadError, ValidationError

from ..models import (
    Doc,
    DissolveResult,
    NotificationType,
    RegistrationStatus,
    confirmation_field,
    holds_seat,
    other_member,
)
from ..orchestrator import Settled, run_roster_operation
from ..pairing import DissolveAction, DissolvePlan, SeatDisposition, classify_dissolution
from .common import (
    RosterCommit,
    acknowledge,
    find_team_registration,
    free_agent_fields,
    get_document,
    get_event,
    load_footprint,
    player_names,
    roster_version,
    waitlist_candidates,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


SURVIVOR_NOTICES = {
    DissolveAction.DECLINE: NotificationType.PARTNER_DECLINED,
    DissolveAction.CANCEL: NotificationType.INVITE_CANCELLED,
    DissolveAction.LEAVE: NotificationType.PARTNER_LEFT,
}


@dataclass(frozen=True)
class DissolveTeamPlan:
    dissolution: DissolvePlan
    version: int
    candidates: tuple[Doc, ...]
    names: dict[str, str]
    notification_id: Optional[str] = None


@dataclass(frozen=True)
class VanishedTeamPlan:
    result: DissolveResult
    actor_id: str
    notification_id: str


class DissolutionService:
    """Service class for breaking up teams."""

    @staticmethod
    def _plan(
        db: Client,
        actor_id: str,
        team_id: str,
        action: DissolveAction,
        notification_id: Optional[str],
    ) -> DissolveTeamPlan | VanishedTeamPlan | Settled:
        team = get_document(db, TEAMS_COLLECTION, team_id)
        if team is None:
            result = DissolveResult(team_id=team_id, action=action.value, changed=False)
            if notification_id:
                return VanishedTeamPlan(result, actor_id, notification_id)
            return Settled(result)

        event_id = team.get("eventId")
        event = get_event(db, event_id)
        registration = find_team_registration(db, team_id)
        survivor_id = other_member(team.data, actor_id)
        survivor = load_footprint(db, event_id, survivor_id) if survivor_id else None
        dissolution = classify_dissolution(
            team, actor_id, action, registration, survivor
        )
        candidates: tuple[Doc, ...] = ()
        if dissolution.frees_confirmed_seat:
            candidates = waitlist_candidates(db, event_id, exclude=[registration.id])
        return DissolveTeamPlan(
            dissolution=dissolution,
            version=roster_version(event),
            candidates=candidates,
            names=player_names(db, actor_id, survivor_id),
            notification_id=notification_id,
        )

    @staticmethod
    def _commit(
        db: Client,
        transaction: Transaction,
        plan: DissolveTeamPlan | VanishedTeamPlan,
    ) -> DissolveResult:
        if isinstance(plan, VanishedTeamPlan):
            acknowledge(db, transaction, plan.notification_id, plan.actor_id)
            return plan.result

        dissolution = plan.dissolution
        roster = RosterCommit(
            db, transaction, dissolution.team.get("eventId"), plan.version
        )
        team = roster.read_existing(TEAMS_COLLECTION, dissolution.team.id)
        flag = confirmation_field(team.data, dissolution.actor_id)
        if team.get("status") != dissolution.team.get("status") or team.get(
            flag
        ) != dissolution.team.get(flag):
            raise StaleReadError(f"team {team.id} changed since it was classified")
        registration = None
        if dissolution.registration is not None:
            registration = roster.read_existing(
                REGISTRATIONS_COLLECTION, dissolution.registration.id
            )
        survivor_seat = None
        if dissolution.survivor_seat is not None:
            survivor_seat = roster.read(
                REGISTRATIONS_COLLECTION, dissolution.survivor_seat.id
            )
        roster.read_candidates(plan.candidates)
        roster.read_notification(plan.notification_id, dissolution.actor_id)

        survivor_id = dissolution.survivor_id
        disposition = dissolution.disposition
        if disposition is SeatDisposition.REVERT_TO_OWNER:
            roster.update(
                REGISTRATIONS_COLLECTION,
                registration.id,
                {
                    **free_agent_fields(registration.get("status")),
                    "partnerStatus": dissolution.partner_status,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
        elif disposition is SeatDisposition.CANCEL_SHARED:
            if holds_seat(registration.data):
                roster.release(registration.get("status"))
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
            if survivor_seat is not None and survivor_seat.get("teamId") == team.id:
                roster.update(
                    REGISTRATIONS_COLLECTION,
                    survivor_seat.id,
                    {
                        **free_agent_fields(survivor_seat.get("status")),
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    },
                )
        elif disposition in (
            SeatDisposition.HAND_OVER,
            SeatDisposition.PROMOTE_SURVIVOR,
        ):
            # The survivor takes the seat over in place and keeps its position
            roster.update(
                REGISTRATIONS_COLLECTION,
                registration.id,
                {
                    **free_agent_fields(registration.get("status")),
                    "playerId": survivor_id,
                    "fullNameP1": plan.names[survivor_id],
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
        elif disposition is SeatDisposition.RELEASE_WAITLIST:
            if holds_seat(registration.data):
                roster.release(RegistrationStatus.WAITLIST.value)
            roster.update(
                REGISTRATIONS_COLLECTION,
                registration.id,
                {
                    **free_agent_fields(),
                    "playerId": survivor_id,
                    "fullNameP1": plan.names[survivor_id],
                    "holdsSeat": False,
                    "waitlistPosition": 0,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )

        roster.delete(TEAMS_COLLECTION, team.id)
        roster.notifications.notify(
            survivor_id,
            SURVIVOR_NOTICES[dissolution.action],
            team.id,
            dissolution.actor_id,
            from_name=plan.names[dissolution.actor_id],
        )
        promoted = roster.finish()
        return DissolveResult(
            team_id=team.id,
            action=dissolution.action.value,
            survivor_id=survivor_id,
            disposition=disposition.value,
            promoted_registration_ids=promoted,
        )

    @staticmethod
    def dissolve_team(
        actor_id: str,
        team_id: str,
        action: DissolveAction | str,
        notification_id: Optional[str] = None,
        db: Client | None = None,
    ) -> DissolveResult:
        """Decline, cancel or leave a team, deleting it.

        What happens to the team's registration depends on who acts and on
        how far the pairing got; see SeatDisposition.
        """
        try:
            action = DissolveAction(action)
        except ValueError as e:
            raise ValidationError(f"Unknown team action: {action}") from e
        if db is None:
            db = firestore.client()
        return run_roster_operation(
            db,
            "dissolve_team",
            lambda: DissolutionService._plan(
                db, actor_id, team_id, action, notification_id
            ),
            lambda transaction, plan: DissolutionService._commit(
                db, transaction, plan
            ),
        )
